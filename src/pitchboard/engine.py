from __future__ import annotations

import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from dataclasses import asdict
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

from pitchboard.contracts import (
    ActionRequest,
    ActionResult,
    ActionType,
    FormationState,
    FormationTransport,
    LoadOutcome,
    LoadPhase,
    LoadSource,
    RandomSource,
    RosterMember,
    SaveOutcome,
)
from pitchboard.core import (
    EngineConfig,
    FormationIntegrityError,
    NoticeBus,
    PersistenceLoadError,
    PersistenceSaveError,
    RuntimePaths,
    UnknownPresetError,
    build_forensic_artifact,
    unseeded_random,
    get_logger,
    persist_forensic_artifact,
)
from pitchboard.export import ExportService
from pitchboard.formation import AssignmentStore, Location, plan_formation, preset_names
from pitchboard.persistence import BackupStore, PersistenceGateway, roster_from_payload

_log = get_logger("engine")

RosterInput = Iterable[RosterMember | Mapping[str, Any]]


def state_to_dict(state: FormationState) -> dict[str, Any]:
    data = asdict(state)
    data["starter_count"] = len(state.starters)
    data["bench_count"] = len(state.bench)
    return data


def _resolved(value: Any) -> Future:
    future: Future = Future()
    future.set_result(value)
    return future


class FormationEngine:
    """Formation editor for one team context.

    Mutations run synchronously under a lock; loads and saves run on the
    executor and hand back futures. An engine is bound to the first team it
    is initialised with.
    """

    def __init__(
        self,
        transport: FormationTransport,
        *,
        config: EngineConfig | None = None,
        random_source: RandomSource | None = None,
        executor: Executor | None = None,
        backup_store: BackupStore | None = None,
        paths: RuntimePaths | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.config.validate()
        self.paths = paths or RuntimePaths(Path.cwd())
        self.rand = random_source or unseeded_random()
        self.notices = NoticeBus()
        self.gateway = PersistenceGateway(
            transport,
            default_preset=self.config.default_preset,
            bench_capacity=self.config.bench_capacity,
            backup_store=backup_store,
        )
        self._store = AssignmentStore(
            preset_name=self.config.default_preset,
            bench_capacity=self.config.bench_capacity,
            debug_checks=self.config.debug_checks,
        )
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.config.save_workers,
            thread_name_prefix="pitchboard",
        )
        self._lock = threading.RLock()
        self._pending_roster: list[RosterMember] | None = None
        self._pending_saves: set[Future] = set()
        self.last_load: LoadOutcome | None = None
        self.halted = False
        self.last_forensic_path: str | None = None

    def __enter__(self) -> FormationEngine:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.flush()
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def flush(self, timeout: float | None = None) -> None:
        with self._lock:
            pending = list(self._pending_saves)
        if pending:
            wait(pending, timeout=timeout)

    @property
    def state(self) -> FormationState:
        with self._lock:
            return self._store.snapshot()

    @property
    def team_id(self) -> str | None:
        return self._store.team_id

    @property
    def dirty(self) -> bool:
        return self._store.state.dirty

    @property
    def is_loading(self) -> bool:
        return self._store.state.is_loading

    @property
    def pending_saves(self) -> int:
        with self._lock:
            return sum(1 for future in self._pending_saves if not future.done())

    def locate(self, reference: str) -> Location | None:
        with self._lock:
            return self._store.locate(reference)

    # loading

    def init(self, team_id: str) -> Future:
        with self._lock:
            bound = self._store.team_id
            if bound is not None and bound != team_id:
                raise ValueError(f"engine is bound to team {bound}; create a new engine for team {team_id}")
            self._store.bind_team(team_id)
            self._store.set_loading(True)
        _log.info("loading formation for team %s", team_id)
        return self._executor.submit(self._load, team_id)

    def _load(self, team_id: str) -> LoadOutcome:
        try:
            outcome = self.gateway.load(team_id)
        except Exception as exc:
            _log.exception("unexpected failure loading formation for team %s", team_id)
            outcome = LoadOutcome(
                team_id=team_id,
                phase=LoadPhase.FAILED,
                source=LoadSource.PLACEHOLDER,
                document=self.gateway.placeholder_document(),
                dirty=False,
                error=PersistenceLoadError(team_id, str(exc)),
            )
        self._apply_load(outcome)
        return outcome

    def _apply_load(self, outcome: LoadOutcome) -> None:
        with self._lock:
            document = outcome.document or self.gateway.placeholder_document()
            self._store.load_document(document, dirty=outcome.dirty)
            self._store.set_loading(False)
            self.last_load = outcome
            if outcome.error is not None:
                self.notices.publish("load", "warning", str(outcome.error), outcome.team_id)
            roster, self._pending_roster = self._pending_roster, None
            if roster is not None:
                _log.debug("applying roster of %d deferred during load", len(roster))
                self._apply_roster(roster)

    # roster

    def supply_roster(self, members: RosterInput) -> bool:
        roster = roster_from_payload(members)
        with self._lock:
            if self._store.state.is_loading:
                self._pending_roster = roster
                _log.debug("roster of %d deferred until the load completes", len(roster))
                return False
            return self._apply_roster(roster)

    def _apply_roster(self, roster: list[RosterMember]) -> bool:
        if self._store.has_real_members():
            return self._store.refresh_member_details(roster)
        if not roster:
            return False
        return self._auto_assign(roster)

    def auto_assign(self, members: RosterInput) -> bool:
        """Re-plan the whole formation from ``members``, replacing current assignments."""
        roster = roster_from_payload(members)
        with self._lock:
            if self._refuse_while_loading("auto_assign"):
                return False
            return self._auto_assign(roster)

    def _auto_assign(self, roster: list[RosterMember]) -> bool:
        plan = plan_formation(roster, self._store.preset_name, self.rand.spawn("planner"), self.config.bench_capacity)
        changed = self._store.apply_plan(plan)
        if plan.unassigned_member_ids:
            self.notices.publish(
                "planner",
                "info",
                f"{len(plan.unassigned_member_ids)} member(s) did not fit on the pitch or bench",
                self._store.team_id,
            )
        if changed:
            self._schedule_save()
        return changed

    # mutations

    def _refuse_while_loading(self, operation: str) -> bool:
        if self._store.state.is_loading:
            _log.info("%s ignored while the formation for team %s is loading", operation, self._store.team_id)
            return True
        return False

    def _mutate(self, operation: str, mutation: Callable[..., bool], *args: Any, **kwargs: Any) -> bool:
        with self._lock:
            if self._refuse_while_loading(operation):
                return False
            changed = mutation(*args, **kwargs)
            if changed:
                self._schedule_save()
            return changed

    def move_player_to_position(
        self,
        reference: str,
        target_position_id: str,
        origin_is_starter: bool,
        origin_position_id: str | None = None,
        origin_bench_index: int | None = None,
    ) -> bool:
        return self._mutate(
            "move_player_to_position",
            self._store.move_player_to_position,
            reference,
            target_position_id,
            origin_is_starter,
            origin_position_id,
            origin_bench_index,
        )

    def move_player_to_sub_slot(
        self,
        reference: str,
        target_bench_index: int,
        origin_is_starter: bool,
        origin_position_id: str | None = None,
        origin_bench_index: int | None = None,
    ) -> bool:
        return self._mutate(
            "move_player_to_sub_slot",
            self._store.move_player_to_sub_slot,
            reference,
            target_bench_index,
            origin_is_starter,
            origin_position_id,
            origin_bench_index,
        )

    def swap_players_in_formation(self, reference_a: str, reference_b: str) -> bool:
        return self._mutate("swap_players_in_formation", self._store.swap_players_in_formation, reference_a, reference_b)

    def move_starter_to_subs_general(self, reference: str, origin_position_id: str | None = None) -> bool:
        return self._mutate(
            "move_starter_to_subs_general",
            self._store.move_starter_to_subs_general,
            reference,
            origin_position_id,
        )

    def change_preset(self, preset_name: str) -> bool:
        return self._mutate("change_preset", self._store.change_preset, preset_name)

    def set_dummy_players(self, preset_name: str | None = None) -> bool:
        return self._mutate("set_dummy_players", self._store.set_dummy_players, preset_name)

    # saving

    def save(self) -> Future:
        """Persist the current state now; also the manual retry after a failed save."""
        with self._lock:
            return self._schedule_save()

    def _schedule_save(self) -> Future:
        team_id = self._store.team_id
        if team_id is None:
            _log.debug("no team bound; revision %d kept locally", self._store.state.revision)
            return _resolved(
                SaveOutcome(
                    team_id="",
                    revision=self._store.state.revision,
                    success=False,
                    error=PersistenceSaveError("<unbound>", "engine has not been initialised with a team"),
                )
            )
        future = self._executor.submit(self._save, team_id)
        if not future.done():
            self._pending_saves.add(future)
            future.add_done_callback(self._forget_save)
        return future

    def _forget_save(self, future: Future) -> None:
        with self._lock:
            self._pending_saves.discard(future)

    def _save(self, team_id: str) -> SaveOutcome:
        with self._lock:
            snapshot = self._store.snapshot()
        try:
            outcome = self.gateway.save(team_id, snapshot)
        except Exception as exc:
            _log.exception("unexpected failure saving formation for team %s", team_id)
            outcome = SaveOutcome(
                team_id=team_id,
                revision=snapshot.revision,
                success=False,
                error=PersistenceSaveError(team_id, str(exc)),
            )
        with self._lock:
            if outcome.success:
                self._store.mark_persisted(outcome.revision)
            else:
                self.notices.publish("save", "warning", str(outcome.error), team_id)
        return outcome

    # exports

    def export(self, output_dir: Path | None = None) -> list[Path]:
        return ExportService(output_dir or self.paths.export_dir).export_lineup(self.state)

    # action dispatch

    def handle_action(self, request: ActionRequest) -> ActionResult:
        if self.halted:
            return ActionResult(
                request.request_id,
                False,
                f"engine halted after integrity failure; forensic={self.last_forensic_path}",
                {"forensic_path": self.last_forensic_path},
            )

        try:
            return self._handle_action_core(request)
        except FormationIntegrityError as exc:
            self.last_forensic_path = str(persist_forensic_artifact(exc.artifact, self.paths.forensic_dir))
            self.halted = True
            _log.error("integrity failure %s; forensic artifact at %s", exc.artifact.error_code, self.last_forensic_path)
            return ActionResult(
                request.request_id,
                False,
                f"integrity failure: {exc.artifact.error_code}",
                {"forensic_path": self.last_forensic_path},
            )
        except UnknownPresetError as exc:
            return ActionResult(request.request_id, False, str(exc), {"presets": preset_names()})
        except KeyError as exc:
            return ActionResult(request.request_id, False, f"missing payload field {exc}")
        except ValueError as exc:
            return ActionResult(request.request_id, False, str(exc))
        except Exception as exc:
            artifact = build_forensic_artifact(
                engine_scope="engine",
                error_code="UNHANDLED_ENGINE_EXCEPTION",
                message=str(exc),
                state_snapshot={"team_id": self.team_id, "revision": self._store.state.revision},
                context={"action_type": str(request.action_type), "payload": request.payload},
                identifiers={"request_id": request.request_id, "team_id": request.actor_team_id},
                causal_fragment=["engine_dispatch"],
            )
            self.last_forensic_path = str(persist_forensic_artifact(artifact, self.paths.forensic_dir))
            self.halted = True
            _log.exception("engine hard-stopped while handling %s", request.action_type)
            return ActionResult(
                request.request_id,
                False,
                f"engine hard-stopped: {exc}",
                {"forensic_path": self.last_forensic_path},
            )

    def _changed(self, request: ActionRequest, changed: bool, message: str) -> ActionResult:
        return ActionResult(
            request.request_id,
            True,
            message if changed else "no change",
            data={"changed": changed, "state": state_to_dict(self.state)},
        )

    def _handle_action_core(self, request: ActionRequest) -> ActionResult:
        action = self._normalize_action(request.action_type)
        payload = request.payload

        if action == ActionType.GET_STATE:
            return ActionResult(request.request_id, True, "formation state", data={"state": state_to_dict(self.state)})

        if action == ActionType.LIST_PRESETS:
            return ActionResult(
                request.request_id,
                True,
                "presets",
                data={"presets": preset_names(), "active": self._store.preset_name},
            )

        if action == ActionType.SUPPLY_ROSTER:
            changed = self.supply_roster(payload["members"])
            return self._changed(request, changed, "roster applied")

        if action == ActionType.MOVE_TO_POSITION:
            changed = self.move_player_to_position(
                str(payload["member_id"]),
                str(payload["target_position_id"]),
                bool(payload.get("origin_is_starter", False)),
                payload.get("origin_position_id"),
                payload.get("origin_bench_index"),
            )
            return self._changed(request, changed, f"moved to {payload['target_position_id']}")

        if action == ActionType.MOVE_TO_BENCH_SLOT:
            changed = self.move_player_to_sub_slot(
                str(payload["member_id"]),
                int(payload["target_bench_index"]),
                bool(payload.get("origin_is_starter", False)),
                payload.get("origin_position_id"),
                payload.get("origin_bench_index"),
            )
            return self._changed(request, changed, f"moved to bench slot {payload['target_bench_index']}")

        if action == ActionType.MOVE_TO_BENCH:
            changed = self.move_starter_to_subs_general(str(payload["member_id"]), payload.get("origin_position_id"))
            return self._changed(request, changed, "moved to bench")

        if action == ActionType.SWAP:
            changed = self.swap_players_in_formation(str(payload["first"]), str(payload["second"]))
            return self._changed(request, changed, "swapped")

        if action == ActionType.CHANGE_PRESET:
            changed = self.change_preset(str(payload["preset"]))
            return self._changed(request, changed, f"preset {payload['preset']}")

        if action == ActionType.SET_PLACEHOLDERS:
            changed = self.set_dummy_players(payload.get("preset"))
            return self._changed(request, changed, "placeholders set")

        if action == ActionType.SAVE:
            outcome: SaveOutcome = self.save().result(timeout=self.config.request_timeout * 2)
            return ActionResult(
                request.request_id,
                outcome.success,
                "saved" if outcome.success else str(outcome.error),
                data={"revision": outcome.revision, "dirty": self.dirty},
            )

        if action == ActionType.EXPORT:
            outputs = self.export()
            return ActionResult(request.request_id, True, "exported", data={"paths": [str(p) for p in outputs]})

        return ActionResult(request.request_id, False, f"Unsupported action '{request.action_type}'")

    def _normalize_action(self, action: ActionType | str) -> ActionType:
        if isinstance(action, ActionType):
            return action
        return ActionType(action)
