from __future__ import annotations

import copy
import functools
from dataclasses import dataclass, replace
from typing import Callable, Iterable, TypeVar

from pitchboard.contracts import (
    BenchAssignment,
    FormationDocument,
    FormationPlan,
    FormationState,
    PositionSlot,
    RosterMember,
    StarterAssignment,
)
from pitchboard.core.config import DEFAULT_BENCH_CAPACITY
from pitchboard.core.errors import AssignmentNotFoundError
from pitchboard.core.logs import get_logger
from pitchboard.formation.placeholders import default_bench, default_starters, placeholder_starter
from pitchboard.formation.presets import DEFAULT_PRESET, slots_for
from pitchboard.formation.validation import assert_formation_integrity

_log = get_logger("store")

Occupant = StarterAssignment | BenchAssignment
F = TypeVar("F", bound=Callable[..., bool])


@dataclass(slots=True)
class Location:
    in_starters: bool
    index: int
    assignment: Occupant

    @property
    def position_id(self) -> str | None:
        if isinstance(self.assignment, StarterAssignment):
            return self.assignment.position_id
        return None


def bind_to_slot(occupant: Occupant, slot: PositionSlot) -> StarterAssignment:
    return StarterAssignment(
        assignment_id=occupant.assignment_id,
        position_id=slot.id,
        label=slot.label,
        x_norm=slot.x_norm,
        y_norm=slot.y_norm,
        member_id=occupant.member_id,
        jersey_number=occupant.jersey_number,
        display_name=occupant.display_name,
        preferred_position=occupant.preferred_position,
    )


def take_over_binding(occupant: Occupant, holder: StarterAssignment) -> StarterAssignment:
    """Bind ``occupant`` to the slot ``holder`` occupies, keeping its exact coordinates."""
    return StarterAssignment(
        assignment_id=occupant.assignment_id,
        position_id=holder.position_id,
        label=holder.label,
        x_norm=holder.x_norm,
        y_norm=holder.y_norm,
        member_id=occupant.member_id,
        jersey_number=occupant.jersey_number,
        display_name=occupant.display_name,
        preferred_position=occupant.preferred_position,
    )


def release_to_bench(occupant: Occupant) -> BenchAssignment:
    return BenchAssignment(
        assignment_id=occupant.assignment_id,
        member_id=occupant.member_id,
        jersey_number=occupant.jersey_number,
        display_name=occupant.display_name,
        preferred_position=occupant.preferred_position,
    )


def _soft_lookup(method: F) -> F:
    @functools.wraps(method)
    def wrapper(self: AssignmentStore, *args, **kwargs) -> bool:
        try:
            return method(self, *args, **kwargs)
        except AssignmentNotFoundError as exc:
            _log.warning("%s ignored for team %s: %s", method.__name__, self.team_id, exc)
            return False

    return wrapper  # type: ignore[return-value]


class AssignmentStore:
    """Owns one team's FormationState and every mutation applied to it.

    Mutations return True when the state changed. A changed state is marked
    dirty and receives a new revision; callers persist it afterwards. Lookups
    accept an assignment id or a member id, assignment ids first.
    """

    def __init__(
        self,
        team_id: str | None = None,
        preset_name: str = DEFAULT_PRESET,
        *,
        bench_capacity: int = DEFAULT_BENCH_CAPACITY,
        debug_checks: bool = False,
    ) -> None:
        slots_for(preset_name)
        self._state = FormationState(team_id=team_id, preset_name=preset_name)
        self._bench_capacity = bench_capacity
        self._debug_checks = debug_checks

    @property
    def state(self) -> FormationState:
        return self._state

    @property
    def team_id(self) -> str | None:
        return self._state.team_id

    @property
    def preset_name(self) -> str:
        return self._state.preset_name

    @property
    def bench_capacity(self) -> int:
        return self._bench_capacity

    def snapshot(self) -> FormationState:
        return copy.deepcopy(self._state)

    def bind_team(self, team_id: str) -> None:
        self._state.team_id = team_id

    def set_loading(self, loading: bool) -> None:
        self._state.is_loading = loading

    def mark_persisted(self, revision: int) -> None:
        self._state.persisted_revision = max(self._state.persisted_revision, revision)
        self._state.dirty = self._state.revision > self._state.persisted_revision

    def has_real_members(self) -> bool:
        return any(s.member_id for s in self._state.starters) or any(b.member_id for b in self._state.bench)

    def assigned_member_ids(self) -> set[str]:
        ids = {s.member_id for s in self._state.starters} | {b.member_id for b in self._state.bench}
        ids.discard(None)
        return ids  # type: ignore[return-value]

    def open_slots(self) -> list[PositionSlot]:
        taken = {s.position_id for s in self._state.starters}
        return [slot for slot in slots_for(self.preset_name) if slot.id not in taken]

    def locate(self, reference: str) -> Location | None:
        for index, starter in enumerate(self._state.starters):
            if starter.assignment_id == reference:
                return Location(True, index, starter)
        for index, entry in enumerate(self._state.bench):
            if entry.assignment_id == reference:
                return Location(False, index, entry)
        for index, starter in enumerate(self._state.starters):
            if starter.member_id is not None and starter.member_id == reference:
                return Location(True, index, starter)
        for index, entry in enumerate(self._state.bench):
            if entry.member_id is not None and entry.member_id == reference:
                return Location(False, index, entry)
        return None

    def _require(self, reference: str) -> Location:
        location = self.locate(reference)
        if location is None:
            raise AssignmentNotFoundError(reference, "starters or bench")
        return location

    def _slot(self, position_id: str) -> PositionSlot:
        for slot in slots_for(self.preset_name):
            if slot.id == position_id:
                return slot
        raise AssignmentNotFoundError(position_id, f"preset {self.preset_name}")

    def _check_origin(
        self,
        operation: str,
        location: Location,
        origin_is_starter: bool,
        origin_position_id: str | None,
        origin_bench_index: int | None,
    ) -> None:
        stale = origin_is_starter != location.in_starters
        if origin_position_id is not None and origin_position_id != location.position_id:
            stale = True
        if origin_bench_index is not None and (location.in_starters or origin_bench_index != location.index):
            stale = True
        if stale:
            _log.warning(
                "%s: drag origin (starter=%s, slot=%s, bench=%s) disagrees with store location (starter=%s, index=%d); using store",
                operation,
                origin_is_starter,
                origin_position_id,
                origin_bench_index,
                location.in_starters,
                location.index,
            )

    def _ordered(self, starters: list[StarterAssignment], preset_name: str) -> list[StarterAssignment]:
        order = {slot.id: index for index, slot in enumerate(slots_for(preset_name))}
        return sorted(starters, key=lambda s: order.get(s.position_id, len(order)))

    def _commit(
        self,
        operation: str,
        starters: list[StarterAssignment],
        bench: list[BenchAssignment],
        *,
        preset_name: str | None = None,
        mark_dirty: bool = True,
        context: dict[str, object] | None = None,
    ) -> bool:
        preset = preset_name or self._state.preset_name
        candidate = FormationState(
            team_id=self._state.team_id,
            preset_name=preset,
            starters=self._ordered(starters, preset),
            bench=list(bench),
            is_loading=self._state.is_loading,
            revision=self._state.revision + (1 if mark_dirty else 0),
            persisted_revision=self._state.persisted_revision,
        )
        candidate.dirty = candidate.revision > candidate.persisted_revision
        if self._debug_checks:
            assert_formation_integrity(candidate, operation, context or {})
        self._state = candidate
        _log.debug(
            "%s team=%s preset=%s starters=%d bench=%d rev=%d",
            operation,
            candidate.team_id,
            preset,
            len(candidate.starters),
            len(candidate.bench),
            candidate.revision,
        )
        return True

    @_soft_lookup
    def move_player_to_position(
        self,
        reference: str,
        target_position_id: str,
        origin_is_starter: bool,
        origin_position_id: str | None = None,
        origin_bench_index: int | None = None,
    ) -> bool:
        target = self._slot(target_position_id)
        location = self._require(reference)
        self._check_origin("move_player_to_position", location, origin_is_starter, origin_position_id, origin_bench_index)
        if location.in_starters and location.position_id == target_position_id:
            return False

        starters = list(self._state.starters)
        bench = list(self._state.bench)
        mover = (starters if location.in_starters else bench).pop(location.index)
        origin_slot_id = location.position_id

        occupant: StarterAssignment | None = None
        for index, starter in enumerate(starters):
            if starter.position_id == target_position_id:
                occupant = starters.pop(index)
                break

        starters.append(bind_to_slot(mover, target))
        if occupant is not None:
            if origin_slot_id is not None and origin_slot_id != target_position_id:
                starters.append(bind_to_slot(occupant, self._slot(origin_slot_id)))
            else:
                bench.append(release_to_bench(occupant))

        return self._commit(
            "move_player_to_position",
            starters,
            bench,
            context={"reference": reference, "target_position_id": target_position_id},
        )

    @_soft_lookup
    def move_player_to_sub_slot(
        self,
        reference: str,
        target_bench_index: int,
        origin_is_starter: bool,
        origin_position_id: str | None = None,
        origin_bench_index: int | None = None,
    ) -> bool:
        if target_bench_index < 0:
            raise AssignmentNotFoundError(str(target_bench_index), "bench indices")
        location = self._require(reference)
        self._check_origin("move_player_to_sub_slot", location, origin_is_starter, origin_position_id, origin_bench_index)
        if not location.in_starters and location.index == target_bench_index:
            return False

        starters = list(self._state.starters)
        bench = list(self._state.bench)
        occupant = bench[target_bench_index] if target_bench_index < len(bench) else None
        mover = (starters if location.in_starters else bench).pop(location.index)
        moved = release_to_bench(mover)

        if occupant is None:
            bench.append(moved)
        else:
            occupant_index = next(i for i, entry in enumerate(bench) if entry.assignment_id == occupant.assignment_id)
            bench[occupant_index] = moved
            if not location.in_starters:
                bench.insert(location.index, occupant)
            else:
                taken = {s.position_id for s in starters}
                open_slot = next((slot for slot in slots_for(self.preset_name) if slot.id not in taken), None)
                if open_slot is not None:
                    starters.append(bind_to_slot(occupant, open_slot))
                else:
                    bench.append(occupant)

        return self._commit(
            "move_player_to_sub_slot",
            starters,
            bench,
            context={"reference": reference, "target_bench_index": target_bench_index},
        )

    @_soft_lookup
    def swap_players_in_formation(self, reference_a: str, reference_b: str) -> bool:
        first = self._require(reference_a)
        second = self._require(reference_b)
        if first.assignment.assignment_id == second.assignment.assignment_id:
            return False

        starters = list(self._state.starters)
        bench = list(self._state.bench)
        if first.in_starters and second.in_starters:
            a, b = starters[first.index], starters[second.index]
            starters[first.index] = take_over_binding(b, a)
            starters[second.index] = take_over_binding(a, b)
        elif not first.in_starters and not second.in_starters:
            bench[first.index], bench[second.index] = bench[second.index], bench[first.index]
        else:
            starter_loc, bench_loc = (first, second) if first.in_starters else (second, first)
            holder = starters[starter_loc.index]
            starters[starter_loc.index] = take_over_binding(bench[bench_loc.index], holder)
            bench[bench_loc.index] = release_to_bench(holder)

        return self._commit(
            "swap_players_in_formation",
            starters,
            bench,
            context={"reference_a": reference_a, "reference_b": reference_b},
        )

    @_soft_lookup
    def move_starter_to_subs_general(self, reference: str, origin_position_id: str | None = None) -> bool:
        location = self._require(reference)
        if not location.in_starters:
            raise AssignmentNotFoundError(reference, "starters")
        if origin_position_id is not None and origin_position_id != location.position_id:
            _log.warning(
                "move_starter_to_subs_general: origin slot %s disagrees with store slot %s; using store",
                origin_position_id,
                location.position_id,
            )
        starters = list(self._state.starters)
        bench = list(self._state.bench)
        bench.append(release_to_bench(starters.pop(location.index)))
        return self._commit("move_starter_to_subs_general", starters, bench, context={"reference": reference})

    def change_preset(self, preset_name: str) -> bool:
        new_slots = slots_for(preset_name)
        by_id = {slot.id: slot for slot in new_slots}
        kept: dict[str, StarterAssignment] = {}
        demoted: list[BenchAssignment] = []
        for starter in self._state.starters:
            slot = by_id.get(starter.position_id)
            if slot is not None and slot.id not in kept:
                kept[slot.id] = bind_to_slot(starter, slot)
            elif starter.member_id is not None:
                demoted.append(release_to_bench(starter))

        starters = [kept.get(slot.id) or placeholder_starter(slot, index) for index, slot in enumerate(new_slots)]
        if preset_name == self._state.preset_name and not demoted and starters == self._state.starters:
            return False
        if demoted:
            _log.info(
                "preset %s -> %s demoted %d member(s) to the bench",
                self._state.preset_name,
                preset_name,
                len(demoted),
            )
        return self._commit(
            "change_preset",
            starters,
            list(self._state.bench) + demoted,
            preset_name=preset_name,
            context={"from": self._state.preset_name, "to": preset_name},
        )

    def set_dummy_players(self, preset_name: str | None = None, *, mark_dirty: bool = True) -> bool:
        preset = preset_name or self._state.preset_name
        slots = slots_for(preset)
        return self._commit(
            "set_dummy_players",
            default_starters(slots),
            default_bench(len(slots) + 1, self._bench_capacity),
            preset_name=preset,
            mark_dirty=mark_dirty,
        )

    def apply_plan(self, plan: FormationPlan) -> bool:
        slots_for(plan.preset_name)
        return self._commit(
            "apply_plan",
            plan.starters,
            plan.bench,
            preset_name=plan.preset_name,
            context={"unassigned": len(plan.unassigned_member_ids)},
        )

    def load_document(self, document: FormationDocument, *, dirty: bool) -> None:
        """Replace the whole state with a loaded document.

        A clean load acknowledges the current revision; a dirty one (server
        template, client default, backup) leaves a revision to persist.
        """
        self._commit(
            "load_document",
            document.starters,
            document.bench,
            preset_name=document.preset_name,
            mark_dirty=dirty,
        )
        if not dirty:
            self.mark_persisted(self._state.revision)

    def refresh_member_details(self, members: Iterable[RosterMember]) -> bool:
        lookup = {m.member_id: m for m in members}

        def refreshed(entry: Occupant) -> Occupant:
            member = lookup.get(entry.member_id) if entry.member_id else None
            if member is None:
                return entry
            return replace(
                entry,
                jersey_number=member.jersey_number or entry.jersey_number,
                display_name=member.display_name or entry.display_name,
                preferred_position=member.preferred_position or entry.preferred_position,
            )

        starters = [refreshed(s) for s in self._state.starters]
        bench = [refreshed(b) for b in self._state.bench]
        if starters == self._state.starters and bench == self._state.bench:
            return False
        return self._commit("refresh_member_details", starters, bench, mark_dirty=False)  # type: ignore[arg-type]
