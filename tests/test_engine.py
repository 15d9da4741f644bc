from __future__ import annotations

import json
from pathlib import Path

import pytest

from pitchboard.contracts import ActionRequest, ActionType, LoadSource, RosterMember
from pitchboard.core import (
    EngineConfig,
    FormationIntegrityError,
    PersistenceSaveError,
    RuntimePaths,
    TransportError,
    build_forensic_artifact,
    make_id,
    seeded_random,
)
from pitchboard.engine import FormationEngine
from pitchboard.formation import AssignmentStore, plan_formation
from pitchboard.persistence import schema_from_state
from tests.helpers import FakeTransport, QueuedExecutor, build_engine, build_roster


def _request(action, payload=None) -> ActionRequest:
    return ActionRequest(make_id("req"), action, payload or {}, "T1")


def _real_schema() -> dict:
    store = AssignmentStore("T1")
    store.apply_plan(plan_formation(build_roster(18), "4-3-3", seeded_random(1)))
    return schema_from_state(store.state)


def test_missing_document_and_failed_bootstrap_leave_placeholders():
    transport = FakeTransport(default=TransportError(500, "database down"))
    engine = build_engine(transport)

    outcome = engine.init("T1").result()

    assert outcome.source == LoadSource.PLACEHOLDER
    state = engine.state
    assert not engine.is_loading
    assert len(state.starters) == 11
    assert len(state.bench) == 7
    assert all(s.display_name for s in state.starters)
    assert not engine.dirty
    assert engine.notices.emitted_count("load") == 1


def test_roster_is_planned_onto_placeholder_formation_and_saved():
    transport = FakeTransport()
    engine = build_engine(transport)
    engine.init("T1").result()

    assert engine.supply_roster(build_roster(20))

    state = engine.state
    assert all(s.member_id for s in state.starters)
    assert all(b.member_id for b in state.bench)
    assert len(transport.puts) == 1
    assert not engine.dirty
    assert engine.notices.emitted_count("planner") == 1


def test_roster_refreshes_details_when_members_are_already_assigned():
    transport = FakeTransport(fetch={"schema_json": _real_schema()})
    engine = build_engine(transport)
    engine.init("T1").result()

    engine.supply_roster([{"id": "p1", "preferredPositionCode": "GK", "jerseyNumber": "1", "displayName": "New Keeper"}])

    assert engine.locate("p1").assignment.display_name == "New Keeper"
    assert transport.puts == []
    assert not engine.dirty


def test_roster_and_mutations_wait_for_the_load():
    executor = QueuedExecutor()
    transport = FakeTransport()
    engine = FormationEngine(transport, config=EngineConfig(debug_checks=True), random_source=seeded_random(4), executor=executor)

    future = engine.init("T1")
    assert engine.is_loading
    assert not engine.supply_roster(build_roster(20))
    assert not engine.change_preset("4-4-2")
    assert not future.done()

    executor.run_pending()

    assert future.result().source == LoadSource.BOOTSTRAP
    assert not engine.is_loading
    assert engine.state.preset_name == "4-3-3"
    assert all(s.member_id for s in engine.state.starters)
    assert len(transport.puts) == 1


def test_saves_send_the_state_current_at_send_time():
    executor = QueuedExecutor()
    transport = FakeTransport()
    engine = FormationEngine(transport, random_source=seeded_random(4), executor=executor)
    engine.init("T1")
    executor.run_pending()

    engine.swap_players_in_formation(engine.state.starters[1].assignment_id, engine.state.starters[4].assignment_id)
    engine.change_preset("4-4-2")
    assert engine.pending_saves == 2
    assert engine.dirty

    executor.run_pending()

    assert engine.pending_saves == 0
    assert not engine.dirty
    assert [body["schema_json"]["preset"] for body in transport.puts] == ["4-4-2", "4-4-2"]


def test_failed_save_keeps_dirty_until_manual_retry():
    transport = FakeTransport(put_error=TransportError(503, "Cannot reach API"))
    engine = build_engine(transport)
    engine.init("T1").result()

    assert engine.change_preset("3-4-3")
    assert engine.dirty
    assert engine.notices.emitted_count("save") == 1

    transport.put_error = None
    outcome = engine.save().result()

    assert outcome.success
    assert not engine.dirty
    assert transport.puts[-1]["schema_json"]["preset"] == "3-4-3"


def test_unexpected_save_failure_is_reported_as_a_notice():
    transport = FakeTransport(put_error=RuntimeError("socket reset"))
    engine = build_engine(transport)
    engine.init("T1").result()

    assert engine.change_preset("4-4-2")
    outcome = engine.save().result()

    assert not outcome.success
    assert isinstance(outcome.error, PersistenceSaveError)
    assert engine.dirty
    assert engine.notices.emitted_count("save") == 2
    assert "socket reset" in engine.notices.recent()[-1].message


def test_forbidden_bootstrap_marks_client_default_dirty():
    engine = build_engine(FakeTransport(default=TransportError(403, "not a manager")))

    outcome = engine.init("T1").result()

    assert outcome.source == LoadSource.CLIENT_DEFAULT
    assert engine.dirty
    assert engine.notices.recent()[-1].severity == "warning"


def test_engine_stays_bound_to_one_team():
    engine = build_engine()
    engine.init("T1").result()
    with pytest.raises(ValueError):
        engine.init("T2")


def test_unbound_engine_edits_locally_without_saving():
    transport = FakeTransport()
    engine = build_engine(transport)

    assert engine.set_dummy_players()
    outcome = engine.save().result()

    assert not outcome.success
    assert transport.calls == []
    assert engine.dirty


def test_actions_drive_the_editor():
    engine = build_engine()
    engine.init("T1").result()
    engine.supply_roster(build_roster(20))

    listed = engine.handle_action(_request(ActionType.LIST_PRESETS))
    assert listed.data["active"] == "4-3-3"
    assert "5-2-2-1" in listed.data["presets"]

    keeper = engine.state.starters[0]
    striker = next(s for s in engine.state.starters if s.position_id == "st")
    moved = engine.handle_action(
        _request(
            ActionType.MOVE_TO_POSITION,
            {"member_id": striker.member_id, "target_position_id": "gk", "origin_is_starter": True, "origin_position_id": "st"},
        )
    )
    assert moved.success
    assert moved.data["changed"]
    assert engine.locate(keeper.member_id).position_id == "st"

    benched = engine.handle_action(_request("move_to_bench", {"member_id": keeper.member_id}))
    assert benched.success
    assert engine.state.bench[-1].member_id == keeper.member_id

    state = engine.handle_action(_request(ActionType.GET_STATE))
    assert state.data["state"]["starter_count"] == 10

    saved = engine.handle_action(_request(ActionType.SAVE))
    assert saved.success
    assert saved.data["dirty"] is False


def test_action_errors_become_failed_results():
    engine = build_engine()
    engine.init("T1").result()

    unknown = engine.handle_action(_request(ActionType.CHANGE_PRESET, {"preset": "1-9-0"}))
    assert not unknown.success
    assert "4-4-2" in unknown.data["presets"]

    missing = engine.handle_action(_request(ActionType.SWAP, {"first": "a"}))
    assert not missing.success
    assert "second" in missing.message

    unsupported = engine.handle_action(_request("teleport"))
    assert not unsupported.success
    assert not engine.halted


def test_integrity_failure_persists_forensic_artifact(tmp_path: Path, monkeypatch):
    engine = build_engine(paths=RuntimePaths(tmp_path))
    engine.init("T1").result()

    def corrupt(*_args, **_kwargs):
        artifact = build_forensic_artifact(
            engine_scope="formation_store",
            error_code="DUPLICATE_MEMBER",
            message="member appears 2 times",
            state_snapshot={},
            context={},
            identifiers={"team_id": "T1"},
            causal_fragment=["swap_players_in_formation"],
        )
        raise FormationIntegrityError(artifact)

    monkeypatch.setattr(engine._store, "swap_players_in_formation", corrupt)

    result = engine.handle_action(_request(ActionType.SWAP, {"first": "a", "second": "b"}))

    assert not result.success
    forensic = Path(result.data["forensic_path"])
    assert forensic.parent == tmp_path / "forensics"
    assert json.loads(forensic.read_text(encoding="utf-8"))["error_code"] == "DUPLICATE_MEMBER"
    assert engine.halted
    assert not engine.handle_action(_request(ActionType.GET_STATE)).success


def test_engine_context_manager_owns_its_thread_pool():
    transport = FakeTransport()
    with FormationEngine(transport, random_source=seeded_random(2)) as engine:
        engine.init("T1").result(timeout=5)
        engine.supply_roster([RosterMember(f"m{i}", "CM") for i in range(15)])
        engine.flush(timeout=5)
        assert not engine.dirty
    assert len(transport.puts) == 1
