from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from pitchboard.contracts import LoadSource
from pitchboard.core import EngineConfig, RuntimePaths, TransportError, seeded_random
from pitchboard.engine import FormationEngine
from pitchboard.persistence import (
    FormationBackupStore,
    FormationRepository,
    LocalFormationTransport,
    MigrationRunner,
    PersistenceGateway,
)
from tests.helpers import InlineExecutor, build_roster


def _repository(tmp_path: Path) -> FormationRepository:
    repository = FormationRepository(RuntimePaths(tmp_path).sqlite_path)
    repository.initialize_schema()
    return repository


def test_migrations_apply_once(tmp_path: Path):
    db = tmp_path / "m.sqlite3"
    with sqlite3.connect(db) as conn:
        assert MigrationRunner(conn).apply() == [1, 2]
        assert MigrationRunner(conn).apply() == []
        tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
    assert {"formations", "formation_backups", "team_managers", "schema_migrations"} <= tables


def test_repository_upsert_reports_creation(tmp_path: Path):
    repository = _repository(tmp_path)

    assert repository.upsert("T1", {"preset": "4-4-2", "starters": [], "subs": []})
    assert not repository.upsert("T1", {"preset": "3-5-2", "starters": [], "subs": []})

    assert repository.get("T1")["schema_json"]["preset"] == "3-5-2"
    assert repository.get("T2") is None
    assert repository.team_ids() == ["T1"]


def test_local_transport_mirrors_server_bootstrap(tmp_path: Path):
    transport = LocalFormationTransport(_repository(tmp_path))

    with pytest.raises(TransportError) as missing:
        transport.fetch("T1")
    assert missing.value.not_found

    created = transport.request_default("T1")
    assert created["schema_json"]["preset"] == "4-3-3"
    assert transport.fetch("T1")["schema_json"]["subs"][0]["id"] == "dummy-12"


def test_read_only_store_hands_out_unsaved_template(tmp_path: Path):
    repository = _repository(tmp_path)
    transport = LocalFormationTransport(repository, read_only=True)

    outcome = PersistenceGateway(transport).load("T1")

    assert outcome.source == LoadSource.TEMPLATE
    assert outcome.dirty
    assert repository.get("T1") is None
    with pytest.raises(TransportError):
        transport.put("T1", {"schema_json": {}})


def test_manager_grants_gate_writes(tmp_path: Path):
    repository = _repository(tmp_path)
    transport = LocalFormationTransport(repository, enforce_managers=True)

    with pytest.raises(TransportError) as refused:
        transport.put("T1", {"schema_json": {"preset": "4-4-2"}})
    assert refused.value.forbidden
    outcome = PersistenceGateway(transport).load("T1")
    assert outcome.source == LoadSource.CLIENT_DEFAULT

    repository.grant_manager("T1")
    transport.put("T1", {"schema_json": {"preset": "4-4-2", "starters": [], "subs": []}})
    assert repository.is_manager("T1")
    assert repository.get("T1")["schema_json"]["preset"] == "4-4-2"


def test_put_rejects_missing_schema(tmp_path: Path):
    transport = LocalFormationTransport(_repository(tmp_path))
    with pytest.raises(TransportError) as info:
        transport.put("T1", {"formation": {}})
    assert info.value.status_code == 400


def test_backup_store_round_trip(tmp_path: Path):
    backups = FormationBackupStore(tmp_path / "client.sqlite3")
    backups.initialize_schema()

    assert backups.load_backup("T1") is None
    backups.save_backup("T1", {"preset": "4-1-4-1"})
    backups.save_backup("T1", {"preset": "4-5-1"})

    assert backups.load_backup("T1") == {"preset": "4-5-1"}


def test_backup_store_without_schema_degrades_to_no_backup(tmp_path: Path):
    backups = FormationBackupStore(tmp_path / "empty.sqlite3")
    assert backups.load_backup("T1") is None
    backups.save_backup("T1", {"preset": "4-3-3"})


def test_engine_edits_survive_a_restart(tmp_path: Path):
    paths = RuntimePaths(tmp_path)

    def engine() -> FormationEngine:
        backups = FormationBackupStore(paths.sqlite_path)
        backups.initialize_schema()
        return FormationEngine(
            LocalFormationTransport(FormationRepository(paths.sqlite_path)),
            config=EngineConfig(debug_checks=True),
            random_source=seeded_random(8),
            executor=InlineExecutor(),
            backup_store=backups,
            paths=paths,
        )

    first = engine()
    assert first.init("T7").result().source == LoadSource.BOOTSTRAP
    first.supply_roster(build_roster(18))
    first.change_preset("3-5-2")
    expected = [(s.position_id, s.member_id) for s in first.state.starters]
    assert not first.dirty

    second = engine()
    outcome = second.init("T7").result()

    assert outcome.source == LoadSource.REMOTE
    assert second.state.preset_name == "3-5-2"
    assert [(s.position_id, s.member_id) for s in second.state.starters] == expected
    assert [b.member_id for b in second.state.bench] == [b.member_id for b in first.state.bench]


def test_default_creation_that_cannot_be_read_back_is_a_server_error(tmp_path: Path, monkeypatch):
    repository = _repository(tmp_path)
    monkeypatch.setattr(repository, "get", lambda team_id: None)

    with pytest.raises(TransportError) as info:
        repository.create_default("T1")

    assert info.value.status_code == 500
