from __future__ import annotations

import csv
from pathlib import Path

import duckdb

from pitchboard.contracts import ActionRequest, ActionType
from pitchboard.core import RuntimePaths, make_id
from pitchboard.export import ExportService, lineup_rows
from pitchboard.formation import AssignmentStore
from tests.helpers import build_engine, build_roster


def test_lineup_rows_cover_pitch_then_bench():
    store = AssignmentStore("T1")
    store.set_dummy_players()

    rows = lineup_rows(store.state)

    assert len(rows) == 18
    assert rows[0][2:4] == ("starter", 0)
    assert rows[11][2:4] == ("bench", 0)
    assert all(row[-1] for row in rows)


def test_export_writes_csv_and_parquet(tmp_path: Path):
    store = AssignmentStore("T/1")
    store.set_dummy_players()

    outputs = ExportService(tmp_path / "exports").export_lineup(store.state)

    csv_path, parquet_path = outputs
    assert csv_path.name == "lineup_T_1.csv"
    with csv_path.open(encoding="utf-8", newline="") as fh:
        rows = list(csv.DictReader(fh))
    assert len(rows) == 18
    assert rows[0]["role"] == "starter"
    assert rows[0]["position_id"] == "gk"
    assert rows[-1]["role"] == "bench"

    with duckdb.connect() as conn:
        count = conn.execute(f"SELECT COUNT(*) FROM read_parquet('{parquet_path.as_posix()}')").fetchone()[0]
        starters = conn.execute(
            f"SELECT COUNT(*) FROM read_parquet('{parquet_path.as_posix()}') WHERE role = 'starter'"
        ).fetchone()[0]
    assert count == 18
    assert starters == 11


def test_export_action_uses_runtime_export_dir(tmp_path: Path):
    engine = build_engine(paths=RuntimePaths(tmp_path))
    engine.init("T1").result()
    engine.supply_roster(build_roster(20))

    result = engine.handle_action(ActionRequest(make_id("req"), ActionType.EXPORT, {}, "T1"))

    assert result.success
    paths = [Path(p) for p in result.data["paths"]]
    assert all(p.exists() and p.parent == tmp_path / "exports" for p in paths)
