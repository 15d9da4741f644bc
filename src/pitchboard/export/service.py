from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import duckdb

from pitchboard.contracts import FormationState
from pitchboard.core.logs import get_logger

_log = get_logger("export")

LINEUP_COLUMNS: list[tuple[str, str]] = [
    ("team_id", "VARCHAR"),
    ("preset", "VARCHAR"),
    ("role", "VARCHAR"),
    ("sort_order", "INTEGER"),
    ("assignment_id", "VARCHAR"),
    ("position_id", "VARCHAR"),
    ("label", "VARCHAR"),
    ("x_norm", "DOUBLE"),
    ("y_norm", "DOUBLE"),
    ("member_id", "VARCHAR"),
    ("jersey_number", "VARCHAR"),
    ("display_name", "VARCHAR"),
    ("placeholder", "BOOLEAN"),
]


def lineup_rows(state: FormationState) -> list[tuple[Any, ...]]:
    team = state.team_id or ""
    rows: list[tuple[Any, ...]] = []
    for order, s in enumerate(state.starters):
        rows.append(
            (
                team,
                state.preset_name,
                "starter",
                order,
                s.assignment_id,
                s.position_id,
                s.label,
                s.x_norm,
                s.y_norm,
                s.member_id,
                s.jersey_number,
                s.display_name,
                s.is_placeholder,
            )
        )
    for order, b in enumerate(state.bench):
        rows.append(
            (
                team,
                state.preset_name,
                "bench",
                order,
                b.assignment_id,
                None,
                "SUB",
                None,
                None,
                b.member_id,
                b.jersey_number,
                b.display_name,
                b.is_placeholder,
            )
        )
    return rows


class ExportService:
    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir

    def export_lineup(self, state: FormationState) -> list[Path]:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        stem = self.output_dir / f"lineup_{re.sub(r'[^A-Za-z0-9_-]+', '_', state.team_id or 'unbound')}"
        columns = ", ".join(f"{name} {dtype}" for name, dtype in LINEUP_COLUMNS)
        placeholders = ", ".join("?" for _ in LINEUP_COLUMNS)
        with duckdb.connect() as conn:
            conn.execute(f"CREATE TABLE lineup ({columns})")
            rows = lineup_rows(state)
            if rows:
                conn.executemany(f"INSERT INTO lineup VALUES ({placeholders})", rows)
            outputs = self._export_table(conn, "lineup", stem)
        _log.info("exported %d lineup rows for team %s", len(rows), state.team_id)
        return outputs

    def _export_table(self, conn: Any, table: str, stem: Path) -> list[Path]:
        csv_path = stem.with_suffix(".csv")
        parquet_path = stem.with_suffix(".parquet")
        conn.execute(f"COPY (SELECT * FROM {table} ORDER BY role DESC, sort_order) TO '{csv_path.as_posix()}' (HEADER, DELIMITER ',')")
        conn.execute(f"COPY (SELECT * FROM {table} ORDER BY role DESC, sort_order) TO '{parquet_path.as_posix()}' (FORMAT PARQUET)")
        return [csv_path, parquet_path]
