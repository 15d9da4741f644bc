from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any

from pitchboard.core.errors import TransportError
from pitchboard.core.ids import now_iso
from pitchboard.core.logs import get_logger
from pitchboard.formation.placeholders import placeholder_name
from pitchboard.persistence.migrations import MigrationRunner

_log = get_logger("sqlite")

# Starting document the server hands out for a team without a formation.
_DEFAULT_STARTERS: list[tuple[str, str, float, float]] = [
    ("gk", "GK", 50, 90),
    ("lb", "LB", 20, 70),
    ("cb1", "CB", 40, 70),
    ("cb2", "CB", 60, 70),
    ("rb", "RB", 80, 70),
    ("cdm", "CDM", 50, 50),
    ("cm1", "CM", 35, 40),
    ("cm2", "CM", 65, 40),
    ("lw", "LW", 20, 25),
    ("st", "ST", 50, 20),
    ("rw", "RW", 80, 25),
]
_DEFAULT_SUB_POSITIONS = ("ST", "CAM", "LM", "CDM", "RB", "CB", "GK")


def server_default_schema() -> dict[str, Any]:
    starters = [
        {
            "id": slot_id,
            "positionId": slot_id,
            "label": label,
            "position": label,
            "xNorm": x,
            "yNorm": y,
            "jerseyNumber": str(number),
            "playerName": placeholder_name(number),
        }
        for number, (slot_id, label, x, y) in enumerate(_DEFAULT_STARTERS, start=1)
    ]
    first_sub = len(starters) + 1
    subs = [
        {
            "id": f"dummy-{number}",
            "label": "SUB",
            "position": position,
            "jerseyNumber": str(number),
            "playerName": placeholder_name(number),
        }
        for number, position in enumerate(_DEFAULT_SUB_POSITIONS, start=first_sub)
    ]
    return {"preset": "4-3-3", "starters": starters, "subs": subs, "updated_at": now_iso()}


class _SqliteBacked:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def initialize_schema(self) -> None:
        with self.connect() as conn:
            applied = MigrationRunner(conn).apply()
        if applied:
            _log.info("applied migrations %s to %s", applied, self.db_path)


class FormationRepository(_SqliteBacked):
    """Server-side formation records, one ``schema_json`` document per team."""

    def get(self, team_id: str) -> dict[str, Any] | None:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT team_id, schema_json, created_at, updated_at FROM formations WHERE team_id = ?",
                (team_id,),
            ).fetchone()
        if row is None:
            return None
        return {
            "team_id": row["team_id"],
            "schema_json": json.loads(row["schema_json"]),
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        }

    def upsert(self, team_id: str, schema: dict[str, Any]) -> bool:
        """Store ``schema`` for the team; returns True when the record was created."""
        stamp = now_iso()
        with self.connect() as conn:
            existing = conn.execute("SELECT 1 FROM formations WHERE team_id = ?", (team_id,)).fetchone()
            conn.execute(
                """
                INSERT INTO formations(team_id, schema_json, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(team_id) DO UPDATE SET schema_json = excluded.schema_json, updated_at = excluded.updated_at
                """,
                (team_id, json.dumps(schema), stamp, stamp),
            )
        return existing is None

    def create_default(self, team_id: str) -> dict[str, Any]:
        self.upsert(team_id, server_default_schema())
        _log.info("created default 4-3-3 formation for team %s", team_id)
        record = self.get(team_id)
        if record is None:
            raise TransportError(500, f"Failed to create default formation for team {team_id}")
        return record

    def team_ids(self) -> list[str]:
        with self.connect() as conn:
            return [row["team_id"] for row in conn.execute("SELECT team_id FROM formations ORDER BY team_id")]

    def grant_manager(self, team_id: str) -> None:
        with self.connect() as conn:
            conn.execute("INSERT OR IGNORE INTO team_managers(team_id) VALUES (?)", (team_id,))

    def is_manager(self, team_id: str) -> bool:
        with self.connect() as conn:
            return conn.execute("SELECT 1 FROM team_managers WHERE team_id = ?", (team_id,)).fetchone() is not None


class FormationBackupStore(_SqliteBacked):
    """Client-side last-sent copy of each team's document.

    Read and write failures are logged and swallowed; a missing backup only
    means the gateway falls back to placeholders.
    """

    def save_backup(self, team_id: str, schema: dict[str, Any]) -> None:
        try:
            with self.connect() as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO formation_backups(team_id, schema_json, saved_at) VALUES (?, ?, ?)",
                    (team_id, json.dumps(schema), now_iso()),
                )
        except sqlite3.Error as exc:
            _log.warning("could not back up formation for team %s: %s", team_id, exc)

    def load_backup(self, team_id: str) -> dict[str, Any] | None:
        try:
            with self.connect() as conn:
                row = conn.execute(
                    "SELECT schema_json FROM formation_backups WHERE team_id = ?",
                    (team_id,),
                ).fetchone()
        except sqlite3.Error as exc:
            _log.warning("could not read formation backup for team %s: %s", team_id, exc)
            return None
        return None if row is None else json.loads(row["schema_json"])
