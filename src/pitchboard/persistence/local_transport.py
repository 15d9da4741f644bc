from __future__ import annotations

import copy
from typing import Any

from pitchboard.core.errors import TransportError
from pitchboard.core.logs import get_logger
from pitchboard.persistence.codec import NOT_SAVED_FLAG
from pitchboard.persistence.sqlite_store import FormationRepository, server_default_schema

_log = get_logger("local")


class LocalFormationTransport:
    """In-process stand-in for the formation API backed by a sqlite repository.

    ``read_only`` mimics a server that cannot create records and answers the
    bootstrap read with an unsaved template. With ``enforce_managers`` set,
    writes for teams without a manager grant are refused with 403.
    """

    def __init__(
        self,
        repository: FormationRepository,
        *,
        read_only: bool = False,
        enforce_managers: bool = False,
    ) -> None:
        self.repository = repository
        self.read_only = read_only
        self.enforce_managers = enforce_managers
        self.repository.initialize_schema()

    def fetch(self, team_id: str) -> dict[str, Any]:
        record = self.repository.get(team_id)
        if record is None:
            raise TransportError(404, f"no formation stored for team {team_id}")
        return record

    def request_default(self, team_id: str) -> dict[str, Any]:
        record = self.repository.get(team_id)
        if record is not None:
            return record
        if self.read_only:
            _log.info("read-only store: returning unsaved default template for team %s", team_id)
            return {"team_id": team_id, "schema_json": server_default_schema(), NOT_SAVED_FLAG: True}
        if self.enforce_managers and not self.repository.is_manager(team_id):
            raise TransportError(403, f"only team managers can create a formation for team {team_id}")
        return self.repository.create_default(team_id)

    def put(self, team_id: str, body: dict[str, Any]) -> dict[str, Any]:
        if self.read_only:
            raise TransportError(503, "formation store is read-only")
        if self.enforce_managers and not self.repository.is_manager(team_id):
            raise TransportError(403, "Only team managers can update formations")
        schema = body.get("schema_json")
        if not isinstance(schema, dict):
            raise TransportError(400, "schema_json must be an object")
        created = self.repository.upsert(team_id, copy.deepcopy(schema))
        return {"team_id": team_id, "created": created, "schema_json": schema}
