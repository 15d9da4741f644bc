from __future__ import annotations

import copy
from concurrent.futures import Executor, Future
from typing import Any, Callable

from pitchboard.contracts import RosterMember
from pitchboard.core import EngineConfig, TransportError, seeded_random
from pitchboard.engine import FormationEngine
from pitchboard.persistence import server_default_schema


class InlineExecutor(Executor):
    """Runs submitted work on the calling thread and returns finished futures."""

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as exc:
            future.set_exception(exc)
        return future


class QueuedExecutor(Executor):
    """Holds submitted work until ``run_pending`` is called."""

    def __init__(self) -> None:
        self.queue: list[tuple[Future, Callable[..., Any], tuple, dict]] = []

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future:
        future: Future = Future()
        self.queue.append((future, fn, args, kwargs))
        return future

    def run_pending(self) -> int:
        ran = 0
        while self.queue:
            future, fn, args, kwargs = self.queue.pop(0)
            try:
                future.set_result(fn(*args, **kwargs))
            except BaseException as exc:
                future.set_exception(exc)
            ran += 1
        return ran


class FakeTransport:
    """Scriptable transport: each slot holds a response body or a TransportError to raise."""

    def __init__(
        self,
        fetch: dict[str, Any] | TransportError | None = None,
        default: dict[str, Any] | TransportError | None = None,
        put_error: Exception | None = None,
    ) -> None:
        self.fetch_result = fetch if fetch is not None else TransportError(404, "not found")
        self.default_result = default if default is not None else {"schema_json": server_default_schema()}
        self.put_error = put_error
        self.calls: list[tuple[str, str]] = []
        self.puts: list[dict[str, Any]] = []

    def _answer(self, result: dict[str, Any] | TransportError) -> dict[str, Any]:
        if isinstance(result, TransportError):
            raise result
        return copy.deepcopy(result)

    def fetch(self, team_id: str) -> dict[str, Any]:
        self.calls.append(("fetch", team_id))
        return self._answer(self.fetch_result)

    def request_default(self, team_id: str) -> dict[str, Any]:
        self.calls.append(("request_default", team_id))
        return self._answer(self.default_result)

    def put(self, team_id: str, body: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("put", team_id))
        if self.put_error is not None:
            raise self.put_error
        self.puts.append(copy.deepcopy(body))
        return {"team_id": team_id, "schema_json": body["schema_json"]}


class MemoryBackupStore:
    def __init__(self) -> None:
        self.backups: dict[str, dict[str, Any]] = {}

    def save_backup(self, team_id: str, schema: dict[str, Any]) -> None:
        self.backups[team_id] = copy.deepcopy(schema)

    def load_backup(self, team_id: str) -> dict[str, Any] | None:
        return copy.deepcopy(self.backups.get(team_id))


SQUAD_POSITIONS = [
    "GK", "GK",
    "LB", "CB", "CB", "RB", "CB", "LWB",
    "CM", "CM", "CDM", "CAM", "LM", "RM",
    "ST", "ST", "LW", "RW", "CF", "ST",
]


def build_roster(count: int = 20, positions: list[str | None] | None = None) -> list[RosterMember]:
    codes = positions if positions is not None else SQUAD_POSITIONS
    return [
        RosterMember(
            member_id=f"p{i + 1}",
            preferred_position=codes[i % len(codes)] if codes else None,
            jersey_number=str(i + 1),
            display_name=f"Member {i + 1}",
        )
        for i in range(count)
    ]


def build_engine(
    transport: FakeTransport | None = None,
    *,
    seed: int = 11,
    config: EngineConfig | None = None,
    **kwargs: Any,
) -> FormationEngine:
    return FormationEngine(
        transport or FakeTransport(),
        config=config or EngineConfig(debug_checks=True),
        random_source=seeded_random(seed),
        executor=InlineExecutor(),
        **kwargs,
    )
