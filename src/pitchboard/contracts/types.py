from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Protocol, Sequence


class PositionCategory(str, Enum):
    GOALKEEPER = "goalkeeper"
    DEFENDER = "defender"
    MIDFIELDER = "midfielder"
    FORWARD = "forward"


class LoadPhase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    BOOTSTRAPPING = "bootstrapping"
    LOADED = "loaded"
    FAILED = "failed"


class LoadSource(str, Enum):
    REMOTE = "remote"
    BOOTSTRAP = "bootstrap"
    TEMPLATE = "template"
    CLIENT_DEFAULT = "client_default"
    BACKUP = "backup"
    PLACEHOLDER = "placeholder"


class ActionType(str, Enum):
    GET_STATE = "get_state"
    LIST_PRESETS = "list_presets"
    SUPPLY_ROSTER = "supply_roster"
    MOVE_TO_POSITION = "move_to_position"
    MOVE_TO_BENCH_SLOT = "move_to_bench_slot"
    MOVE_TO_BENCH = "move_to_bench"
    SWAP = "swap"
    CHANGE_PRESET = "change_preset"
    SET_PLACEHOLDERS = "set_placeholders"
    SAVE = "save"
    EXPORT = "export"


class RandomSource(Protocol):
    def shuffle(self, items: list[Any]) -> None: ...

    def spawn(self, substream_id: str) -> RandomSource: ...


class FormationTransport(Protocol):
    """Access to the remote formation resource keyed by team id.

    Implementations raise ``TransportError`` for every failed exchange; the
    status code distinguishes "not found" (404) and "forbidden" (403) from
    network trouble (status 0 or 5xx).
    """

    def fetch(self, team_id: str) -> dict[str, Any]: ...

    def request_default(self, team_id: str) -> dict[str, Any]: ...

    def put(self, team_id: str, body: dict[str, Any]) -> dict[str, Any]: ...


@dataclass(frozen=True, slots=True)
class PositionSlot:
    id: str
    label: str
    x_norm: float
    y_norm: float


@dataclass(slots=True)
class StarterAssignment:
    assignment_id: str
    position_id: str
    label: str
    x_norm: float
    y_norm: float
    member_id: str | None
    jersey_number: str
    display_name: str
    preferred_position: str | None = None

    @property
    def is_placeholder(self) -> bool:
        return self.member_id is None


@dataclass(slots=True)
class BenchAssignment:
    assignment_id: str
    member_id: str | None
    jersey_number: str
    display_name: str
    preferred_position: str | None = None

    @property
    def is_placeholder(self) -> bool:
        return self.member_id is None


@dataclass(slots=True)
class FormationState:
    team_id: str | None = None
    preset_name: str = "4-3-3"
    starters: list[StarterAssignment] = field(default_factory=list)
    bench: list[BenchAssignment] = field(default_factory=list)
    dirty: bool = False
    is_loading: bool = False
    revision: int = 0
    persisted_revision: int = 0


@dataclass(frozen=True, slots=True)
class RosterMember:
    member_id: str
    preferred_position: str | None = None
    jersey_number: str | None = None
    display_name: str | None = None


@dataclass(slots=True)
class FormationPlan:
    preset_name: str
    starters: list[StarterAssignment]
    bench: list[BenchAssignment]
    unassigned_member_ids: list[str] = field(default_factory=list)


@dataclass(slots=True)
class FormationDocument:
    preset_name: str
    starters: list[StarterAssignment]
    bench: list[BenchAssignment]
    updated_at: str | None = None


@dataclass(slots=True)
class LoadOutcome:
    team_id: str
    phase: LoadPhase
    source: LoadSource
    document: FormationDocument | None
    dirty: bool
    error: Exception | None = None


@dataclass(slots=True)
class SaveOutcome:
    team_id: str
    revision: int
    success: bool
    error: Exception | None = None


@dataclass(slots=True)
class Notice:
    scope: str
    severity: str
    message: str
    team_id: str | None = None
    created_at: datetime | None = None


@dataclass(slots=True)
class ValidationIssue:
    code: str
    severity: str
    field_path: str
    entity_id: str
    message: str


@dataclass(slots=True)
class ActionRequest:
    request_id: str
    action_type: ActionType | str
    payload: dict[str, Any]
    actor_team_id: str


@dataclass(slots=True)
class ActionResult:
    request_id: str
    success: bool
    message: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ForensicArtifact:
    artifact_id: str
    timestamp: datetime
    engine_scope: str
    error_code: str
    message: str
    state_snapshot: Mapping[str, Any]
    context: Mapping[str, Any]
    identifiers: Mapping[str, str]
    causal_fragment: Sequence[str]
