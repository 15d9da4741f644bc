from .types import (
    ActionRequest,
    ActionResult,
    ActionType,
    BenchAssignment,
    ForensicArtifact,
    FormationDocument,
    FormationPlan,
    FormationState,
    FormationTransport,
    LoadOutcome,
    LoadPhase,
    LoadSource,
    Notice,
    PositionCategory,
    PositionSlot,
    RandomSource,
    RosterMember,
    SaveOutcome,
    StarterAssignment,
    ValidationIssue,
)

__all__ = [
    "ActionRequest",
    "ActionResult",
    "ActionType",
    "BenchAssignment",
    "ForensicArtifact",
    "FormationDocument",
    "FormationPlan",
    "FormationState",
    "FormationTransport",
    "LoadOutcome",
    "LoadPhase",
    "LoadSource",
    "Notice",
    "PositionCategory",
    "PositionSlot",
    "RandomSource",
    "RosterMember",
    "SaveOutcome",
    "StarterAssignment",
    "ValidationIssue",
]
