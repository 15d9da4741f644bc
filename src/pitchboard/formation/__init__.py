from .planner import categorize, plan_formation
from .presets import DEFAULT_PRESET, PRESETS, has_preset, preset_names, slot_for, slots_for
from .store import AssignmentStore, Location
from .validation import validate_formation

__all__ = [
    "AssignmentStore",
    "DEFAULT_PRESET",
    "Location",
    "PRESETS",
    "categorize",
    "has_preset",
    "plan_formation",
    "preset_names",
    "slot_for",
    "slots_for",
    "validate_formation",
]
