from __future__ import annotations

import math
from collections import defaultdict

from pitchboard.contracts import PositionSlot
from pitchboard.core.errors import UnknownPresetError
from pitchboard.core.logs import get_logger

_log = get_logger("presets")

DEFAULT_PRESET = "4-3-3"
SLOTS_PER_PRESET = 11
MIN_SPACING = 25.0
PITCH_MIN = 5.0
PITCH_MAX = 95.0
GOALKEEPER_DEPTH = 95.0
BACK_LINE_LABELS = {"CB", "LB", "RB"}

# (id, label, x, y) before layout processing; y grows towards the own goal
_RAW_PRESETS: dict[str, list[tuple[str, str, float, float]]] = {
    "4-4-2": [
        ("gk", "GK", 50, 95),
        ("lb", "LB", 15, 75),
        ("cb1", "CB", 35, 75),
        ("cb2", "CB", 65, 75),
        ("rb", "RB", 85, 75),
        ("lm", "LM", 15, 45),
        ("cm1", "CM", 35, 45),
        ("cm2", "CM", 65, 45),
        ("rm", "RM", 85, 45),
        ("st1", "ST", 35, 15),
        ("st2", "ST", 65, 15),
    ],
    "4-3-3": [
        ("gk", "GK", 50, 95),
        ("lb", "LB", 15, 75),
        ("cb1", "CB", 35, 75),
        ("cb2", "CB", 65, 75),
        ("rb", "RB", 85, 75),
        ("cdm", "CDM", 50, 55),
        ("cm1", "CM", 30, 45),
        ("cm2", "CM", 70, 45),
        ("lw", "LW", 15, 15),
        ("st", "ST", 50, 15),
        ("rw", "RW", 85, 15),
    ],
    "3-5-2": [
        ("gk", "GK", 50, 95),
        ("cb1", "CB", 25, 75),
        ("cb2", "CB", 50, 75),
        ("cb3", "CB", 75, 75),
        ("lwb", "LWB", 10, 60),
        ("cm1", "CM", 30, 45),
        ("cdm", "CDM", 50, 50),
        ("cm2", "CM", 70, 45),
        ("rwb", "RWB", 90, 60),
        ("st1", "ST", 35, 15),
        ("st2", "ST", 65, 15),
    ],
    "3-4-3": [
        ("gk", "GK", 50, 95),
        ("cb1", "CB", 25, 75),
        ("cb2", "CB", 50, 75),
        ("cb3", "CB", 75, 75),
        ("lm", "LM", 15, 50),
        ("cm1", "CM", 35, 45),
        ("cm2", "CM", 65, 45),
        ("rm", "RM", 85, 50),
        ("lw", "LW", 15, 15),
        ("st", "ST", 50, 15),
        ("rw", "RW", 85, 15),
    ],
    "4-2-3-1": [
        ("gk", "GK", 50, 95),
        ("lb", "LB", 15, 75),
        ("cb1", "CB", 35, 75),
        ("cb2", "CB", 65, 75),
        ("rb", "RB", 85, 75),
        ("cdm1", "CDM", 35, 60),
        ("cdm2", "CDM", 65, 60),
        ("cam1", "CAM", 25, 35),
        ("cam2", "CAM", 50, 30),
        ("cam3", "CAM", 75, 35),
        ("st", "ST", 50, 15),
    ],
    "4-1-4-1": [
        ("gk", "GK", 50, 95),
        ("lb", "LB", 15, 75),
        ("cb1", "CB", 35, 75),
        ("cb2", "CB", 65, 75),
        ("rb", "RB", 85, 75),
        ("cdm", "CDM", 50, 60),
        ("lm", "LM", 15, 40),
        ("cm1", "CM", 35, 40),
        ("cm2", "CM", 65, 40),
        ("rm", "RM", 85, 40),
        ("st", "ST", 50, 15),
    ],
    "5-2-2-1": [
        ("gk", "GK", 50, 95),
        ("lwb", "LWB", 10, 70),
        ("cb1", "CB", 30, 75),
        ("cb2", "CB", 50, 75),
        ("cb3", "CB", 70, 75),
        ("rwb", "RWB", 90, 70),
        ("cm1", "CM", 30, 50),
        ("cm2", "CM", 70, 50),
        ("cam1", "CAM", 25, 30),
        ("cam2", "CAM", 75, 30),
        ("st", "ST", 50, 15),
    ],
    "4-1-2-1-2": [
        ("gk", "GK", 50, 95),
        ("lb", "LB", 15, 75),
        ("cb1", "CB", 35, 75),
        ("cb2", "CB", 65, 75),
        ("rb", "RB", 85, 75),
        ("cdm", "CDM", 50, 60),
        ("lcm", "CM", 30, 45),
        ("rcm", "CM", 70, 45),
        ("cam", "CAM", 50, 30),
        ("lst", "ST", 35, 15),
        ("rst", "ST", 65, 15),
    ],
    "4-5-1": [
        ("gk", "GK", 50, 95),
        ("lb", "LB", 15, 75),
        ("cb1", "CB", 35, 75),
        ("cb2", "CB", 65, 75),
        ("rb", "RB", 85, 75),
        ("lm", "LM", 10, 45),
        ("lcm", "CM", 30, 45),
        ("cm", "CM", 50, 45),
        ("rcm", "CM", 70, 45),
        ("rm", "RM", 90, 45),
        ("st", "ST", 50, 15),
    ],
    "4-2-2-2": [
        ("gk", "GK", 50, 95),
        ("lb", "LB", 15, 75),
        ("cb1", "CB", 35, 75),
        ("cb2", "CB", 65, 75),
        ("rb", "RB", 85, 75),
        ("cdm1", "CDM", 35, 60),
        ("cdm2", "CDM", 65, 60),
        ("cam1", "CAM", 30, 35),
        ("cam2", "CAM", 70, 35),
        ("st1", "ST", 35, 15),
        ("st2", "ST", 65, 15),
    ],
}


def _bucket(value: float) -> int:
    return int(math.floor(value / 10.0 + 0.5)) * 10


def _enforce_spacing(points: list[dict[str, float | str]], group_axis: str, spread_axis: str) -> None:
    groups: dict[int, list[dict[str, float | str]]] = defaultdict(list)
    for point in points:
        groups[_bucket(float(point[group_axis]))].append(point)
    for members in groups.values():
        if len(members) <= 1:
            continue
        members.sort(key=lambda p: float(p[spread_axis]))
        for prev, curr in zip(members, members[1:]):
            gap = float(curr[spread_axis]) - float(prev[spread_axis])
            if gap >= MIN_SPACING:
                continue
            adjustment = (MIN_SPACING - gap) / 2
            curr[spread_axis] = min(PITCH_MAX, float(curr[spread_axis]) + adjustment)
            prev[spread_axis] = max(PITCH_MIN, float(prev[spread_axis]) - adjustment)


def _spread(points: list[dict[str, float | str]]) -> None:
    for point in points:
        if point["label"] == "GK":
            continue
        x, y = float(point["x"]), float(point["y"])
        dist_x, dist_y = x - 50, y - 50
        if dist_x > 0:
            point["x"] = min(PITCH_MAX, x + dist_x * 0.15)
        elif dist_x < 0:
            point["x"] = max(PITCH_MIN, x + dist_x * 0.15)
        if dist_y < 0:
            point["y"] = max(10.0, y + dist_y * 0.2)
        elif point["label"] not in BACK_LINE_LABELS:
            point["y"] = min(90.0, y + dist_y * 0.1)


def _layout(name: str, raw: list[tuple[str, str, float, float]]) -> tuple[PositionSlot, ...]:
    points: list[dict[str, float | str]] = [
        {"id": slot_id, "label": label, "x": float(x), "y": float(y)} for slot_id, label, x, y in raw
    ]
    _enforce_spacing(points, group_axis="y", spread_axis="x")
    _enforce_spacing(points, group_axis="x", spread_axis="y")
    _spread(points)
    for point in points:
        if point["label"] == "GK":
            point["y"] = GOALKEEPER_DEPTH
            break
    if len(points) > SLOTS_PER_PRESET:
        _log.warning("preset %s has %d slots, trimming to %d", name, len(points), SLOTS_PER_PRESET)
        points = points[:SLOTS_PER_PRESET]
    elif len(points) < SLOTS_PER_PRESET:
        _log.warning("preset %s has only %d slots", name, len(points))
    return tuple(
        PositionSlot(
            id=str(p["id"]),
            label=str(p["label"]),
            x_norm=round(float(p["x"]), 2),
            y_norm=round(float(p["y"]), 2),
        )
        for p in points
    )


PRESETS: dict[str, tuple[PositionSlot, ...]] = {name: _layout(name, raw) for name, raw in _RAW_PRESETS.items()}


def preset_names() -> list[str]:
    return list(PRESETS)


def has_preset(name: str) -> bool:
    return name in PRESETS


def slots_for(name: str) -> tuple[PositionSlot, ...]:
    try:
        return PRESETS[name]
    except KeyError:
        raise UnknownPresetError(name) from None


def slot_for(name: str, position_id: str) -> PositionSlot | None:
    for slot in slots_for(name):
        if slot.id == position_id:
            return slot
    return None
