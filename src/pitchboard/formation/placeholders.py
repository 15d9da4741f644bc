from __future__ import annotations

from pitchboard.contracts import BenchAssignment, PositionSlot, StarterAssignment
from pitchboard.core.ids import make_id


def placeholder_name(number: int) -> str:
    return f"Player {number}"


def placeholder_starter(slot: PositionSlot, index: int) -> StarterAssignment:
    number = index + 1
    return StarterAssignment(
        assignment_id=make_id("asg"),
        position_id=slot.id,
        label=slot.label,
        x_norm=slot.x_norm,
        y_norm=slot.y_norm,
        member_id=None,
        jersey_number=str(number),
        display_name=placeholder_name(number),
    )


def placeholder_bench(number: int) -> BenchAssignment:
    return BenchAssignment(
        assignment_id=make_id("asg"),
        member_id=None,
        jersey_number=str(number),
        display_name=placeholder_name(number),
    )


def default_starters(slots: tuple[PositionSlot, ...] | list[PositionSlot]) -> list[StarterAssignment]:
    return [placeholder_starter(slot, index) for index, slot in enumerate(slots)]


def default_bench(first_number: int, count: int) -> list[BenchAssignment]:
    return [placeholder_bench(first_number + offset) for offset in range(count)]


def pad_bench(bench: list[BenchAssignment], capacity: int, first_number: int) -> list[BenchAssignment]:
    """Append placeholders until the bench shows ``capacity`` entries.

    Jersey numbers continue from ``first_number`` offset by the bench index so
    a padded bench reads as one sequential row.
    """
    padded = list(bench)
    while len(padded) < capacity:
        padded.append(placeholder_bench(first_number + len(padded)))
    return padded
