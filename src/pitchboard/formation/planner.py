from __future__ import annotations

from typing import Iterable

from pitchboard.contracts import (
    BenchAssignment,
    FormationPlan,
    PositionCategory,
    PositionSlot,
    RandomSource,
    RosterMember,
    StarterAssignment,
)
from pitchboard.core.config import DEFAULT_BENCH_CAPACITY
from pitchboard.core.ids import make_id
from pitchboard.core.logs import get_logger
from pitchboard.formation.placeholders import pad_bench, placeholder_name, placeholder_starter
from pitchboard.formation.presets import slots_for

_log = get_logger("planner")

FILL_ORDER = (
    PositionCategory.GOALKEEPER,
    PositionCategory.DEFENDER,
    PositionCategory.MIDFIELDER,
    PositionCategory.FORWARD,
)

CATEGORY_CODES: dict[PositionCategory, tuple[str, ...]] = {
    PositionCategory.GOALKEEPER: ("GK",),
    # wing-backs count as defenders, not wingers; exact codes are matched first in categorize()
    PositionCategory.DEFENDER: ("LWB", "RWB", "LB", "CB", "RB"),
    PositionCategory.MIDFIELDER: ("CDM", "CAM", "CM", "LM", "RM"),
    PositionCategory.FORWARD: ("ST", "CF", "LW", "RW"),
}


def categorize(code: str | None) -> PositionCategory | None:
    """Map a slot label or preferred-position code onto a positional category.

    Exact codes win over substrings so wing-backs stay defenders even though
    "LWB" contains the winger code "LW".
    """
    if not code:
        return None
    normalized = code.strip().upper()
    for category in FILL_ORDER:
        if normalized in CATEGORY_CODES[category]:
            return category
    for category in FILL_ORDER:
        if any(fragment in normalized for fragment in CATEGORY_CODES[category]):
            return category
    return None


def _member_name(member: RosterMember, fallback_number: int) -> str:
    return member.display_name or placeholder_name(fallback_number)


def _starter_for(member: RosterMember, slot: PositionSlot, index: int) -> StarterAssignment:
    return StarterAssignment(
        assignment_id=make_id("asg"),
        position_id=slot.id,
        label=slot.label,
        x_norm=slot.x_norm,
        y_norm=slot.y_norm,
        member_id=member.member_id,
        jersey_number=member.jersey_number or "",
        display_name=_member_name(member, index + 1),
        preferred_position=member.preferred_position,
    )


def _bench_for(member: RosterMember, number: int) -> BenchAssignment:
    return BenchAssignment(
        assignment_id=make_id("asg"),
        member_id=member.member_id,
        jersey_number=member.jersey_number or str(number),
        display_name=_member_name(member, number),
        preferred_position=member.preferred_position,
    )


def _unique_members(members: Iterable[RosterMember]) -> list[RosterMember]:
    seen: set[str] = set()
    unique: list[RosterMember] = []
    for member in members:
        if member.member_id in seen:
            _log.warning("roster lists member %s twice; keeping the first entry", member.member_id)
            continue
        seen.add(member.member_id)
        unique.append(member)
    return unique


def plan_formation(
    members: Iterable[RosterMember],
    preset_name: str,
    random_source: RandomSource,
    bench_capacity: int = DEFAULT_BENCH_CAPACITY,
) -> FormationPlan:
    slots = slots_for(preset_name)
    roster = _unique_members(members)

    slot_pools: dict[PositionCategory | None, list[int]] = {category: [] for category in FILL_ORDER}
    slot_pools[None] = []
    for index, slot in enumerate(slots):
        slot_pools[categorize(slot.label)].append(index)

    member_pools: dict[PositionCategory | None, list[RosterMember]] = {category: [] for category in FILL_ORDER}
    member_pools[None] = []
    for member in roster:
        member_pools[categorize(member.preferred_position)].append(member)
    for pool in member_pools.values():
        random_source.shuffle(pool)

    placed: list[StarterAssignment | None] = [None] * len(slots)
    for category in FILL_ORDER:
        for index in slot_pools[category]:
            pool = member_pools[category] or member_pools[None]
            if pool:
                placed[index] = _starter_for(pool.pop(), slots[index], index)

    # Slots with unrecognised labels, and categories nobody on the roster plays,
    # take whoever is left before falling back to placeholders.
    leftovers = [m for category in [None, *FILL_ORDER] for m in member_pools[category]]
    random_source.shuffle(leftovers)
    for index, slot in enumerate(slots):
        if placed[index] is None and leftovers:
            placed[index] = _starter_for(leftovers.pop(), slot, index)

    starters = [entry or placeholder_starter(slots[i], i) for i, entry in enumerate(placed)]
    placed_ids = {s.member_id for s in starters if s.member_id is not None}
    remaining = [m for m in roster if m.member_id not in placed_ids]

    first_bench_number = len(slots) + 1
    bench = [_bench_for(member, first_bench_number + i) for i, member in enumerate(remaining[:bench_capacity])]
    bench = pad_bench(bench, bench_capacity, first_bench_number)
    unassigned = [m.member_id for m in remaining[bench_capacity:]]
    if unassigned:
        _log.info("%d roster member(s) left unassigned for preset %s", len(unassigned), preset_name)
    return FormationPlan(preset_name=preset_name, starters=starters, bench=bench, unassigned_member_ids=unassigned)
