from __future__ import annotations

from typing import Any, Iterable, Mapping

from pitchboard.contracts import (
    BenchAssignment,
    FormationDocument,
    FormationState,
    RosterMember,
    StarterAssignment,
)
from pitchboard.core.config import DEFAULT_BENCH_CAPACITY
from pitchboard.core.ids import make_id, now_iso
from pitchboard.core.logs import get_logger
from pitchboard.formation.placeholders import default_bench, default_starters, placeholder_name
from pitchboard.formation.presets import DEFAULT_PRESET, has_preset, slots_for
from pitchboard.formation.store import bind_to_slot, release_to_bench

_log = get_logger("codec")

NOT_SAVED_FLAG = "notSaved"


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def _text(value: Any) -> str | None:
    return None if value is None else str(value)


def unwrap_response(body: Mapping[str, Any] | None) -> tuple[dict[str, Any], bool]:
    """Split a formation resource body into its ``schema_json`` and the not-saved flag."""
    if not body:
        return {}, False
    not_saved = bool(body.get(NOT_SAVED_FLAG))
    schema = body.get("schema_json")
    if isinstance(schema, Mapping):
        return dict(schema), not_saved
    if "starters" in body or "subs" in body:
        return dict(body), not_saved
    return {}, not_saved


def _decode_bench_entry(raw: Mapping[str, Any], index: int, first_number: int) -> BenchAssignment:
    jersey = _text(_first(raw, "jerseyNumber", "jersey_number")) or str(first_number + index)
    return BenchAssignment(
        assignment_id="",
        member_id=_text(_first(raw, "playerId", "memberId", "member_id")),
        jersey_number=jersey,
        display_name=_text(_first(raw, "playerName", "displayName", "display_name")) or placeholder_name(first_number + index),
        preferred_position=_text(_first(raw, "preferredPosition", "preferred_position")),
    )


def document_from_schema(
    schema: Mapping[str, Any],
    *,
    default_preset: str = DEFAULT_PRESET,
    bench_capacity: int = DEFAULT_BENCH_CAPACITY,
) -> FormationDocument | None:
    """Decode and sanitise a stored ``schema_json``.

    Returns None when the document holds neither starters nor subs. Starters
    are re-bound to catalog coordinates; starters on unknown or already taken
    slots are demoted, duplicate members and assignment ids are dropped or
    re-issued.
    """
    raw_starters = schema.get("starters") if isinstance(schema.get("starters"), list) else []
    raw_subs = schema.get("subs") if isinstance(schema.get("subs"), list) else []
    if not raw_starters and not raw_subs:
        return None

    preset = str(schema.get("preset") or default_preset)
    if not has_preset(preset):
        _log.warning("stored preset %s is not in the catalog, using %s", preset, default_preset)
        preset = default_preset
    slots = {slot.id: slot for slot in slots_for(preset)}
    first_bench_number = len(slots) + 1

    seen_members: set[str] = set()
    seen_ids: set[str] = set()

    def claim(raw_id: Any) -> str:
        candidate = _text(raw_id)
        if not candidate or candidate in seen_ids:
            candidate = make_id("asg")
        seen_ids.add(candidate)
        return candidate

    def fresh_member(member_id: str | None) -> bool:
        if member_id is None:
            return True
        if member_id in seen_members:
            _log.warning("dropping duplicate occurrence of member %s", member_id)
            return False
        seen_members.add(member_id)
        return True

    starters: list[StarterAssignment] = []
    demoted: list[BenchAssignment] = []
    for index, raw in enumerate(r for r in raw_starters if isinstance(r, Mapping)):
        entry = _decode_bench_entry(raw, index, 1)
        if not fresh_member(entry.member_id):
            continue
        entry.assignment_id = claim(_first(raw, "assignmentId", "id"))
        position_id = _text(_first(raw, "positionId", "position_id", "id"))
        slot = slots.get(position_id or "")
        if slot is None or any(s.position_id == slot.id for s in starters):
            if entry.member_id is not None:
                demoted.append(release_to_bench(entry))
            continue
        starters.append(bind_to_slot(entry, slot))

    bench: list[BenchAssignment] = []
    for index, raw in enumerate(r for r in raw_subs if isinstance(r, Mapping)):
        entry = _decode_bench_entry(raw, index, first_bench_number)
        if not fresh_member(entry.member_id):
            continue
        entry.assignment_id = claim(_first(raw, "assignmentId", "id"))
        bench.append(entry)

    if not starters:
        starters = default_starters(list(slots.values()))
    if not raw_subs:
        bench = default_bench(first_bench_number, bench_capacity)
    return FormationDocument(
        preset_name=preset,
        starters=starters,
        bench=bench + demoted,
        updated_at=_text(schema.get("updated_at")),
    )


def schema_from_state(state: FormationState) -> dict[str, Any]:
    return {
        "preset": state.preset_name,
        "starters": [
            {
                "id": s.assignment_id,
                "positionId": s.position_id,
                "label": s.label,
                "position": s.label,
                "preferredPosition": s.preferred_position,
                "xNorm": s.x_norm,
                "yNorm": s.y_norm,
                "playerId": s.member_id,
                "jerseyNumber": s.jersey_number,
                "playerName": s.display_name,
            }
            for s in state.starters
        ],
        "subs": [
            {
                "id": b.assignment_id,
                "label": "SUB",
                "position": "SUB",
                "preferredPosition": b.preferred_position,
                "playerId": b.member_id,
                "jerseyNumber": b.jersey_number,
                "playerName": b.display_name,
            }
            for b in state.bench
        ],
        "updated_at": now_iso(),
    }


def roster_from_payload(items: Iterable[RosterMember | Mapping[str, Any]]) -> list[RosterMember]:
    members: list[RosterMember] = []
    for item in items:
        if isinstance(item, RosterMember):
            members.append(item)
            continue
        member_id = _text(_first(item, "id", "memberId", "member_id"))
        if member_id is None:
            _log.warning("skipping roster entry without an id: %r", item)
            continue
        members.append(
            RosterMember(
                member_id=member_id,
                preferred_position=_text(
                    _first(item, "preferredPositionCode", "preferredPosition", "preferred_position", "position")
                ),
                jersey_number=_text(_first(item, "jerseyNumber", "jersey_number")),
                display_name=_text(_first(item, "displayName", "display_name", "lastName", "firstName", "name")),
            )
        )
    return members
