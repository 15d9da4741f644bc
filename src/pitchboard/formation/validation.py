from __future__ import annotations

from collections import Counter

from pitchboard.contracts import FormationState, ValidationIssue
from pitchboard.core.errors import FormationIntegrityError, build_forensic_artifact
from pitchboard.formation.presets import PRESETS


def validate_formation(state: FormationState) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    slots = PRESETS.get(state.preset_name)
    team = state.team_id or "unbound"
    if slots is None:
        issues.append(
            ValidationIssue(
                code="UNKNOWN_PRESET",
                severity="blocking",
                field_path="preset_name",
                entity_id=team,
                message=f"preset '{state.preset_name}' is not in the catalog",
            )
        )
        return issues

    if len(state.starters) > len(slots):
        issues.append(
            ValidationIssue(
                code="TOO_MANY_STARTERS",
                severity="blocking",
                field_path="starters",
                entity_id=team,
                message=f"{len(state.starters)} starters for {len(slots)} slots",
            )
        )

    slot_ids = {slot.id for slot in slots}
    for starter in state.starters:
        if starter.position_id not in slot_ids:
            issues.append(
                ValidationIssue(
                    code="UNKNOWN_SLOT",
                    severity="blocking",
                    field_path="starters.position_id",
                    entity_id=starter.assignment_id,
                    message=f"slot '{starter.position_id}' is not part of {state.preset_name}",
                )
            )

    for position_id, count in Counter(s.position_id for s in state.starters).items():
        if count > 1:
            issues.append(
                ValidationIssue(
                    code="SLOT_DOUBLE_BOOKED",
                    severity="blocking",
                    field_path="starters.position_id",
                    entity_id=position_id,
                    message=f"{count} starters bound to slot '{position_id}'",
                )
            )

    members = [s.member_id for s in state.starters] + [b.member_id for b in state.bench]
    for member_id, count in Counter(m for m in members if m is not None).items():
        if count > 1:
            issues.append(
                ValidationIssue(
                    code="DUPLICATE_MEMBER",
                    severity="blocking",
                    field_path="starters+bench.member_id",
                    entity_id=member_id,
                    message=f"member appears {count} times",
                )
            )

    assignment_ids = [s.assignment_id for s in state.starters] + [b.assignment_id for b in state.bench]
    for assignment_id, count in Counter(assignment_ids).items():
        if count > 1:
            issues.append(
                ValidationIssue(
                    code="DUPLICATE_ASSIGNMENT",
                    severity="blocking",
                    field_path="starters+bench.assignment_id",
                    entity_id=assignment_id,
                    message=f"assignment id appears {count} times",
                )
            )
    return issues


def assert_formation_integrity(state: FormationState, operation: str, context: dict[str, object]) -> None:
    issues = validate_formation(state)
    if not issues:
        return
    artifact = build_forensic_artifact(
        engine_scope="formation_store",
        error_code=issues[0].code,
        message="; ".join(f"{i.code}:{i.entity_id}:{i.message}" for i in issues),
        state_snapshot={
            "preset_name": state.preset_name,
            "starters": [(s.assignment_id, s.position_id, s.member_id) for s in state.starters],
            "bench": [(b.assignment_id, b.member_id) for b in state.bench],
            "revision": state.revision,
        },
        context=context,
        identifiers={"team_id": state.team_id or "", "operation": operation},
        causal_fragment=[operation],
    )
    raise FormationIntegrityError(artifact)
