from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime, UTC
from pathlib import Path
from uuid import uuid4

from pitchboard.contracts import ForensicArtifact


class FormationError(Exception):
    pass


class UnknownPresetError(FormationError, KeyError):
    def __init__(self, preset_name: str) -> None:
        super().__init__(f"unknown formation preset '{preset_name}'")
        self.preset_name = preset_name

    def __str__(self) -> str:
        return str(self.args[0])


class AssignmentNotFoundError(FormationError, LookupError):
    """Raised internally when a mutation references an absent id.

    The store catches it, logs it and turns the mutation into a no-op.
    """

    def __init__(self, reference: str, where: str = "formation") -> None:
        super().__init__(f"'{reference}' not found in {where}")
        self.reference = reference


class TransportError(FormationError):
    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"API {status_code}: {detail}")

    @property
    def not_found(self) -> bool:
        return self.status_code == 404

    @property
    def forbidden(self) -> bool:
        return self.status_code == 403


class PersistenceLoadError(FormationError):
    def __init__(self, team_id: str, message: str) -> None:
        super().__init__(f"failed to load formation for team {team_id}: {message}")
        self.team_id = team_id


class PersistenceSaveError(FormationError):
    def __init__(self, team_id: str, message: str) -> None:
        super().__init__(f"failed to save formation for team {team_id}: {message}")
        self.team_id = team_id


class FormationIntegrityError(RuntimeError):
    def __init__(self, artifact: ForensicArtifact) -> None:
        super().__init__(artifact.message)
        self.artifact = artifact


def build_forensic_artifact(
    engine_scope: str,
    error_code: str,
    message: str,
    state_snapshot: dict[str, object],
    context: dict[str, object],
    identifiers: dict[str, str],
    causal_fragment: list[str],
) -> ForensicArtifact:
    return ForensicArtifact(
        artifact_id=str(uuid4()),
        timestamp=datetime.now(UTC),
        engine_scope=engine_scope,
        error_code=error_code,
        message=message,
        state_snapshot=state_snapshot,
        context=context,
        identifiers=identifiers,
        causal_fragment=causal_fragment,
    )


def persist_forensic_artifact(artifact: ForensicArtifact, output_dir: Path) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"forensic_{artifact.artifact_id}.json"
    path.write_text(json.dumps(asdict(artifact), default=str, indent=2), encoding="utf-8")
    return path
