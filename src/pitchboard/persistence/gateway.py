from __future__ import annotations

import threading
from typing import Any, Protocol

from pitchboard.contracts import (
    FormationDocument,
    FormationState,
    FormationTransport,
    LoadOutcome,
    LoadPhase,
    LoadSource,
    SaveOutcome,
)
from pitchboard.core.config import DEFAULT_BENCH_CAPACITY
from pitchboard.core.errors import PersistenceLoadError, PersistenceSaveError, TransportError
from pitchboard.core.logs import get_logger
from pitchboard.formation.placeholders import default_bench, default_starters
from pitchboard.formation.presets import DEFAULT_PRESET, slots_for
from pitchboard.persistence.codec import document_from_schema, schema_from_state, unwrap_response

_log = get_logger("gateway")


class BackupStore(Protocol):
    def save_backup(self, team_id: str, schema: dict[str, Any]) -> None: ...

    def load_backup(self, team_id: str) -> dict[str, Any] | None: ...


class PersistenceGateway:
    """Loads and saves one formation document per team through a transport.

    ``load`` and ``save`` never raise transport failures. Every failure is
    turned into an outcome carrying the error and a usable document.
    """

    def __init__(
        self,
        transport: FormationTransport,
        *,
        default_preset: str = DEFAULT_PRESET,
        bench_capacity: int = DEFAULT_BENCH_CAPACITY,
        backup_store: BackupStore | None = None,
    ) -> None:
        slots_for(default_preset)
        self._transport = transport
        self._default_preset = default_preset
        self._bench_capacity = bench_capacity
        self._backup_store = backup_store
        self._phases: dict[str, LoadPhase] = {}
        self._lock = threading.Lock()

    def phase(self, team_id: str) -> LoadPhase:
        with self._lock:
            return self._phases.get(team_id, LoadPhase.IDLE)

    def _enter(self, team_id: str, phase: LoadPhase) -> None:
        with self._lock:
            self._phases[team_id] = phase
        _log.debug("team %s -> %s", team_id, phase.value)

    def placeholder_document(self) -> FormationDocument:
        slots = slots_for(self._default_preset)
        return FormationDocument(
            preset_name=self._default_preset,
            starters=default_starters(slots),
            bench=default_bench(len(slots) + 1, self._bench_capacity),
        )

    def _decode(self, schema: dict[str, Any]) -> FormationDocument | None:
        return document_from_schema(
            schema,
            default_preset=self._default_preset,
            bench_capacity=self._bench_capacity,
        )

    def _loaded(self, team_id: str, source: LoadSource, document: FormationDocument, dirty: bool) -> LoadOutcome:
        self._enter(team_id, LoadPhase.LOADED)
        _log.info("loaded formation for team %s from %s (preset %s)", team_id, source.value, document.preset_name)
        return LoadOutcome(team_id=team_id, phase=LoadPhase.LOADED, source=source, document=document, dirty=dirty)

    def _failed(
        self,
        team_id: str,
        source: LoadSource,
        document: FormationDocument,
        dirty: bool,
        error: PersistenceLoadError,
    ) -> LoadOutcome:
        self._enter(team_id, LoadPhase.FAILED)
        _log.warning("%s; continuing with %s formation", error, source.value)
        return LoadOutcome(
            team_id=team_id,
            phase=LoadPhase.FAILED,
            source=source,
            document=document,
            dirty=dirty,
            error=error,
        )

    def load(self, team_id: str) -> LoadOutcome:
        self._enter(team_id, LoadPhase.LOADING)
        try:
            body = self._transport.fetch(team_id)
        except TransportError as exc:
            if exc.not_found:
                return self._bootstrap(team_id)
            return self._recover(team_id, PersistenceLoadError(team_id, str(exc)))
        except ValueError as exc:
            return self._recover(team_id, PersistenceLoadError(team_id, f"malformed response: {exc}"))

        schema, not_saved = unwrap_response(body)
        document = self._decode(schema)
        if document is None:
            return self._bootstrap(team_id)
        if not_saved:
            return self._loaded(team_id, LoadSource.TEMPLATE, document, dirty=True)
        return self._loaded(team_id, LoadSource.REMOTE, document, dirty=False)

    def _bootstrap(self, team_id: str) -> LoadOutcome:
        self._enter(team_id, LoadPhase.BOOTSTRAPPING)
        try:
            body = self._transport.request_default(team_id)
        except TransportError as exc:
            if exc.forbidden:
                return self._failed(
                    team_id,
                    LoadSource.CLIENT_DEFAULT,
                    self.placeholder_document(),
                    True,
                    PersistenceLoadError(team_id, f"default formation refused: {exc.detail}"),
                )
            return self._recover(team_id, PersistenceLoadError(team_id, f"bootstrap failed: {exc}"))
        except ValueError as exc:
            return self._recover(team_id, PersistenceLoadError(team_id, f"malformed default: {exc}"))

        schema, not_saved = unwrap_response(body)
        document = self._decode(schema)
        if document is None:
            return self._recover(team_id, PersistenceLoadError(team_id, "server returned an empty default formation"))
        if not_saved:
            return self._loaded(team_id, LoadSource.TEMPLATE, document, dirty=True)
        return self._loaded(team_id, LoadSource.BOOTSTRAP, document, dirty=False)

    def _recover(self, team_id: str, error: PersistenceLoadError) -> LoadOutcome:
        if self._backup_store is not None:
            schema = self._backup_store.load_backup(team_id)
            document = self._decode(schema) if schema else None
            if document is not None:
                return self._failed(team_id, LoadSource.BACKUP, document, True, error)
        return self._failed(team_id, LoadSource.PLACEHOLDER, self.placeholder_document(), False, error)

    def save(self, team_id: str, state: FormationState) -> SaveOutcome:
        schema = schema_from_state(state)
        if self._backup_store is not None:
            self._backup_store.save_backup(team_id, schema)
        try:
            self._transport.put(team_id, {"schema_json": schema})
        except (TransportError, ValueError) as exc:
            error = PersistenceSaveError(team_id, str(exc))
            _log.warning("%s (revision %d stays dirty)", error, state.revision)
            return SaveOutcome(team_id=team_id, revision=state.revision, success=False, error=error)
        _log.debug("saved formation for team %s at revision %d", team_id, state.revision)
        return SaveOutcome(team_id=team_id, revision=state.revision, success=True)
