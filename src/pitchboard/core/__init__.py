from .config import EngineConfig, RuntimePaths
from .errors import (
    AssignmentNotFoundError,
    FormationError,
    FormationIntegrityError,
    PersistenceLoadError,
    PersistenceSaveError,
    TransportError,
    UnknownPresetError,
    build_forensic_artifact,
    persist_forensic_artifact,
)
from .events import NoticeBus
from .ids import make_id, now_iso, now_utc
from .logs import configure_logging, get_logger
from .randomness import PythonRandomSource, unseeded_random, seeded_random

__all__ = [
    "AssignmentNotFoundError",
    "EngineConfig",
    "FormationError",
    "FormationIntegrityError",
    "NoticeBus",
    "PersistenceLoadError",
    "PersistenceSaveError",
    "PythonRandomSource",
    "RuntimePaths",
    "TransportError",
    "UnknownPresetError",
    "build_forensic_artifact",
    "configure_logging",
    "unseeded_random",
    "get_logger",
    "make_id",
    "now_iso",
    "now_utc",
    "persist_forensic_artifact",
    "seeded_random",
]
