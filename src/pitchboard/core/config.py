from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path

DEFAULT_API_URL = "http://127.0.0.1:5000"
DEFAULT_BENCH_CAPACITY = 7


def _env_flag(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class EngineConfig:
    api_url: str = DEFAULT_API_URL
    api_token: str | None = None
    request_timeout: float = 15.0
    bench_capacity: int = DEFAULT_BENCH_CAPACITY
    default_preset: str = "4-3-3"
    debug_checks: bool = False
    save_workers: int = 4

    def validate(self) -> None:
        if self.bench_capacity < 0:
            raise ValueError("bench_capacity must be non-negative")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        if self.save_workers < 1:
            raise ValueError("save_workers must be at least 1")

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> EngineConfig:
        env = os.environ if environ is None else environ
        config = cls()
        if env.get("PITCHBOARD_API_URL"):
            config = replace(config, api_url=env["PITCHBOARD_API_URL"].rstrip("/"))
        if env.get("PITCHBOARD_API_TOKEN"):
            config = replace(config, api_token=env["PITCHBOARD_API_TOKEN"])
        if env.get("PITCHBOARD_TIMEOUT"):
            config = replace(config, request_timeout=float(env["PITCHBOARD_TIMEOUT"]))
        if env.get("PITCHBOARD_BENCH_CAPACITY"):
            config = replace(config, bench_capacity=int(env["PITCHBOARD_BENCH_CAPACITY"]))
        if env.get("PITCHBOARD_DEFAULT_PRESET"):
            config = replace(config, default_preset=env["PITCHBOARD_DEFAULT_PRESET"])
        if "PITCHBOARD_DEBUG" in env:
            config = replace(config, debug_checks=_env_flag(env.get("PITCHBOARD_DEBUG")))
        config.validate()
        return config


class RuntimePaths:
    def __init__(self, root: Path) -> None:
        self.root = root

    @property
    def sqlite_path(self) -> Path:
        return self.root / "data" / "formations.sqlite3"

    @property
    def export_dir(self) -> Path:
        return self.root / "exports"

    @property
    def forensic_dir(self) -> Path:
        return self.root / "forensics"
