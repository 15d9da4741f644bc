from __future__ import annotations

import json
from pathlib import Path

import pytest

from pitchboard.cli import main
from pitchboard.persistence import FormationRepository


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("PITCHBOARD_API_URL", "PITCHBOARD_DEFAULT_PRESET", "PITCHBOARD_BENCH_CAPACITY", "PITCHBOARD_DEBUG"):
        monkeypatch.delenv(name, raising=False)


def _roster(tmp_path: Path) -> Path:
    path = tmp_path / "roster.json"
    codes = ["GK", "CB", "CB", "LB", "RB", "CM", "CM", "CDM", "LW", "ST", "RW", "GK", "CB", "CAM", "ST", "LM", "RM"]
    path.write_text(
        json.dumps([{"id": f"m{i}", "preferredPositionCode": code, "displayName": f"Name {i}"} for i, code in enumerate(codes)]),
        encoding="utf-8",
    )
    return path


def test_show_bootstraps_local_store(tmp_path: Path, capsys):
    assert main(["--root", str(tmp_path), "--team", "T1", "show"]) == 0

    out = capsys.readouterr().out
    assert "Team T1 - 4-3-3" in out
    assert "Player 18" in out
    assert FormationRepository(tmp_path / "data" / "formations.sqlite3").get("T1") is not None


def test_auto_then_preset_change_is_persisted(tmp_path: Path, capsys):
    root = ["--root", str(tmp_path), "--team", "T1", "--seed", "3"]
    assert main([*root, "auto", str(_roster(tmp_path))]) == 0
    assert main([*root, "preset", "4-4-2"]) == 0
    capsys.readouterr()

    assert main([*root, "show"]) == 0
    out = capsys.readouterr().out
    assert "Team T1 - 4-4-2" in out
    assert "(unsaved)" not in out
    assert "Name 0" in out


def test_unknown_preset_fails(tmp_path: Path, capsys):
    assert main(["--root", str(tmp_path), "--team", "T1", "preset", "1-1-1"]) == 1
    assert "unknown formation preset" in capsys.readouterr().out


def test_presets_marks_active(tmp_path: Path, capsys):
    assert main(["--root", str(tmp_path), "--team", "T1", "presets"]) == 0
    assert "* 4-3-3" in capsys.readouterr().out
