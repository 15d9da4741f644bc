from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path

from pitchboard.contracts import ActionRequest, ActionType, FormationState
from pitchboard.core import EngineConfig, RuntimePaths, configure_logging, unseeded_random, make_id, seeded_random
from pitchboard.engine import FormationEngine
from pitchboard.persistence import (
    FormationBackupStore,
    FormationRepository,
    HttpFormationTransport,
    LocalFormationTransport,
)


def _print_state(state: FormationState) -> None:
    marker = " (unsaved)" if state.dirty else ""
    print(f"Team {state.team_id} - {state.preset_name}{marker}")
    for s in state.starters:
        print(f"  {s.label:<4} {s.position_id:<5} #{s.jersey_number:<3} {s.display_name}{'' if s.member_id else ' *'}")
    print("Bench:")
    for index, b in enumerate(state.bench):
        print(f"  [{index}] #{b.jersey_number:<3} {b.display_name}{'' if b.member_id else ' *'}")


def _load_roster(path: Path) -> list[dict]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("members") or data.get("athletes") or []
    if not isinstance(data, list):
        raise SystemExit(f"{path}: expected a JSON list of roster members")
    return data


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Pitchboard: team formation editor")
    parser.add_argument("--root", type=Path, default=Path.cwd(), help="runtime root directory")
    parser.add_argument("--team", required=True, help="team id whose formation is edited")
    parser.add_argument("--api-url", default=None, help="remote formation API; local sqlite store when omitted")
    parser.add_argument("--seed", type=int, default=None, help="seed for reproducible auto-assignment")
    parser.add_argument("--verbose", action="store_true", help="debug logging")

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("show", help="print the current formation")
    commands.add_parser("presets", help="list formation presets")

    preset = commands.add_parser("preset", help="switch formation preset")
    preset.add_argument("name")

    move = commands.add_parser("move", help="move a player onto a pitch slot")
    move.add_argument("player", help="member id or assignment id")
    move.add_argument("slot", help="target position id, e.g. st")

    bench = commands.add_parser("bench", help="move a starter to the end of the bench")
    bench.add_argument("player")

    sub = commands.add_parser("sub", help="move a player into a bench slot")
    sub.add_argument("player")
    sub.add_argument("index", type=int)

    swap = commands.add_parser("swap", help="swap two players")
    swap.add_argument("first")
    swap.add_argument("second")

    auto = commands.add_parser("auto", help="auto-assign a roster read from a JSON file")
    auto.add_argument("roster", type=Path)

    commands.add_parser("reset", help="replace everyone with placeholder players")

    export = commands.add_parser("export", help="write the lineup sheet as CSV and Parquet")
    export.add_argument("--out", type=Path, default=None)
    return parser


def _build_engine(args: argparse.Namespace) -> FormationEngine:
    config = EngineConfig.from_env()
    if args.api_url:
        config = replace(config, api_url=args.api_url.rstrip("/"))
    paths = RuntimePaths(args.root)
    backups = FormationBackupStore(paths.sqlite_path)
    backups.initialize_schema()
    if args.api_url:
        transport = HttpFormationTransport.from_config(config)
    else:
        transport = LocalFormationTransport(FormationRepository(paths.sqlite_path))
    rand = seeded_random(args.seed) if args.seed is not None else unseeded_random()
    return FormationEngine(transport, config=config, random_source=rand, backup_store=backups, paths=paths)


def _request(engine: FormationEngine, action: ActionType, payload: dict) -> ActionRequest:
    return ActionRequest(make_id("req"), action, payload, engine.team_id or "")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    with _build_engine(args) as engine:
        outcome = engine.init(args.team).result()
        if outcome.error is not None:
            print(f"warning: {outcome.error}", file=sys.stderr)

        if args.command == "presets":
            result = engine.handle_action(_request(engine, ActionType.LIST_PRESETS, {}))
            for name in result.data["presets"]:
                print(f"{'*' if name == result.data['active'] else ' '} {name}")
            return 0

        if args.command == "export":
            paths = engine.export(args.out)
            for path in paths:
                print(f"- {path}")
            return 0

        if args.command == "show":
            _print_state(engine.state)
            return 0

        if args.command == "preset":
            request = _request(engine, ActionType.CHANGE_PRESET, {"preset": args.name})
        elif args.command == "move":
            location = engine.locate(args.player)
            request = _request(
                engine,
                ActionType.MOVE_TO_POSITION,
                {
                    "member_id": args.player,
                    "target_position_id": args.slot,
                    "origin_is_starter": bool(location and location.in_starters),
                    "origin_position_id": location.position_id if location else None,
                },
            )
        elif args.command == "bench":
            request = _request(engine, ActionType.MOVE_TO_BENCH, {"member_id": args.player})
        elif args.command == "sub":
            location = engine.locate(args.player)
            request = _request(
                engine,
                ActionType.MOVE_TO_BENCH_SLOT,
                {
                    "member_id": args.player,
                    "target_bench_index": args.index,
                    "origin_is_starter": bool(location and location.in_starters),
                    "origin_bench_index": location.index if location and not location.in_starters else None,
                },
            )
        elif args.command == "swap":
            request = _request(engine, ActionType.SWAP, {"first": args.first, "second": args.second})
        elif args.command == "auto":
            members = _load_roster(args.roster)
            changed = engine.auto_assign(members)
            print("auto-assigned" if changed else "no change")
            engine.flush()
            _print_state(engine.state)
            return 0
        else:
            request = _request(engine, ActionType.SET_PLACEHOLDERS, {})

        result = engine.handle_action(request)
        print(result.message)
        engine.flush()
        if engine.dirty:
            print("warning: formation not saved; rerun to retry", file=sys.stderr)
        _print_state(engine.state)
        return 0 if result.success else 1


if __name__ == "__main__":
    raise SystemExit(main())
