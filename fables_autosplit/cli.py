"""
Command-line interface for the Bug Fables autosplitter.

Commands:
- watch: Poll the game and print start / split / end events
- status: Hook the game once and dump what can be read
- splits: Validate and list a split file
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

from .config import AppConfig, SplitList
from .debug.trace import DiagnosticLog, setup_logging

log = logging.getLogger(__name__)


def get_arg_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="fables-autosplit",
        description="Bug Fables autosplitter driven by game memory",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "--config",
        type=str,
        default="configs/autosplit.toml",
        help="Path to app config (defaults are used if missing)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Watch command
    watch_parser = subparsers.add_parser(
        "watch",
        help="Poll the game and print timer events",
    )
    watch_parser.add_argument(
        "--splits",
        type=str,
        help="Split file (overrides the config)",
    )
    watch_parser.add_argument(
        "--max-polls",
        type=int,
        default=0,
        help="Stop after this many polls (0 = run until Ctrl+C)",
    )

    # Status command
    subparsers.add_parser(
        "status",
        help="Hook the game once and print every readable value",
    )

    # Splits command
    splits_parser = subparsers.add_parser(
        "splits",
        help="Validate and list a split file",
    )
    splits_parser.add_argument(
        "path",
        type=str,
        nargs="?",
        help="Split file (defaults to the one in the config)",
    )

    return parser


def load_app_config(path: str) -> AppConfig:
    config_path = Path(path)
    if config_path.exists():
        return AppConfig.from_toml(config_path)
    log.debug("No config at %s, using defaults", config_path)
    return AppConfig()


def cmd_watch(args: argparse.Namespace, config: AppConfig) -> int:
    """Run the poll loop the way a timer host would."""
    from .memory.game_memory import GameMemory
    from .splitter.engine import is_end_split
    from .splitter.logic import AutoSplitter

    splits_path = Path(args.splits or config.splits_file)
    sink = DiagnosticLog(config.log_file, config.log_max_age_days) if config.log_file else None
    try:
        splitter = AutoSplitter.create(
            split_source=lambda: SplitList.from_toml(splits_path),
            sink=sink,
            game_memory=GameMemory(config.process_name),
        )
    except (OSError, ValueError) as e:
        print(f"Invalid split file {splits_path}: {e}")
        return 1

    total = len(splitter.logic.splits)
    interval = config.poll_interval_ms / 1000.0
    running = False
    index = 0
    polls = 0

    print(f"Waiting for {config.process_name} ({total} splits, mode={splitter.logic.splits.mode.value})")
    try:
        while args.max_polls <= 0 or polls < args.max_polls:
            polls += 1
            if not splitter.poll():
                time.sleep(interval)
                continue

            if not running:
                if splitter.should_start():
                    running = True
                    index = 0
                    print("START")
            elif splitter.should_split(index, total):
                name = splitter.logic.splits[index].name if index < total else ""
                if is_end_split(splitter.logic.splits, index, total):
                    print(f"END {name}".rstrip())
                    running = False
                    splitter.reset()
                    total = len(splitter.logic.splits)
                else:
                    print(f"SPLIT {index + 1}: {name}")
                    index += 1

            time.sleep(interval)
    except KeyboardInterrupt:
        print("\nStopped")

    return 0


def cmd_status(args: argparse.Namespace, config: AppConfig) -> int:
    """Print binding state and every accessor once."""
    from .memory.game_memory import GameMemory, encounter_table

    memory = GameMemory(config.process_name)
    if not memory.hook():
        print(f"{config.process_name} is not running")
        return 1

    degraded = " (unrecognized runtime, assumed)" if memory.degraded else ""
    print(f"Bound to pid {memory.pid}, version {memory.version.value}{degraded}")

    flags = memory.read_flags()
    encounters = memory.read_enemy_encounter()
    rows = [
        ("room id", memory.read_current_room_id()),
        ("room name", memory.read_current_room_name()),
        ("song id", memory.read_first_music_id()),
        ("music coroutine", memory.read_music_coroutine()),
        ("battle ptr", memory.read_battle_ptr()),
        ("in event", memory.read_in_event()),
        ("last event", memory.read_last_event()),
        ("flags set", None if flags is None else sum(1 for b in flags if b)),
        ("enemies defeated", None if encounters is None
         else int(encounter_table(encounters)[:, 1].sum())),
    ]
    for label, value in rows:
        shown = "<unreadable>" if value is None else value
        if label in ("music coroutine", "battle ptr") and value is not None:
            shown = f"0x{value:X}"
        print(f"  {label:<17} {shown}")

    memory.unbind()
    return 0


def cmd_splits(args: argparse.Namespace, config: AppConfig) -> int:
    """Validate and list a split file."""
    path = Path(args.path or config.splits_file)
    try:
        splits = SplitList.from_toml(path)
    except (OSError, ValueError) as e:
        print(f"Invalid split file {path}: {e}")
        return 1

    print(f"{path}: {len(splits)} splits, mode={splits.mode.value}")
    for i, split in enumerate(splits.splits):
        room = "-" if split.required_room is None else split.required_room
        group = f"[{split.group}] " if split.group else ""
        print(f"  {i:>2}. {group}{split.name}  room={room} "
              f"flags={list(split.required_flags)} enemies={list(split.required_enemies)}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = get_arg_parser()
    args = parser.parse_args(argv)

    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        config = load_app_config(args.config)
    except (OSError, ValueError) as e:
        print(f"Invalid config {args.config}: {e}")
        return 1

    commands = {
        "watch": cmd_watch,
        "status": cmd_status,
        "splits": cmd_splits,
    }

    cmd_func = commands.get(args.command)
    if cmd_func:
        return cmd_func(args, config)
    else:
        print(f"Unknown command: {args.command}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
