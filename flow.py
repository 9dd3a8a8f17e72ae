#!/usr/bin/env python
import sys
import asyncio
import argparse
from pathlib import Path

from boardflow import Runtime, RuntimeConfig, configure_logging, load_diagram
from boardflow.debug import stringify_ast
from boardflow.errors import BoardFlowError


def find_board(target: str):
    # Heuristic search for the file
    potential_paths = [
        Path(target),
        Path(f"{target}.json"),
        Path("examples") / target,
        Path("examples") / f"{target}.json",
    ]
    for p in potential_paths:
        if p.exists() and p.is_file():
            return p
    print(f"Error: Could not find board file for '{target}'")
    print("Checked: " + ", ".join(str(p) for p in potential_paths))
    sys.exit(1)


async def run_board(rt: Runtime, path: Path, window_name, seconds: float) -> int:
    diagram = load_diagram(path)
    windows = rt.compile(diagram)
    if window_name:
        windows = [w for w in windows if w.name == window_name]
    if not windows:
        print("[CLI] No window to run")
        return 1

    for window in windows:
        await rt.play(window)
    await asyncio.sleep(seconds)
    await rt.close()

    for marker in rt.annotations.markers.values():
        print(f"[{marker.severity.value}] {marker.message} @ {marker.element.kind} '{marker.element.name}'")
    return 1 if rt.annotations.errors else 0


def main():
    parser = argparse.ArgumentParser(description="BoardFlow CLI - run programs drawn on a board")
    parser.add_argument("--log-level", default=None, help="Log level (defaults to BOARDFLOW_LOG_LEVEL or INFO)")
    subparsers = parser.add_subparsers(dest="command")

    # 'compile' command
    compile_parser = subparsers.add_parser("compile", help="Print the syntax tree of every window on a board")
    compile_parser.add_argument("name", help="Name or path of the board file (e.g. pong or examples/pong.json)")

    # 'run' command
    run_parser = subparsers.add_parser("run", help="Play the windows of a board headlessly")
    run_parser.add_argument("name", help="Name or path of the board file")
    run_parser.add_argument("--window", default=None, help="Only play the window with this name")
    run_parser.add_argument("--seconds", type=float, default=1.0, help="How long to let the loop tick")

    args = parser.parse_args()
    config = RuntimeConfig.from_env()
    configure_logging(args.log_level or config.log_level)

    if args.command not in ("compile", "run"):
        parser.print_help()
        return

    board_file = find_board(args.name)
    rt = Runtime(config=config)
    try:
        if args.command == "compile":
            for window in rt.compile(load_diagram(board_file)):
                print(stringify_ast(window))
            sys.exit(1 if rt.annotations.errors else 0)
        print(f"[CLI] Running: {board_file}")
        sys.exit(asyncio.run(run_board(rt, board_file, args.window, args.seconds)))
    except (BoardFlowError, FileNotFoundError) as e:
        print(f"[Error] {str(e)}")
        sys.exit(1)

if __name__ == "__main__":
    main()
