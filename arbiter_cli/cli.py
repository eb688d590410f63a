"""Command-line entry point."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from importlib.metadata import PackageNotFoundError, version

from .bind import forge_bind
from .errors import ArbiterError
from .fork import ForkConfig
from .init import init_project, remove_git


def _version() -> str:
    try:
        return version("arbiter_cli")
    except PackageNotFoundError:
        return "0.0.0"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="Arbiter", description="Ethereum Virtual Machine Logic Simulator"
    )
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {_version()}")
    commands = parser.add_subparsers(dest="command")

    commands.add_parser("bind", help="Generate contract bindings with forge.")

    init = commands.add_parser("init", help="Initialize a new simulation project.")
    init.add_argument("simulation_name", help="Name of the simulation to initialize.")
    init.add_argument("--no-git", action="store_true", help="Remove the template's git history.")

    fork = commands.add_parser("fork", help="Fork chain state to disk.")
    fork.add_argument("fork_config_path", help="Config file that configures the fork.")
    fork.add_argument("--overwrite", action="store_true", help="Replace an existing output file.")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the tool; returns the process exit status."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        if args.command == "init":
            print("Initializing Arbiter project...")
            init_project(args.simulation_name)
            if args.no_git:
                remove_git()
        elif args.command == "bind":
            print("Generating bindings...")
            forge_bind()
        elif args.command == "fork":
            print("Forking...")
            ForkConfig.load(args.fork_config_path).write_to_disk(args.overwrite)
        else:
            parser.print_help()
    except (ArbiterError, OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())