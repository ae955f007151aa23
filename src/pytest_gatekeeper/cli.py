from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from dotenv import find_dotenv, load_dotenv

from pytest_gatekeeper.config import load_settings
from pytest_gatekeeper.coordinator import GatekeeperCoordinator
from pytest_gatekeeper.errors import PrerequisiteFailed
from pytest_gatekeeper.graph.tree import render_dependency_tree
from pytest_gatekeeper.schemas import canonical_json
from pytest_gatekeeper.utils.logging import Logger


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="gatekeeper-state",
        description="Manage the shared gatekeeper state for runs spanning several pytest processes.",
    )
    p.add_argument("--dir", help="State directory (default: $GATEKEEPER_STATE_DIR or cwd)")
    p.add_argument("--verbose", action="store_true", help="Print diagnostics to stderr")
    p.add_argument("--log", help="Path to append an execution log to")

    sub = p.add_subparsers(dest="command", required=True)
    sub.add_parser("init", help="Create an empty state file for a new run")
    sub.add_parser("cleanup", help="Remove the state file and any stale lock")
    sub.add_parser("show", help="Print the raw state as JSON")
    sub.add_parser("summary", help="Print gatekeeper counts and the dependency tree")
    check = sub.add_parser("check", help="Exit 1 if any key (or its prerequisites) failed")
    check.add_argument("keys", nargs="+")
    return p


def main(argv=None) -> int:
    load_dotenv(find_dotenv(usecwd=True))

    args = build_parser().parse_args(argv)

    settings = load_settings()
    if args.dir:
        settings = replace(settings, state_dir=args.dir)

    # Initialize Logger with file support
    log = Logger(verbose=args.verbose or settings.verbose, log_file=args.log)

    try:
        coordinator = GatekeeperCoordinator(settings=settings, log=log)

        if args.command == "init":
            coordinator.initialize()
            log.success(f"initialized {coordinator.store.state_path}")
            return 0

        if args.command == "cleanup":
            coordinator.cleanup()
            return 0

        if args.command == "show":
            # stdout carries only the JSON
            print(canonical_json(coordinator.snapshot()))
            return 0

        if args.command == "summary":
            summary = coordinator.get_summary()
            print(f"Gatekeepers: {summary.total} registered | {summary.passed} passed | {summary.failed} failed")
            for line in render_dependency_tree(coordinator.get_all_results(), coordinator.get_all_dependencies(), {}):
                print(line)
            return 0

        if args.command == "check":
            failed = coordinator.get_failed_dependency(args.keys)
            if failed is None:
                log.success(f"all of {args.keys} clear")
                return 0
            print(PrerequisiteFailed(failed).reason)
            return 1

        return 2

    finally:
        log.close()


if __name__ == "__main__":
    sys.exit(main())
