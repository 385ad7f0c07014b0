"""CLI entry point for the BROP bridge test suites."""

from __future__ import annotations

import argparse
import asyncio
import os
import signal
import sys
import time
from pathlib import Path

from loguru import logger

from brop_harness.client import DEFAULT_WS_URL, probe
from brop_harness.errors import BridgeConnectionError
from brop_harness.report import summarize, to_json, to_markdown, to_text
from brop_harness.runner import RunRecord, SuiteRunner
from brop_harness.suite import PROJECT_ROOT, TestProgram
from brop_harness.suites import ALL_PROGRAMS, get_suites

EXIT_INTERRUPTED = 130
EXIT_TERMINATED = 143

TROUBLESHOOTING = """
Make sure:
   1. BROP bridge server is running (npm run bridge)
   2. Chrome extension is loaded and connected
   3. WebSocket server is accessible at {url}"""


class _Terminated(Exception):
    """Raised from the SIGTERM handler."""


def _on_sigterm(signum, frame):
    raise _Terminated()


def configure_logging(verbose: bool = False) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "INFO",
        format="<dim>{time:HH:mm:ss.SSS}</dim> | <level>{level: <8}</level> | <level>{message}</level>",
    )
    logger.enable("brop_harness")


def select_programs(args: argparse.Namespace) -> list[TestProgram] | None:
    """Resolve the programs a ``run`` invocation asked for."""
    if args.files:
        programs = []
        for f in args.files:
            path = Path(f)
            file = str(path.resolve()) if path.exists() else f
            programs.append(TestProgram(id=path.stem, name=path.stem, file=file))
        return programs
    if args.test:
        by_id = {p.id: p for p in ALL_PROGRAMS}
        unknown = [t for t in args.test if t not in by_id]
        if unknown:
            print(f"Unknown test(s): {', '.join(unknown)}")
            print(f"Available: {[p.id for p in ALL_PROGRAMS]}")
            return None
        return [by_id[t] for t in args.test]
    if args.tag:
        programs = [p for p in ALL_PROGRAMS if args.tag in p.tags]
        if not programs:
            print(f"No tests with tag '{args.tag}'.")
            return None
        return programs
    return get_suites()[args.suite].programs


def _print_banner(program: TestProgram) -> None:
    print(f"\n{'=' * 70}")
    print(f"Running: {program.name}")
    print(f"{'=' * 70}", flush=True)


def _print_result(program: TestProgram, record: RunRecord) -> None:
    if record.launch_failed:
        print(f"\nFAIL {record.name} failed: {record.error}")
    else:
        status = "PASS" if record.passed else "FAIL"
        print(f"\n{status} {record.name} completed in {record.duration_ms}ms")


async def cmd_run(args: argparse.Namespace) -> int:
    """Run test programs and print the report."""
    programs = select_programs(args)
    if programs is None:
        return 1

    if not args.skip_check:
        print("Checking BROP server connection...")
        try:
            await probe(args.url)
        except BridgeConnectionError as exc:
            print(f"\nTest runner failed: {exc}")
            print(TROUBLESHOOTING.format(url=args.url))
            return 1
        print("BROP server is running and accessible")

    if args.files or args.test or args.tag:
        suite_name = "selection"
    else:
        suite_name = args.suite
    print(f"\nRunning {len(programs)} test(s) [{suite_name}]...")

    env = dict(os.environ, BROP_WS_URL=args.url)
    runner = SuiteRunner(cwd=PROJECT_ROOT, env=env, timeout=args.timeout)
    started = time.monotonic()
    records = await runner.run_all(
        programs, on_start=_print_banner, on_result=_print_result
    )
    report = summarize(
        records,
        suite_name,
        total_duration_ms=int((time.monotonic() - started) * 1000),
    )

    if args.format == "markdown":
        print(to_markdown(report))
    elif args.format == "json":
        print(to_json(report))
    else:
        print()
        print(to_text(report))

    return 0 if report.total > 0 and report.failed == 0 else 1


async def cmd_check(args: argparse.Namespace) -> int:
    """Only check that the bridge is reachable."""
    try:
        await probe(args.url)
    except BridgeConnectionError as exc:
        print(f"Cannot reach BROP bridge: {exc}")
        return 1
    print(f"BROP bridge at {args.url} is accepting connections")
    return 0


def cmd_list() -> int:
    for p in ALL_PROGRAMS:
        tags = ", ".join(p.tags) if p.tags else ""
        print(f"  {p.id:20s} {p.name:45s} {tags}")
    print()
    for name, suite in get_suites().items():
        print(f"  suite {name:18s} {len(suite.programs)} test(s) - {suite.description}")
    return 0


def _run(coro) -> int:
    previous = signal.signal(signal.SIGTERM, _on_sigterm)
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        print("\n\nTest runner interrupted by user")
        return EXIT_INTERRUPTED
    except _Terminated:
        print("\n\nTest runner terminated")
        return EXIT_TERMINATED
    finally:
        signal.signal(signal.SIGTERM, previous)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="BROP bridge test runner")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Debug logging (frames, ids)"
    )
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Run test programs")
    run_parser.add_argument(
        "files", nargs="*", help="Test program files to run instead of a suite"
    )
    run_parser.add_argument(
        "--suite", choices=sorted(get_suites()), default="smoke"
    )
    run_parser.add_argument(
        "--test", action="append", help="Run a specific test by ID (repeatable)"
    )
    run_parser.add_argument("--tag", help="Run tests with a specific tag")
    run_parser.add_argument(
        "--format",
        choices=["text", "json", "markdown"],
        default="text",
    )
    run_parser.add_argument(
        "--url",
        default=DEFAULT_WS_URL,
        help=f"Bridge websocket URL (default: {DEFAULT_WS_URL})",
    )
    run_parser.add_argument(
        "--skip-check",
        action="store_true",
        help="Do not probe the bridge before running",
    )
    run_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Kill a test program after this many seconds",
    )

    check_parser = subparsers.add_parser(
        "check", help="Check that the bridge accepts connections"
    )
    check_parser.add_argument("--url", default=DEFAULT_WS_URL)

    subparsers.add_parser("list", help="List available tests and suites")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if args.command == "run":
        return _run(cmd_run(args))
    if args.command == "check":
        return _run(cmd_check(args))
    if args.command == "list":
        return cmd_list()
    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
