"""Sequential execution of test programs as isolated subprocesses."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from brop_harness.errors import LaunchFailure
from brop_harness.suite import TestProgram


@dataclass(frozen=True)
class RunRecord:
    """Outcome of one test program."""

    name: str
    file: str
    success: bool
    duration_ms: int
    exit_code: int | None = None
    error: str | None = None

    @property
    def passed(self) -> bool:
        return self.success and self.exit_code in (0, None)

    @property
    def launch_failed(self) -> bool:
        return self.exit_code is None and self.error is not None


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class SuiteRunner:
    """Runs test programs one at a time and records exit code and duration.

    Programs share one bridge server, so they never run concurrently.
    """

    def __init__(
        self,
        cwd: str | Path | None = None,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
    ):
        self.cwd = str(cwd) if cwd is not None else None
        self.env = env
        self.timeout = timeout

    async def run_test(
        self,
        command: Sequence[str],
        name: str,
        file: str | None = None,
        timeout: float | None = None,
    ) -> RunRecord:
        """Run one program to completion.

        A non-zero exit is a normal (failed) record, not an exception. Only a
        program that cannot be started yields a record with ``error`` and no
        exit code.
        """
        file = file or (command[-1] if command else "")
        timeout = timeout if timeout is not None else self.timeout
        started = time.monotonic()
        logger.info("Starting {} ({})", name, " ".join(command))

        try:
            if not command:
                raise LaunchFailure("empty command")
            proc = await asyncio.create_subprocess_exec(
                *command, cwd=self.cwd, env=self.env
            )
        except OSError as exc:
            record = RunRecord(
                name=name,
                file=file,
                success=False,
                duration_ms=_elapsed_ms(started),
                error=str(exc),
            )
            logger.warning("{} could not be launched: {}", name, exc)
            return record

        error = None
        try:
            if timeout is None:
                exit_code = await proc.wait()
            else:
                exit_code = await asyncio.wait_for(proc.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            if proc.returncode is None:
                proc.kill()
            exit_code = await proc.wait()
            error = f"Timed out after {timeout}s"
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
            raise

        record = RunRecord(
            name=name,
            file=file,
            success=exit_code == 0 and error is None,
            duration_ms=_elapsed_ms(started),
            exit_code=exit_code,
            error=error,
        )
        logger.info(
            "{} finished with exit code {} in {}ms",
            name,
            exit_code,
            record.duration_ms,
        )
        return record

    async def run_all(
        self,
        tests: Sequence[TestProgram],
        on_start: Callable[[TestProgram], None] | None = None,
        on_result: Callable[[TestProgram, RunRecord], None] | None = None,
    ) -> list[RunRecord]:
        """Run programs sequentially, returning records in input order."""
        records = []
        for program in tests:
            if on_start:
                on_start(program)
            record = await self.run_test(
                program.argv(),
                program.name,
                file=program.file,
                timeout=program.timeout_seconds,
            )
            records.append(record)
            if on_result:
                on_result(program, record)
        return records
