"""Tests for brop_harness.runner, using real child processes."""

import asyncio
import sys
from unittest.mock import AsyncMock, patch

import pytest

from brop_harness.runner import RunRecord, SuiteRunner
from brop_harness.suite import TestProgram


def py(code: str) -> list[str]:
    return [sys.executable, "-c", code]


def program(id: str, code: str, **kwargs) -> TestProgram:
    return TestProgram(id=id, name=id, file=f"{id}.py", command=py(code), **kwargs)


class ExitsAtDeadline:
    """A process that exits on its own just as the timeout fires."""

    def __init__(self):
        self.returncode = None

    async def wait(self):
        if self.returncode is None:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                self.returncode = 0
                raise
        return self.returncode

    def kill(self):
        raise ProcessLookupError


class TestRunTest:
    @pytest.mark.asyncio
    async def test_passing_program(self):
        record = await SuiteRunner().run_test(py("pass"), "ok", file="ok.py")
        assert record.success is True
        assert record.passed is True
        assert record.exit_code == 0
        assert record.error is None
        assert record.file == "ok.py"
        assert record.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_nonzero_exit_is_a_record_not_an_exception(self):
        record = await SuiteRunner().run_test(py("import sys; sys.exit(3)"), "bad")
        assert record.success is False
        assert record.passed is False
        assert record.exit_code == 3
        assert record.error is None

    @pytest.mark.asyncio
    async def test_launch_failure(self, tmp_path):
        missing = str(tmp_path / "no-such-program")
        record = await SuiteRunner().run_test([missing], "missing")
        assert record.success is False
        assert record.exit_code is None
        assert record.error
        assert record.launch_failed
        assert record.file == missing

    @pytest.mark.asyncio
    async def test_empty_command(self):
        record = await SuiteRunner().run_test([], "empty")
        assert record.launch_failed
        assert "empty command" in record.error

    @pytest.mark.asyncio
    async def test_duration_measured(self):
        record = await SuiteRunner().run_test(py("import time; time.sleep(0.1)"), "sleepy")
        assert record.duration_ms >= 90

    @pytest.mark.asyncio
    async def test_timeout_kills_program(self):
        runner = SuiteRunner(timeout=0.3)
        record = await runner.run_test(py("import time; time.sleep(30)"), "hang")
        assert record.success is False
        assert record.exit_code is not None and record.exit_code != 0
        assert "Timed out" in record.error
        assert record.duration_ms < 10_000

    @pytest.mark.asyncio
    async def test_exit_at_deadline_is_still_a_timeout(self):
        proc = ExitsAtDeadline()
        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock, return_value=proc):
            record = await SuiteRunner(timeout=0.05).run_test(["fake"], "racy")
        assert record.exit_code == 0
        assert record.success is False
        assert "Timed out" in record.error

    @pytest.mark.asyncio
    async def test_env_and_cwd_passed(self, tmp_path):
        code = (
            "import os, sys; "
            "sys.exit(0 if os.environ.get('BROP_WS_URL') == 'ws://x:1' "
            "and os.getcwd() == sys.argv[1] else 1)"
        )
        runner = SuiteRunner(cwd=tmp_path, env={"BROP_WS_URL": "ws://x:1"})
        record = await runner.run_test(py(code) + [str(tmp_path.resolve())], "env")
        assert record.exit_code == 0


class TestRunAll:
    @pytest.mark.asyncio
    async def test_sequential_order_preserved(self):
        a = program("A", "import time; time.sleep(0.05)")
        b = program("B", "import time, sys; time.sleep(0.01); sys.exit(1)")
        records = await SuiteRunner().run_all([a, b])
        assert [r.name for r in records] == ["A", "B"]
        assert records[0].passed
        assert records[0].duration_ms >= 40
        assert records[1].exit_code == 1
        assert not records[1].passed

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_the_rest(self, tmp_path):
        tests = [
            TestProgram(id="gone", name="gone", file="gone", command=[str(tmp_path / "gone")]),
            program("after", "pass"),
        ]
        records = await SuiteRunner().run_all(tests)
        assert records[0].launch_failed
        assert records[1].passed

    @pytest.mark.asyncio
    async def test_callbacks(self):
        events = []
        tests = [program("one", "pass"), program("two", "pass")]
        await SuiteRunner().run_all(
            tests,
            on_start=lambda p: events.append(("start", p.id)),
            on_result=lambda p, r: events.append(("done", r.name)),
        )
        assert events == [
            ("start", "one"),
            ("done", "one"),
            ("start", "two"),
            ("done", "two"),
        ]

    @pytest.mark.asyncio
    async def test_program_timeout_overrides_runner(self):
        hang = program("hang", "import time; time.sleep(30)", timeout_seconds=0.3)
        records = await SuiteRunner(timeout=60).run_all([hang])
        assert "Timed out after 0.3s" in records[0].error

    @pytest.mark.asyncio
    async def test_empty_list(self):
        assert await SuiteRunner().run_all([]) == []


class TestRunRecord:
    def test_immutable(self):
        record = RunRecord(name="a", file="a.py", success=True, duration_ms=1, exit_code=0)
        with pytest.raises(Exception):
            record.success = False

    def test_launch_level_success_counts_as_passed(self):
        assert RunRecord(name="a", file="a.py", success=True, duration_ms=1).passed
