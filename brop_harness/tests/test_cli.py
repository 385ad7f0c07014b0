"""Tests for brop_harness.cli."""

import json
from unittest.mock import AsyncMock, patch

import pytest
from loguru import logger

from brop_harness import cli
from brop_harness.errors import BridgeConnectionError


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    # main() installs a sink on the captured stderr
    logger.remove()
    logger.disable("brop_harness")


@pytest.fixture
def scripts(tmp_path):
    passing = tmp_path / "e2e_pass.py"
    passing.write_text("import sys\nsys.exit(0)\n")
    failing = tmp_path / "e2e_fail.py"
    failing.write_text("import sys\nsys.exit(2)\n")
    return passing, failing


class TestRunCommand:
    def test_all_pass_exits_zero(self, scripts, capsys):
        passing, _ = scripts
        code = cli.main(["run", "--skip-check", str(passing)])
        assert code == 0
        out = capsys.readouterr().out
        assert "Running: e2e_pass" in out
        assert "ALL TESTS PASSED!" in out

    def test_any_failure_exits_one(self, scripts, capsys):
        passing, failing = scripts
        code = cli.main(["run", "--skip-check", str(passing), str(failing)])
        assert code == 1
        out = capsys.readouterr().out
        assert "Exit code: 2" in out

    def test_json_format(self, scripts, capsys):
        passing, failing = scripts
        cli.main(["run", "--skip-check", "--format", "json", str(failing), str(passing)])
        out = capsys.readouterr().out
        data = json.loads(out[out.index("{"):])
        assert [r["name"] for r in data["records"]] == ["e2e_fail", "e2e_pass"]
        assert data["failed"] == 1

    def test_unreachable_bridge(self, scripts, capsys):
        passing, _ = scripts
        with patch.object(
            cli, "probe", new_callable=AsyncMock, side_effect=BridgeConnectionError("refused")
        ):
            code = cli.main(["run", str(passing)])
        assert code == 1
        out = capsys.readouterr().out
        assert "refused" in out
        assert "BROP bridge server is running" in out

    def test_probe_uses_url(self, scripts):
        passing, _ = scripts
        with patch.object(cli, "probe", new_callable=AsyncMock) as probe:
            code = cli.main(["run", "--url", "ws://bridge.test:1", str(passing)])
        assert code == 0
        probe.assert_awaited_once_with("ws://bridge.test:1")

    def test_unknown_test_id(self, capsys):
        code = cli.main(["run", "--skip-check", "--test", "nope"])
        assert code == 1
        assert "Unknown test(s): nope" in capsys.readouterr().out


class TestSelectPrograms:
    def test_default_suite(self):
        args = cli.build_parser().parse_args(["run"])
        programs = cli.select_programs(args)
        assert programs and all("smoke" in p.tags for p in programs)

    def test_by_test_id_keeps_order(self):
        args = cli.build_parser().parse_args(
            ["run", "--test", "evaluate-js", "--test", "navigation"]
        )
        assert [p.id for p in cli.select_programs(args)] == ["evaluate-js", "navigation"]

    def test_by_tag(self):
        args = cli.build_parser().parse_args(["run", "--tag", "element-detection"])
        assert [p.id for p in cli.select_programs(args)] == ["element-detection"]

    def test_unknown_tag(self):
        args = cli.build_parser().parse_args(["run", "--tag", "nope"])
        assert cli.select_programs(args) is None


class TestOtherCommands:
    def test_list(self, capsys):
        assert cli.main(["list"]) == 0
        out = capsys.readouterr().out
        assert "navigation" in out
        assert "suite smoke" in out

    def test_check_ok(self, capsys):
        with patch.object(cli, "probe", new_callable=AsyncMock):
            assert cli.main(["check", "--url", "ws://bridge.test:1"]) == 0
        assert "accepting connections" in capsys.readouterr().out

    def test_check_failure(self):
        with patch.object(
            cli, "probe", new_callable=AsyncMock, side_effect=BridgeConnectionError("x")
        ):
            assert cli.main(["check"]) == 1

    def test_no_command(self):
        assert cli.main([]) == 1

    def test_interrupt_exit_code(self):
        async def interrupted():
            raise KeyboardInterrupt

        assert cli._run(interrupted()) == cli.EXIT_INTERRUPTED

    def test_terminate_exit_code(self):
        async def terminated():
            raise cli._Terminated()

        assert cli._run(terminated()) == cli.EXIT_TERMINATED
