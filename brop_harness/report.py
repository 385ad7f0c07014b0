"""Summary reports for a run of test programs."""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from typing import Any

from brop_harness.runner import RunRecord

RULE = "=" * 70


@dataclass
class SuiteReport:
    """Summary of one suite run.

    ``fastest``/``slowest`` are ``None`` when nothing ran; ties go to the
    record that appears first.
    """

    suite_name: str
    total: int
    passed: int
    failed: int
    success_rate: float
    no_tests_executed: bool
    total_duration_ms: int
    avg_duration_ms: float
    fastest: RunRecord | None
    slowest: RunRecord | None
    ranking: list[RunRecord] = field(default_factory=list)
    failures: list[RunRecord] = field(default_factory=list)
    records: list[RunRecord] = field(default_factory=list)

    @property
    def verdict(self) -> str:
        if self.no_tests_executed:
            return "no_tests"
        if self.passed == self.total:
            return "all_passed"
        if self.passed > 0:
            return "partial"
        return "all_failed"


def summarize(
    records: Sequence[RunRecord],
    suite_name: str = "",
    total_duration_ms: int | None = None,
) -> SuiteReport:
    """Aggregate run records. Pure; the input is not modified."""
    records = list(records)
    total = len(records)
    passed = sum(1 for r in records if r.passed)
    summed = sum(r.duration_ms for r in records)

    return SuiteReport(
        suite_name=suite_name,
        total=total,
        passed=passed,
        failed=total - passed,
        success_rate=passed / total * 100 if total > 0 else 0.0,
        no_tests_executed=total == 0,
        total_duration_ms=summed if total_duration_ms is None else total_duration_ms,
        avg_duration_ms=summed / total if total > 0 else 0.0,
        # min/max keep the first of equal elements
        fastest=min(records, key=lambda r: r.duration_ms) if records else None,
        slowest=max(records, key=lambda r: r.duration_ms) if records else None,
        ranking=sorted(records, key=lambda r: r.duration_ms, reverse=True),
        failures=[r for r in records if not r.passed],
        records=records,
    )


_VERDICTS = {
    "all_passed": "ALL TESTS PASSED!",
    "partial": "PARTIAL SUCCESS: {passed}/{total} tests passed.",
    "all_failed": "ALL TESTS FAILED!",
    "no_tests": "NO TESTS EXECUTED.",
}


def _status(record: RunRecord) -> str:
    return "PASS" if record.passed else "FAIL"


def _failure_reason(record: RunRecord) -> str:
    if record.error:
        return f"Error: {record.error}"
    return f"Exit code: {record.exit_code}"


def to_text(report: SuiteReport) -> str:
    """Render the console report printed at the end of a run."""
    title = f"TEST REPORT: {report.suite_name}" if report.suite_name else "TEST REPORT"
    total_s = report.total_duration_ms / 1000
    lines = [
        RULE,
        title,
        RULE,
        "",
        "SUMMARY:",
        f"   Total Tests: {report.total}",
        f"   Passed: {report.passed}",
        f"   Failed: {report.failed}",
        f"   Success Rate: {report.success_rate:.1f}%",
        f"   Total Duration: {report.total_duration_ms}ms ({total_s:.1f}s)",
    ]

    if report.records:
        lines.extend(["", "DETAILED RESULTS:"])
        for i, r in enumerate(report.records, 1):
            duration = f"{r.duration_ms}ms"
            lines.append(f"   {i}. {_status(r)} {r.name:<35} {duration:>8}")
            if r.error:
                lines.append(f"      Error: {r.error}")

    if report.failures:
        lines.extend(["", "FAILED TESTS:"])
        for r in report.failures:
            lines.append(f"   - {r.name} ({r.file})")
            lines.append(f"     {_failure_reason(r)}")

    lines.extend(
        ["", _VERDICTS[report.verdict].format(passed=report.passed, total=report.total)]
    )

    if report.fastest is not None and report.slowest is not None:
        lines.extend(
            [
                "",
                "PERFORMANCE ANALYSIS:",
                f"   Average test duration: {round(report.avg_duration_ms)}ms",
                f"   Fastest test: {report.fastest.name} ({report.fastest.duration_ms}ms)",
                f"   Slowest test: {report.slowest.name} ({report.slowest.duration_ms}ms)",
            ]
        )

    lines.extend(["", RULE])
    return "\n".join(lines)


def to_markdown(report: SuiteReport) -> str:
    """Render the report as Markdown, slowest tests first."""
    lines = [
        f"# Test Report: {report.suite_name}",
        "",
        f"**Success Rate:** {report.passed}/{report.total} ({report.success_rate:.1f}%)",
        f"**Total Duration:** {report.total_duration_ms / 1000:.1f}s",
        f"**Avg Duration/Test:** {report.avg_duration_ms / 1000:.1f}s",
    ]
    if report.no_tests_executed:
        lines.extend(["", "_No tests executed._"])
        return "\n".join(lines)

    lines.extend(
        [
            "",
            "## By Duration",
            "",
            "| # | Test | Status | Duration | Exit |",
            "|---|------|--------|----------|------|",
        ]
    )
    for i, r in enumerate(report.ranking, 1):
        exit_code = "-" if r.exit_code is None else r.exit_code
        lines.append(
            f"| {i} | {r.name} | {_status(r)} | {r.duration_ms}ms | {exit_code} |"
        )

    if report.failures:
        lines.extend(["", "## Failures", ""])
        for r in report.failures:
            lines.append(f"- **{r.name}** ({r.file}): {_failure_reason(r)}")

    return "\n".join(lines)


def to_dict(report: SuiteReport) -> dict[str, Any]:
    data = asdict(report)
    data["verdict"] = report.verdict
    return data


def to_json(report: SuiteReport) -> str:
    """Render the report as JSON."""
    return json.dumps(to_dict(report), indent=2)
