"""Pass/fail bookkeeping for the e2e bridge programs."""

from __future__ import annotations


class CheckTally:
    """Counts named checks and turns them into a process exit code."""

    def __init__(self, title: str = ""):
        self.title = title
        self.passed = 0
        self.failed = 0
        self.failures: list[str] = []

    @property
    def total(self) -> int:
        return self.passed + self.failed

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def check(self, name: str, condition: bool, detail: str = "") -> bool:
        if condition:
            self.passed += 1
            print(f"  ✓ {name}")
        else:
            self.failed += 1
            self.failures.append(f"{name} — {detail}" if detail else name)
            print(f"  ✗ {name} — {detail}")
        return bool(condition)

    def section(self, heading: str) -> None:
        print(f"\n{heading}")

    def summary(self) -> str:
        lines = [
            "=" * 50,
            f"{self.title + ': ' if self.title else ''}Results: "
            f"{self.passed}/{self.total} passed, {self.failed} failed",
            "ALL TESTS PASSED" if self.ok else "SOME TESTS FAILED",
        ]
        return "\n".join(lines)

    def exit_code(self) -> int:
        return 0 if self.ok else 1
