"""Test program and suite definitions."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
E2E_DIR = PROJECT_ROOT / "tests" / "e2e"


@dataclass
class TestProgram:
    """An independently executable program that drives the bridge.

    Exit code 0 means pass; anything else is a failure.
    """

    __test__ = False  # not a pytest class

    id: str
    name: str
    file: str

    # Explicit argv; defaults to running ``file`` from tests/e2e with this interpreter
    command: list[str] | None = None

    tags: list[str] = field(default_factory=list)
    timeout_seconds: float | None = None

    def argv(self) -> list[str]:
        if self.command:
            return list(self.command)
        path = Path(self.file)
        if not path.is_absolute():
            path = E2E_DIR / path
        return [sys.executable, str(path)]


@dataclass
class TestSuite:
    """A named, ordered collection of programs to run together."""

    __test__ = False

    name: str
    description: str
    programs: list[TestProgram]
