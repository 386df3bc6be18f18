"""
application.dto - Data Transfer Objects for service input/output.

These are the structured results that services return to callers
(CLI commands, tests, any future presentation layer).
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class SignUpRequest:
    """Input for account registration."""
    email: str
    password: str
    full_name: str


@dataclass(frozen=True)
class SignInRequest:
    """Input for email/password sign-in."""
    email: str
    password: str


@dataclass(frozen=True)
class ImportResult:
    """Aggregate outcome of a batch import: never per-row detail."""
    imported: int = 0
    errors: int = 0

    @property
    def summary(self) -> str:
        return f"{self.imported} imported, {self.errors} errors"


@dataclass(frozen=True)
class ExportFile:
    """An export written to disk."""
    path: Path
    rows: int
