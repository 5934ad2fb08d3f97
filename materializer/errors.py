"""
errors.py

Responsibility: Exception types shared by every stage of a materialization run.

The CLI maps each type to an exit code, so callers can tell a bad document apart
from a missing value or a refused write.
"""

from __future__ import annotations

from collections.abc import Iterable


class MaterializerError(Exception):
    exit_code = 1


class DocumentError(MaterializerError):
    pass


class ContextError(MaterializerError):
    pass


class MissingValueError(MaterializerError):
    exit_code = 2

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = tuple(sorted(set(missing)))
        names = ", ".join(self.missing)
        super().__init__(f"Missing value for placeholder(s): {names}")

    @property
    def name(self) -> str:
        return self.missing[0]


class PathConflictError(MaterializerError):
    exit_code = 3

    def __init__(self, path: str, message: str | None = None, *, completed: Iterable[str] = ()) -> None:
        self.path = path
        self.completed = tuple(completed)
        super().__init__(message or f"Refusing to overwrite existing path: {path} (use --on-conflict)")


class WriteError(MaterializerError):
    """Storage failure while writing; files written before it are left in place."""

    exit_code = 4

    def __init__(self, path: str, reason: str, *, completed: Iterable[str] = ()) -> None:
        self.path = path
        self.completed = tuple(completed)
        super().__init__(f"Failed writing {path}: {reason}")
