"""
writer.py

Responsibility: Write a resolved target tree under a root directory.

Rules:
- Files are written in sorted path order so runs are reproducible.
- Parent directories are created before content is written.
- Text is written as UTF-8 with '\\n' newlines.
- An existing file with identical bytes is left alone ("unchanged").
- Any other existing file is handled by the conflict policy:
  "error" (stop at the first conflict), "skip" or "overwrite".
  Blocks flagged `overwrite` replace existing files regardless of policy.
- There is no rollback: on failure, files written earlier in the run stay.

This module intentionally does NOT know about placeholders or documents.
"""

from __future__ import annotations

import logging
import stat
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

from materializer.document import validate_relpath
from materializer.errors import PathConflictError, WriteError

logger = logging.getLogger(__name__)

CONFLICT_POLICIES = ("error", "skip", "overwrite")


@dataclass(frozen=True)
class TargetFile:
    path: str
    content: str
    overwrite: bool = False
    executable: bool = False


@dataclass(frozen=True)
class TargetTree:
    files: tuple[TargetFile, ...] = ()

    def __iter__(self) -> Iterator[TargetFile]:
        return iter(self.files)

    def __len__(self) -> int:
        return len(self.files)

    @property
    def paths(self) -> tuple[str, ...]:
        return tuple(f.path for f in self.files)

    def get(self, path: str) -> TargetFile | None:
        for f in self.files:
            if f.path == path:
                return f
        return None


@dataclass(frozen=True)
class MaterializeResult:
    written: tuple[str, ...] = ()
    skipped: tuple[str, ...] = ()
    unchanged: tuple[str, ...] = ()
    dry_run: bool = False


def _ordered(files: Iterable[TargetFile]) -> list[TargetFile]:
    return sorted(files, key=lambda f: f.path)


def _destination(root: Path, path: str, completed: list[str]) -> Path:
    validate_relpath(path)
    dst = root / path
    # An existing symlink inside the tree could still point outside of it.
    if not dst.resolve().is_relative_to(root):
        raise PathConflictError(path, f"Path resolves outside the output root: {path}", completed=completed)
    return dst


def _write_file(dst: Path, f: TargetFile) -> None:
    dst.parent.mkdir(parents=True, exist_ok=True)
    with open(dst, "w", encoding="utf-8", newline="\n") as fh:
        fh.write(f.content)
    _apply_mode(dst, f)


def _apply_mode(dst: Path, f: TargetFile) -> None:
    if f.executable:
        mode = dst.stat().st_mode
        dst.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def materialize(
    tree: TargetTree | Iterable[TargetFile],
    root: str | Path,
    *,
    on_conflict: str = "error",
    dry_run: bool = False,
) -> MaterializeResult:
    """
    Write every file of `tree` under `root`.

    Raises PathConflictError on the first refused path and WriteError on any
    storage failure; both carry the paths already written in `completed`.
    With dry_run=True all checks run but nothing is created or written.
    """
    if on_conflict not in CONFLICT_POLICIES:
        raise ValueError(f"Unknown conflict policy {on_conflict!r} (expected one of {', '.join(CONFLICT_POLICIES)})")

    root_path = Path(root).resolve()
    if root_path.exists() and not root_path.is_dir():
        raise PathConflictError(str(root), f"Output root is not a directory: {root_path}")

    written: list[str] = []
    skipped: list[str] = []
    unchanged: list[str] = []
    verb = "Would write" if dry_run else "Wrote"

    for f in _ordered(tree):
        dst = _destination(root_path, f.path, written)

        if dst.is_dir():
            raise PathConflictError(f.path, f"A directory exists where a file is expected: {f.path}", completed=written)

        if dst.exists():
            try:
                current = dst.read_bytes()
            except OSError as e:
                raise WriteError(f.path, e.strerror or str(e), completed=written) from e
            if current == f.content.encode("utf-8"):
                if not dry_run:
                    try:
                        _apply_mode(dst, f)
                    except OSError as e:
                        raise WriteError(f.path, e.strerror or str(e), completed=written) from e
                logger.info("Unchanged %s", f.path)
                unchanged.append(f.path)
                continue
            if not (f.overwrite or on_conflict == "overwrite"):
                if on_conflict == "skip":
                    logger.warning("Skipping existing %s", f.path)
                    skipped.append(f.path)
                    continue
                raise PathConflictError(f.path, completed=written)
            logger.info("Replacing %s", f.path)

        if not dry_run:
            try:
                _write_file(dst, f)
            except OSError as e:
                raise WriteError(f.path, e.strerror or str(e), completed=written) from e
        logger.info("%s %s", verb, f.path)
        written.append(f.path)

    return MaterializeResult(
        written=tuple(written),
        skipped=tuple(skipped),
        unchanged=tuple(unchanged),
        dry_run=dry_run,
    )
