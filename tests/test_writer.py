from __future__ import annotations

import os
from pathlib import Path

import pytest

from materializer.errors import DocumentError, PathConflictError, WriteError
from materializer.writer import MaterializeResult, TargetFile, TargetTree, materialize


def _tree(*files: TargetFile) -> TargetTree:
    return TargetTree(files=files)


def _snapshot(root: Path) -> dict[str, str]:
    return {
        p.relative_to(root).as_posix(): p.read_text(encoding="utf-8")
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


def test_writes_files_and_directories(tmp_path: Path) -> None:
    out = tmp_path / "out"
    result = materialize(
        _tree(TargetFile("b/c/d.txt", "deep\n"), TargetFile("a.txt", "top\n")),
        out,
    )
    assert result == MaterializeResult(written=("a.txt", "b/c/d.txt"))
    assert _snapshot(out) == {"a.txt": "top\n", "b/c/d.txt": "deep\n"}


def test_newlines_are_written_verbatim(tmp_path: Path) -> None:
    materialize(_tree(TargetFile("a.txt", "one\ntwo\n")), tmp_path)
    assert (tmp_path / "a.txt").read_bytes() == b"one\ntwo\n"


def test_path_order_does_not_matter(tmp_path: Path) -> None:
    files = [TargetFile("x/1.txt", "1\n"), TargetFile("a.txt", "a\n"), TargetFile("x/y/2.txt", "2\n")]
    materialize(_tree(*files), tmp_path / "one")
    materialize(_tree(*reversed(files)), tmp_path / "two")
    assert _snapshot(tmp_path / "one") == _snapshot(tmp_path / "two")


def test_conflict_stops_at_first_existing_path(tmp_path: Path) -> None:
    (tmp_path / "b.txt").write_text("mine\n", encoding="utf-8")
    tree = _tree(TargetFile("c.txt", "c\n"), TargetFile("a.txt", "a\n"), TargetFile("b.txt", "theirs\n"))

    with pytest.raises(PathConflictError) as exc:
        materialize(tree, tmp_path)

    assert exc.value.path == "b.txt"
    assert exc.value.completed == ("a.txt",)
    assert (tmp_path / "a.txt").exists()
    assert not (tmp_path / "c.txt").exists()
    assert (tmp_path / "b.txt").read_text(encoding="utf-8") == "mine\n"


def test_identical_existing_file_is_unchanged(tmp_path: Path) -> None:
    tree = _tree(TargetFile("a.txt", "same\n"))
    materialize(tree, tmp_path)
    again = materialize(tree, tmp_path)
    assert again.unchanged == ("a.txt",)
    assert again.written == ()


def test_skip_policy(tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_text("mine\n", encoding="utf-8")
    result = materialize(_tree(TargetFile("a.txt", "new\n"), TargetFile("b.txt", "b\n")), tmp_path, on_conflict="skip")
    assert result.skipped == ("a.txt",)
    assert result.written == ("b.txt",)
    assert (tmp_path / "a.txt").read_text(encoding="utf-8") == "mine\n"


def test_overwrite_policy_and_flag(tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_text("old\n", encoding="utf-8")
    (tmp_path / "b.txt").write_text("old\n", encoding="utf-8")

    materialize(_tree(TargetFile("a.txt", "new\n")), tmp_path, on_conflict="overwrite")
    assert (tmp_path / "a.txt").read_text(encoding="utf-8") == "new\n"

    materialize(_tree(TargetFile("b.txt", "new\n", overwrite=True)), tmp_path)
    assert (tmp_path / "b.txt").read_text(encoding="utf-8") == "new\n"


def test_directory_in_the_way_is_a_conflict(tmp_path: Path) -> None:
    (tmp_path / "a.txt").mkdir()
    with pytest.raises(PathConflictError, match="directory"):
        materialize(_tree(TargetFile("a.txt", "x\n")), tmp_path, on_conflict="overwrite")


def test_dry_run_touches_nothing(tmp_path: Path) -> None:
    out = tmp_path / "out"
    result = materialize(_tree(TargetFile("a/b.txt", "x\n")), out, dry_run=True)
    assert result.written == ("a/b.txt",)
    assert result.dry_run
    assert not out.exists()


def test_dry_run_still_reports_conflicts(tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_text("mine\n", encoding="utf-8")
    with pytest.raises(PathConflictError):
        materialize(_tree(TargetFile("a.txt", "x\n")), tmp_path, dry_run=True)


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_executable_flag(tmp_path: Path) -> None:
    materialize(_tree(TargetFile("run.sh", "#!/bin/sh\n", executable=True), TargetFile("plain.txt", "")), tmp_path)
    assert os.access(tmp_path / "run.sh", os.X_OK)
    assert not os.access(tmp_path / "plain.txt", os.X_OK)


def test_write_failure_keeps_earlier_files(tmp_path: Path) -> None:
    (tmp_path / "b").write_text("a file, not a directory\n", encoding="utf-8")
    tree = _tree(TargetFile("a.txt", "a\n"), TargetFile("b/c.txt", "c\n"))

    with pytest.raises(WriteError) as exc:
        materialize(tree, tmp_path)

    assert exc.value.path == "b/c.txt"
    assert exc.value.completed == ("a.txt",)
    assert isinstance(exc.value.__cause__, OSError)
    assert (tmp_path / "a.txt").exists()


def test_root_must_be_a_directory(tmp_path: Path) -> None:
    root = tmp_path / "file"
    root.write_text("", encoding="utf-8")
    with pytest.raises(PathConflictError, match="not a directory"):
        materialize(_tree(TargetFile("a.txt", "")), root)


def test_rejects_unsafe_paths_and_policies(tmp_path: Path) -> None:
    with pytest.raises(DocumentError):
        materialize(_tree(TargetFile("../escape.txt", "")), tmp_path)
    with pytest.raises(ValueError, match="conflict policy"):
        materialize(_tree(), tmp_path, on_conflict="merge")


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_unchanged_file_still_gets_executable_bit(tmp_path: Path) -> None:
    script = tmp_path / "run.sh"
    script.write_text("#!/bin/sh\n", encoding="utf-8")
    script.chmod(0o644)

    result = materialize(_tree(TargetFile("run.sh", "#!/bin/sh\n", executable=True)), tmp_path)

    assert result.unchanged == ("run.sh",)
    assert os.access(script, os.X_OK)
