"""
placeholders.py

Responsibility: Find placeholder names in a document and resolve its file
blocks into a `TargetTree`.

Two syntaxes are supported:
- "bracket": `[NAME]` with NAME in [A-Z][A-Z0-9_]*. Matching is purely textual;
  a token inside an illustrative example is still substituted. When the
  document declares its placeholders in frontmatter, only declared names are
  substituted and other bracket tokens are kept literally.
- "jinja": Jinja2 expressions such as `{{ NAME }}`, rendered with StrictUndefined.

Prose sections are never scanned.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Collection, Mapping

from jinja2 import Environment, StrictUndefined, TemplateError, meta

from materializer.document import Document, FileBlock, validate_relpath
from materializer.errors import DocumentError, MissingValueError, PathConflictError
from materializer.writer import TargetFile, TargetTree

logger = logging.getLogger(__name__)

_BRACKET_TOKEN_RE = re.compile(r"\[([A-Z][A-Z0-9_]*)\]")
_JINJA_MARKERS = ("{{", "{%", "{#")


def _jinja_env() -> Environment:
    return Environment(
        autoescape=False,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )


def _has_jinja_markers(text: str) -> bool:
    return any(m in text for m in _JINJA_MARKERS)


def _names_in(text: str, syntax: str) -> set[str]:
    if syntax == "jinja":
        if not _has_jinja_markers(text):
            return set()
        try:
            return set(meta.find_undeclared_variables(_jinja_env().parse(text)))
        except TemplateError as e:
            raise DocumentError(f"Invalid Jinja2 template text: {e}") from e
    return set(_BRACKET_TOKEN_RE.findall(text))


def _block_texts(block: FileBlock) -> tuple[str, str]:
    return block.path, block.content


def _substitution_targets(document: Document) -> Collection[str] | None:
    """Names eligible for substitution; None means every token matching the syntax."""
    if document.syntax == "bracket" and document.declarations:
        return document.declarations.keys()
    return None


def _scan(document: Document) -> tuple[set[str], set[str]]:
    """Return (substitution targets, undeclared bracket tokens left literal)."""
    found: set[str] = set()
    for block in document.file_blocks:
        for text in _block_texts(block):
            found |= _names_in(text, document.syntax)

    targets = _substitution_targets(document)
    if targets is None:
        return found, set()
    return found & set(targets), found - set(targets)


def collect_placeholders(document: Document) -> set[str]:
    """
    Return every distinct placeholder name used in the document's file blocks
    (paths and contents). Returns an empty set when there are none.
    """
    return _scan(document)[0]


def _check_nesting(files: Mapping[str, TargetFile]) -> None:
    """A file path must not also be a parent directory of another file."""
    for path in sorted(files):
        parts = path.split("/")
        for i in range(1, len(parts)):
            parent = "/".join(parts[:i])
            if parent in files:
                raise PathConflictError(parent, f"{parent!r} is both a file and the parent directory of {path!r}")


def substitute(
    text: str,
    context: Mapping[str, str],
    *,
    syntax: str = "bracket",
    names: Collection[str] | None = None,
) -> str:
    """
    Replace placeholders in `text` with values from `context` in a single pass.

    Substituted values are never scanned again, so a value that itself looks
    like a placeholder is written verbatim. With `names`, only those names are
    replaced (bracket syntax).
    """
    if syntax == "jinja":
        if not _has_jinja_markers(text):
            return text
        missing = _names_in(text, syntax) - context.keys()
        if missing:
            raise MissingValueError(missing)
        try:
            return _jinja_env().from_string(text).render(dict(context))
        except TemplateError as e:
            raise DocumentError(f"Failed rendering Jinja2 template text: {e}") from e

    def replace(m: re.Match[str]) -> str:
        name = m.group(1)
        if (names is not None and name not in names) or name not in context:
            return m.group(0)
        return str(context[name])

    return _BRACKET_TOKEN_RE.sub(replace, text)


def resolve(document: Document, context: Mapping[str, str]) -> TargetTree:
    """
    Resolve every file block of `document` against `context`.

    Raises MissingValueError (naming every absent key) before producing any
    output, DocumentError if a resolved path is unsafe, and PathConflictError
    if two blocks resolve to the same path with different content or one
    resolved path is a parent directory of another.
    """
    names, ignored = _scan(document)
    if ignored:
        logger.warning(
            "%s: undeclared bracket token(s) left as literal text: %s",
            document.source,
            ", ".join(f"[{n}]" for n in sorted(ignored)),
        )
    missing = names - context.keys()
    if missing:
        raise MissingValueError(missing)

    targets = _substitution_targets(document)
    files: dict[str, TargetFile] = {}
    for block in document.file_blocks:
        path = substitute(block.path, context, syntax=document.syntax, names=targets)
        try:
            validate_relpath(path)
        except DocumentError as e:
            raise DocumentError(f"{document.source}:{block.line}: {e}") from e
        content = substitute(block.content, context, syntax=document.syntax, names=targets)

        prior = files.get(path)
        if prior is not None:
            if prior.content != content:
                raise PathConflictError(
                    path,
                    f"{document.source}:{block.line}: {path!r} is produced twice with different content",
                )
            files[path] = TargetFile(
                path=path,
                content=content,
                overwrite=prior.overwrite or block.overwrite,
                executable=prior.executable or block.executable,
            )
            continue

        files[path] = TargetFile(
            path=path,
            content=content,
            overwrite=block.overwrite,
            executable=block.executable,
        )

    _check_nesting(files)
    return TargetTree(files=tuple(files.values()))
