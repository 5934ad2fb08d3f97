"""
document.py

Responsibility: Load a template document and parse it into a typed model.

A template document is Markdown:
- Optional YAML frontmatter (`name`, `description`, `syntax`, `placeholders`).
- Prose, which is kept in order but otherwise ignored.
- File blocks: fenced code blocks labeled with a target path, either by the
  heading right above them (### `path` or ### File: `path`) or by a `file=PATH`
  attribute in the fence info string.

Documents may be read from disk or fetched over HTTP(S).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Any, Union

import jinja2
import requests
import yaml

from materializer.errors import DocumentError

logger = logging.getLogger(__name__)

SYNTAXES = ("bracket", "jinja")
BLOCK_FLAGS = ("overwrite", "executable")

_NAME_PATTERNS = {
    "bracket": re.compile(r"[A-Z][A-Z0-9_]*"),
    "jinja": re.compile(r"[A-Za-z_][A-Za-z0-9_]*"),
}

_HEADING_LABEL_RE = re.compile(r"^#{1,6}[ \t]+(?:[Ff]ile:[ \t]*)?`([^`\s]+)`[ \t]*$")
_FENCE_OPEN_RE = re.compile(r"^(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})(?P<info>.*)$")


@dataclass(frozen=True)
class PlaceholderDecl:
    """A placeholder declared in frontmatter."""

    name: str
    description: str = ""
    default: str | None = None


@dataclass(frozen=True)
class Prose:
    text: str


@dataclass(frozen=True)
class FileBlock:
    """A labeled fenced block: literal content destined for `path`."""

    path: str
    content: str
    language: str = ""
    overwrite: bool = False
    executable: bool = False
    line: int = 0


Section = Union[Prose, FileBlock]


@dataclass(frozen=True)
class Document:
    sections: tuple[Section, ...]
    name: str = ""
    description: str = ""
    syntax: str = "bracket"
    declarations: dict[str, PlaceholderDecl] = field(default_factory=dict)
    source: str = "<string>"

    @property
    def file_blocks(self) -> tuple[FileBlock, ...]:
        return tuple(s for s in self.sections if isinstance(s, FileBlock))


def validate_relpath(path: str) -> str:
    """
    Ensure `path` is a relative POSIX path that stays inside its root.
    Returns the path unchanged.
    """
    if not path:
        raise DocumentError("File path is empty.")
    if "\\" in path or PureWindowsPath(path).drive or PurePosixPath(path).is_absolute():
        raise DocumentError(f"File path must be relative and use '/': {path!r}")
    for part in path.split("/"):
        if part in ("", ".", ".."):
            raise DocumentError(f"File path has an empty, '.' or '..' segment: {path!r}")
    return path


def _parse_yaml_frontmatter(text: str) -> tuple[dict[str, Any] | None, str, int]:
    """
    If the markdown begins with YAML frontmatter delimited by '---', parse it.
    Returns (frontmatter_dict_or_none, remaining_markdown_text, lines_consumed).
    """
    if not text.startswith("---\n"):
        return None, text, 0

    end = text.find("\n---\n", 3)
    if end == -1:
        if text.endswith("\n---"):
            end = len(text) - len("\n---")
        else:
            raise DocumentError("YAML frontmatter starts with '---' but no closing '---' was found.")

    fm_text = text[4:end]
    rest = text[end + len("\n---\n") :]
    try:
        data = yaml.safe_load(fm_text) or {}
    except yaml.YAMLError as e:
        raise DocumentError(f"Invalid YAML frontmatter: {e}") from e
    if not isinstance(data, dict):
        raise DocumentError("YAML frontmatter must be a mapping/object at the top level.")
    consumed = text[: end + len("\n---\n")].count("\n")
    return data, rest, consumed


def _parse_declarations(raw: Any, syntax: str) -> dict[str, PlaceholderDecl]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise DocumentError("`placeholders` must be an object/mapping when provided.")

    out: dict[str, PlaceholderDecl] = {}
    for name, entry in raw.items():
        name = str(name)
        if not _NAME_PATTERNS[syntax].fullmatch(name):
            raise DocumentError(f"Invalid placeholder name for {syntax} syntax: {name!r}")
        if entry is None:
            out[name] = PlaceholderDecl(name=name)
        elif isinstance(entry, str):
            out[name] = PlaceholderDecl(name=name, description=entry)
        elif isinstance(entry, dict):
            default = entry.get("default")
            out[name] = PlaceholderDecl(
                name=name,
                description=str(entry.get("description") or ""),
                default=None if default is None else _scalar_text(default, name),
            )
        else:
            raise DocumentError(f"Placeholder {name!r} must be a description string or a mapping.")
    return out


def _scalar_text(value: Any, name: str) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise DocumentError(f"Default for placeholder {name!r} must be a scalar.")


def _parse_info(info: str) -> tuple[str, dict[str, str], set[str]]:
    """
    Split a fence info string into (language, attributes, flags).
    Example: "toml file=pyproject.toml overwrite".
    """
    language = ""
    attrs: dict[str, str] = {}
    flags: set[str] = set()
    for i, tok in enumerate(info.split()):
        if "=" in tok:
            k, v = tok.split("=", 1)
            attrs[k] = v
        elif tok in BLOCK_FLAGS:
            flags.add(tok)
        elif i == 0:
            language = tok
    return language, attrs, flags


def _is_closing_fence(line: str, fence: str) -> bool:
    stripped = line.lstrip(" ")
    if len(line) - len(stripped) > 3:
        return False
    stripped = stripped.rstrip()
    return len(stripped) >= len(fence) and stripped == fence[0] * len(stripped)


def _dedent(line: str, indent: int) -> str:
    n = 0
    while n < indent and n < len(line) and line[n] == " ":
        n += 1
    return line[n:]


def _parse_sections(body: str, *, line_offset: int, source: str) -> tuple[Section, ...]:
    lines = body.split("\n")
    sections: list[Section] = []
    prose: list[str] = []
    heading_label: str | None = None

    def flush_prose() -> None:
        if prose:
            sections.append(Prose("\n".join(prose)))
            prose.clear()

    i = 0
    while i < len(lines):
        line = lines[i]

        m = _HEADING_LABEL_RE.match(line)
        if m:
            prose.append(line)
            heading_label = m.group(1)
            i += 1
            continue

        fm = _FENCE_OPEN_RE.match(line)
        if fm and not (fm.group("fence")[0] == "`" and "`" in fm.group("info")):
            fence = fm.group("fence")
            indent = len(fm.group("indent"))
            language, attrs, flags = _parse_info(fm.group("info"))

            j = i + 1
            while j < len(lines) and not _is_closing_fence(lines[j], fence):
                j += 1
            terminated = j < len(lines)

            label = attrs.get("file")
            if label and heading_label and label != heading_label:
                raise DocumentError(
                    f"{source}:{line_offset + i + 1}: heading path {heading_label!r} "
                    f"does not match file={label!r}"
                )
            label = label or heading_label
            heading_label = None

            if label is None:
                prose.extend(lines[i : j + 1])
                i = j + 1
                continue
            if not terminated:
                raise DocumentError(f"{source}:{line_offset + i + 1}: unterminated file block for {label!r}")

            content_lines = [_dedent(raw, indent) for raw in lines[i + 1 : j]]
            content = "\n".join(content_lines) + "\n" if content_lines else ""
            flush_prose()
            sections.append(
                FileBlock(
                    path=validate_relpath(label),
                    content=content,
                    language=language,
                    overwrite="overwrite" in flags,
                    executable="executable" in flags,
                    line=line_offset + i + 1,
                )
            )
            i = j + 1
            continue

        if line.strip():
            heading_label = None
        prose.append(line)
        i += 1

    flush_prose()
    return tuple(sections)


def _check_jinja(block: FileBlock, source: str) -> None:
    env = jinja2.Environment(autoescape=False, keep_trailing_newline=True)
    for text in (block.path, block.content):
        try:
            env.parse(text)
        except jinja2.TemplateSyntaxError as e:
            raise DocumentError(
                f"{source}:{block.line}: invalid Jinja2 in {block.path!r}: {e.message}"
            ) from e


def parse_document(text: str, *, source: str = "<string>") -> Document:
    """
    Parse template document text into a `Document`.

    Recognized frontmatter keys:
    - name: str
    - description: str
    - syntax: "bracket" (default) or "jinja"
    - placeholders: mapping of NAME -> description string or {description, default}
    """
    text = text.replace("\r\n", "\n")
    frontmatter, body, consumed = _parse_yaml_frontmatter(text)
    data = frontmatter or {}

    syntax = str(data.get("syntax") or "bracket").strip()
    if syntax not in SYNTAXES:
        raise DocumentError(f"Unknown placeholder syntax {syntax!r} (expected one of {', '.join(SYNTAXES)})")

    sections = _parse_sections(body, line_offset=consumed, source=source)

    seen: dict[str, int] = {}
    for block in (s for s in sections if isinstance(s, FileBlock)):
        if block.path in seen:
            raise DocumentError(
                f"{source}:{block.line}: duplicate file block {block.path!r} (first at line {seen[block.path]})"
            )
        seen[block.path] = block.line
        if syntax == "jinja":
            _check_jinja(block, source)

    doc = Document(
        sections=sections,
        name=str(data.get("name") or "").strip(),
        description=str(data.get("description") or "").strip(),
        syntax=syntax,
        declarations=_parse_declarations(data.get("placeholders"), syntax),
        source=source,
    )
    logger.debug("Parsed %s: %d file block(s), syntax=%s", source, len(seen), syntax)
    return doc


def read_document(location: str | Path, *, timeout: float = 30.0) -> str:
    """
    Return the text of a template document from a local path or an http(s) URL.
    """
    loc = str(location)
    if loc.startswith(("http://", "https://")):
        logger.info("Fetching template document %s", loc)
        try:
            r = requests.get(loc, timeout=timeout)
        except requests.RequestException as e:
            raise DocumentError(f"Failed fetching {loc}: {e}") from e
        if r.status_code >= 400:
            raise DocumentError(f"Failed fetching {loc}: HTTP {r.status_code}")
        try:
            return r.content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DocumentError(f"Document is not valid UTF-8: {loc}") from e

    path = Path(loc)
    if not path.is_file():
        raise DocumentError(f"Template document does not exist: {path}")
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise DocumentError(f"Failed reading {path}: {e}") from e


def load_document(location: str | Path, *, timeout: float = 30.0) -> Document:
    return parse_document(read_document(location, timeout=timeout), source=str(location))


def list_templates(templates_dir: str | Path) -> list[str]:
    """Names of the bundled template documents (`<name>.md`), sorted."""
    base = Path(templates_dir)
    if not base.is_dir():
        return []
    return sorted(p.stem for p in base.glob("*.md") if p.is_file())


def find_template(templates_dir: str | Path, name: str) -> Path:
    path = Path(templates_dir) / f"{name}.md"
    if not path.is_file():
        available = ", ".join(list_templates(templates_dir)) or "none"
        raise DocumentError(f"Template {name!r} not found in {templates_dir} (available: {available})")
    return path
