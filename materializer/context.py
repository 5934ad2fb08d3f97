"""
context.py

Responsibility: Build the substitution context for one run.

Sources, lowest to highest precedence:
1) `default` values declared in the document frontmatter
2) a values mapping (usually loaded from a YAML or JSON file)
3) KEY=VALUE overrides from the command line
4) answers from an interactive prompt, asked only for names still missing

The resulting mapping is plain `dict[str, str]`; it is built once before
anything is written and discarded after the run.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import Any

import yaml

from materializer.document import Document, PlaceholderDecl
from materializer.errors import ContextError
from materializer.placeholders import collect_placeholders

Prompt = Callable[[PlaceholderDecl], str]

_KEY_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def _to_text(key: str, value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ContextError(f"Value for {key!r} must be a scalar, got {type(value).__name__}.")


def normalize_values(raw: Mapping[Any, Any]) -> dict[str, str]:
    """Stringify scalar values; None entries are treated as not provided."""
    out: dict[str, str] = {}
    for k, v in raw.items():
        key = str(k)
        if not _KEY_RE.fullmatch(key):
            raise ContextError(f"Invalid placeholder name: {key!r}")
        text = _to_text(key, v)
        if text is not None:
            out[key] = text
    return out


def load_values_file(path: str | Path) -> dict[str, str]:
    """
    Load a flat name -> value mapping from a YAML (or JSON) file.
    """
    p = Path(path)
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8"))
    except OSError as e:
        raise ContextError(f"Failed reading values file {p}: {e}") from e
    except yaml.YAMLError as e:
        raise ContextError(f"Invalid YAML in values file {p}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ContextError(f"Values file must contain a mapping/object at the top level: {p}")
    return normalize_values(data)


def parse_assignments(items: Iterable[str]) -> dict[str, str]:
    """Parse ["KEY=VALUE", ...]; the value may be empty and may contain '='."""
    out: dict[str, str] = {}
    for item in items:
        if "=" not in item:
            raise ContextError(f"Expected KEY=VALUE, got {item!r}")
        k, v = item.split("=", 1)
        k = k.strip()
        if not _KEY_RE.fullmatch(k):
            raise ContextError(f"Invalid placeholder name in {item!r}")
        out[k] = v
    return out


def build_context(
    document: Document,
    *,
    values: Mapping[str, Any] | None = None,
    overrides: Mapping[str, str] | None = None,
    prompt: Prompt | None = None,
) -> dict[str, str]:
    context: dict[str, str] = {
        name: decl.default for name, decl in document.declarations.items() if decl.default is not None
    }
    if values:
        context.update(normalize_values(values))
    if overrides:
        context.update(overrides)

    if prompt is not None:
        for name in sorted(collect_placeholders(document) - context.keys()):
            decl = document.declarations.get(name) or PlaceholderDecl(name=name)
            context[name] = prompt(decl)

    # Deterministic ordering at the boundary.
    return dict(sorted(context.items()))
