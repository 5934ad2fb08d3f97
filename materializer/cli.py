"""
cli.py

Responsibility: CLI entrypoint for Materializer v1.

High-level flow (command `render`):
1) Load and parse a template document -> `Document`
2) Build the substitution context (defaults, values file, --set, prompts)
3) Resolve placeholders -> `TargetTree` (fails before any write)
4) Write the tree under --out

This module should orchestrate behavior but keep concerns isolated:
- Document parsing: `document.py`
- Context building: `context.py`
- Placeholder resolution: `placeholders.py`
- Writing files: `writer.py`
- Configuration: `settings.py`
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path

from materializer import __version__
from materializer.context import build_context, load_values_file, parse_assignments
from materializer.document import Document, PlaceholderDecl, find_template, list_templates, load_document
from materializer.errors import MaterializerError, MissingValueError, PathConflictError, WriteError
from materializer.placeholders import collect_placeholders, resolve
from materializer.settings import LOG_LEVELS, Settings
from materializer.writer import CONFLICT_POLICIES, materialize

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)
    logging.getLogger().setLevel(level)


def _ask(decl: PlaceholderDecl) -> str:
    label = decl.name
    if decl.description:
        label += f" ({decl.description})"
    try:
        return input(f"{label}: ")
    except EOFError as e:
        raise MissingValueError([decl.name]) from e


def _load(args: argparse.Namespace, settings: Settings) -> Document:
    location = find_template(settings.templates_dir, args.template) if args.template else args.document
    return load_document(location, timeout=settings.http_timeout)


def render_cmd(args: argparse.Namespace, settings: Settings) -> int:
    document = _load(args, settings)

    values = load_values_file(args.values) if args.values else None
    overrides = parse_assignments(args.set or [])
    context = build_context(
        document,
        values=values,
        overrides=overrides,
        prompt=_ask if args.interactive else None,
    )

    tree = resolve(document, context)
    result = materialize(tree, Path(args.out), on_conflict=settings.on_conflict, dry_run=bool(args.dry_run))

    verb = "would write" if result.dry_run else "wrote"
    for path in result.written:
        print(f"{verb} {path}")
    for path in result.skipped:
        print(f"skipped {path}")
    for path in result.unchanged:
        print(f"unchanged {path}")
    return 0


def placeholders_cmd(args: argparse.Namespace, settings: Settings) -> int:
    document = _load(args, settings)
    for name in sorted(collect_placeholders(document)):
        decl = document.declarations.get(name)
        line = name
        if decl is not None and decl.default is not None:
            line += f" (default: {decl.default})"
        if decl is not None and decl.description:
            line += f" - {decl.description}"
        print(line)
    return 0


def templates_cmd(args: argparse.Namespace, settings: Settings) -> int:
    for name in list_templates(settings.templates_dir):
        print(name)
    return 0


def _add_source_args(sp: argparse.ArgumentParser) -> None:
    src = sp.add_mutually_exclusive_group(required=True)
    src.add_argument("document", nargs="?", default=None, help="Path or http(s) URL of a template document")
    src.add_argument("--template", default=None, help="Name of a template in the templates directory")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="materializer", description="Materializer v1 - template document to file tree")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Logging level (or set MATERIALIZER_LOG_LEVEL; default: WARNING)",
    )
    p.add_argument(
        "--templates-dir",
        default=None,
        help="Templates directory (or set MATERIALIZER_TEMPLATES_DIR; default: templates)",
    )
    # Also accepted after the subcommand; when omitted the global value stands.
    dirs = argparse.ArgumentParser(add_help=False)
    dirs.add_argument("--templates-dir", default=argparse.SUPPRESS, help="Templates directory")

    sub = p.add_subparsers(dest="command", required=True)

    r = sub.add_parser("render", parents=[dirs], help="Resolve placeholders and write the file tree")
    _add_source_args(r)
    r.add_argument("--out", required=True, help="Directory to write files into")
    r.add_argument("--values", default=None, help="YAML/JSON file with placeholder values")
    r.add_argument("--set", action="append", metavar="KEY=VALUE", help="Placeholder value (repeatable)")
    r.add_argument(
        "--on-conflict",
        choices=CONFLICT_POLICIES,
        default=None,
        help="What to do with existing files (or set MATERIALIZER_ON_CONFLICT; default: error)",
    )
    r.add_argument("--dry-run", action="store_true", help="Report what would be written without writing")
    r.add_argument("--interactive", action="store_true", help="Prompt for placeholder values that are still missing")
    r.set_defaults(func=render_cmd)

    ph = sub.add_parser("placeholders", parents=[dirs], help="List the placeholders a document requires")
    _add_source_args(ph)
    ph.set_defaults(func=placeholders_cmd)

    t = sub.add_parser("templates", parents=[dirs], help="List templates in the templates directory")
    t.set_defaults(func=templates_cmd)

    return p


def _settings_from(args: argparse.Namespace, base: Settings) -> Settings:
    overrides: dict[str, object] = {}
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.templates_dir:
        overrides["templates_dir"] = Path(args.templates_dir)
    if getattr(args, "on_conflict", None):
        overrides["on_conflict"] = args.on_conflict
    return dataclasses.replace(base, **overrides)  # type: ignore[arg-type]


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        settings = _settings_from(args, Settings.from_env())
    except ValueError as e:
        parser.error(str(e))

    _configure_logging(settings.log_level)

    try:
        return int(args.func(args, settings))
    except MaterializerError as e:
        logger.error("%s", e)
        if isinstance(e, (PathConflictError, WriteError)) and e.completed:
            logger.error("Files written before the failure: %s", ", ".join(e.completed))
        return e.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
