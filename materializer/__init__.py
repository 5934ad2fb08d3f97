"""
materializer package

This package implements Materializer v1 as a CLI-first utility that turns a
Markdown template document into a file tree.

Key responsibilities are split across modules:
- `document.py`: read and parse template documents (frontmatter, prose, file blocks)
- `placeholders.py`: collect placeholder names and resolve file blocks
- `context.py`: build the substitution context for a run
- `writer.py`: write the resolved tree to disk under a conflict policy
- `settings.py`: explicit runtime configuration
- `cli.py`: CLI entrypoint and orchestration (load -> context -> resolve -> write)
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
