from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
TEMPLATES_DIR = REPO_ROOT / "templates"


def doc(text: str) -> str:
    """Dedent an inline template document."""
    return textwrap.dedent(text).lstrip("\n")


@pytest.fixture
def widget_doc() -> str:
    return doc(
        """
        # Widget

        Intro prose mentioning [PROJECT_NAME] is never scanned.

        ### `README.md`

        ```markdown
        # [PROJECT_NAME]
        ```

        ### `src/app.py`

        ```python
        NAME = "[PROJECT_NAME]"
        ```

        ```toml file=pyproject.toml
        name = "[PROJECT_NAME]"
        ```
        """
    )


@pytest.fixture
def no_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (
        "MATERIALIZER_TEMPLATES_DIR",
        "MATERIALIZER_ON_CONFLICT",
        "MATERIALIZER_LOG_LEVEL",
        "MATERIALIZER_HTTP_TIMEOUT",
    ):
        monkeypatch.delenv(key, raising=False)
