from __future__ import annotations

from pathlib import Path

import pytest

from materializer.settings import Settings


def test_defaults() -> None:
    s = Settings.from_env({})
    assert s == Settings()
    assert s.templates_dir == Path("templates")
    assert s.on_conflict == "error"
    assert s.log_level == "WARNING"
    assert s.http_timeout == 30.0


def test_from_env() -> None:
    s = Settings.from_env(
        {
            "MATERIALIZER_TEMPLATES_DIR": "/tmp/tpl",
            "MATERIALIZER_ON_CONFLICT": " Skip ",
            "MATERIALIZER_LOG_LEVEL": "debug",
            "MATERIALIZER_HTTP_TIMEOUT": "2.5",
            "MATERIALIZER_UNUSED": "x",
        }
    )
    assert s == Settings(templates_dir=Path("/tmp/tpl"), on_conflict="skip", log_level="DEBUG", http_timeout=2.5)


def test_empty_values_keep_defaults() -> None:
    assert Settings.from_env({"MATERIALIZER_ON_CONFLICT": ""}) == Settings()


@pytest.mark.parametrize(
    "env",
    [
        {"MATERIALIZER_ON_CONFLICT": "merge"},
        {"MATERIALIZER_LOG_LEVEL": "loud"},
        {"MATERIALIZER_HTTP_TIMEOUT": "soon"},
        {"MATERIALIZER_HTTP_TIMEOUT": "0"},
    ],
)
def test_invalid_values(env: dict[str, str]) -> None:
    with pytest.raises(ValueError):
        Settings.from_env(env)
