"""
settings.py

Responsibility: Runtime configuration for one process.

Settings are built explicitly (from the environment, then CLI overrides) and
passed to whatever needs them. There is no module-level cached instance.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from materializer.writer import CONFLICT_POLICIES

ENV_PREFIX = "MATERIALIZER_"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Settings:
    templates_dir: Path = Path("templates")
    on_conflict: str = "error"
    log_level: str = "WARNING"
    http_timeout: float = 30.0

    def __post_init__(self) -> None:
        if self.on_conflict not in CONFLICT_POLICIES:
            raise ValueError(f"on_conflict must be one of {', '.join(CONFLICT_POLICIES)}, got {self.on_conflict!r}")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {self.log_level!r}")
        if self.http_timeout <= 0:
            raise ValueError(f"http_timeout must be positive, got {self.http_timeout!r}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """
        Read MATERIALIZER_TEMPLATES_DIR, MATERIALIZER_ON_CONFLICT,
        MATERIALIZER_LOG_LEVEL and MATERIALIZER_HTTP_TIMEOUT.
        Unset or empty variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        kwargs: dict[str, object] = {}

        if env.get(ENV_PREFIX + "TEMPLATES_DIR"):
            kwargs["templates_dir"] = Path(env[ENV_PREFIX + "TEMPLATES_DIR"])
        if env.get(ENV_PREFIX + "ON_CONFLICT"):
            kwargs["on_conflict"] = env[ENV_PREFIX + "ON_CONFLICT"].strip().lower()
        if env.get(ENV_PREFIX + "LOG_LEVEL"):
            kwargs["log_level"] = env[ENV_PREFIX + "LOG_LEVEL"].strip().upper()
        if env.get(ENV_PREFIX + "HTTP_TIMEOUT"):
            raw = env[ENV_PREFIX + "HTTP_TIMEOUT"]
            try:
                kwargs["http_timeout"] = float(raw)
            except ValueError as e:
                raise ValueError(f"{ENV_PREFIX}HTTP_TIMEOUT must be a number, got {raw!r}") from e

        return cls(**kwargs)  # type: ignore[arg-type]
