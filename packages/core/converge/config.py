"""Engine settings, loaded from YAML with environment variable overrides."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field

_ENV_PREFIX = "CONVERGE_"
_ENV_FIELDS = ("parallelism", "max_attempts", "backoff_seconds", "backoff_max_seconds", "state_file")


class EngineSettings(BaseModel):
    parallelism: int = Field(default=4, ge=1)
    max_attempts: int = Field(default=5, ge=1)
    backoff_seconds: float = Field(default=1.0, ge=0)
    backoff_max_seconds: float = Field(default=30.0, ge=0)
    state_file: Path | None = None


def load_settings(path: str | Path | None = None, env: Mapping[str, str] | None = None) -> EngineSettings:
    """Build settings from an optional YAML file, then ``CONVERGE_*`` env vars.

    The YAML file may hold the settings at top level or under an ``engine``
    key (the layout of ``.converge/config.yaml``).
    """
    data: dict[str, Any] = {}
    if path is not None:
        p = Path(path)
        if p.exists():
            loaded = yaml.safe_load(p.read_text()) or {}
            section = loaded.get("engine", loaded) if isinstance(loaded, dict) else None
            data.update(section or {})

    environ = os.environ if env is None else env
    for name in _ENV_FIELDS:
        value = environ.get(f"{_ENV_PREFIX}{name.upper()}")
        if value:
            data[name] = value

    return EngineSettings.model_validate({k: v for k, v in data.items() if k in EngineSettings.model_fields})
