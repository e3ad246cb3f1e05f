"""Find and load .converge/ configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from converge.config import EngineSettings, load_settings

PROJECT_DIR = ".converge"


def find_project_root(start: Path | None = None) -> Path | None:
    """Walk up from start (default: cwd) looking for .converge/ directory."""
    current = (start or Path.cwd()).resolve()
    for parent in [current, *current.parents]:
        if (parent / PROJECT_DIR).is_dir():
            return parent
    return None


def get_project_spec_path(project_root: Path) -> Path | None:
    """Return the path to .converge/spec.yaml if it exists."""
    spec_path = project_root / PROJECT_DIR / "spec.yaml"
    if spec_path.exists():
        return spec_path
    return None


def resolve_spec_path(spec_file: str | None) -> Path:
    """Resolve a deployment file path, falling back to the project directory."""
    if spec_file:
        return Path(spec_file)

    root = find_project_root()
    if root:
        spec_path = get_project_spec_path(root)
        if spec_path:
            return spec_path

    raise FileNotFoundError(
        "No deployment file specified and no .converge/spec.yaml found. "
        "Pass a deployment file or create a .converge/ project directory."
    )


def project_settings(**overrides: Any) -> EngineSettings:
    """Engine settings from .converge/config.yaml and CONVERGE_* env, then CLI overrides."""
    root = find_project_root()
    settings = load_settings(root / PROJECT_DIR / "config.yaml" if root else None)
    updates = {k: v for k, v in overrides.items() if v is not None}
    if not updates:
        return settings
    return EngineSettings.model_validate({**settings.model_dump(), **updates})


def resolve_state_path(explicit: str | None, settings: EngineSettings) -> Path:
    """Local state file: --state, then settings, then .converge/state.json."""
    if explicit:
        return Path(explicit)
    if settings.state_file:
        return settings.state_file
    root = find_project_root() or Path.cwd()
    return root / PROJECT_DIR / "state.json"
