"""Configuration loading utilities for the TDD loop."""
from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from .constants import (
    DEFAULT_DATA_DIR,
    DEFAULT_GENERATION_TIMEOUT,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_RETENTION_WINDOW,
    DEFAULT_TEMPERATURE,
    DEFAULT_TEST_TIMEOUT,
    DEFAULT_WATCH_INTERVAL,
)

CONFIG_FILENAMES: tuple[str, ...] = (".ai-tdd.toml", "ai-tdd.toml")
DEFAULT_CONFIG_PATHS = (
    Path.home() / ".config" / "ai-tdd" / "config.toml",
    Path.home() / ".ai-tdd.toml",
)
ENV_PREFIX = "AI_TDD_"

_BOOL_FIELDS = {"structured_logging"}
_INT_FIELDS = {"max_iterations", "retention_window", "max_tokens"}
_FLOAT_FIELDS = {"temperature", "generation_timeout", "test_timeout", "watch_interval"}
_PATH_FIELDS = {"workspace_root", "data_dir", "node_path", "python_executable"}


def find_config_in_parents(
    start_path: Path, config_name: str | Sequence[str] = ".ai-tdd.toml"
) -> Optional[Path]:
    """Search parent directories starting from ``start_path`` for configuration files."""

    if isinstance(config_name, str):
        candidate_names: tuple[str, ...] = (config_name,)
    else:
        candidate_names = tuple(config_name)

    current = start_path.resolve()
    if current.is_file():
        current = current.parent

    while True:
        for name in candidate_names:
            candidate = current / name
            if candidate.is_file():
                return candidate.resolve()
        if current.parent == current:
            break
        current = current.parent
    return None


@dataclass
class Settings:
    """Runtime configuration for the TDD loop."""

    model: str = DEFAULT_MODEL
    temperature: float = DEFAULT_TEMPERATURE
    api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    anthropic_base_url: Optional[str] = None
    max_tokens: int = DEFAULT_MAX_TOKENS
    generation_timeout: float = DEFAULT_GENERATION_TIMEOUT
    test_timeout: float = DEFAULT_TEST_TIMEOUT
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    retention_window: int = DEFAULT_RETENTION_WINDOW
    workspace_root: Path = Path(".")
    data_dir: Path = Path(DEFAULT_DATA_DIR)
    node_path: Optional[Path] = None
    python_executable: Optional[Path] = None
    watch_interval: float = DEFAULT_WATCH_INTERVAL
    log_level: str = "INFO"
    structured_logging: bool = False

    @property
    def data_path(self) -> Path:
        """Data directory resolved against the workspace root."""
        if self.data_dir.is_absolute():
            return self.data_dir
        return self.workspace_root / self.data_dir

    def ensure_data_dir(self) -> None:
        """Ensure the directory holding history and conversations exists."""
        self.data_path.mkdir(parents=True, exist_ok=True)


def _cast_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() in {"1", "true", "on", "yes", "y"}
    return bool(value)


def _coerce(field: str, value: Any) -> Any:
    if field in _BOOL_FIELDS:
        return _cast_bool(value)
    if field in _INT_FIELDS:
        return int(value)
    if field in _FLOAT_FIELDS:
        return float(value)
    if field in _PATH_FIELDS and value is not None:
        return Path(value).expanduser()
    return value


def _load_from_file(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        return {}
    with path.open("rb") as handle:
        data = tomllib.load(handle)
    return {k.replace("-", "_"): v for k, v in data.items()}


def _load_from_env(prefix: str = ENV_PREFIX) -> Dict[str, Any]:
    env: Dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue
        env[key[len(prefix) :].lower()] = value
    return env


def load_settings(explicit_path: Optional[Path] = None) -> Settings:
    """Load configuration, merging file and environment sources."""

    file_data: Dict[str, Any] = {}
    if explicit_path:
        file_data.update(_load_from_file(explicit_path))
    else:
        search_paths = []
        cwd = Path.cwd()
        project_config = find_config_in_parents(cwd, CONFIG_FILENAMES)
        if project_config:
            search_paths.append(project_config)
        search_paths.extend(DEFAULT_CONFIG_PATHS)
        for candidate in dict.fromkeys(search_paths):
            file_data = _load_from_file(candidate)
            if file_data:
                break

    merged: Dict[str, Any] = {**file_data, **_load_from_env()}

    known_fields = set(Settings.__dataclass_fields__)
    init_kwargs = {key: _coerce(key, value) for key, value in merged.items() if key in known_fields}
    settings = Settings(**init_kwargs)
    if not 0.0 <= settings.temperature <= 1.0:
        raise ValueError(f"temperature must be between 0 and 1, got {settings.temperature}")
    if not settings.workspace_root.is_absolute():
        settings.workspace_root = (Path.cwd() / settings.workspace_root).resolve()
    return settings


__all__ = ["Settings", "load_settings", "find_config_in_parents", "CONFIG_FILENAMES"]
