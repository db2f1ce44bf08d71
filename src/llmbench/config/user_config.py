"""User preferences configuration loading.

Loads optional user preferences from ~/.config/llmbench/config.yaml
(XDG-compliant path via platformdirs). Missing file silently applies all
defaults. Invalid YAML or schema raises ConfigError.

Precedence (low → high):
  built-in defaults < config file < env vars < CLI flags (handled in the CLI)

Example config.yaml::

    remote:
      url: http://gpu-box:11434
    toolbox:
      default: llama-vulkan-radv
      context_size: 4096
    storage:
      db_path: ~/benchmarks/benchmark_data.db
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from llmbench.constants import (
    CONTAINER_TIMEOUT_SEC,
    DEFAULT_CONTEXT_SIZE,
    DEFAULT_CSV_PATH,
    DEFAULT_DB_PATH,
    DEFAULT_GPU_LAYERS,
    DEFAULT_OLLAMA_URL,
    DEFAULT_TOOLBOX,
    EVALUATION_PROMPT,
    REMOTE_TIMEOUT_SEC,
)
from llmbench.exceptions import ConfigError


class UserRemoteConfig(BaseModel):
    """Remote inference endpoint preferences."""

    model_config = {"extra": "forbid"}

    url: str = Field(default=DEFAULT_OLLAMA_URL, description="Ollama-compatible endpoint root")
    timeout_seconds: float = Field(default=REMOTE_TIMEOUT_SEC, gt=0)
    prompt: str = Field(default=EVALUATION_PROMPT, min_length=1)

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"expected an http:// or https:// URL, got '{value}'")
        return value.rstrip("/")


class UserToolboxConfig(BaseModel):
    """Container backend (toolbox + llama-bench) preferences."""

    model_config = {"extra": "forbid"}

    default: str = Field(default=DEFAULT_TOOLBOX, description="Toolbox used by `benchmark`")
    context_size: int = Field(default=DEFAULT_CONTEXT_SIZE, gt=0)
    gpu_layers: int = Field(default=DEFAULT_GPU_LAYERS, ge=0)
    flash_attention: bool = True
    no_mmap: bool = True
    timeout_seconds: float = Field(default=CONTAINER_TIMEOUT_SEC, gt=0)

    @field_validator("default")
    @classmethod
    def validate_toolbox_name(cls, value: str) -> str:
        from llmbench.core.registry import container_backends

        known = [b.name for b in container_backends()]
        if value not in known:
            raise ValueError(f"unknown toolbox '{value}', expected one of: {', '.join(known)}")
        return value


class UserStorageConfig(BaseModel):
    """Where results are written."""

    model_config = {"extra": "forbid"}

    db_path: Path = Field(default=DEFAULT_DB_PATH, description="SQLite results database")
    csv_path: Path = Field(default=DEFAULT_CSV_PATH, description="CSV export written by `run`")

    @field_validator("db_path", "csv_path")
    @classmethod
    def expand_user(cls, value: Path) -> Path:
        return value.expanduser()


class UserConfig(BaseModel):
    """User preferences loaded from ~/.config/llmbench/config.yaml.

    All fields are optional: a missing file or missing fields fall back to
    built-in defaults. Invalid values raise ConfigError via load_user_config().
    """

    model_config = {"extra": "forbid"}

    remote: UserRemoteConfig = Field(default_factory=UserRemoteConfig)
    toolbox: UserToolboxConfig = Field(default_factory=UserToolboxConfig)
    storage: UserStorageConfig = Field(default_factory=UserStorageConfig)


def get_user_config_path() -> Path:
    """Return the XDG-compliant user config path.

    Linux:   ~/.config/llmbench/config.yaml
    macOS:   ~/Library/Application Support/llmbench/config.yaml
    """
    from platformdirs import user_config_dir

    return Path(user_config_dir("llmbench")) / "config.yaml"


def _apply_env_overrides(config: UserConfig) -> UserConfig:
    """Apply environment variable overrides on top of the file values.

    Returns an updated copy; the models are treated as immutable.
    """
    updates: dict[str, Any] = {}

    if val := os.environ.get("OLLAMA_API_URL"):
        updates["remote"] = config.remote.model_copy(update={"url": val.rstrip("/")})
    if val := os.environ.get("LLMBENCH_TOOLBOX"):
        updates["toolbox"] = config.toolbox.model_copy(update={"default": val})

    storage_updates: dict[str, Path] = {}
    if val := os.environ.get("LLMBENCH_DB_PATH"):
        storage_updates["db_path"] = Path(val).expanduser()
    if val := os.environ.get("LLMBENCH_CSV_PATH"):
        storage_updates["csv_path"] = Path(val).expanduser()
    if storage_updates:
        updates["storage"] = config.storage.model_copy(update=storage_updates)

    return config.model_copy(update=updates) if updates else config


def load_user_config(config_path: Path | None = None) -> UserConfig:
    """Load user configuration from ~/.config/llmbench/config.yaml.

    Missing file: silently applies all defaults, no error.
    Invalid YAML: raises ConfigError with parse error detail.
    Invalid schema: raises ConfigError with field path context.

    Args:
        config_path: Explicit path override (for testing). None = XDG default.

    Returns:
        UserConfig with file values merged over defaults, env vars applied on top.
    """
    path = config_path or get_user_config_path()

    if not path.exists():
        return _apply_env_overrides(UserConfig())

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in user config {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"User config must be a YAML mapping: {path}")

    try:
        config = UserConfig.model_validate(data)
    except ValidationError as e:
        errors = [f"  {err['loc']}: {err['msg']}" for err in e.errors()]
        raise ConfigError(f"Invalid user config {path}:\n" + "\n".join(errors)) from e

    return _apply_env_overrides(config)


__all__ = [
    "UserConfig",
    "UserRemoteConfig",
    "UserStorageConfig",
    "UserToolboxConfig",
    "get_user_config_path",
    "load_user_config",
]
