"""Unit tests for user configuration loading (llmbench.config.user_config).

Tests XDG path, missing file graceful defaults, valid file loading, invalid
input and env var overrides.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from llmbench.config.user_config import UserConfig, get_user_config_path, load_user_config
from llmbench.constants import DEFAULT_CONTEXT_SIZE, EVALUATION_PROMPT
from llmbench.exceptions import ConfigError

# ---------------------------------------------------------------------------
# get_user_config_path
# ---------------------------------------------------------------------------


def test_get_user_config_path_ends_with_config_yaml():
    """get_user_config_path() ends with 'config.yaml'."""
    assert get_user_config_path().name == "config.yaml"


def test_get_user_config_path_contains_llmbench():
    """get_user_config_path() includes 'llmbench' in the path."""
    assert "llmbench" in str(get_user_config_path())


# ---------------------------------------------------------------------------
# Missing file → defaults
# ---------------------------------------------------------------------------


def test_load_user_config_missing_file_returns_defaults(tmp_path):
    """load_user_config() with nonexistent file returns UserConfig with all defaults."""
    config = load_user_config(config_path=tmp_path / "nonexistent.yaml")
    assert isinstance(config, UserConfig)
    assert config.remote.prompt == EVALUATION_PROMPT
    assert config.toolbox.default == "llama-rocm-7.2"
    assert config.toolbox.context_size == DEFAULT_CONTEXT_SIZE
    assert config.toolbox.flash_attention is True


def test_load_user_config_empty_file_returns_defaults(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("")
    assert load_user_config(config_path=config_file) == UserConfig()


# ---------------------------------------------------------------------------
# Valid file loading
# ---------------------------------------------------------------------------


def test_load_user_config_valid_file(tmp_path):
    """Values in the file override defaults; unspecified sections keep defaults."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        "remote:\n"
        "  url: http://gpu-box:11434/\n"
        "toolbox:\n"
        "  default: llama-vulkan-radv\n"
        "  context_size: 4096\n"
    )
    config = load_user_config(config_path=config_file)
    assert config.remote.url == "http://gpu-box:11434"
    assert config.toolbox.default == "llama-vulkan-radv"
    assert config.toolbox.context_size == 4096
    assert config.toolbox.gpu_layers == 99


def test_storage_paths_expand_user(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("storage:\n  db_path: ~/bench/results.db\n")
    config = load_user_config(config_path=config_file)
    assert config.storage.db_path == Path.home() / "bench" / "results.db"


# ---------------------------------------------------------------------------
# Invalid input → ConfigError
# ---------------------------------------------------------------------------


def test_invalid_yaml_raises_config_error(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("remote: [unclosed\n")
    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_user_config(config_path=config_file)


def test_non_mapping_raises_config_error(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError, match="mapping"):
        load_user_config(config_path=config_file)


def test_unknown_key_raises_config_error(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("remote:\n  ur: http://typo:11434\n")
    with pytest.raises(ConfigError, match="Invalid user config"):
        load_user_config(config_path=config_file)


def test_unknown_toolbox_raises_config_error(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("toolbox:\n  default: llama-cuda-12\n")
    with pytest.raises(ConfigError, match="unknown toolbox"):
        load_user_config(config_path=config_file)


def test_bad_url_scheme_raises_config_error(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("remote:\n  url: gpu-box:11434\n")
    with pytest.raises(ConfigError):
        load_user_config(config_path=config_file)


# ---------------------------------------------------------------------------
# Env var overrides
# ---------------------------------------------------------------------------


def test_env_overrides_file(tmp_path, monkeypatch):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("remote:\n  url: http://from-file:11434\n")
    monkeypatch.setenv("OLLAMA_API_URL", "http://from-env:11434/")
    monkeypatch.setenv("LLMBENCH_DB_PATH", str(tmp_path / "env.db"))

    config = load_user_config(config_path=config_file)
    assert config.remote.url == "http://from-env:11434"
    assert config.storage.db_path == tmp_path / "env.db"


def test_env_toolbox_override(tmp_path, monkeypatch):
    monkeypatch.setenv("LLMBENCH_TOOLBOX", "llama-vulkan-amdvlk")
    config = load_user_config(config_path=tmp_path / "missing.yaml")
    assert config.toolbox.default == "llama-vulkan-amdvlk"
