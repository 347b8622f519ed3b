"""Layered configuration for s3pipe.

Settings resolve with the following precedence (highest to lowest):
1. CLI argument
2. Environment variable (S3PIPE_<KEY>)
3. Config file (YAML)
4. Built-in default

The config file is ``$S3PIPE_CONFIG`` if set, otherwise
``~/.config/s3pipe/config.yaml``:

    part_size_mb: 128
    concurrency: 4
    profile: backups
    dualstack: true

Usage:
    from s3pipe.config import get_setting, set_setting

    concurrency = get_setting("concurrency", cli_value=cli_concurrency)
    set_setting("profile", "backups")
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

from s3pipe.constants import DEFAULT_CONCURRENCY, DEFAULT_PART_SIZE_MB
from s3pipe.errors import ConfigError, ConfigParseError

CONFIG_ENV_VAR = "S3PIPE_CONFIG"

# Known settings and how to coerce string values (from env vars or `config set`)
_BOOL_TRUE = frozenset({"1", "true", "yes", "on"})
_BOOL_FALSE = frozenset({"0", "false", "no", "off"})

DEFAULTS: dict[str, Any] = {
    "part_size_mb": DEFAULT_PART_SIZE_MB,
    "concurrency": DEFAULT_CONCURRENCY,
    "profile": None,
    "region": None,
    "endpoint_url": None,
    "dualstack": False,
}

_TYPES: dict[str, type] = {
    "part_size_mb": int,
    "concurrency": int,
    "profile": str,
    "region": str,
    "endpoint_url": str,
    "dualstack": bool,
}

KNOWN_SETTINGS: frozenset[str] = frozenset(DEFAULTS)


def get_config_path() -> Path:
    """Path of the config file (may not exist)."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    return Path.home() / ".config" / "s3pipe" / "config.yaml"


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load the YAML config file.

    Returns:
        Config dictionary. Empty if the file doesn't exist or is blank.

    Raises:
        ConfigParseError: If the file is not valid YAML or not a mapping.
    """
    config_file = path or get_config_path()
    if not config_file.exists():
        return {}

    content = config_file.read_text()
    if not content.strip():
        return {}

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as err:
        raise ConfigParseError(str(config_file), str(err)) from err
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigParseError(str(config_file), "top level must be a mapping")
    return data


def save_config(config: dict[str, Any], path: Path | None = None) -> None:
    """Write the config file, creating its directory if needed."""
    config_file = path or get_config_path()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    content = yaml.safe_dump(config, default_flow_style=False, sort_keys=False)
    config_file.write_text(content)


def _get_env_var_name(key: str) -> str:
    """Convert a setting key to its environment variable (part_size_mb -> S3PIPE_PART_SIZE_MB)."""
    return f"S3PIPE_{key.upper()}"


def coerce_value(key: str, value: Any) -> Any:
    """Convert a raw value to the type of a known setting.

    Unknown keys and None pass through unchanged.

    Raises:
        ConfigError: If the value cannot be converted.
    """
    kind = _TYPES.get(key)
    if kind is None or value is None or isinstance(value, kind):
        return value

    text = str(value).strip()
    if kind is bool:
        lowered = text.lower()
        if lowered in _BOOL_TRUE:
            return True
        if lowered in _BOOL_FALSE:
            return False
        raise ConfigError(f"Setting '{key}' expects a boolean, got '{value}'", key=key)
    if kind is int:
        try:
            return int(text)
        except ValueError as err:
            raise ConfigError(
                f"Setting '{key}' expects an integer, got '{value}'", key=key
            ) from err
    return text


def get_setting(
    key: str,
    cli_value: Any | None = None,
    config_path: Path | None = None,
) -> Any | None:
    """Resolve a setting with full precedence.

    Args:
        key: Setting key (e.g., "concurrency")
        cli_value: Value passed via CLI argument (highest precedence)
        config_path: Config file to read instead of the default location

    Returns:
        Resolved value, coerced to the setting's type.
    """
    if cli_value is not None:
        return coerce_value(key, cli_value)

    env_value = os.environ.get(_get_env_var_name(key))
    if env_value is not None:
        return coerce_value(key, env_value)

    config = load_config(config_path)
    if key in config:
        return coerce_value(key, config[key])

    return DEFAULTS.get(key)


def set_setting(key: str, value: Any, config_path: Path | None = None) -> Any:
    """Store a value in the config file.

    Returns:
        The value as stored (after coercion).
    """
    config = load_config(config_path)
    stored = coerce_value(key, value)
    config[key] = stored
    save_config(config, config_path)
    return stored


def unset_setting(key: str, config_path: Path | None = None) -> bool:
    """Remove a value from the config file.

    Returns:
        True if the key existed and was removed, False otherwise.
    """
    config = load_config(config_path)
    if key not in config:
        return False
    del config[key]
    save_config(config, config_path)
    return True


def _get_setting_source(key: str, config: dict[str, Any]) -> str:
    if _get_env_var_name(key) in os.environ:
        return "env"
    if key in config:
        return "file"
    return "default"


def list_settings(config_path: Path | None = None) -> dict[str, dict[str, Any]]:
    """All known and configured settings with their resolved value and source.

    Returns:
        Dict mapping setting keys to {"value": ..., "source": "env"|"file"|"default"}
    """
    config = load_config(config_path)
    result: dict[str, dict[str, Any]] = {}
    for key in sorted(KNOWN_SETTINGS | set(config)):
        result[key] = {
            "value": get_setting(key, config_path=config_path),
            "source": _get_setting_source(key, config),
        }
    return result
