"""Configuration management for cpap-insight."""

import logging
import os
import tomllib

from pathlib import Path
from typing import Any

import tomli_w

from cpap_insight.constants import DEFAULT_CONFIG_DIR, DEFAULT_CONFIG_FILE

logger = logging.getLogger(__name__)


def get_config_path() -> Path:
    """
    Get the path to the configuration file.

    Returns:
        Path to ~/.cpap_insight/config.toml
    """
    return DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILE


def load_config() -> dict[str, Any]:
    """
    Load configuration from TOML file.

    Returns:
        Configuration dictionary. Returns empty dict if file doesn't exist
        or is corrupted.
    """
    config_path = get_config_path()

    if not config_path.exists():
        return {}

    try:
        with open(config_path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Failed to load config from {config_path}: {e}")
        logger.warning("Treating config as empty. Fix or delete the file to resolve.")
        return {}


def save_config(config: dict[str, Any]) -> None:
    """
    Save configuration to TOML file using atomic write.

    Creates the parent directory if it doesn't exist.
    Uses temp file + rename for atomic operation.

    Args:
        config: Configuration dictionary to save

    Raises:
        PermissionError: If directory cannot be created or file cannot be written
    """
    config_path = get_config_path()

    config_dir = config_path.parent
    try:
        os.makedirs(config_dir, exist_ok=True)
    except PermissionError as e:
        raise PermissionError(
            f"Cannot create config directory {config_dir}: {e}"
        ) from e

    temp_path = config_path.with_suffix(".toml.tmp")

    try:
        with open(temp_path, "wb") as f:
            tomli_w.dump(config, f)

        os.replace(temp_path, config_path)

    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise


def _split_key(key: str) -> tuple[str, str]:
    section, _, name = key.partition(".")
    if not section or not name:
        raise ValueError(f"Config key must be 'section.name', got: {key!r}")
    return section, name


def get_section(section: str) -> dict[str, Any]:
    """
    Get one config section as a dict.

    Args:
        section: Section name (e.g., "clustering")

    Returns:
        Section contents, or empty dict if missing or not a table
    """
    value = load_config().get(section, {})
    return value if isinstance(value, dict) else {}


def get_config_value(key: str) -> Any:
    """
    Get a config value by dotted key (e.g., "clustering.gap_sec").

    Returns:
        Stored value, or None if not set
    """
    section, name = _split_key(key)
    return get_section(section).get(name)


def set_config_value(key: str, value: Any) -> None:
    """
    Set a config value by dotted key and save the file.

    Args:
        key: Dotted key, "section.name"
        value: TOML-serializable value
    """
    section, name = _split_key(key)
    config = load_config()

    if section not in config:
        config[section] = {}

    config[section][name] = value
    save_config(config)


def unset_config_value(key: str) -> bool:
    """
    Remove a config value by dotted key.

    Empty sections are removed. If config becomes empty, the file is deleted.

    Returns:
        True if a value was removed
    """
    section, name = _split_key(key)
    config = load_config()

    if section not in config or name not in config[section]:
        return False

    del config[section][name]

    if not config[section]:
        del config[section]

    if not config:
        config_path = get_config_path()
        if config_path.exists():
            config_path.unlink()
    else:
        save_config(config)
    return True


def parse_config_value(raw: str) -> Any:
    """
    Convert a CLI string into a bool, int, float, or str config value.

    Args:
        raw: Value as typed on the command line

    Returns:
        Typed value
    """
    lowered = raw.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        return float(raw)
    except ValueError:
        return raw
