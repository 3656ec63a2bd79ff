"""Centralized logging configuration for cpap-insight."""

import logging
import logging.config
import os
import sys

from pathlib import Path
from typing import Any

from cpap_insight.constants import (
    DEFAULT_LOG_BACKUP_COUNT,
    DEFAULT_LOG_DIR,
    DEFAULT_LOG_FILE,
    DEFAULT_LOG_MAX_BYTES,
)

_logging_configured = False


def get_log_dir() -> Path:
    """
    Get log directory path, creating if needed.

    Returns:
        Path to log directory
    """
    log_dir = DEFAULT_LOG_DIR
    os.makedirs(log_dir, mode=0o700, exist_ok=True)
    return log_dir


def get_log_path() -> Path:
    """
    Get path to the active log file.

    Returns:
        Path to cpap_insight.log
    """
    return get_log_dir() / DEFAULT_LOG_FILE


def _get_user_logging_config() -> dict[str, Any]:
    """
    Load the [logging] section from the config file.

    Returns:
        Dictionary with logging settings, or empty dict if not configured
    """
    from cpap_insight.config import load_config

    logging_config = load_config().get("logging", {})
    if isinstance(logging_config, dict):
        return logging_config
    return {}


def _build_logging_config(
    verbose: bool = False,
    console_format: str | None = None,
    user_config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Build the dictConfig configuration dictionary.

    Args:
        verbose: If True, set console to DEBUG level
        console_format: Override console format string
        user_config: Settings from the [logging] config section. Loaded from the
            config file when None.

    Returns:
        Dictionary suitable for logging.config.dictConfig()
    """
    if user_config is None:
        user_config = _get_user_logging_config()
    file_enabled = user_config.get("enabled", True)
    file_level = str(user_config.get("level", "DEBUG")).upper()
    if "max_size_mb" in user_config:
        max_bytes = int(user_config["max_size_mb"] * 1024 * 1024)
    else:
        max_bytes = DEFAULT_LOG_MAX_BYTES
    backup_count = user_config.get("backup_count", DEFAULT_LOG_BACKUP_COUNT)

    console_fmt = (
        console_format or "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {"format": console_fmt},
            "file": {"format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": "DEBUG" if verbose else "INFO",
                "formatter": "console",
                "stream": "ext://sys.stderr",
            },
        },
        "root": {
            "level": "DEBUG",
            "handlers": ["console"],
        },
    }

    if file_enabled:
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": file_level,
            "formatter": "file",
            "filename": str(get_log_path()),
            "maxBytes": max_bytes,
            "backupCount": backup_count,
            "encoding": "utf-8",
        }
        config["root"]["handlers"].append("file")

    return config


def setup_logging(
    *,
    verbose: bool = False,
    console_format: str | None = None,
) -> None:
    """
    Configure logging for the cpap-insight CLI.

    Library modules only create loggers; this is called once by the entry
    point. Subsequent calls are no-ops.

    Args:
        verbose: If True, set console to DEBUG level
        console_format: Override console format string. If None, uses full format.
    """
    global _logging_configured

    if _logging_configured:
        return

    try:
        config = _build_logging_config(verbose=verbose, console_format=console_format)
        logging.config.dictConfig(config)
    except (OSError, ValueError, TypeError) as e:
        sys.stderr.write(f"WARNING: Failed to configure logging: {e}\n")
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.INFO,
            format=console_format or "%(levelname)s: %(message)s",
        )

    _logging_configured = True
