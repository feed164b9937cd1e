"""
Installer Configuration
=======================

Environment variable configuration for the installer. Values are read from
the process environment, with a `.env` file in the working directory loaded
first if present.

Variables:
    STACKFORGE_PACKAGE_MANAGER   pnpm (default), npm, yarn or bun
    STACKFORGE_COMMAND_TIMEOUT   seconds per command; unset means no timeout
    STACKFORGE_MAX_OUTPUT_CHARS  captured output kept per command (default 32768)
    STACKFORGE_LOG_LEVEL         logging level for the CLI (default WARNING)
    STACKFORGE_HOST / STACKFORGE_PORT   bind address for `stackforge serve`

Usage:
    from stackforge.config import load_settings

    settings = load_settings()
    print(settings.package_manager)
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv

_logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

ENV_PACKAGE_MANAGER = "STACKFORGE_PACKAGE_MANAGER"
ENV_COMMAND_TIMEOUT = "STACKFORGE_COMMAND_TIMEOUT"
ENV_MAX_OUTPUT_CHARS = "STACKFORGE_MAX_OUTPUT_CHARS"
ENV_LOG_LEVEL = "STACKFORGE_LOG_LEVEL"
ENV_HOST = "STACKFORGE_HOST"
ENV_PORT = "STACKFORGE_PORT"

VALID_PACKAGE_MANAGERS = ("pnpm", "npm", "yarn", "bun")
DEFAULT_PACKAGE_MANAGER = "pnpm"
DEFAULT_MAX_OUTPUT_CHARS = 32768
DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8890

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class InstallerSettings:
    """
    Resolved installer settings.

    Attributes:
        package_manager: Package manager used to render install commands
        command_timeout_seconds: Per-command timeout, None for no timeout
        max_output_chars: Maximum characters of command output kept
        log_level: Logging level name
        host: Bind host for the HTTP server
        port: Bind port for the HTTP server
    """
    package_manager: str = DEFAULT_PACKAGE_MANAGER
    command_timeout_seconds: float | None = None
    max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS
    log_level: str = DEFAULT_LOG_LEVEL
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


# =============================================================================
# Environment Variable Reading
# =============================================================================

def get_package_manager() -> str:
    """Read STACKFORGE_PACKAGE_MANAGER, falling back to pnpm on unknown values."""
    raw = os.environ.get(ENV_PACKAGE_MANAGER, "").strip().lower()
    if not raw:
        return DEFAULT_PACKAGE_MANAGER
    if raw in VALID_PACKAGE_MANAGERS:
        return raw

    _logger.warning(
        "Unknown value for %s: '%s'. Defaulting to '%s'. Valid values: %s",
        ENV_PACKAGE_MANAGER,
        raw,
        DEFAULT_PACKAGE_MANAGER,
        VALID_PACKAGE_MANAGERS,
    )
    return DEFAULT_PACKAGE_MANAGER


def get_command_timeout() -> float | None:
    """Read STACKFORGE_COMMAND_TIMEOUT. Unset, invalid or non-positive means no timeout."""
    raw = os.environ.get(ENV_COMMAND_TIMEOUT, "").strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        _logger.warning("Invalid value for %s: '%s'. No timeout applied.", ENV_COMMAND_TIMEOUT, raw)
        return None
    if value <= 0:
        return None
    return value


def _get_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        _logger.warning("Invalid value for %s: '%s'. Defaulting to %d.", name, raw, default)
        return default
    if value <= 0:
        _logger.warning("%s must be positive, got %d. Defaulting to %d.", name, value, default)
        return default
    return value


def get_log_level() -> str:
    """Read STACKFORGE_LOG_LEVEL, defaulting to WARNING."""
    raw = os.environ.get(ENV_LOG_LEVEL, "").strip().upper()
    if raw in VALID_LOG_LEVELS:
        return raw
    return DEFAULT_LOG_LEVEL


def load_settings(load_env_file: bool = True) -> InstallerSettings:
    """
    Build InstallerSettings from the environment.

    Args:
        load_env_file: Load a `.env` file from the working directory first

    Returns:
        Frozen InstallerSettings
    """
    if load_env_file:
        load_dotenv(find_dotenv(usecwd=True))

    return InstallerSettings(
        package_manager=get_package_manager(),
        command_timeout_seconds=get_command_timeout(),
        max_output_chars=_get_int(ENV_MAX_OUTPUT_CHARS, DEFAULT_MAX_OUTPUT_CHARS),
        log_level=get_log_level(),
        host=os.environ.get(ENV_HOST, "").strip() or DEFAULT_HOST,
        port=_get_int(ENV_PORT, DEFAULT_PORT),
    )
