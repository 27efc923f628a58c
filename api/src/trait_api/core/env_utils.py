#!/usr/bin/env python3
"""
Helpers for reading typed settings from the process environment.

Values are stripped of surrounding whitespace and stray CR/LF characters,
which creep in when .env files are edited on Windows.
"""

import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)


def getenv_clean(key: str, default: str = None) -> Optional[str]:
    """Get an environment variable with line endings and whitespace removed.

    Args:
        key: Environment variable name
        default: Value returned when the variable is not set

    Returns:
        Cleaned value, or default if not set
    """
    raw_value = os.getenv(key)

    if raw_value is None:
        return default

    cleaned = raw_value.strip()

    if raw_value != cleaned:
        logger.warning(f"Environment variable {key} had surrounding whitespace: raw={repr(raw_value)}")

    return cleaned


def getenv_bool(key: str, default: bool = False) -> bool:
    """Get an environment variable as a boolean.

    "true", "1", "yes" and "on" (any case) are true; "false", "0", "no",
    "off" and the empty string are false. Anything else falls back to
    the default with a warning.
    """
    raw_value = getenv_clean(key)

    if raw_value is None:
        return default

    lowered = raw_value.lower()
    if lowered in ("true", "1", "yes", "on"):
        return True
    if lowered in ("false", "0", "no", "off", ""):
        return False

    logger.warning(f"Environment variable {key} is not a boolean: {repr(raw_value)}. Using default: {default}")
    return default


def getenv_int(key: str, default: int) -> int:
    """Get an environment variable as an integer, falling back to default when unset or invalid."""
    raw_value = getenv_clean(key)

    if raw_value is None:
        return default

    try:
        return int(raw_value)
    except ValueError:
        logger.warning(f"Environment variable {key} is not an integer: {repr(raw_value)}. Using default: {default}")
        return default
