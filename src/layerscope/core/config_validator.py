from __future__ import annotations

"""
Configuration Validation Service.

Normalizes configuration dictionaries coming from the JSON file or the CLI:
fills missing keys with defaults and coerces loosely typed values, collecting
a warning for every correction instead of failing (unless strict).
"""

import logging
from typing import Any, Dict, List, Tuple

from layerscope.domain.config import get_default_config
from layerscope.infra.logging.config import LEVELS

logger = logging.getLogger(__name__)

_BOOL_FIELDS = ["collapse_dirs", "show_attributes", "prewarm_cache"]
_INT_FIELDS = ["tree_rows", "max_report_rows"]


def validate_config(config: Any, *, strict: bool = False) -> Tuple[Dict[str, Any], List[str]]:
    """
    Validate and normalize a configuration dictionary.

    Args:
        config: Raw configuration data.
        strict: Raise TypeError/ValueError instead of coercing.

    Returns:
        Tuple[Dict[str, Any], List[str]]: Normalized configuration and warnings.
    """
    warnings: List[str] = []
    defaults = get_default_config()

    if not isinstance(config, dict):
        msg = f"Invalid config type: expected dict, received {type(config).__name__}."
        if strict:
            raise TypeError(msg)
        warnings.append(f"{msg} Using defaults.")
        logger.warning(msg)
        return defaults, warnings

    merged: Dict[str, Any] = dict(defaults)
    merged.update({k: v for k, v in config.items() if k in defaults})

    unknown = sorted(k for k in config if k not in defaults)
    if unknown:
        warnings.append(f"Ignoring unknown config keys: {', '.join(unknown)}.")

    for name in _BOOL_FIELDS:
        merged[name] = _as_bool(merged[name], defaults[name], name, warnings, strict)
    for name in _INT_FIELDS:
        merged[name] = _as_positive_int(merged[name], defaults[name], name, warnings, strict)

    merged["log_level"] = _as_level(merged["log_level"], defaults["log_level"], warnings, strict)
    merged["log_file"] = _as_str(merged["log_file"], defaults["log_file"], "log_file", warnings, strict)
    return merged, warnings


# -----------------------------------------------------------------------------
# PRIVATE HELPERS: TYPE COERCION
# -----------------------------------------------------------------------------

def _as_bool(value: Any, fallback: bool, name: str, warnings: List[str], strict: bool) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return fallback

    if not strict:
        if isinstance(value, (int, float)) and value in (0, 1):
            warnings.append(f"Field '{name}' converted from number {value} to bool.")
            return bool(value)
        if isinstance(value, str):
            s = value.strip().lower()
            if s in ("true", "1", "yes", "y", "on"):
                warnings.append(f"Field '{name}' converted from '{value}' to True.")
                return True
            if s in ("false", "0", "no", "n", "off"):
                warnings.append(f"Field '{name}' converted from '{value}' to False.")
                return False

    msg = f"Invalid field '{name}': expected bool, received {type(value).__name__}."
    if strict:
        raise TypeError(msg)
    warnings.append(f"{msg} Using fallback.")
    return fallback


def _as_positive_int(value: Any, fallback: int, name: str, warnings: List[str], strict: bool) -> int:
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    if not strict and isinstance(value, str) and value.strip().isdigit() and int(value) > 0:
        warnings.append(f"Field '{name}' converted from '{value}' to {int(value)}.")
        return int(value)

    msg = f"Invalid field '{name}': expected a positive integer, received {value!r}."
    if strict:
        raise ValueError(msg)
    warnings.append(f"{msg} Using fallback.")
    return fallback


def _as_level(value: Any, fallback: str, warnings: List[str], strict: bool) -> str:
    if isinstance(value, str) and value.strip().upper() in LEVELS:
        return value.strip().upper()

    msg = f"Invalid field 'log_level': unknown level {value!r}."
    if strict:
        raise ValueError(msg)
    warnings.append(f"{msg} Using fallback.")
    return fallback


def _as_str(value: Any, fallback: str, name: str, warnings: List[str], strict: bool) -> str:
    if value is None:
        return fallback
    if isinstance(value, str):
        return value
    if not strict and isinstance(value, (int, float)):
        warnings.append(f"Field '{name}' converted from {type(value).__name__} to str.")
        return str(value)

    msg = f"Invalid field '{name}': expected str, received {type(value).__name__}."
    if strict:
        raise TypeError(msg)
    warnings.append(f"{msg} Using fallback.")
    return fallback
