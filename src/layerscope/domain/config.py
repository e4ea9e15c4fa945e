from __future__ import annotations

"""
Configuration Domain Management.

Holds the default analysis settings and persists user overrides as JSON in
the user data directory. Missing or corrupted files fall back to defaults.
"""

import json
import logging
import os
from typing import Any, Dict

from layerscope.domain.tree_models import TreeOptions
from layerscope.infra.fs import get_user_data_dir

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.json"
CURRENT_CONFIG_VERSION = "1.0.0"


def get_config_path() -> str:
    return os.path.join(get_user_data_dir(), CONFIG_FILE_NAME)


# -----------------------------------------------------------------------------
# Defaults
# -----------------------------------------------------------------------------
def get_default_config() -> Dict[str, Any]:
    """
    Generate the default analysis configuration.

    Returns:
        Dict[str, Any]: Default configuration values.
    """
    return {
        # Tree construction
        "collapse_dirs": False,

        # Rendering
        "show_attributes": True,
        "tree_rows": 200,
        "max_report_rows": 20,

        # Session
        "prewarm_cache": True,

        # Diagnostics
        "log_level": "WARNING",
        "log_file": "",
    }


def tree_options_from_config(config: Dict[str, Any]) -> TreeOptions:
    """Build the tree construction options carried by every layer tree."""
    return TreeOptions(collapse_dirs=bool(config.get("collapse_dirs", False)))


# -----------------------------------------------------------------------------
# Persistence Logic
# -----------------------------------------------------------------------------
def load_config() -> Dict[str, Any]:
    """
    Load the persisted configuration merged over the defaults.

    Returns:
        Dict[str, Any]: The effective configuration (defaults on any failure).
    """
    config = get_default_config()
    path = get_config_path()

    if not os.path.exists(path):
        logger.debug("Config file not found. Using defaults.")
        return config

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load config: {e}. Using defaults.")
        return config

    if not isinstance(data, dict):
        logger.warning("Corrupted config file. Resetting to defaults.")
        return config

    data.pop("version", None)
    config.update(data)
    return config


def save_config(config: Dict[str, Any]) -> None:
    """
    Persist the configuration to disk.

    Args:
        config: The configuration dictionary to save.
    """
    path = get_config_path()
    payload = dict(config)
    payload["version"] = CURRENT_CONFIG_VERSION
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=4)
        logger.debug(f"Configuration saved to {path}")
    except OSError as e:
        logger.error(f"Failed to save configuration: {e}")
