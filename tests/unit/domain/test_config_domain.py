from __future__ import annotations

"""
Unit tests for the Config Domain.

Verifies:
1. Default configuration generation.
2. Resilience against missing and corrupted config files.
3. Persistence (Save/Load) without touching real user data.
4. Tree options derived from the configuration.
"""

import json
from unittest.mock import patch

import pytest

from layerscope.domain.config import (
    CURRENT_CONFIG_VERSION,
    get_config_path,
    get_default_config,
    load_config,
    save_config,
    tree_options_from_config,
)


@pytest.fixture
def mock_user_data_dir(tmp_path):
    """
    Fixture to mock the user data directory.
    Prevents tests from reading/writing to the real OS user folder.
    """
    config_dir = tmp_path / "Layerscope"
    config_dir.mkdir()

    with patch("layerscope.domain.config.get_user_data_dir", return_value=str(config_dir)):
        yield config_dir


def test_default_config_keys(mock_config_dict) -> None:
    assert get_default_config() == mock_config_dict


def test_load_without_file_returns_defaults(mock_user_data_dir) -> None:
    assert not (mock_user_data_dir / "config.json").exists()
    assert load_config() == get_default_config()


def test_load_corrupted_file_returns_defaults(mock_user_data_dir) -> None:
    """If JSON is malformed, it should fall back to defaults safely."""
    (mock_user_data_dir / "config.json").write_text("{ broken json", encoding="utf-8")
    assert load_config() == get_default_config()


def test_load_non_object_returns_defaults(mock_user_data_dir) -> None:
    (mock_user_data_dir / "config.json").write_text("[1, 2, 3]", encoding="utf-8")
    assert load_config() == get_default_config()


def test_save_then_load_round_trip(mock_user_data_dir) -> None:
    """Saved overrides come back merged over defaults; the version stamp is not leaked."""
    conf = get_default_config()
    conf["collapse_dirs"] = True
    conf["tree_rows"] = 40

    save_config(conf)

    on_disk = json.loads((mock_user_data_dir / "config.json").read_text(encoding="utf-8"))
    assert on_disk["version"] == CURRENT_CONFIG_VERSION

    loaded = load_config()
    assert loaded["collapse_dirs"] is True
    assert loaded["tree_rows"] == 40
    assert "version" not in loaded


def test_config_path_inside_user_data_dir(mock_user_data_dir) -> None:
    assert get_config_path() == str(mock_user_data_dir / "config.json")


def test_tree_options_from_config() -> None:
    assert tree_options_from_config({"collapse_dirs": True}).collapse_dirs is True
    assert tree_options_from_config({}).collapse_dirs is False
