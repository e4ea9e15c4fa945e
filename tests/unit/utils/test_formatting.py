from __future__ import annotations

"""Unit tests for the human-readable formatting helpers."""

import pytest

from layerscope.utils.formatting import format_bytes, format_percent


@pytest.mark.parametrize("size_bytes, expected", [
    (0, "0 B"),
    (999, "999 B"),
    (1000, "1.0 kB"),
    (1500, "1.5 kB"),
    (2_500_000, "2.5 MB"),
    (7_100_000_000, "7.1 GB"),
    (-5, "0 B"),
])
def test_format_bytes(size_bytes: int, expected: str) -> None:
    assert format_bytes(size_bytes) == expected


def test_format_percent() -> None:
    assert format_percent(1.0) == "100 %"
    assert format_percent(1 / 3) == "33 %"
    assert format_percent(0.0) == "0 %"
