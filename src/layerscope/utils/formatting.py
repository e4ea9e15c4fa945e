from __future__ import annotations

"""
Human-Readable Formatting Helpers.

Small presentation utilities shared by tree rendering and the CLI reports.
"""

from typing import List

_UNITS: List[str] = ["B", "kB", "MB", "GB", "TB", "PB"]


def format_bytes(size_bytes: int) -> str:
    """
    Convert a byte count into a short decimal (base 1000) string.

    Examples: 0 -> "0 B", 999 -> "999 B", 1500 -> "1.5 kB".

    Args:
        size_bytes: Number of bytes; negatives are clamped to zero.

    Returns:
        str: Formatted size.
    """
    if size_bytes < 1000:
        return f"{max(size_bytes, 0)} B"

    value = float(size_bytes)
    idx = 0
    while value >= 1000 and idx < len(_UNITS) - 1:
        value /= 1000
        idx += 1
    return f"{value:.1f} {_UNITS[idx]}"


def format_percent(ratio: float) -> str:
    """Render a [0, 1] ratio as a whole percentage, e.g. 0.333 -> "33 %"."""
    return f"{int(100.0 * ratio)} %"
