from __future__ import annotations

"""
Image Analyzer.

Turns the ordered layers of an image into the AnalysisResult aggregate:
efficiency score, byte totals, wasted space and the inefficiency ranking.
"""

import logging
from typing import Optional, Sequence

from layerscope.core.filetree.efficiency import efficiency
from layerscope.core.image.archive import read_image_archive
from layerscope.domain.analysis_models import AnalysisResult, LayerInfo
from layerscope.domain.tree_models import TreeOptions

logger = logging.getLogger(__name__)


def analyze_layers(layers: Sequence[LayerInfo]) -> AnalysisResult:
    """
    Score a stack of layers.

    Args:
        layers: Layer descriptors, base layer first.

    Returns:
        AnalysisResult: The populated aggregate.
    """
    trees = [layer.tree for layer in layers]
    score, inefficiencies = efficiency(trees)

    size_bytes = sum(layer.size for layer in layers)
    user_size_bytes = sum(layer.size for layer in layers[1:])
    wasted_bytes = sum(data.cumulative_size for data in inefficiencies)
    wasted_user_percent = wasted_bytes / user_size_bytes if user_size_bytes else 0.0

    logger.info(
        f"Analyzed {len(layers)} layers: efficiency {score:.2%}, "
        f"{wasted_bytes} potentially wasted bytes."
    )

    return AnalysisResult(
        layers=list(layers),
        ref_trees=trees,
        efficiency=score,
        size_bytes=size_bytes,
        user_size_bytes=user_size_bytes,
        wasted_bytes=wasted_bytes,
        wasted_user_percent=wasted_user_percent,
        inefficiencies=inefficiencies,
    )


def analyze_image(archive_path: str, options: Optional[TreeOptions] = None) -> AnalysisResult:
    """Read a `docker save` archive from disk and analyze it."""
    layers = read_image_archive(archive_path, options)
    return analyze_layers(layers)
