from __future__ import annotations

"""
Image Efficiency Analyzer.

Scores how much of an image's storage is spent on paths that appear in more
than one layer. The score is roughly based on:
1. Files duplicated across layers discount the score, weighted by size.
2. Removed files discount the score, weighted by the size of what they removed.
"""

import logging
from typing import Dict, List, Sequence, Tuple

from layerscope.core.filetree.node import FileNode
from layerscope.core.filetree.tree import FileTree, stack_tree_range
from layerscope.domain.errors import NotFoundError
from layerscope.domain.tree_models import EfficiencyData

logger = logging.getLogger(__name__)


def efficiency(trees: Sequence[FileTree]) -> Tuple[float, List[EfficiencyData]]:
    """
    Compute the efficiency score and the ranked list of inefficient paths.

    Layers are scanned oldest to newest, visiting leaves only. A whiteout
    costs the size of whatever it deletes, measured on the composition of
    every earlier layer. Whiteouts with nothing to delete cost nothing, both
    when scored and while composing that earlier view.

    Args:
        trees: Single-layer trees, oldest first.

    Returns:
        Tuple[float, List[EfficiencyData]]: Score in [0, 1] (1.0 means no
            duplication) and every path seen more than once, sorted ascending
            by cumulative size.
    """
    efficiency_map: Dict[str, EfficiencyData] = {}
    inefficient_matches: List[EfficiencyData] = []
    current_tree = 0
    prior_views: Dict[int, FileTree] = {}

    def visitor(node: FileNode) -> None:
        path = node.path
        data = efficiency_map.get(path)
        if data is None:
            data = EfficiencyData(path=path)
            efficiency_map[path] = data

        # a whiteout may stand for a whole directory, so size it on the stacked view
        if node.is_whiteout():
            size_bytes = _removed_size(trees, current_tree, path, prior_views)
        else:
            size_bytes = node.data.file_info.size

        data.cumulative_size += size_bytes
        if data.min_discovered_size is None or size_bytes < data.min_discovered_size:
            data.min_discovered_size = size_bytes
        data.nodes.append(node)

        if len(data.nodes) == 2:
            inefficient_matches.append(data)

    for idx, tree in enumerate(trees):
        current_tree = idx
        tree.visit_depth_child_first(visitor, lambda node: node.is_leaf())

    minimum_path_sizes = sum(d.min_discovered_size or 0 for d in efficiency_map.values())
    discovered_path_sizes = sum(d.cumulative_size for d in efficiency_map.values())

    if discovered_path_sizes == 0:
        score = 1.0
    else:
        score = minimum_path_sizes / discovered_path_sizes

    inefficient_matches.sort(key=lambda d: d.cumulative_size)
    logger.debug(
        f"Efficiency over {len(trees)} layers: score={score:.4f}, "
        f"{len(inefficient_matches)} inefficient paths."
    )
    return score, inefficient_matches


def _removed_size(
        trees: Sequence[FileTree],
        layer_idx: int,
        path: str,
        prior_views: Dict[int, FileTree],
) -> int:
    """Size of everything at `path` in the composition of the layers before `layer_idx`."""
    if layer_idx == 0:
        return 0

    stacked = prior_views.get(layer_idx)
    if stacked is None:
        stacked = stack_tree_range(trees, 0, layer_idx - 1, ignore_unresolved_whiteouts=True)
        prior_views[layer_idx] = stacked
    try:
        previous = stacked.get_node(path)
    except NotFoundError as e:
        logger.debug(f"Layer {layer_idx}: whiteout without prior occupant: {e}")
        return 0

    total = 0

    def sizer(node: FileNode) -> None:
        nonlocal total
        total += node.data.file_info.size

    previous.visit_depth_child_first(sizer)
    return total
