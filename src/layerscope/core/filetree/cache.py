from __future__ import annotations

"""
Layer Range Cache.

Composing a range of layers costs time proportional to every node in the
range, and a layer browser asks for the same ranges over and over. This
in-memory cache memoizes composed and diff-annotated trees keyed by the four
range boundaries. Entries live for the whole analysis session; there is no
eviction.
"""

import logging
from typing import Dict, List, NamedTuple, Sequence

from layerscope.core.filetree.tree import FileTree, stack_tree_range

logger = logging.getLogger(__name__)


class TreeCacheKey(NamedTuple):
    """Layer ranges (inclusive) compared by one cache entry."""
    bottom_start: int
    bottom_stop: int
    top_start: int
    top_stop: int


def layer_compare_key(layer_idx: int) -> TreeCacheKey:
    """Key comparing a layer against the composition of every layer below it."""
    if layer_idx == 0:
        return TreeCacheKey(0, 0, 0, 0)
    return TreeCacheKey(0, layer_idx - 1, layer_idx, layer_idx)


def aggregate_compare_key(layer_idx: int) -> TreeCacheKey:
    """Key comparing the base layer against everything stacked on it up to `layer_idx`."""
    if layer_idx == 0:
        return TreeCacheKey(0, 0, 0, 0)
    return TreeCacheKey(0, 0, 1, layer_idx)


class TreeCache:
    """
    Memoizes compare-and-mark results over ranges of reference trees.

    Args:
        ref_trees: Single-layer trees, oldest first. Never mutated.
    """

    def __init__(self, ref_trees: Sequence[FileTree]) -> None:
        self.ref_trees: List[FileTree] = list(ref_trees)
        self._cache: Dict[TreeCacheKey, FileTree] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: object) -> bool:
        return key in self._cache

    def get(self, key: TreeCacheKey) -> FileTree:
        """
        Return the diff-annotated tree for `key`, building it on first request.

        Args:
            key: The four range boundaries.

        Returns:
            FileTree: Bottom range composition marked against the top range.

        Raises:
            ValueError: A range is empty or outside the reference trees.
        """
        key = TreeCacheKey(*key)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        self._validate(key)
        tree = self._build_tree(key)
        self._cache[key] = tree
        return tree

    def build(self) -> None:
        """
        Prewarm the entries a layer browser needs: each layer against its
        predecessor, and each layer against the aggregate of the image.
        """
        for idx in range(len(self.ref_trees)):
            self.get(layer_compare_key(idx))
        for idx in range(len(self.ref_trees)):
            self.get(aggregate_compare_key(idx))
        logger.debug(f"TreeCache: prewarmed {len(self._cache)} entries.")

    def _build_tree(self, key: TreeCacheKey) -> FileTree:
        logger.debug(f"TreeCache: miss for {tuple(key)}, composing.")
        tree = stack_tree_range(
            self.ref_trees, key.bottom_start, key.bottom_stop, ignore_unresolved_whiteouts=True
        )
        upper = stack_tree_range(
            self.ref_trees, key.top_start, key.top_stop, keep_unresolved_whiteouts=True
        )
        tree.compare_and_mark(upper, ignore_unresolved_whiteouts=True)
        return tree

    def _validate(self, key: TreeCacheKey) -> None:
        count = len(self.ref_trees)
        for start, stop in ((key.bottom_start, key.bottom_stop), (key.top_start, key.top_stop)):
            if not 0 <= start <= stop < count:
                raise ValueError(f"Invalid layer range {start}..{stop} for {count} layers.")
