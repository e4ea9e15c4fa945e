from __future__ import annotations

"""
Unit tests for the layer range cache.

Verifies key construction, memoization (observed by counting range
compositions), prewarming, range validation, and that deletions aimed
below an upper range survive into the aggregate comparison.
"""

from typing import Dict, List
from unittest.mock import patch

import pytest

from layerscope.core.filetree.cache import (
    TreeCache,
    TreeCacheKey,
    aggregate_compare_key,
    layer_compare_key,
)
from layerscope.core.filetree.tree import FileTree, stack_tree_range
from layerscope.domain.tree_models import DiffType


@pytest.fixture
def layers(factory) -> List[FileTree]:
    return [
        factory.layer(factory.file("/a", size=1), factory.file("/b", size=2)),
        factory.layer(factory.whiteout("/a"), factory.file("/c", size=3)),
        factory.layer(factory.file("/b", size=2, digest="patched")),
    ]


def _classes(tree: FileTree) -> Dict[str, DiffType]:
    result: Dict[str, DiffType] = {}
    tree.visit_depth_child_first(lambda n: result.__setitem__(n.path, n.data.diff_type))
    return result


def test_key_helpers() -> None:
    assert layer_compare_key(0) == TreeCacheKey(0, 0, 0, 0)
    assert layer_compare_key(3) == TreeCacheKey(0, 2, 3, 3)
    assert aggregate_compare_key(0) == TreeCacheKey(0, 0, 0, 0)
    assert aggregate_compare_key(3) == TreeCacheKey(0, 0, 1, 3)


def test_second_get_performs_no_composition(layers) -> None:
    """A hit returns the memoized tree without composing any range again."""
    cache = TreeCache(layers)
    key = layer_compare_key(2)

    with patch("layerscope.core.filetree.cache.stack_tree_range", wraps=stack_tree_range) as spy:
        first = cache.get(key)
        assert spy.call_count == 2
        second = cache.get(key)
        assert spy.call_count == 2

    assert second is first
    assert _classes(second) == _classes(first)


def test_plain_tuple_keys_share_entries(layers) -> None:
    cache = TreeCache(layers)

    first = cache.get((0, 0, 1, 1))

    assert cache.get(layer_compare_key(1)) is first
    assert len(cache) == 1


def test_build_prewarms_layer_and_aggregate_keys(layers) -> None:
    cache = TreeCache(layers)

    cache.build()

    expected = {
        TreeCacheKey(0, 0, 0, 0),
        TreeCacheKey(0, 0, 1, 1),
        TreeCacheKey(0, 1, 2, 2),
        TreeCacheKey(0, 0, 1, 2),
    }
    assert len(cache) == len(expected)
    for key in expected:
        assert key in cache


def test_layer_zero_compares_against_itself(layers) -> None:
    tree = TreeCache(layers).get(layer_compare_key(0))
    assert set(_classes(tree).values()) == {DiffType.UNCHANGED}


def test_layer_key_marks_changes_of_one_layer(layers) -> None:
    tree = TreeCache(layers).get(layer_compare_key(1))

    classes = _classes(tree)
    assert classes["/a"] is DiffType.REMOVED
    assert classes["/c"] is DiffType.ADDED
    assert classes["/b"] is DiffType.UNCHANGED


def test_aggregate_key_keeps_deletions_of_base_files(layers) -> None:
    """The upper range 1..2 cannot resolve the whiteout of /a, yet /a is still reported removed."""
    tree = TreeCache(layers).get(aggregate_compare_key(2))

    classes = _classes(tree)
    assert classes["/a"] is DiffType.REMOVED
    assert classes["/b"] is DiffType.CHANGED
    assert classes["/c"] is DiffType.ADDED


def test_reference_trees_not_mutated(layers) -> None:
    before = [tree.paths() for tree in layers]

    TreeCache(layers).build()

    assert [tree.paths() for tree in layers] == before
    assert set(_classes(layers[0]).values()) == {DiffType.UNCHANGED}


@pytest.mark.parametrize("key", [
    (0, 0, 1, 5),
    (1, 0, 0, 0),
    (-1, 0, 0, 0),
    (0, 0, 2, 1),
])
def test_invalid_ranges_raise(layers, key) -> None:
    cache = TreeCache(layers)

    with pytest.raises(ValueError):
        cache.get(key)

    assert len(cache) == 0


def test_aggregate_key_matches_composition_after_recreation(factory) -> None:
    """A directory deleted and re-created in the upper range keeps only its new contents."""
    trees = [
        factory.layer(factory.dir("/d"), factory.file("/d/x"), factory.file("/d/y")),
        factory.layer(factory.whiteout("/d")),
        factory.layer(factory.dir("/d"), factory.file("/d/z")),
    ]

    tree = TreeCache(trees).get(aggregate_compare_key(2))

    classes = _classes(tree)
    present = {path for path, diff in classes.items() if diff is not DiffType.REMOVED}
    assert present == stack_tree_range(trees, 0, 2).paths() == {"/d", "/d/z"}
    assert classes["/d/x"] is DiffType.REMOVED
    assert classes["/d/y"] is DiffType.REMOVED
    assert classes["/d/z"] is DiffType.ADDED
    assert classes["/d"] is DiffType.CHANGED


def test_whiteout_without_target_does_not_break_entries(factory) -> None:
    trees = [
        factory.layer(factory.file("/a", size=10)),
        factory.layer(factory.whiteout("/ghost")),
        factory.layer(factory.whiteout("/a")),
    ]
    cache = TreeCache(trees)

    cache.build()

    assert _classes(cache.get(layer_compare_key(2)))["/a"] is DiffType.REMOVED
    assert _classes(cache.get(aggregate_compare_key(2)))["/a"] is DiffType.REMOVED
    assert _classes(cache.get(layer_compare_key(1))) == {"/a": DiffType.UNCHANGED}
