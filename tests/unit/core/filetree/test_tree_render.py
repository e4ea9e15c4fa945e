from __future__ import annotations

"""
Unit tests for tree rendering.

Verifies the box-drawing layout, row windows, collapsed and hidden
directories, link targets and the attribute column.
"""

import pytest

from layerscope.core.filetree.tree import FileTree
from layerscope.domain.tree_models import DiffType, TreeOptions

FULL_RENDER = (
    "├── bin\n"
    "│   └── sh → busybox\n"
    "└── etc\n"
    "    ├── hosts\n"
    "    └── passwd\n"
)


@pytest.fixture
def render_tree(factory) -> FileTree:
    return factory.layer(
        factory.dir("/bin"),
        factory.symlink("/bin/sh", "busybox"),
        factory.dir("/etc"),
        factory.file("/etc/passwd", size=700),
        factory.file("/etc/hosts", size=12),
    )


def test_full_rendering(render_tree: FileTree) -> None:
    assert render_tree.visible_size() == 5
    assert render_tree.string_between(0, 4) == FULL_RENDER
    assert str(render_tree) == FULL_RENDER


def test_row_window(render_tree: FileTree) -> None:
    """Rows are counted over visible nodes only, root excluded, bounds inclusive."""
    assert render_tree.string_between(1, 2) == "│   └── sh → busybox\n└── etc\n"
    assert render_tree.string_between(4, 10) == "    └── passwd\n"
    assert render_tree.string_between(5, 10) == ""


def test_collapsed_directories(factory) -> None:
    """Collapsed directories render one row with the collapsed marker and hide their contents."""
    tree = factory.layer(
        factory.file("/bin/sh"),
        factory.file("/etc/hosts"),
        options=TreeOptions(collapse_dirs=True),
    )

    assert tree.visible_size() == 2
    assert tree.string_between(0, 10) == "├─⊕ bin\n└─⊕ etc\n"


def test_hidden_nodes_are_skipped(render_tree: FileTree) -> None:
    render_tree.get_node("/etc/hosts").data.view_info.hidden = True

    assert render_tree.visible_size() == 4
    assert render_tree.string_between(0, 10).endswith("└── etc\n    └── passwd\n")


def test_last_visible_sibling_closes_branch(render_tree: FileTree) -> None:
    """A hidden final sibling does not leave the row above it open."""
    render_tree.get_node("/etc/passwd").data.view_info.hidden = True

    assert render_tree.string_between(0, 10).endswith("└── etc\n    └── hosts\n")


def test_attribute_column_for_file(render_tree: FileTree) -> None:
    line = render_tree.string_between(3, 3, show_attributes=True)

    assert line.startswith("-rw-r--r-- ")
    assert "0:0" in line
    assert "12 B" in line
    assert line.endswith("├── hosts\n")


def test_attribute_column_for_implied_directory(factory) -> None:
    tree = factory.layer(factory.file("/srv/app/run", size=5))

    assert tree.get_node("/srv").metadata_string().startswith("drwxr-xr-x ")


def test_directory_size_excludes_removed_children(render_tree: FileTree) -> None:
    etc = render_tree.get_node("/etc")
    assert "712 B" in etc.metadata_string()

    render_tree.get_node("/etc/passwd").assign_diff_type(DiffType.REMOVED)

    assert etc.metadata_string().startswith("drwxr-xr-x")
    assert "12 B" in etc.metadata_string()
    assert "712 B" not in etc.metadata_string()


def test_empty_tree_renders_nothing() -> None:
    tree = FileTree()
    assert tree.visible_size() == 0
    assert str(tree) == ""
