from __future__ import annotations

"""
File Tree Node.

A node is one path segment of a layer snapshot. It owns its children
exclusively; the parent and tree references are plain back pointers that are
only meaningful while the owning tree is alive.
"""

import stat
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from layerscope.domain.errors import ComparisonMismatchError, InvalidOperationError
from layerscope.domain.tree_models import (
    DOUBLE_WHITEOUT_PREFIX,
    WHITEOUT_PREFIX,
    DiffType,
    FileInfo,
    FileType,
    NodeData,
)
from layerscope.utils.formatting import format_bytes

if TYPE_CHECKING:
    from layerscope.core.filetree.tree import FileTree

Visitor = Callable[["FileNode"], None]
VisitEvaluator = Callable[["FileNode"], bool]

# -----------------------------------------------------------------------------
# RENDERING CONSTANTS
# -----------------------------------------------------------------------------

NO_BRANCH_SPACE = "    "
BRANCH_SPACE = "│   "
MIDDLE_ITEM = "├─"
LAST_ITEM = "└─"
UNCOLLAPSED_ITEM = "─ "
COLLAPSED_ITEM = "⊕ "
ATTRIBUTE_FORMAT = "{dir}{mode} {owner:>11} {size:>10} "


class FileNode:
    """
    One entry in a FileTree.

    Attributes:
        tree: Owning tree (non-owning reference).
        parent: Parent node, None for the root.
        name: Path segment of this node.
        data: Payload (file metadata, view state, classification).
        children: Child nodes keyed by name.
    """

    __slots__ = ("tree", "parent", "name", "data", "children", "_path")

    def __init__(
            self,
            tree: FileTree,
            parent: Optional[FileNode],
            name: str,
            data: Optional[NodeData] = None,
    ) -> None:
        self.tree = tree
        self.parent = parent
        self.name = name
        self.data = data if data is not None else NodeData(view_info=tree.options.new_view_info())
        self.children: Dict[str, FileNode] = {}
        self._path: Optional[str] = None

    def __repr__(self) -> str:
        return f"FileNode(path={self.path!r}, diff_type={self.data.diff_type.name})"

    # -------------------------------------------------------------------------
    # STRUCTURE
    # -------------------------------------------------------------------------

    @property
    def is_root(self) -> bool:
        return self.parent is None

    def is_leaf(self) -> bool:
        return not self.children

    def is_whiteout(self) -> bool:
        return self.name.startswith(WHITEOUT_PREFIX)

    @property
    def path(self) -> str:
        """
        Absolute slash path of the node, computed once and cached.

        The whiteout prefix is fictitious on the final segment, so a whiteout
        node reports the path of the entry it deletes.
        """
        if self._path is None:
            segments: List[str] = []
            cur: Optional[FileNode] = self
            while cur is not None and cur.parent is not None:
                name = cur.name
                if cur is self and name.startswith(WHITEOUT_PREFIX):
                    name = name[len(WHITEOUT_PREFIX):]
                segments.append(name)
                cur = cur.parent
            self._path = "/" + "/".join(reversed(segments))
        return self._path

    def add_child(self, name: str, info: FileInfo) -> Optional[FileNode]:
        """
        Attach a child, or refresh the payload of an existing one.

        On a name collision the existing child keeps its subtree and only its
        file info is replaced. Opaque-directory markers never become nodes.

        Returns:
            Optional[FileNode]: The child node, or None for a rejected name.
        """
        if name.startswith(DOUBLE_WHITEOUT_PREFIX):
            return None

        existing = self.children.get(name)
        if existing is not None:
            existing.data.file_info = info
            return existing

        child = FileNode(self.tree, self, name)
        child.data.file_info = info
        self.children[name] = child
        self.tree.size += 1
        return child

    def remove(self) -> None:
        """Detach this node and its whole subtree from the tree."""
        if self.parent is None:
            raise InvalidOperationError("Cannot remove the tree root.")

        for child in list(self.children.values()):
            child.remove()

        del self.parent.children[self.name]
        self.tree.size -= 1

    def copy(self, tree: FileTree, parent: Optional[FileNode]) -> FileNode:
        """Deep-clone this subtree under `parent`, owned by `tree`."""
        new_node = FileNode(tree, parent, self.name, self.data.copy())
        for name, child in self.children.items():
            new_node.children[name] = child.copy(tree, new_node)
        return new_node

    # -------------------------------------------------------------------------
    # TRAVERSAL
    # -------------------------------------------------------------------------

    def visit_depth_child_first(
            self,
            visitor: Visitor,
            evaluator: Optional[VisitEvaluator] = None,
    ) -> None:
        """
        Post-order walk: children (sorted by name) before the node itself.

        The evaluator only gates the visitor call; descent always happens.
        The root is never visited.
        """
        for name in sorted(self.children):
            self.children[name].visit_depth_child_first(visitor, evaluator)

        if self.parent is None:
            return
        if evaluator is None or evaluator(self):
            visitor(self)

    def visit_depth_parent_first(
            self,
            visitor: Visitor,
            evaluator: Optional[VisitEvaluator] = None,
    ) -> None:
        """
        Pre-order walk: the node before its children (sorted by name).

        A False evaluator result prunes the node and its entire subtree.
        The root is never visited, but its evaluator result still gates descent.
        """
        if evaluator is not None and not evaluator(self):
            return

        if self.parent is not None:
            visitor(self)

        for name in sorted(self.children):
            self.children[name].visit_depth_parent_first(visitor, evaluator)

    # -------------------------------------------------------------------------
    # CLASSIFICATION
    # -------------------------------------------------------------------------

    def compare(self, other: FileNode) -> DiffType:
        """Classify `other` (the upper occurrence) against this node."""
        if other.is_whiteout():
            return DiffType.REMOVED
        if self.name != other.name:
            raise ComparisonMismatchError(
                f"Comparing mismatched nodes: '{self.name}' vs '{other.name}'"
            )
        return self.data.file_info.compare(other.data.file_info)

    def assign_diff_type(self, diff_type: DiffType) -> None:
        """Set the classification; Removed cascades to every descendant."""
        self.data.diff_type = diff_type
        if diff_type is DiffType.REMOVED:
            for child in self.children.values():
                child.assign_diff_type(diff_type)

    def derive_diff_type(self, diff_type: DiffType) -> None:
        """
        Apply a tentative classification, folded with the children's.

        Leaves take the value directly. A directory merges it with every child
        classification. A directory whose own entry is unchanged but whose
        every child was removed is itself reported as removed.
        """
        if self.is_leaf():
            self.assign_diff_type(diff_type)
            return

        child_types = [child.data.diff_type for child in self.children.values()]
        if diff_type is DiffType.UNCHANGED and all(t is DiffType.REMOVED for t in child_types):
            self.assign_diff_type(DiffType.REMOVED)
            return

        merged = diff_type
        for child_type in child_types:
            merged = merged.merge(child_type)
        self.assign_diff_type(merged)

    # -------------------------------------------------------------------------
    # RENDERING
    # -------------------------------------------------------------------------

    def __str__(self) -> str:
        display = self.name
        if self.data.file_info.type_flag in (FileType.SYMLINK, FileType.HARDLINK):
            display += " → " + self.data.file_info.link_name
        return display

    def render_tree_line(self, spaces: List[bool], last: bool, collapsed: bool) -> str:
        branches = "".join(NO_BRANCH_SPACE if space else BRANCH_SPACE for space in spaces)
        this_branch = LAST_ITEM if last else MIDDLE_ITEM
        indicator = COLLAPSED_ITEM if collapsed else UNCOLLAPSED_ITEM
        return f"{branches}{this_branch}{indicator}{self}\n"

    def metadata_string(self) -> str:
        """Attribute column: type, permissions, uid:gid and human size."""
        info = self.data.file_info
        dir_flag = "d" if info.is_dir else "-"
        mode = stat.filemode(info.mode)[1:]

        if self.is_leaf():
            size_bytes = info.size
        else:
            total = 0

            def sizer(node: FileNode) -> None:
                nonlocal total
                if node.data.diff_type is not DiffType.REMOVED:
                    total += node.data.file_info.size

            self.visit_depth_child_first(sizer)
            size_bytes = total

        return ATTRIBUTE_FORMAT.format(
            dir=dir_flag,
            mode=mode,
            owner=f"{info.uid}:{info.gid}",
            size=format_bytes(size_bytes),
        )
