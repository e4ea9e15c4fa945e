from __future__ import annotations

"""
Layered File Tree.

A FileTree is the snapshot of one filesystem state: either a single layer
as recorded in the image, or a composition of several layers. Provides path
insertion and lookup, subtree removal, deep copies, overlay stacking with
whiteout semantics, the two-phase compare-and-mark diff, and the bounded
textual rendering consumed by the presentation layer.
"""

import logging
import posixpath
import uuid
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from layerscope.core.filetree.node import FileNode, VisitEvaluator, Visitor
from layerscope.domain.errors import NotFoundError, InvalidPathError
from layerscope.domain.tree_models import (
    DOUBLE_WHITEOUT_PREFIX,
    WHITEOUT_PREFIX,
    DiffType,
    FileInfo,
    FileType,
    NodeData,
    TreeOptions,
)

logger = logging.getLogger(__name__)


@dataclass
class _CompareMark:
    """An outcome recorded during the first phase of compare-and-mark."""
    lower_node: FileNode
    upper_node: Optional[FileNode]
    tentative: Optional[DiffType] = None
    final: Optional[DiffType] = None
    replaced: bool = False


@dataclass
class _RenderParams:
    node: FileNode
    spaces: List[bool] = field(default_factory=list)
    child_spaces: List[bool] = field(default_factory=list)
    show_collapsed: bool = False
    is_last: bool = False


class FileTree:
    """
    Name-indexed hierarchy of FileNodes rooted at "/".

    Attributes:
        root: Root node (never visited, never removable).
        size: Number of non-root nodes.
        file_size: Aggregate byte size of the records ingested into the tree.
        name: Descriptive name (usually the layer tar path).
        id: Unique identity of this tree instance.
        options: Construction-time options applied to new nodes.
    """

    def __init__(self, name: str = "", options: Optional[TreeOptions] = None) -> None:
        self.options = options or TreeOptions()
        self.size = 0
        self.file_size = 0
        self.name = name
        self.id = uuid.uuid4()
        self.root = FileNode(self, None, "", NodeData())

    def __repr__(self) -> str:
        return f"FileTree(name={self.name!r}, size={self.size})"

    @classmethod
    def from_records(
            cls,
            records: Iterable[FileInfo],
            name: str = "",
            options: Optional[TreeOptions] = None,
    ) -> FileTree:
        """
        Build a single-layer tree from decoded file records, in order.

        Opaque-directory markers are dropped; whiteout records are stored
        under their prefixed name so stacking and diffing recognize them.
        """
        tree = cls(name, options)
        for record in records:
            dirname, basename = posixpath.split(record.path.rstrip("/"))
            if basename.startswith(DOUBLE_WHITEOUT_PREFIX):
                logger.debug(f"Skipping opaque-directory marker '{record.path}' in '{name}'.")
                continue
            path = record.path
            if record.type_flag is FileType.WHITEOUT and not basename.startswith(WHITEOUT_PREFIX):
                path = posixpath.join(dirname, WHITEOUT_PREFIX + basename)
            tree.file_size += record.size
            tree.add_path(path, record)
        return tree

    def __str__(self) -> str:
        return self.string_between(0, self.visible_size() - 1, show_attributes=False)

    # -------------------------------------------------------------------------
    # PATH OPERATIONS
    # -------------------------------------------------------------------------

    def add_path(self, path: str, info: FileInfo) -> Tuple[FileNode, List[FileNode]]:
        """
        Insert a payload at `path`, creating intermediate directories as needed.

        Intermediate nodes receive an implied directory record; only the
        terminal node gets `info`. Re-inserting an existing path replaces the
        payload and keeps the subtree, unless `info` is itself implied: an
        implied record never overwrites one already in place.

        Args:
            path: Slash separated path.
            info: Payload destined for the terminal node.

        Returns:
            Tuple[FileNode, List[FileNode]]: Terminal node and the nodes created
                                             by this call, shallowest first.

        Raises:
            InvalidPathError: A segment is an opaque-directory marker.
        """
        segments = [s for s in path.strip("/").split("/") if s]
        if any(s.startswith(DOUBLE_WHITEOUT_PREFIX) for s in segments):
            raise InvalidPathError(path)

        added: List[FileNode] = []
        node = self.root
        for segment in segments:
            child = node.children.get(segment)
            if child is None:
                child = node.add_child(segment, FileInfo.implied_dir(posixpath.join(node.path, segment)))
                if child is None:
                    raise InvalidPathError(path)
                added.append(child)
            node = child

        if node is not self.root and not info.implied:
            node.data.file_info = info
        return node, added

    def get_node(self, path: str) -> FileNode:
        """
        Resolve a slash path to a node.

        Raises:
            NotFoundError: A segment along the path does not exist.
        """
        node = self.root
        for segment in path.strip("/").split("/"):
            if not segment:
                continue
            child = node.children.get(segment)
            if child is None:
                raise NotFoundError(path, segment)
            node = child
        return node

    def remove_path(self, path: str) -> None:
        """Remove the node at `path` together with its subtree."""
        self.get_node(path).remove()

    def copy(self) -> FileTree:
        """Deep-clone the tree; the clone shares nothing with the original."""
        new_tree = FileTree(self.name, self.options)
        new_tree.size = self.size
        new_tree.file_size = self.file_size
        new_tree.root = self.root.copy(new_tree, None)
        return new_tree

    # -------------------------------------------------------------------------
    # TRAVERSAL
    # -------------------------------------------------------------------------

    def visit_depth_child_first(self, visitor: Visitor, evaluator: Optional[VisitEvaluator] = None) -> None:
        self.root.visit_depth_child_first(visitor, evaluator)

    def visit_depth_parent_first(self, visitor: Visitor, evaluator: Optional[VisitEvaluator] = None) -> None:
        self.root.visit_depth_parent_first(visitor, evaluator)

    def paths(self) -> FrozenSet[str]:
        """Snapshot of every real (non-whiteout, non-root) path currently in the tree."""
        found: Set[str] = set()
        self.visit_depth_child_first(
            lambda node: found.add(node.path),
            lambda node: not node.is_whiteout(),
        )
        return frozenset(found)

    # -------------------------------------------------------------------------
    # OVERLAY
    # -------------------------------------------------------------------------

    def stack(
            self,
            upper: FileTree,
            keep_unresolved_whiteouts: bool = False,
            ignore_unresolved_whiteouts: bool = False,
    ) -> None:
        """
        Apply layer `upper` on top of this tree, in place.

        Whiteouts delete the real path from this tree; every other node is
        inserted (directories included, so their metadata is refreshed).
        Implied parent directories of `upper` never overwrite a real record.

        Args:
            upper: The layer applied on top.
            keep_unresolved_whiteouts: Instead of failing, keep a whiteout whose
                target is absent as a marker node, so the result still carries
                deletions aimed at layers below the composed range. A kept
                marker survives a later re-creation of its path, which then
                reads as a replacement.
            ignore_unresolved_whiteouts: Instead of failing, skip a whiteout
                whose target is absent. Ignored when markers are kept.

        Raises:
            NotFoundError: A whiteout targets a path that does not exist.
        """
        def graft(node: FileNode) -> None:
            if not node.is_whiteout():
                self.add_path(node.path, node.data.file_info)
                return
            try:
                self.remove_path(node.path)
            except NotFoundError:
                if keep_unresolved_whiteouts:
                    self.add_path(_raw_path(node), node.data.file_info)
                elif ignore_unresolved_whiteouts:
                    logger.debug(f"Whiteout of '{node.path}' in '{upper.name}' has no target, skipped.")
                else:
                    raise

        upper.visit_depth_child_first(graft)

    def compare_and_mark(self, upper: FileTree, ignore_unresolved_whiteouts: bool = False) -> None:
        """
        Classify every node of this tree against `upper`, grafting in new paths.

        Phase one walks `upper` leaves-first and records outcomes, comparing
        only against the paths this tree had before the pass started. Phase
        two applies the outcomes: final ones (Added, whiteout Removed)
        directly, tentative ones only onto nodes still Unchanged, folded with
        their children. The upper payload wins unless it is an implied
        directory, which is neither compared nor copied.

        A whiteout marker next to a real node of the same name means `upper`
        deleted the path and created it again. Only the lower descendants
        missing from the new subtree are Removed; the node itself is compared
        like any other and is never reported Removed.

        Args:
            upper: Tree (usually a composed range) laid over this one.
            ignore_unresolved_whiteouts: Skip whiteouts whose target is absent
                from this tree instead of failing.

        Raises:
            NotFoundError: A whiteout targets a path absent from this tree.
        """
        original_paths = self.paths()
        modifications: List[_CompareMark] = []

        def graft(upper_node: FileNode) -> None:
            if upper_node.is_whiteout():
                try:
                    lower_node = self.get_node(upper_node.path)
                except NotFoundError:
                    if not ignore_unresolved_whiteouts:
                        raise
                    logger.debug(f"Whiteout of '{upper_node.path}' has no target in '{self.name}', skipped.")
                    return
                replacement = upper_node.parent.children.get(upper_node.name[len(WHITEOUT_PREFIX):])
                if replacement is None:
                    modifications.append(_CompareMark(lower_node, None, final=DiffType.REMOVED))
                else:
                    modifications.extend(_replaced_marks(lower_node, replacement))
                return

            if upper_node.path not in original_paths:
                terminal, new_nodes = self.add_path(upper_node.path, upper_node.data.file_info)
                for new_node in reversed(new_nodes):
                    counterpart = upper_node if new_node is terminal else None
                    modifications.append(_CompareMark(new_node, counterpart, final=DiffType.ADDED))
                return

            lower_node = self.get_node(upper_node.path)
            replaced = WHITEOUT_PREFIX + upper_node.name in upper_node.parent.children
            if upper_node.data.file_info.implied:
                modifications.append(
                    _CompareMark(lower_node, None, tentative=DiffType.UNCHANGED, replaced=replaced)
                )
                return
            modifications.append(_CompareMark(
                lower_node, upper_node, tentative=lower_node.compare(upper_node), replaced=replaced
            ))

        upper.visit_depth_child_first(graft)

        for mark in modifications:
            if mark.final is not None:
                mark.lower_node.assign_diff_type(mark.final)
            elif mark.lower_node.data.diff_type is DiffType.UNCHANGED and mark.tentative is not None:
                mark.lower_node.derive_diff_type(mark.tentative)
                # a re-created path still exists
                if mark.replaced and mark.lower_node.data.diff_type is DiffType.REMOVED:
                    mark.lower_node.data.diff_type = DiffType.CHANGED

            if mark.upper_node is not None:
                mark.lower_node.data.file_info = mark.upper_node.data.file_info

        logger.debug(
            f"Compared '{self.name}' against '{upper.name}': {len(modifications)} outcomes recorded."
        )

    # -------------------------------------------------------------------------
    # RENDERING
    # -------------------------------------------------------------------------

    def visible_size(self) -> int:
        """Count the rows a rendering would show (hidden nodes and collapsed contents excluded)."""
        count = 0

        def visitor(node: FileNode) -> None:
            nonlocal count
            count += 1

        def evaluator(node: FileNode) -> bool:
            if node.data.view_info.hidden:
                return False
            if node.children and node.data.view_info.collapsed:
                # counted, but never descended
                visitor(node)
                return False
            return True

        self.visit_depth_parent_first(visitor, evaluator)
        return count

    def string_between(self, start: int, stop: int, show_attributes: bool = False) -> str:
        """
        Render the visible rows `start`..`stop` (inclusive) as tree lines.

        Args:
            start: First visible row to render.
            stop: Last visible row to render.
            show_attributes: Prefix each row with the metadata column.

        Returns:
            str: Rendered rows, one per line.
        """
        selected: List[_RenderParams] = []
        to_visit: List[_RenderParams] = [_RenderParams(self.root)]
        row = -1

        while to_visit and row < stop:
            current = to_visit.pop(0)
            node = current.node

            child_params: List[_RenderParams] = []
            if not node.data.view_info.collapsed or node is self.root:
                visible = [node.children[name] for name in sorted(node.children)
                           if not node.children[name].data.view_info.hidden]
                for idx, child in enumerate(visible):
                    is_last = idx == len(visible) - 1
                    child_params.append(_RenderParams(
                        node=child,
                        spaces=current.child_spaces,
                        child_spaces=current.child_spaces + [is_last],
                        show_collapsed=child.data.view_info.collapsed and bool(child.children),
                        is_last=is_last,
                    ))
            to_visit = child_params + to_visit

            if node is self.root:
                continue

            row += 1
            if start <= row <= stop:
                selected.append(current)

        lines = []
        for params in selected:
            prefix = params.node.metadata_string() + " " if show_attributes else ""
            lines.append(prefix + params.node.render_tree_line(
                params.spaces, params.is_last, params.show_collapsed
            ))
        return "".join(lines)


# -----------------------------------------------------------------------------
# COMPOSITION
# -----------------------------------------------------------------------------

def _raw_path(node: FileNode) -> str:
    """Path of a node with its own name verbatim (whiteout prefix kept)."""
    return posixpath.join(node.parent.path, node.name)


def _replaced_marks(lower_node: FileNode, replacement: FileNode) -> List[_CompareMark]:
    """Removed outcomes for the lower descendants a re-created subtree no longer holds."""
    kept: Set[str] = {replacement.path}
    replacement.visit_depth_child_first(
        lambda node: kept.add(node.path),
        lambda node: not node.is_whiteout(),
    )

    marks: List[_CompareMark] = []
    lower_node.visit_depth_child_first(
        lambda node: marks.append(_CompareMark(node, None, final=DiffType.REMOVED)),
        lambda node: node.path not in kept,
    )
    return marks


def stack_tree_range(
        trees: Sequence[FileTree],
        start: int,
        stop: int,
        keep_unresolved_whiteouts: bool = False,
        ignore_unresolved_whiteouts: bool = False,
) -> FileTree:
    """
    Compose `trees[start..stop]` (inclusive) into a new tree.

    The inputs are left untouched: the result is a copy of `trees[start]` with
    every later tree stacked on top in increasing order. The whiteout flags
    are passed through to `FileTree.stack`.
    """
    tree = trees[start].copy()
    for idx in range(start + 1, stop + 1):
        tree.stack(
            trees[idx],
            keep_unresolved_whiteouts=keep_unresolved_whiteouts,
            ignore_unresolved_whiteouts=ignore_unresolved_whiteouts,
        )
    logger.debug(f"Stacked layers {start}..{stop} into a tree of {tree.size} nodes.")
    return tree
