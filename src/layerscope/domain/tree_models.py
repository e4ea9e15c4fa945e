from __future__ import annotations

"""
Layered Filesystem Data Models.

Provides the payload types carried by every tree node (file metadata, view
state and change classification), the construction-time tree options, and
the per-path bookkeeping used by the efficiency analyzer.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from layerscope.core.filetree.node import FileNode

# -----------------------------------------------------------------------------
# RESERVED NAMES
# -----------------------------------------------------------------------------

WHITEOUT_PREFIX = ".wh."
DOUBLE_WHITEOUT_PREFIX = ".wh..wh.."

# -----------------------------------------------------------------------------
# CLASSIFICATION
# -----------------------------------------------------------------------------


class DiffType(Enum):
    """Change status of a node between two compared filesystem states."""

    UNCHANGED = 0
    CHANGED = 1
    ADDED = 2
    REMOVED = 3

    def merge(self, other: DiffType) -> DiffType:
        """Fold two classifications: equal stays equal, any mismatch is Changed."""
        if self == other:
            return self
        return DiffType.CHANGED


class FileType(str, Enum):
    """Entry type of a file record, mirroring the tar header kinds we care about."""

    REGULAR = "regular"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    HARDLINK = "hardlink"
    WHITEOUT = "whiteout"


# -----------------------------------------------------------------------------
# NODE PAYLOAD
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class FileInfo:
    """
    Metadata of a single file as recorded in a layer.

    Attributes:
        path: Path of the entry inside the layer.
        type_flag: Entry kind.
        link_name: Target of a symlink or hardlink.
        hash: Content fingerprint (empty for directories and links).
        size: Size in bytes.
        mode: Permission bits.
        uid: Owner id.
        gid: Group id.
        is_dir: Whether the entry is a directory.
        implied: The layer holds no entry for this path; the record stands
                 for a parent directory of entries it does hold.
    """
    path: str = ""
    type_flag: FileType = FileType.REGULAR
    link_name: str = ""
    hash: str = ""
    size: int = 0
    mode: int = 0
    uid: int = 0
    gid: int = 0
    is_dir: bool = False
    implied: bool = False

    @classmethod
    def implied_dir(cls, path: str) -> FileInfo:
        """Record for a directory that only exists as the parent of other entries."""
        return cls(path=path, type_flag=FileType.DIRECTORY, mode=0o755, is_dir=True, implied=True)

    def compare(self, other: FileInfo) -> DiffType:
        """Unchanged iff type, fingerprint, permissions, owner and group all match."""
        if (
            self.type_flag == other.type_flag
            and self.hash == other.hash
            and self.mode == other.mode
            and self.uid == other.uid
            and self.gid == other.gid
        ):
            return DiffType.UNCHANGED
        return DiffType.CHANGED


@dataclass
class ViewInfo:
    """Display state consumed by the rendering layer."""
    collapsed: bool = False
    hidden: bool = False


@dataclass
class NodeData:
    """Complete payload attached to a tree node."""
    file_info: FileInfo = field(default_factory=FileInfo)
    view_info: ViewInfo = field(default_factory=ViewInfo)
    diff_type: DiffType = DiffType.UNCHANGED

    def copy(self) -> NodeData:
        return NodeData(
            file_info=self.file_info,
            view_info=replace(self.view_info),
            diff_type=self.diff_type,
        )


# -----------------------------------------------------------------------------
# CONSTRUCTION OPTIONS
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class TreeOptions:
    """
    Construction-time settings threaded through every node creation.

    Attributes:
        collapse_dirs: Whether newly created nodes start collapsed.
    """
    collapse_dirs: bool = False

    def new_view_info(self) -> ViewInfo:
        return ViewInfo(collapsed=self.collapse_dirs, hidden=False)


# -----------------------------------------------------------------------------
# EFFICIENCY BOOKKEEPING
# -----------------------------------------------------------------------------


@dataclass
class EfficiencyData:
    """
    Occurrences of one distinct path across all layers.

    Attributes:
        path: The shared path.
        nodes: Every leaf node found at this path, oldest layer first.
        cumulative_size: Sum of the cost of every occurrence.
        min_discovered_size: Smallest single-occurrence cost seen so far.
    """
    path: str
    nodes: List[FileNode] = field(default_factory=list)
    cumulative_size: int = 0
    min_discovered_size: Optional[int] = None
