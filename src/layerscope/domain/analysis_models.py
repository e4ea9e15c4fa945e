from __future__ import annotations

"""
Image Analysis Data Models.

Defines the layer descriptors and the result aggregate handed from the
analysis engine to the presentation layer (CLI reports, JSON export).
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List

from layerscope.domain.tree_models import EfficiencyData

if TYPE_CHECKING:
    from layerscope.core.filetree.tree import FileTree

SHELL_PREFIX = "/bin/sh -c "
MISSING_LAYER_ID = "<missing>"

# -----------------------------------------------------------------------------
# LAYER DESCRIPTORS
# -----------------------------------------------------------------------------


@dataclass
class LayerInfo:
    """
    One filesystem layer of an image together with its history metadata.

    Attributes:
        id: Layer diff id, or "<missing>" when the image carries no history.
        index: Position in the image, 0 being the base layer.
        tree: The layer's own file tree.
        created_by: Raw command that produced the layer.
        created: Creation timestamp as recorded in the image config.
        size: Bytes contributed by the layer.
        tar_path: Location of the layer tar inside the image archive.
    """
    id: str
    index: int
    tree: FileTree
    created_by: str = "(missing)"
    created: str = ""
    size: int = 0
    tar_path: str = ""

    @property
    def short_id(self) -> str:
        return self.id[:15]

    @property
    def command(self) -> str:
        """The creating command without the shell wrapper."""
        if self.created_by.startswith(SHELL_PREFIX):
            return self.created_by[len(SHELL_PREFIX):]
        return self.created_by

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "index": self.index,
            "command": self.command,
            "created": self.created,
            "size": self.size,
            "tar_path": self.tar_path,
        }


# -----------------------------------------------------------------------------
# RESULT AGGREGATE
# -----------------------------------------------------------------------------


@dataclass
class AnalysisResult:
    """
    Everything the presentation layer needs about one analyzed image.

    Attributes:
        layers: Layer descriptors, base layer first.
        ref_trees: Single-layer trees, base layer first.
        efficiency: Efficiency score (1.0 means no duplication).
        size_bytes: Total bytes over all layers.
        user_size_bytes: Bytes over every layer but the base one.
        wasted_bytes: Cumulative bytes of every inefficient path.
        wasted_user_percent: wasted_bytes / user_size_bytes.
        inefficiencies: Inefficient paths, ascending by cumulative size.
    """
    layers: List[LayerInfo]
    ref_trees: List[FileTree]
    efficiency: float
    size_bytes: int
    user_size_bytes: int
    wasted_bytes: int
    wasted_user_percent: float
    inefficiencies: List[EfficiencyData] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly view (trees and nodes are summarized, not serialized)."""
        return {
            "layers": [layer.to_dict() for layer in self.layers],
            "efficiency": self.efficiency,
            "size_bytes": self.size_bytes,
            "user_size_bytes": self.user_size_bytes,
            "wasted_bytes": self.wasted_bytes,
            "wasted_user_percent": self.wasted_user_percent,
            "inefficiencies": [
                {
                    "path": data.path,
                    "count": len(data.nodes),
                    "cumulative_size": data.cumulative_size,
                }
                for data in reversed(self.inefficiencies)
            ],
        }
