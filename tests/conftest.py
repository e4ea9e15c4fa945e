from __future__ import annotations

"""
Global Pytest Configuration and Fixtures.

This module sets up the testing environment, including:
1. Path manipulation to ensure the 'src' directory is importable.
2. A factory for file records and single-layer trees shared by unit tests.
3. Isolation of the user data directory and of the logging infrastructure.
"""

import io
import json
import os
import sys
import tarfile
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import pytest

# -----------------------------------------------------------------------------
# Path Configuration
# -----------------------------------------------------------------------------
_SRC_PATH = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if _SRC_PATH not in sys.path:
    sys.path.insert(0, _SRC_PATH)

from layerscope.core.filetree.tree import FileTree  # noqa: E402
from layerscope.domain.tree_models import FileInfo, FileType, TreeOptions  # noqa: E402
from layerscope.infra.logging import shutdown_logging  # noqa: E402


# -----------------------------------------------------------------------------
# Record Factory
# -----------------------------------------------------------------------------
class LayerFactory:
    """Builds FileInfo records and single-layer trees the way the archive reader does."""

    def file(self, path: str, size: int = 0, digest: str = "", mode: int = 0o644,
             uid: int = 0, gid: int = 0) -> FileInfo:
        return FileInfo(
            path=path,
            type_flag=FileType.REGULAR,
            hash=digest or f"sha-{path}-{size}",
            size=size,
            mode=mode,
            uid=uid,
            gid=gid,
        )

    def dir(self, path: str, mode: int = 0o755) -> FileInfo:
        return FileInfo(path=path, type_flag=FileType.DIRECTORY, mode=mode, is_dir=True)

    def symlink(self, path: str, target: str) -> FileInfo:
        return FileInfo(path=path, type_flag=FileType.SYMLINK, link_name=target, mode=0o777)

    def whiteout(self, path: str) -> FileInfo:
        return FileInfo(path=path, type_flag=FileType.WHITEOUT)

    def layer(self, *records: FileInfo, name: str = "", options: TreeOptions | None = None) -> FileTree:
        return FileTree.from_records(records, name=name, options=options)


# -----------------------------------------------------------------------------
# Shared Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture
def factory() -> LayerFactory:
    """Return the record and layer factory."""
    return LayerFactory()


@pytest.fixture
def mock_config_dict() -> Dict[str, Any]:
    """
    Return a valid, complete configuration dictionary for testing.

    Mirrors the structure defined in 'layerscope.domain.config'.
    """
    return {
        "collapse_dirs": False,
        "show_attributes": True,
        "tree_rows": 200,
        "max_report_rows": 20,
        "prewarm_cache": True,
        "log_level": "WARNING",
        "log_file": "",
    }


@pytest.fixture
def clean_logging() -> Iterator[None]:
    """Detach every handler installed by layerscope before and after a test."""
    shutdown_logging()
    yield
    shutdown_logging()


# -----------------------------------------------------------------------------
# Image Archive Builder
# -----------------------------------------------------------------------------
HOSTS_CONTENT = b"127.0.0.1 localhost\n"
BUSYBOX_CONTENT = b"\x7fELF" + b"\x00" * 96
APP_CONF_CONTENT = b"v=1"

DIFF_IDS = [
    "sha256:1111111111111111111111111111111111111111111111111111111111111111",
    "sha256:2222222222222222222222222222222222222222222222222222222222222222",
]

# (name, kind, payload): kind is "dir", "file" or "symlink"
LayerEntry = Tuple[str, str, Any]


def build_layer_tar(entries: List[LayerEntry], compression: str = "") -> bytes:
    """Serialize layer entries into an (optionally compressed) tar blob."""
    buf = io.BytesIO()
    mode = f"w:{compression}" if compression else "w"
    with tarfile.open(fileobj=buf, mode=mode) as tar:
        for name, kind, payload in entries:
            info = tarfile.TarInfo(name)
            if kind == "dir":
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                tar.addfile(info)
            elif kind == "symlink":
                info.type = tarfile.SYMTYPE
                info.linkname = payload
                info.mode = 0o777
                tar.addfile(info)
            else:
                info.size = len(payload)
                info.mode = 0o644
                tar.addfile(info, io.BytesIO(payload))
    return buf.getvalue()


def build_image_archive(
        path: Path,
        layers: Dict[str, bytes],
        config: Optional[Dict[str, Any]] = None,
        manifest: Optional[Any] = None,
) -> Path:
    """Write a `docker save` style archive holding the given layer blobs."""
    config = config if config is not None else {}
    if manifest is None:
        manifest = [{"Config": "config.json", "RepoTags": ["demo:latest"], "Layers": list(layers)}]

    members = {"manifest.json": json.dumps(manifest).encode("utf-8"),
               "config.json": json.dumps(config).encode("utf-8")}
    members.update(layers)

    with tarfile.open(path, mode="w") as tar:
        for name, data in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return path


@pytest.fixture
def sample_image(tmp_path: Path) -> Path:
    """
    Two-layer image archive.

    Layer 0: /bin/busybox, /bin/sh -> busybox, /etc/hosts.
    Layer 1: deletes /etc/hosts, adds /etc/app/conf behind an opaque marker.
    Layer 1 is gzip compressed; an empty history entry sits between the two.
    """
    layer0 = build_layer_tar([
        ("bin/", "dir", None),
        ("bin/busybox", "file", BUSYBOX_CONTENT),
        ("bin/sh", "symlink", "busybox"),
        ("./etc/", "dir", None),
        ("./etc/hosts", "file", HOSTS_CONTENT),
    ])
    layer1 = build_layer_tar([
        ("etc/", "dir", None),
        ("etc/.wh.hosts", "file", b""),
        ("etc/app/", "dir", None),
        ("etc/app/.wh..wh..opq", "file", b""),
        ("etc/app/conf", "file", APP_CONF_CONTENT),
    ], compression="gz")

    config = {
        "history": [
            {"created": "2024-01-01T00:00:00Z", "created_by": "/bin/sh -c #(nop) ADD file:abc in / "},
            {"created": "2024-01-01T00:00:01Z", "created_by": "/bin/sh -c #(nop)  ENV X=1", "empty_layer": True},
            {"created": "2024-01-01T00:00:02Z", "created_by": "/bin/sh -c echo hi > /etc/app/conf"},
        ],
        "rootfs": {"type": "layers", "diff_ids": DIFF_IDS},
    }
    return build_image_archive(
        tmp_path / "image.tar",
        {"l0/layer.tar": layer0, "l1/layer.tar": layer1},
        config,
    )


@pytest.fixture
def layer_tar_builder():
    """Expose the layer blob serializer to tests that need custom layers."""
    return build_layer_tar


@pytest.fixture
def archive_builder():
    """Expose the image archive writer to tests that need custom archives."""
    return build_image_archive
