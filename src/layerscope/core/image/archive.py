from __future__ import annotations

"""
Docker Image Archive Reader.

Decodes the tarball produced by `docker save` into one FileTree per layer
plus the layer history metadata. Handles both the classic layout
(`<id>/layer.tar`) and the OCI blob layout (`blobs/sha256/<digest>`), and
compressed layer blobs.
"""

import hashlib
import json
import logging
import posixpath
import tarfile
from typing import IO, Any, Dict, Iterator, List, Optional

from layerscope.core.filetree.tree import FileTree
from layerscope.domain.analysis_models import MISSING_LAYER_ID, LayerInfo
from layerscope.domain.errors import ImageArchiveError
from layerscope.domain.tree_models import WHITEOUT_PREFIX, FileInfo, FileType, TreeOptions

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"
_HASH_CHUNK = 64 * 1024

# -----------------------------------------------------------------------------
# PUBLIC API
# -----------------------------------------------------------------------------


def read_image_archive(archive_path: str, options: Optional[TreeOptions] = None) -> List[LayerInfo]:
    """
    Read every layer of a `docker save` archive.

    Args:
        archive_path: Path of the image tarball on disk.
        options: Tree construction options applied to every layer tree.

    Returns:
        List[LayerInfo]: Layers ordered base first, each with its file tree.

    Raises:
        ImageArchiveError: The manifest, the config or a layer is missing or unreadable.
        OSError: The archive itself cannot be opened.
    """
    logger.info(f"Reading image archive: {archive_path}")
    try:
        with tarfile.open(archive_path, mode="r:*") as image_tar:
            manifest = _load_manifest(image_tar)
            config = _read_json(image_tar, manifest.get("Config", ""))

            layer_paths: List[str] = list(manifest.get("Layers") or [])
            trees = [_read_layer_tree(image_tar, path, options) for path in layer_paths]
    except tarfile.TarError as e:
        raise ImageArchiveError(f"Unreadable image archive '{archive_path}': {e}") from e

    return build_layer_infos(trees, layer_paths, config)


def build_layer_infos(
        trees: List[FileTree],
        layer_paths: List[str],
        config: Dict[str, Any],
) -> List[LayerInfo]:
    """
    Pair layer trees with the image history.

    History entries flagged `empty_layer` produced no filesystem content and
    are skipped; the remaining ones match the layers in order. Layer ids come
    from `rootfs.diff_ids`.
    """
    history = [h for h in config.get("history") or [] if not h.get("empty_layer", False)]
    diff_ids: List[str] = list((config.get("rootfs") or {}).get("diff_ids") or [])

    layers: List[LayerInfo] = []
    for idx, tree in enumerate(trees):
        entry = history[idx] if idx < len(history) else {}
        layers.append(LayerInfo(
            id=diff_ids[idx] if idx < len(diff_ids) else MISSING_LAYER_ID,
            index=idx,
            tree=tree,
            created_by=entry.get("created_by", "(missing)"),
            created=entry.get("created", ""),
            size=tree.file_size,
            tar_path=layer_paths[idx] if idx < len(layer_paths) else "",
        ))
    return layers


def iter_file_records(layer_tar: tarfile.TarFile) -> Iterator[FileInfo]:
    """
    Decode the members of one layer tar into file records.

    Regular file contents are fingerprinted with SHA-256. Entries that are
    neither files, directories nor links (devices, fifos) are recorded as
    regular entries without a fingerprint.
    """
    for member in layer_tar:
        path = _normalize_member_name(member.name)
        if not path:
            continue

        basename = posixpath.basename(path)
        content_hash = ""
        if member.isdir():
            type_flag = FileType.DIRECTORY
        elif member.issym():
            type_flag = FileType.SYMLINK
        elif member.islnk():
            type_flag = FileType.HARDLINK
        elif basename.startswith(WHITEOUT_PREFIX):
            type_flag = FileType.WHITEOUT
        else:
            type_flag = FileType.REGULAR
            if member.isreg():
                content_hash = _hash_member(layer_tar, member)

        yield FileInfo(
            path=path,
            type_flag=type_flag,
            link_name=member.linkname,
            hash=content_hash,
            size=member.size,
            mode=member.mode,
            uid=member.uid,
            gid=member.gid,
            is_dir=member.isdir(),
        )


# -----------------------------------------------------------------------------
# INTERNAL HELPERS
# -----------------------------------------------------------------------------

def _load_manifest(image_tar: tarfile.TarFile) -> Dict[str, Any]:
    data = _read_json(image_tar, MANIFEST_NAME)
    if not isinstance(data, list) or not data:
        raise ImageArchiveError("Image manifest is empty or malformed.")
    return data[0]


def _read_json(image_tar: tarfile.TarFile, name: str) -> Any:
    handle = _extract(image_tar, name)
    try:
        return json.load(handle)
    except ValueError as e:
        raise ImageArchiveError(f"Malformed JSON in archive member '{name}': {e}") from e
    finally:
        handle.close()


def _extract(image_tar: tarfile.TarFile, name: str) -> IO[bytes]:
    if not name:
        raise ImageArchiveError("Image manifest does not reference a required member.")
    try:
        handle = image_tar.extractfile(name)
    except KeyError:
        handle = None
    if handle is None:
        raise ImageArchiveError(f"Archive member not found: '{name}'")
    return handle


def _read_layer_tree(image_tar: tarfile.TarFile, layer_path: str, options: Optional[TreeOptions]) -> FileTree:
    logger.debug(f"Decoding layer '{layer_path}'")
    handle = _extract(image_tar, layer_path)
    try:
        with tarfile.open(fileobj=handle, mode="r:*") as layer_tar:
            return FileTree.from_records(iter_file_records(layer_tar), name=layer_path, options=options)
    finally:
        handle.close()


def _hash_member(layer_tar: tarfile.TarFile, member: tarfile.TarInfo) -> str:
    digest = hashlib.sha256()
    handle = layer_tar.extractfile(member)
    if handle is None:
        return ""
    with handle:
        for chunk in iter(lambda: handle.read(_HASH_CHUNK), b""):
            digest.update(chunk)
    return digest.hexdigest()


def _normalize_member_name(name: str) -> str:
    """Map './usr/bin/' style member names to '/usr/bin'."""
    path = posixpath.normpath("/" + name.lstrip("/"))
    return "" if path == "/" else path
