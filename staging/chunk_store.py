"""Manages staged chunk files on disk: one namespace directory per upload."""

import asyncio
import json
import logging
import os
import re
import shutil
import uuid
from dataclasses import asdict
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import List, Optional, Tuple

from common.constants import CHUNK_NAME_SEPARATOR, MANIFEST_FILENAME, PARTIAL_SUFFIX
from common.types import ChunkRef, UploadManifest

logger = logging.getLogger(__name__)

UPLOAD_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def is_valid_upload_id(upload_id: str) -> bool:
    return bool(upload_id) and UPLOAD_ID_PATTERN.match(upload_id) is not None


def chunk_filename(upload_id: str, index: int) -> str:
    return f"{upload_id}{CHUNK_NAME_SEPARATOR}{index}"


def parse_chunk_index(upload_id: str, filename: str) -> Optional[int]:
    """
    Parse the chunk index out of a staged file name.

    Returns:
        The index, or None if the name is not a chunk of this upload
    """
    prefix = f"{upload_id}{CHUNK_NAME_SEPARATOR}"
    if not filename.startswith(prefix):
        return None
    suffix = filename[len(prefix):]
    if not suffix.isdigit():
        return None
    return int(suffix)


class ChunkStore:
    """
    File-system backed chunk persistence keyed by (upload_id, index).

    Layout: ``<root>/<upload_id>/<upload_id>_chunk_<index>`` plus a manifest
    file and, once merged, the artifact named after the original file.
    Blocking file I/O runs in the default executor so the event loop keeps
    serving other uploads.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    def namespace_path(self, upload_id: str) -> Path:
        if not is_valid_upload_id(upload_id):
            raise ValueError(f"Invalid upload id: {upload_id!r}")
        return self.root / upload_id

    def chunk_path(self, upload_id: str, index: int) -> Path:
        if index < 0:
            raise ValueError(f"Chunk index must be non-negative, got {index}")
        return self.namespace_path(upload_id) / chunk_filename(upload_id, index)

    def artifact_path(self, upload_id: str, original_name: str) -> Path:
        return self.namespace_path(upload_id) / original_name

    def manifest_path(self, upload_id: str) -> Path:
        return self.namespace_path(upload_id) / MANIFEST_FILENAME

    async def put(self, upload_id: str, index: int, data: bytes) -> ChunkRef:
        """
        Persist a chunk, creating the upload namespace if needed.

        Writing an index that already exists replaces its content.

        Raises:
            OSError: If the write fails
        """
        path = self.chunk_path(upload_id, index)
        await self._run(_atomic_write, path, data)
        logger.debug(f"Stored chunk {index} of upload {upload_id} ({len(data)} bytes)")
        return ChunkRef(upload_id=upload_id, index=index, path=path)

    async def exists(self, upload_id: str, index: int) -> bool:
        return await self._run(self.chunk_path(upload_id, index).is_file)

    async def read(self, ref: ChunkRef) -> bytes:
        return await self._run(ref.path.read_bytes)

    async def list_ordered(self, upload_id: str) -> List[ChunkRef]:
        """
        List staged chunks sorted ascending by the index encoded in their names.

        A missing namespace lists as empty.
        """
        namespace = self.namespace_path(upload_id)
        names = await self._run(_list_names, namespace)

        refs = []
        for name in names:
            index = parse_chunk_index(upload_id, name)
            if index is None:
                continue
            refs.append(ChunkRef(upload_id=upload_id, index=index, path=namespace / name))

        refs.sort(key=lambda ref: ref.index)
        return refs

    async def missing_indices(self, upload_id: str, chunk_count: int) -> List[int]:
        """Check every index in [0, chunk_count) and return those not yet stored."""
        indices = range(chunk_count)
        found = await asyncio.gather(*(self.exists(upload_id, index) for index in indices))
        return [index for index, present in zip(indices, found) if not present]

    async def delete(self, upload_id: str, index: int) -> bool:
        return await self._run(_unlink_if_exists, self.chunk_path(upload_id, index))

    async def purge(self, upload_id: str) -> bool:
        """
        Remove the whole namespace of an upload.

        Returns:
            True if something was removed, False if the namespace did not exist
        """
        return await self._run(_remove_tree, self.namespace_path(upload_id))

    async def write_manifest(self, upload_id: str, original_name: Optional[str]) -> UploadManifest:
        """
        Record the manifest of an upload unless one is already present.

        A manifest without an original name is filled in when a later call
        supplies one. A call without a name only ever creates the manifest,
        so it never replaces one a concurrent call wrote with a name.
        """
        existing = await self.read_manifest(upload_id)
        if existing is not None and (existing.original_name or not original_name):
            return existing

        manifest = UploadManifest(
            upload_id=upload_id,
            original_name=original_name,
            created_at=existing.created_at if existing else datetime.now(timezone.utc).isoformat(),
        )
        payload = json.dumps(asdict(manifest)).encode("utf-8")
        path = self.manifest_path(upload_id)

        if original_name:
            await self._run(_atomic_write, path, payload)
            return manifest

        try:
            await self._run(_atomic_create, path, payload)
        except FileExistsError:
            current = await self.read_manifest(upload_id)
            return current if current is not None else manifest
        return manifest

    async def read_manifest(self, upload_id: str) -> Optional[UploadManifest]:
        path = self.manifest_path(upload_id)
        try:
            raw = await self._run(path.read_bytes)
        except FileNotFoundError:
            return None

        try:
            return UploadManifest(**json.loads(raw))
        except (ValueError, TypeError) as e:
            logger.warning(f"Ignoring unreadable manifest for upload {upload_id}: {e}")
            return None

    async def list_namespaces(self) -> List[Tuple[str, float]]:
        """
        List upload namespaces with their last modification time.

        Returns:
            List of (upload_id, mtime) tuples
        """
        return await self._run(_scan_namespaces, self.root)


def _atomic_write(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.{uuid.uuid4().hex}{PARTIAL_SUFFIX}")
    try:
        tmp_path.write_bytes(data)
        os.replace(tmp_path, path)
    except BaseException:
        _unlink_if_exists(tmp_path)
        raise


def _atomic_create(path: Path, data: bytes) -> None:
    """Publish a fully written file at path; FileExistsError if path is taken."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.{uuid.uuid4().hex}{PARTIAL_SUFFIX}")
    try:
        tmp_path.write_bytes(data)
        os.link(tmp_path, path)
    finally:
        _unlink_if_exists(tmp_path)


def _unlink_if_exists(path: Path) -> bool:
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False


def _list_names(directory: Path) -> List[str]:
    try:
        return os.listdir(directory)
    except FileNotFoundError:
        return []


def _remove_tree(directory: Path) -> bool:
    if not directory.exists():
        return False
    try:
        shutil.rmtree(directory)
    except FileNotFoundError:
        return False
    return True


def _scan_namespaces(root: Path) -> List[Tuple[str, float]]:
    if not root.exists():
        return []

    namespaces = []
    for entry in root.iterdir():
        if not entry.is_dir() or not is_valid_upload_id(entry.name):
            continue
        try:
            mtimes = [entry.stat().st_mtime]
            mtimes.extend(child.stat().st_mtime for child in entry.iterdir())
        except FileNotFoundError:
            continue
        namespaces.append((entry.name, max(mtimes)))
    return namespaces
