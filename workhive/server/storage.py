"""Attachment blob store.

Attachment metadata lives in PostgreSQL; the bytes live here, keyed by an
opaque storage key::

    {data_root}/attachments/{workspace_id}/{attachment_id}

Uses ``anyio.to_thread.run_sync`` for non-blocking file I/O.  Writes are
atomic (temp file + rename) so a crash mid-upload never leaves a truncated
blob behind.  Soft-deleting an attachment keeps its blob.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from functools import partial
from pathlib import Path
from typing import Protocol, runtime_checkable

from anyio import to_thread


@runtime_checkable
class BlobStore(Protocol):
    """Async protocol for reading and writing attachment blobs."""

    async def write(self, key: str, data: bytes) -> None:
        """Write *data* under *key*, replacing any previous blob."""
        ...

    async def read(self, key: str) -> bytes:
        """Read a blob.  Raises ``FileNotFoundError`` if not found."""
        ...

    async def exists(self, key: str) -> bool: ...


class LocalBlobStore:
    """Local filesystem implementation of the BlobStore protocol."""

    def __init__(self, data_root: str | Path) -> None:
        self._base = Path(data_root) / "attachments"

    def _path(self, key: str) -> Path:
        path = (self._base / key).resolve()
        if not path.is_relative_to(self._base.resolve()):
            msg = f"Invalid storage key: {key!r}"
            raise ValueError(msg)
        return path

    async def write(self, key: str, data: bytes) -> None:
        await to_thread.run_sync(partial(_atomic_write, self._path(key), data))

    async def read(self, key: str) -> bytes:
        return await to_thread.run_sync(self._path(key).read_bytes)

    async def exists(self, key: str) -> bool:
        return await to_thread.run_sync(self._path(key).exists)


def storage_key(workspace_id: str, attachment_id: str) -> str:
    return f"{workspace_id}/{attachment_id}"


# -- Sync helpers (run in thread pool) -----------------------------------------


def _atomic_write(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.rename(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise
