"""
blob_store.py — Persistent key → bytes store.

The snapshot layer only needs two calls:

    await store.load(key)        -> bytes | None
    await store.save(key, data)

Backends:
    FileBlobStore    one file per key under a directory; writes go through
                     a temp file + os.replace so a crash never leaves a
                     half-written blob behind
    MemoryBlobStore  in-process dict (tests, ephemeral runs)
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")


class BlobStore(Protocol):
    async def load(self, key: str) -> Optional[bytes]: ...

    async def save(self, key: str, data: bytes) -> None: ...


class MemoryBlobStore:
    """Dict-backed store."""

    def __init__(self, initial: Optional[Dict[str, bytes]] = None):
        self._blobs: Dict[str, bytes] = dict(initial or {})

    async def load(self, key: str) -> Optional[bytes]:
        return self._blobs.get(key)

    async def save(self, key: str, data: bytes) -> None:
        self._blobs[key] = bytes(data)


class FileBlobStore:
    """
    Directory-backed store: ``<root>/<key>.json``.

    File I/O runs in a worker thread so the event loop never blocks on disk.
    """

    def __init__(self, root: str | os.PathLike):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / f"{_SAFE_KEY.sub('_', key)}.json"

    def _read(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def _write(self, key: str, data: bytes) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        fd, tmp = tempfile.mkstemp(dir=self.root, prefix=f".{path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    async def load(self, key: str) -> Optional[bytes]:
        return await asyncio.to_thread(self._read, key)

    async def save(self, key: str, data: bytes) -> None:
        await asyncio.to_thread(self._write, key, data)
        logger.debug("Wrote %d bytes to %s", len(data), self._path(key))
