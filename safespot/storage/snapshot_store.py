"""
snapshot_store.py — Persist / restore the single most-recent Snapshot.

Blob format (UTF-8 JSON):

    {
        "version": 1,
        "earthquakes": [HazardRecord.to_dict(), ...],
        "alerts":      [HazardRecord.to_dict(), ...],
        "lastUpdated": "2026-10-18T12:00:00+00:00"
    }

Failure policy:
    load()  corrupt / unknown-version blobs are a cache miss (ParseError is
            raised internally and absorbed here), never fatal
    save()  best-effort; a write failure is logged and swallowed, losing the
            cache is acceptable degraded behaviour
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from safespot.core.errors import ParseError
from safespot.hazards.models import HazardRecord, Snapshot
from safespot.storage.blob_store import BlobStore

logger = logging.getLogger(__name__)

SNAPSHOT_FORMAT_VERSION = 1
DEFAULT_KEY = "alertsData"


def encode_snapshot(snapshot: Snapshot) -> bytes:
    body = {
        "version": SNAPSHOT_FORMAT_VERSION,
        "earthquakes": [h.to_dict() for h in snapshot.earthquakes],
        "alerts": [h.to_dict() for h in snapshot.alerts],
        "lastUpdated": snapshot.fetched_at.isoformat(),
    }
    return json.dumps(body, separators=(",", ":")).encode("utf-8")


def decode_snapshot(blob: bytes) -> Snapshot:
    """
    Parse a persisted blob.

    Raises
    ------
    ParseError
        Malformed JSON, wrong shape, or an unsupported format version.
    """
    try:
        data: Dict[str, Any] = json.loads(blob.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ParseError(f"Snapshot is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise ParseError("Snapshot root must be an object")

    version = data.get("version")
    if version != SNAPSHOT_FORMAT_VERSION:
        raise ParseError(f"Unsupported snapshot version: {version!r}", version=version)

    try:
        fetched_at = datetime.fromisoformat(data["lastUpdated"])
        if fetched_at.tzinfo is None:
            fetched_at = fetched_at.replace(tzinfo=timezone.utc)
        return Snapshot(
            earthquakes=[HazardRecord.from_dict(h) for h in data.get("earthquakes", [])],
            alerts=[HazardRecord.from_dict(h) for h in data.get("alerts", [])],
            fetched_at=fetched_at,
        )
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise ParseError(f"Snapshot has an invalid shape: {exc}") from exc


class SnapshotStore:
    """Load/save the last successful Snapshot under one key."""

    def __init__(self, blobs: BlobStore, key: str = DEFAULT_KEY):
        self.blobs = blobs
        self.key = key

    async def load(self) -> Optional[Snapshot]:
        """Last persisted snapshot, or None if absent or unreadable."""
        try:
            blob = await self.blobs.load(self.key)
        except Exception as exc:
            logger.warning("Snapshot read failed for %s: %s", self.key, exc)
            return None

        if blob is None:
            return None

        try:
            return decode_snapshot(blob)
        except ParseError as exc:
            logger.warning("Discarding cached snapshot %s: %s", self.key, exc.message)
            return None

    async def save(self, snapshot: Snapshot) -> None:
        """Persist, overwriting any previous snapshot. Never raises."""
        try:
            await self.blobs.save(self.key, encode_snapshot(snapshot))
        except Exception as exc:
            logger.error("Snapshot save failed for %s: %s", self.key, exc)
            return
        logger.debug(
            "Snapshot saved: %d earthquakes, %d alerts",
            len(snapshot.earthquakes), len(snapshot.alerts),
        )
