"""
test_snapshot_store.py — Persisted snapshot encoding, loading and saving.

Run with:
    pytest tests/test_snapshot_store.py -v
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone

import pytest

from safespot.core.errors import ParseError
from safespot.hazards.models import FeedSource, HazardRecord, HazardType, Location, Snapshot
from safespot.storage.blob_store import FileBlobStore, MemoryBlobStore
from safespot.storage.snapshot_store import (
    DEFAULT_KEY,
    SnapshotStore,
    decode_snapshot,
    encode_snapshot,
)


def _make_snapshot() -> Snapshot:
    return Snapshot(
        earthquakes=[
            HazardRecord(
                id="nc7300",
                type=HazardType.EARTHQUAKE,
                source=FeedSource.SEISMIC,
                location=Location(37.4, -122.0),
                event_label="Magnitude 4.2 Earthquake",
                magnitude_like=4.2,
            )
        ],
        alerts=[
            HazardRecord(
                id="urn:oid:flood-1",
                type=HazardType.FLOOD,
                source=FeedSource.WEATHER,
                location=None,
                event_label="Flood Warning",
            )
        ],
        fetched_at=datetime(2024, 6, 10, 19, 0, tzinfo=timezone.utc),
    )


class _BrokenBlobStore:
    async def load(self, key):
        raise OSError("disk unavailable")

    async def save(self, key, data):
        raise OSError("disk full")


class _CrashingBlobStore:
    async def load(self, key):
        raise RuntimeError("backend down")

    async def save(self, key, data):
        raise RuntimeError("backend down")


# ═══════════════════════════════════════════════════════════════════════════
# Encoding
# ═══════════════════════════════════════════════════════════════════════════

class TestEncoding:

    def test_blob_layout(self):
        body = json.loads(encode_snapshot(_make_snapshot()))
        assert body["version"] == 1
        assert body["lastUpdated"] == "2024-06-10T19:00:00+00:00"
        assert body["earthquakes"][0]["id"] == "nc7300"
        assert body["alerts"][0]["location"] is None

    def test_decode_restores_snapshot(self):
        original = _make_snapshot()
        restored = decode_snapshot(encode_snapshot(original))
        assert restored == original
        assert restored.hazard_ids == {"nc7300", "urn:oid:flood-1"}

    @pytest.mark.parametrize("blob", [
        b"not json",
        b"[1, 2, 3]",
        b'{"version": 99, "earthquakes": [], "alerts": [], "lastUpdated": "2024-06-10T19:00:00"}',
        b'{"version": 1, "earthquakes": [], "alerts": []}',
        b'{"version": 1, "earthquakes": [{"type": "earthquake"}], "alerts": [], '
        b'"lastUpdated": "2024-06-10T19:00:00"}',
        b'{"version": 1, "earthquakes": [], "alerts": [], "lastUpdated": "yesterday"}',
    ])
    def test_malformed_blob_raises_parse_error(self, blob):
        with pytest.raises(ParseError):
            decode_snapshot(blob)

    def test_naive_timestamp_is_read_as_utc(self):
        blob = b'{"version": 1, "earthquakes": [], "alerts": [], "lastUpdated": "2024-06-10T19:00:00"}'
        assert decode_snapshot(blob).fetched_at.tzinfo == timezone.utc


# ═══════════════════════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════════════════════

class TestSnapshotStore:

    def test_load_empty_is_none(self):
        store = SnapshotStore(MemoryBlobStore())
        assert asyncio.run(store.load()) is None

    def test_save_then_load(self):
        store = SnapshotStore(MemoryBlobStore())

        async def scenario():
            await store.save(_make_snapshot())
            return await store.load()

        assert asyncio.run(scenario()) == _make_snapshot()

    def test_save_overwrites(self):
        store = SnapshotStore(MemoryBlobStore())
        newer = Snapshot(fetched_at=datetime(2024, 6, 11, tzinfo=timezone.utc))

        async def scenario():
            await store.save(_make_snapshot())
            await store.save(newer)
            return await store.load()

        assert asyncio.run(scenario()).hazard_ids == frozenset()

    def test_corrupt_blob_loads_as_none(self):
        store = SnapshotStore(MemoryBlobStore({DEFAULT_KEY: b"{truncated"}))
        assert asyncio.run(store.load()) is None

    def test_read_failure_loads_as_none(self):
        assert asyncio.run(SnapshotStore(_BrokenBlobStore()).load()) is None

    def test_backend_crash_loads_as_none(self):
        assert asyncio.run(SnapshotStore(_CrashingBlobStore()).load()) is None

    def test_save_failure_is_swallowed(self):
        asyncio.run(SnapshotStore(_BrokenBlobStore()).save(_make_snapshot()))

    def test_file_backed_round_trip(self, tmp_path):
        store = SnapshotStore(FileBlobStore(tmp_path / "cache"))

        async def scenario():
            await store.save(_make_snapshot())
            return await store.load()

        assert asyncio.run(scenario()) == _make_snapshot()
        assert (tmp_path / "cache" / f"{DEFAULT_KEY}.json").exists()
        assert not list((tmp_path / "cache").glob("*.tmp"))
