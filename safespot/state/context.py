"""
context.py — Explicit wiring of the pipeline components.

One AlertsContext per process (or per test). Nothing here is a module
global; the API reaches it through ``app.state.context``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from safespot.alerts.channels.push import NotificationChannel
from safespot.alerts.dispatcher import NotificationDispatcher
from safespot.core.config import Settings, get_settings
from safespot.hazards.models import ShelterRecord
from safespot.hazards.shelters import load_shelters
from safespot.ingestion.feed_client import FetchOrchestrator
from safespot.ml.severity_model import SeverityScorer
from safespot.state.alerts_store import AlertsStore
from safespot.state.refresh_scheduler import RefreshScheduler
from safespot.storage.blob_store import BlobStore, FileBlobStore
from safespot.storage.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)


@dataclass
class AlertsContext:
    settings: Settings
    store: AlertsStore
    scheduler: RefreshScheduler
    orchestrator: FetchOrchestrator
    snapshot_store: SnapshotStore
    dispatcher: NotificationDispatcher
    scorer: SeverityScorer

    async def startup(self) -> None:
        """Restore the cached snapshot, train the scorer, start timers."""
        cached = await self.snapshot_store.load()
        if cached is not None:
            self.store.load_cached(cached)

        if self.scorer.use_model:
            # score() falls back to the formula while this runs
            await asyncio.to_thread(self.scorer.initialize)

        self.scheduler.start()
        logger.info("SafeSpot context started")

    async def shutdown(self) -> None:
        await self.scheduler.stop()
        await self.orchestrator.close()
        logger.info("SafeSpot context stopped")


def build_context(
    config: Optional[Settings] = None,
    *,
    blob_store: Optional[BlobStore] = None,
    orchestrator: Optional[FetchOrchestrator] = None,
    channel: Optional[NotificationChannel] = None,
    shelters: Optional[Sequence[ShelterRecord]] = None,
) -> AlertsContext:
    """Assemble a context from settings; any component can be substituted."""
    config = config or get_settings()

    scorer = SeverityScorer(
        use_model=config.SEVERITY_USE_MODEL,
        n_samples=config.SEVERITY_TRAINING_SAMPLES,
        seed=config.SEVERITY_MODEL_SEED,
    )
    if shelters is None:
        shelters = load_shelters(Path(config.SHELTERS_PATH))

    store = AlertsStore(
        scorer,
        shelters,
        radius_km=config.PROXIMITY_RADIUS_KM,
        auto_refresh_enabled=config.AUTO_REFRESH_DEFAULT,
    )
    snapshot_store = SnapshotStore(
        blob_store or FileBlobStore(config.SNAPSHOT_DIR),
        config.SNAPSHOT_KEY,
    )
    orchestrator = orchestrator or FetchOrchestrator(config)
    dispatcher = NotificationDispatcher(channel)

    scheduler = RefreshScheduler(
        store,
        orchestrator,
        snapshot_store,
        dispatcher,
        refresh_interval=config.REFRESH_INTERVAL_SECONDS,
        retry_delay=config.ERROR_RETRY_DELAY_SECONDS,
        radius_km=config.PROXIMITY_RADIUS_KM,
    )

    return AlertsContext(
        settings=config,
        store=store,
        scheduler=scheduler,
        orchestrator=orchestrator,
        snapshot_store=snapshot_store,
        dispatcher=dispatcher,
        scorer=scorer,
    )
