"""
refresh_scheduler.py — Drives refresh cycles: periodic, user-initiated, retry.

═══════════════════════════════════════════════════════════════════════════
REFRESH CYCLE
═══════════════════════════════════════════════════════════════════════════

    fetch_all ──fail──► record_failure ──(user-initiated)──► retry in 30s
        │
        ▼ ok
    load previous snapshot      (read strictly before the write below)
        │
        ▼
    find_new_nearby ──► dispatch notifications
        │
        ▼
    commit_snapshot ──► save snapshot ──► cancel pending retry

At most one cycle is in flight; a trigger that arrives while one runs is
skipped, not queued. The periodic timer only runs while auto-refresh is
enabled and a user location is known, and restarts on location change.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from safespot.alerts.change_detector import DEFAULT_RADIUS_KM, find_new_nearby
from safespot.alerts.dispatcher import NotificationDispatcher
from safespot.alerts.models import DeliveryAttempt, HazardNotification
from safespot.core.errors import NetworkError
from safespot.core.logging_config import set_log_context
from safespot.hazards.models import UserLocation
from safespot.ingestion.feed_client import FetchOrchestrator
from safespot.state.alerts_store import AlertsStore, RefreshState
from safespot.storage.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


@dataclass
class RefreshOutcome:
    """Result of one refresh trigger."""
    success: bool
    skipped: bool = False
    notifications: List[HazardNotification] = field(default_factory=list)
    deliveries: List[DeliveryAttempt] = field(default_factory=list)
    error: Optional[str] = None
    retry_scheduled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "skipped": self.skipped,
            "notifications": [n.to_dict() for n in self.notifications],
            "deliveries": [d.to_dict() for d in self.deliveries],
            "error": self.error,
            "retry_scheduled": self.retry_scheduled,
        }


class RefreshScheduler:
    """
    Owns the refresh lock, the periodic timer and the single pending retry.

    Usage:
        scheduler = RefreshScheduler(store, orchestrator, snapshots, dispatcher)
        scheduler.start()
        outcome = await scheduler.refresh(user_initiated=True)
        await scheduler.stop()
    """

    def __init__(
        self,
        store: AlertsStore,
        orchestrator: FetchOrchestrator,
        snapshot_store: SnapshotStore,
        dispatcher: NotificationDispatcher,
        *,
        refresh_interval: float = 300.0,
        retry_delay: float = 30.0,
        radius_km: float = DEFAULT_RADIUS_KM,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.store = store
        self.orchestrator = orchestrator
        self.snapshot_store = snapshot_store
        self.dispatcher = dispatcher
        self.refresh_interval = refresh_interval
        self.retry_delay = retry_delay
        self.radius_km = radius_km
        self._sleep = sleep

        self._lock = asyncio.Lock()
        self._retry_task: Optional[asyncio.Task] = None
        self._periodic_task: Optional[asyncio.Task] = None
        self._cycle = 0

    # ── Introspection ──

    @property
    def is_refreshing(self) -> bool:
        return self._lock.locked()

    @property
    def pending_retry(self) -> Optional[asyncio.Task]:
        return self._retry_task

    @property
    def retry_pending(self) -> bool:
        return self._retry_task is not None and not self._retry_task.done()

    @property
    def periodic_running(self) -> bool:
        return self._periodic_task is not None and not self._periodic_task.done()

    # ═══════════════════════════════════════════════════════════════════════
    # Refresh cycle
    # ═══════════════════════════════════════════════════════════════════════

    async def refresh(self, user_initiated: bool = False) -> RefreshOutcome:
        if self._lock.locked():
            logger.info("Refresh already in flight, skipping trigger")
            return RefreshOutcome(success=False, skipped=True)

        async with self._lock:
            self._cycle += 1
            set_log_context(
                cycle_id=f"r{self._cycle:04d}",
                trigger="user" if user_initiated else "silent",
            )
            self.store.begin_refresh(user_initiated)
            try:
                return await self._run_cycle(user_initiated)
            except asyncio.CancelledError:
                self.store.abort_refresh()
                raise
            except Exception as exc:
                logger.exception("Refresh cycle crashed")
                if self.store.state == RefreshState.LOADING:
                    return self._handle_failure(str(exc), user_initiated)
                return RefreshOutcome(success=False, error=str(exc))

    async def _run_cycle(self, user_initiated: bool) -> RefreshOutcome:
        start = time.monotonic()
        try:
            snapshot = await self.orchestrator.fetch_all()
        except NetworkError as exc:
            logger.warning("Refresh failed: %s", exc.message, extra={"source": exc.source})
            return self._handle_failure(exc.message, user_initiated)
        except Exception as exc:
            logger.exception("Refresh crashed while fetching feeds")
            return self._handle_failure(str(exc), user_initiated)

        previous = await self.snapshot_store.load()
        notifications = find_new_nearby(
            snapshot.all_hazards(),
            previous,
            self.store.user_location,
            self.radius_km,
        )
        deliveries = await self.dispatcher.dispatch(notifications)

        self.store.commit_snapshot(snapshot)
        await self.snapshot_store.save(snapshot)
        self._cancel_retry()

        logger.info(
            "Refresh complete: %d earthquakes, %d alerts, %d notifications",
            len(snapshot.earthquakes), len(snapshot.alerts), len(notifications),
            extra={
                "notification_count": len(notifications),
                "duration_ms": round((time.monotonic() - start) * 1000, 1),
            },
        )
        return RefreshOutcome(
            success=True,
            notifications=notifications,
            deliveries=deliveries,
        )

    def _handle_failure(self, message: str, user_initiated: bool) -> RefreshOutcome:
        # Only user-initiated failures get a retry; a silent failure keeps
        # any retry already queued by an earlier user trigger.
        if user_initiated:
            self._schedule_retry()
        retry_scheduled = self.retry_pending
        self.store.record_failure(message, retry_scheduled=retry_scheduled)
        return RefreshOutcome(success=False, error=message, retry_scheduled=retry_scheduled)

    # ── Retry ──

    def _schedule_retry(self) -> None:
        self._cancel_retry()
        logger.info("Retrying in %.0fs", self.retry_delay, extra={"delay_s": self.retry_delay})
        self._retry_task = asyncio.create_task(self._retry_after(self.retry_delay))

    async def _retry_after(self, delay: float) -> None:
        await self._sleep(delay)
        if self._retry_task is asyncio.current_task():
            self._retry_task = None
        await asyncio.shield(self.refresh(user_initiated=False))

    def _cancel_retry(self) -> None:
        task, self._retry_task = self._retry_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self.store.cancel_retry()

    # ═══════════════════════════════════════════════════════════════════════
    # Periodic timer
    # ═══════════════════════════════════════════════════════════════════════

    def _should_poll(self) -> bool:
        return self.store.auto_refresh_enabled and self.store.user_location is not None

    async def _periodic_loop(self) -> None:
        while True:
            await self._sleep(self.refresh_interval)
            # a cycle that has started runs to completion even if the timer stops
            await asyncio.shield(self.refresh(user_initiated=False))

    def _start_periodic(self) -> None:
        self._stop_periodic()
        logger.info("Auto-refresh every %.0fs", self.refresh_interval)
        self._periodic_task = asyncio.create_task(self._periodic_loop())

    def _stop_periodic(self) -> None:
        task, self._periodic_task = self._periodic_task, None
        if task is not None and not task.done():
            task.cancel()

    def start(self) -> None:
        """Start the periodic timer if its conditions hold. Needs a running loop."""
        if self._should_poll() and not self.periodic_running:
            self._start_periodic()

    async def stop(self) -> None:
        """Cancel the timer and any pending retry, and wait for them to unwind."""
        tasks = [t for t in (self._periodic_task, self._retry_task) if t is not None]
        self._stop_periodic()
        self._cancel_retry()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        async with self._lock:
            pass

    # ── External inputs ──

    def set_user_location(self, location: Optional[UserLocation]) -> None:
        previous = self.store.user_location
        self.store.set_user_location(location)
        if not self._should_poll():
            self._stop_periodic()
        elif location != previous or not self.periodic_running:
            self._start_periodic()

    def set_auto_refresh(self, enabled: bool) -> None:
        self.store.set_auto_refresh(enabled)
        if not self._should_poll():
            self._stop_periodic()
        elif not self.periodic_running:
            self._start_periodic()
