"""
feed_client.py — Concurrent, retrying retrieval of both hazard feeds.

Fetches the seismic (USGS) and weather (NWS) GeoJSON feeds side by side
and turns them into one Snapshot, or fails as a whole.

Error Handling Strategy
========================
    Per attempt
        → bounded by FETCH_TIMEOUT_SECONDS (10s); expiry counts as a failure
        → transport errors, non-2xx responses and undecodable JSON count
          as failures too
    Per feed
        → up to FETCH_MAX_ATTEMPTS (3) attempts
        → linear backoff before attempt n+1: step × n  (1s, then 2s)
        → exhaustion raises NetworkError carrying the last cause
    Per refresh cycle
        → all-or-nothing: if either feed is exhausted the other feed's
          result is discarded and fetch_all() raises NetworkError

Timeline for a feed that never answers:

    attempt 1 ──(fail)── wait 1s ── attempt 2 ──(fail)── wait 2s ── attempt 3 ──(fail)── NetworkError
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from safespot.core.config import Settings, settings as default_settings
from safespot.core.errors import NetworkError
from safespot.hazards.classifier import classify_feed
from safespot.hazards.models import FeedSource, Snapshot

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class FetchOrchestrator:
    """
    Retrieves both feeds concurrently with per-feed timeout/retry/backoff.

    Usage:
        orchestrator = FetchOrchestrator()
        snapshot = await orchestrator.fetch_all()
        await orchestrator.close()

    ``client``, ``transport`` and ``sleep`` are injectable so tests can supply
    an ``httpx.MockTransport`` and observe backoff delays without waiting.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.config = config or default_settings
        self._http_client = client
        self._owns_client = client is None
        self._transport = transport
        self._sleep = sleep
        self.urls: Dict[FeedSource, str] = {
            FeedSource.SEISMIC: self.config.SEISMIC_FEED_URL,
            FeedSource.WEATHER: self.config.WEATHER_FEED_URL,
        }

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.FETCH_TIMEOUT_SECONDS),
                headers={
                    "Accept": "application/geo+json, application/json",
                    "Cache-Control": "no-cache",
                    "User-Agent": self.config.FEED_USER_AGENT,
                },
                follow_redirects=True,
                transport=self._transport,
            )
            self._owns_client = True
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client (only if this orchestrator created it)."""
        if self._owns_client and self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    # ── Single attempt ──

    async def _get_json(self, url: str) -> Dict[str, Any]:
        client = await self._get_client()
        response = await client.get(url)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
        return data

    # ── One feed, with retry ──

    async def fetch_feed(self, source: FeedSource) -> List[Dict[str, Any]]:
        """
        Raw GeoJSON features of one feed.

        Raises
        ------
        NetworkError
            After FETCH_MAX_ATTEMPTS failed attempts.
        """
        url = self.urls[source]
        max_attempts = self.config.FETCH_MAX_ATTEMPTS
        timeout = self.config.FETCH_TIMEOUT_SECONDS
        last_error: Optional[BaseException] = None

        for attempt in range(1, max_attempts + 1):
            try:
                data = await asyncio.wait_for(self._get_json(url), timeout=timeout)
                features = data.get("features") or []
                logger.debug(
                    "Fetched %d %s features (attempt %d)",
                    len(features), source.value, attempt,
                    extra={"source": source.value, "attempt": attempt},
                )
                return features
            except asyncio.TimeoutError:
                last_error = TimeoutError(f"No response within {timeout:g}s")
            except (httpx.HTTPError, ValueError) as exc:
                last_error = exc

            if attempt < max_attempts:
                delay = self.config.FETCH_BACKOFF_STEP_SECONDS * attempt
                logger.warning(
                    "Retry %d/%d for %s feed after %.1fs — %s",
                    attempt, max_attempts - 1, source.value, delay, last_error,
                    extra={"source": source.value, "attempt": attempt, "delay_s": delay},
                )
                await self._sleep(delay)

        logger.error(
            "%s feed failed after %d attempts: %s",
            source.value, max_attempts, last_error,
            extra={"source": source.value},
        )
        raise NetworkError(source.value, cause=last_error)

    # ── Both feeds ──

    async def fetch_all(self) -> Snapshot:
        """
        Fetch both feeds concurrently and build a Snapshot.

        Raises
        ------
        NetworkError
            If either feed is exhausted; no partial snapshot is produced.
        """
        start = time.monotonic()
        seismic, weather = await asyncio.gather(
            self.fetch_feed(FeedSource.SEISMIC),
            self.fetch_feed(FeedSource.WEATHER),
            return_exceptions=True,
        )

        for result in (seismic, weather):
            if isinstance(result, BaseException):
                raise result

        snapshot = Snapshot(
            earthquakes=classify_feed(seismic, FeedSource.SEISMIC),
            alerts=classify_feed(weather, FeedSource.WEATHER),
            fetched_at=datetime.now(timezone.utc),
        )
        logger.info(
            "Fetched %d earthquakes and %d weather alerts",
            len(snapshot.earthquakes), len(snapshot.alerts),
            extra={"duration_ms": int((time.monotonic() - start) * 1000)},
        )
        return snapshot
