"""Dashboard stats recomputation — periodic job feeding cache + broadcast.

Learn: The admin dashboard's headline numbers (users, active stations,
locations, revenue) are expensive enough that we don't want every page
load to count collections. This job:

  idle → computing → idle

1. Reads each metric from MongoDB, every read bounded by a timeout
2. Writes the snapshot to Redis with a TTL longer than the interval,
   so one missed cycle serves slightly-stale stats instead of a miss
3. Publishes a stats-changed envelope on the shared channel

A failed read aborts the whole cycle. Nothing is written, so the previous
snapshot stays visible. Failures never escape the periodic loop.
"""

import asyncio
import json
from typing import Any, Optional

import structlog
from pydantic import TypeAdapter, ValidationError

from evcharge.events.envelope import build_envelope
from evcharge.events.types import REPLACE, STATS_CHANGED
from evcharge.realtime.broker import Broker
from evcharge.realtime.publisher import FanoutPublisher
from evcharge.stats.models import StatMetric, build_metrics

logger = structlog.get_logger()

_metrics_adapter = TypeAdapter(list[StatMetric])


class StatsRecomputeJob:
    """Recompute, cache, and publish the dashboard stats snapshot."""

    def __init__(
        self,
        db: Any,
        broker: Broker,
        publisher: FanoutPublisher,
        cache_key: str = "dashboard_stats",
        interval: float = 30.0,
        cache_ttl: int = 300,
        read_timeout: float = 3.0,
    ):
        self.db = db
        self.broker = broker
        self.publisher = publisher
        self.cache_key = cache_key
        self.interval = interval
        self.cache_ttl = cache_ttl
        self.read_timeout = read_timeout
        self.state = "idle"
        self.cycles = 0
        self.failures = 0
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._running = False

    # ─── Reads ────────────────────────────────────────────

    async def _read(self, coro):
        return await asyncio.wait_for(coro, timeout=self.read_timeout)

    async def _total_revenue(self) -> float:
        cursor = await self.db["payments"].aggregate([
            {"$match": {"status": "completed"}},
            {"$group": {"_id": None, "total": {"$sum": "$amount"}}},
        ])
        rows = await cursor.to_list(length=1)
        return rows[0]["total"] if rows else 0

    async def _collect(self) -> list[StatMetric]:
        total_users = await self._read(self.db["clients"].count_documents({}))
        active_stations = await self._read(
            self.db["stations"].count_documents({"status": "active"})
        )
        locations = await self._read(self.db["stations"].distinct("location"))
        revenue = await self._read(self._total_revenue())
        return build_metrics(
            users=total_users,
            stations=active_stations,
            locations=len(locations),
            revenue=revenue,
        )

    # ─── One cycle ────────────────────────────────────────

    async def run_once(self) -> Optional[list[StatMetric]]:
        """Run one recomputation. Returns the stats, or None if the cycle failed."""
        async with self._lock:
            self.state = "computing"
            try:
                return await self._cycle()
            finally:
                self.state = "idle"

    async def _cycle(self) -> Optional[list[StatMetric]]:
        self.cycles += 1
        try:
            stats = await self._collect()
        except asyncio.TimeoutError:
            self.failures += 1
            logger.error("stats.cycle_failed", error="read timeout", timeout=self.read_timeout)
            return None
        except Exception as e:
            self.failures += 1
            logger.error("stats.cycle_failed", error=str(e))
            return None

        if not self.broker.is_available():
            logger.info("stats.cache_skipped", reason="broker unavailable")
            return stats

        payload = [m.model_dump(mode="json") for m in stats]
        await self.broker.set_with_expiry(self.cache_key, self.cache_ttl, json.dumps(payload))
        await self.publisher.publish(
            build_envelope(
                STATS_CHANGED,
                REPLACE,
                self.cache_key,
                full_document={"id": self.cache_key, "stats": payload},
            )
        )
        logger.info("stats.updated", metrics=len(stats))
        return stats

    async def cached_stats(self) -> Optional[list[StatMetric]]:
        """Last cached snapshot, or None on a miss / unreadable entry."""
        raw = await self.broker.get(self.cache_key)
        if raw is None:
            return None
        try:
            return _metrics_adapter.validate_json(raw)
        except ValidationError as e:
            logger.warning("stats.cache_corrupt", key=self.cache_key, error=str(e))
            return None

    # ─── Periodic scheduling ──────────────────────────────

    async def run_loop(self) -> None:
        """Run immediately, then every `interval` seconds until stopped."""
        self._running = True
        logger.info("stats.loop_started", interval=self.interval)
        while self._running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("stats.loop_error")
            try:
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                break

    def start(self) -> asyncio.Task:
        self._task = asyncio.create_task(self.run_loop(), name="stats-recompute")
        return self._task

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
