"""Pipeline context — the one place components get wired together.

Learn: Instead of module-level Redis/Mongo singletons, the entry point
(the FastAPI lifespan or the standalone pipeline process) calls
build_context() once and owns the result. Every component receives its
collaborators through its constructor, which is also what makes them
testable with in-memory fakes.

Shutdown order matters: stop producing (stats job, watchers) before
closing the clients they use.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from fastapi import Request, WebSocket
from pymongo import AsyncMongoClient

from evcharge.capture.watchers import ChangeCapture
from evcharge.config import Settings
from evcharge.errors import CaptureStartupError
from evcharge.metrics import PipelineStats
from evcharge.realtime.broker import Broker, connect_broker
from evcharge.realtime.gateway import RealtimeGateway
from evcharge.realtime.publisher import FanoutPublisher
from evcharge.stats.job import StatsRecomputeJob

logger = structlog.get_logger()


@dataclass
class RealtimeContext:
    """Everything the pipeline needs, built once per process."""
    settings: Settings
    db: Any
    broker: Broker
    publisher: FanoutPublisher
    capture: ChangeCapture
    stats_job: StatsRecomputeJob
    gateway: RealtimeGateway
    stats: PipelineStats = field(default_factory=PipelineStats)
    mongo_client: Optional[AsyncMongoClient] = None

    async def start(self, with_gateway: bool = True) -> bool:
        """Open watchers, start the stats loop and (optionally) the gateway.

        Returns whether every watcher opened. Raises CaptureStartupError when
        settings.require_all_watchers is set and some did not.
        """
        self.stats.started_at = datetime.now(timezone.utc)
        ok = await self.capture.initialize()
        if not ok and self.settings.require_all_watchers:
            raise CaptureStartupError(
                f"Watchers failed to open: {self.capture.health()}"
            )
        self.stats_job.start()
        if with_gateway:
            self.gateway.start()
        return ok

    async def close(self) -> None:
        await self.stats_job.stop()
        await self.gateway.stop()
        await self.capture.close()
        await self.broker.close()
        if self.mongo_client is not None:
            await self.mongo_client.close()
        logger.info("context.closed", stats=self.stats.as_dict())


def assemble_context(settings: Settings, db: Any, broker: Broker, **extra) -> RealtimeContext:
    """Wire components around an existing database handle and broker."""
    stats = PipelineStats()
    publisher = FanoutPublisher(broker, settings.broadcast_channel, stats)
    capture = ChangeCapture(
        db,
        publisher,
        settings.tracked_collections,
        stats=stats,
        strict=settings.is_development,
    )
    stats_job = StatsRecomputeJob(
        db,
        broker,
        publisher,
        cache_key=settings.stats_cache_key,
        interval=settings.stats_interval_seconds,
        cache_ttl=settings.stats_cache_ttl_seconds,
        read_timeout=settings.stats_read_timeout_seconds,
    )
    gateway = RealtimeGateway(broker, settings.broadcast_channel)
    return RealtimeContext(
        settings=settings,
        db=db,
        broker=broker,
        publisher=publisher,
        capture=capture,
        stats_job=stats_job,
        gateway=gateway,
        stats=stats,
        **extra,
    )


async def build_context(settings: Settings) -> RealtimeContext:
    """Connect to MongoDB and Redis and assemble the pipeline."""
    client = AsyncMongoClient(
        settings.mongodb_url,
        serverSelectionTimeoutMS=settings.mongodb_server_selection_timeout_ms,
        tz_aware=True,
    )
    broker = await connect_broker(
        settings.redis_url, timeout=settings.redis_connect_timeout_seconds
    )
    return assemble_context(
        settings,
        client[settings.mongodb_database],
        broker,
        mongo_client=client,
    )


def get_context(request: Request) -> RealtimeContext:
    """FastAPI dependency: the context built by the app lifespan."""
    return request.app.state.context


def get_ws_context(websocket: WebSocket) -> RealtimeContext:
    return websocket.app.state.context
