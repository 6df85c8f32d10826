"""Change capture — one MongoDB change stream per tracked collection.

Learn: Each CollectionWatcher opens `collection.watch()` with
full_document="updateLookup" so updates arrive with the whole post-change
record. A single consumer task per watcher iterates the stream and awaits
normalize → publish for each change before taking the next one. That keeps
the store's per-collection order; there is no ordering across collections.

Failure isolation:
- A stream error marks THAT watcher failed. Other watchers keep running.
- Stream end is not an error. The watcher logs it and goes inert.
- Nothing reconnects automatically. ChangeCapture.restart() is the manual
  re-initialization hook.
"""

import asyncio
from enum import Enum
from typing import Any, Optional

import structlog

from evcharge.errors import ChangeNormalizationError, UnknownCollectionError
from evcharge.events.normalizer import normalize
from evcharge.events.types import COLLECTION_EVENTS, OPERATION_TYPES
from evcharge.metrics import PipelineStats
from evcharge.realtime.publisher import FanoutPublisher

logger = structlog.get_logger()


class WatcherState(str, Enum):
    PENDING = "pending"
    OPEN = "open"
    FAILED = "failed"
    CLOSED = "closed"


class CollectionWatcher:
    """Change stream + consumer task for one collection."""

    def __init__(
        self,
        name: str,
        collection: Any,
        publisher: FanoutPublisher,
        stats: PipelineStats,
    ):
        self.name = name
        self.collection = collection
        self.publisher = publisher
        self.stats = stats
        self.state = WatcherState.PENDING
        self.changes = 0
        self.last_error: Optional[str] = None
        self._stream = None
        self._task: Optional[asyncio.Task] = None

    async def open(self) -> None:
        """Open the change stream and start consuming it.

        Raises whatever the store raises; ChangeCapture records the failure.
        """
        self._stream = await self.collection.watch([], full_document="updateLookup")
        self.state = WatcherState.OPEN
        self.last_error = None
        self._task = asyncio.create_task(self._consume(), name=f"watch:{self.name}")
        logger.info("capture.watcher_opened", collection=self.name)

    async def _consume(self) -> None:
        try:
            async for change in self._stream:
                await self._on_change(change)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._on_error(e)
        else:
            self._on_stream_end()

    async def _on_change(self, change: dict) -> None:
        self.changes += 1
        self.stats.changes_received += 1

        operation = change.get("operationType")
        if operation not in OPERATION_TYPES:
            # invalidate/drop/rename etc. have no envelope form
            logger.info(
                "capture.change_skipped", collection=self.name, operation=operation
            )
            self.stats.skipped += 1
            return

        try:
            envelope = normalize(self.name, change)
        except ChangeNormalizationError as e:
            logger.warning("capture.change_malformed", collection=self.name, error=str(e))
            self.stats.errors += 1
            return

        logger.debug(
            "capture.change_detected",
            collection=self.name,
            operation=operation,
            document_key=envelope.document_key,
        )
        await self.publisher.publish(envelope)

    def _on_error(self, error: Exception) -> None:
        self.state = WatcherState.FAILED
        self.last_error = str(error)
        self.stats.errors += 1
        logger.error(
            "capture.stream_error",
            collection=self.name,
            error=str(error),
            code=getattr(error, "code", None),
        )

    def _on_stream_end(self) -> None:
        self.state = WatcherState.CLOSED
        logger.info("capture.stream_ended", collection=self.name)

    async def join(self) -> None:
        """Wait for the consumer task to finish (error, end, or close)."""
        if self._task:
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def close(self) -> None:
        """Stop consuming and close the store-side cursor."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        if self._stream is not None:
            try:
                await self._stream.close()
            except Exception as e:
                logger.warning("capture.close_failed", collection=self.name, error=str(e))
            self._stream = None
        if self.state != WatcherState.FAILED:
            self.state = WatcherState.CLOSED
        logger.info("capture.watcher_closed", collection=self.name)

    def health(self) -> dict:
        return {
            "state": self.state.value,
            "changes": self.changes,
            "last_error": self.last_error,
        }


class ChangeCapture:
    """Registry of watchers: open them, inspect them, restart one.

    Learn: Unknown collection names are a programming error. In development
    they raise immediately; elsewhere they are logged and left out so one
    typo in config doesn't take real-time delivery down for everything else.
    """

    def __init__(
        self,
        db: Any,
        publisher: FanoutPublisher,
        collections: list[str],
        stats: Optional[PipelineStats] = None,
        strict: bool = True,
    ):
        self.db = db
        self.publisher = publisher
        self.stats = stats or publisher.stats
        self.watchers: dict[str, CollectionWatcher] = {}

        for name in collections:
            if name not in COLLECTION_EVENTS:
                if strict:
                    raise UnknownCollectionError(name)
                logger.error("capture.unknown_collection", collection=name)
                continue
            self.watchers[name] = self._make_watcher(name)

    def _make_watcher(self, name: str) -> CollectionWatcher:
        return CollectionWatcher(name, self.db[name], self.publisher, self.stats)

    async def _open(self, watcher: CollectionWatcher) -> bool:
        try:
            await watcher.open()
            return True
        except Exception as e:
            watcher.state = WatcherState.FAILED
            watcher.last_error = str(e)
            self.stats.errors += 1
            logger.error("capture.watcher_open_failed", collection=watcher.name, error=str(e))
            return False

    async def initialize(self) -> bool:
        """Open every watcher. True only if all of them opened."""
        results = [await self._open(w) for w in self.watchers.values()]
        ok = all(results)
        if ok:
            logger.info("capture.initialized", collections=list(self.watchers))
        else:
            logger.warning(
                "capture.partially_initialized",
                failed=[w.name for w in self.watchers.values() if w.state == WatcherState.FAILED],
            )
        return ok

    async def restart(self, name: str) -> bool:
        """Close and reopen one watcher. Raises KeyError for untracked names."""
        old = self.watchers[name]
        await old.close()
        watcher = self._make_watcher(name)
        self.watchers[name] = watcher
        return await self._open(watcher)

    async def join(self) -> None:
        await asyncio.gather(*(w.join() for w in self.watchers.values()))

    async def close(self) -> None:
        await asyncio.gather(*(w.close() for w in self.watchers.values()))

    def health(self) -> dict[str, dict]:
        return {name: w.health() for name, w in self.watchers.items()}

    @property
    def healthy(self) -> bool:
        return bool(self.watchers) and all(
            w.state == WatcherState.OPEN for w in self.watchers.values()
        )
