"""In-memory stand-ins for MongoDB collections, change streams and Redis.

Learn: FakeCollection behaves like a tiny collection with change streams:
insert_one / update_one / delete_one push the same change documents
MongoDB would (with updateLookup) onto every open stream. Call
end_streams() and then join the watchers to process everything
deterministically.
"""

import asyncio
import json
from typing import Any, Optional

from bson import ObjectId

from evcharge.realtime.broker import Broker

_END = object()


class FakeChangeStream:
    """Async-iterable change stream fed from a queue."""

    def __init__(self, items=(), end: bool = False):
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False
        for item in items:
            self.push(item)
        if end:
            self.end()

    def push(self, item) -> None:
        """Queue a change document, or an exception to raise from the stream."""
        self.queue.put_nowait(item)

    def end(self) -> None:
        self.queue.put_nowait(_END)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self.queue.get()
        if item is _END:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True


class FakeCursor:
    def __init__(self, rows: list[dict]):
        self.rows = rows

    async def to_list(self, length: Optional[int] = None) -> list[dict]:
        return self.rows if length is None else self.rows[:length]


class FakeCollection:
    def __init__(self, name: str):
        self.name = name
        self.docs: dict[Any, dict] = {}
        self.streams: list[FakeChangeStream] = []
        self.watch_calls: list[dict] = []
        self.watch_error: Optional[Exception] = None
        self.read_error: Optional[Exception] = None
        self.read_delay: float = 0

    # ─── Change streams ───────────────────────────────────

    async def watch(self, pipeline=None, **kwargs) -> FakeChangeStream:
        self.watch_calls.append({"pipeline": pipeline, **kwargs})
        if self.watch_error is not None:
            raise self.watch_error
        stream = FakeChangeStream()
        self.streams.append(stream)
        return stream

    def emit(self, change) -> None:
        for stream in self.streams:
            stream.push(change)

    def end_streams(self) -> None:
        for stream in self.streams:
            stream.end()

    # ─── Writes (emit change events) ──────────────────────

    def insert_one(self, doc: dict) -> ObjectId:
        doc = {"_id": ObjectId(), **doc}
        self.docs[doc["_id"]] = doc
        self.emit({
            "operationType": "insert",
            "documentKey": {"_id": doc["_id"]},
            "fullDocument": dict(doc),
        })
        return doc["_id"]

    def update_one(self, _id, fields: dict) -> None:
        self.docs[_id].update(fields)
        self.emit({
            "operationType": "update",
            "documentKey": {"_id": _id},
            "fullDocument": dict(self.docs[_id]),
            "updateDescription": {"updatedFields": fields, "removedFields": []},
        })

    def delete_one(self, _id) -> None:
        self.docs.pop(_id)
        self.emit({"operationType": "delete", "documentKey": {"_id": _id}})

    # ─── Reads ────────────────────────────────────────────

    def _match(self, query: dict) -> list[dict]:
        return [
            d for d in self.docs.values()
            if all(d.get(k) == v for k, v in query.items())
        ]

    async def _before_read(self) -> None:
        if self.read_delay:
            await asyncio.sleep(self.read_delay)
        if self.read_error is not None:
            raise self.read_error

    async def count_documents(self, query: dict) -> int:
        await self._before_read()
        return len(self._match(query))

    async def distinct(self, key: str) -> list:
        await self._before_read()
        return list({d[key] for d in self.docs.values() if key in d})

    async def aggregate(self, pipeline: list[dict]) -> FakeCursor:
        # Supports the $match + $group/$sum shape the stats job uses
        await self._before_read()
        match = pipeline[0]["$match"]
        field = pipeline[1]["$group"]["total"]["$sum"].lstrip("$")
        rows = self._match(match)
        if not rows:
            return FakeCursor([])
        return FakeCursor([{"_id": None, "total": sum(d.get(field, 0) for d in rows)}])


class FakeDatabase:
    def __init__(self):
        self.collections: dict[str, FakeCollection] = {}
        self.ping_error: Optional[Exception] = None

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]

    async def command(self, name: str):
        if self.ping_error is not None:
            raise self.ping_error
        return {"ok": 1}


class FakeBroker(Broker):
    """Redis stand-in with a working in-process pub/sub."""

    def __init__(self, available: bool = True):
        self.available = available
        self.cache: dict[str, str] = {}
        self.sets: list[tuple[str, int, str]] = []
        self.published: list[tuple[str, str]] = []
        self.closed = False
        self._handlers: dict[str, list] = {}

    def is_available(self) -> bool:
        return self.available

    async def get(self, key: str) -> Optional[str]:
        return self.cache.get(key) if self.available else None

    async def set_with_expiry(self, key: str, ttl_seconds: int, value: str) -> bool:
        if not self.available:
            return False
        self.sets.append((key, ttl_seconds, value))
        self.cache[key] = value
        return True

    async def publish(self, channel: str, message: str) -> int:
        if not self.available:
            return 0
        self.published.append((channel, message))
        handlers = list(self._handlers.get(channel, []))
        for handler in handlers:
            handler(message)
        return len(handlers)

    async def subscribe(self, channel: str, handler) -> None:
        self._handlers.setdefault(channel, []).append(handler)
        try:
            await asyncio.Event().wait()
        finally:
            self._handlers[channel].remove(handler)

    async def ping(self) -> bool:
        return self.available

    async def close(self) -> None:
        self.closed = True

    def envelopes(self, channel: Optional[str] = None) -> list[dict]:
        return [
            json.loads(message)
            for ch, message in self.published
            if channel is None or ch == channel
        ]
