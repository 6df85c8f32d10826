"""Real-time gateway — broadcast channel → connected browser sessions.

Learn: The gateway holds ONE broker subscription for the whole process and
fans envelopes out to per-connection asyncio queues. WebSocket handlers
drain their queue and send. The mapping from envelope variant to the
browser-facing message name lives here, in one `match`:

    account-changed  → client-update
    station-changed  → station-update
    session-changed  → charging-session-update (+ user room copy)
    payment-changed  → payment-update          (+ user room copy)
    stats-changed    → eco-stats-update

Entity changes also nudge dashboards with an eco-stats-update refresh hint,
since every entity write can move the headline numbers.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from evcharge.events.envelope import (
    AccountChanged,
    ChangeEnvelope,
    PaymentChanged,
    SessionChanged,
    StationChanged,
    StatsChanged,
    parse_envelope,
)
from evcharge.events.types import STATS_CHANGED
from evcharge.realtime.broker import Broker

logger = structlog.get_logger()

Route = tuple[str, Optional[str]]  # (message type, user room or None for everyone)


@dataclass(eq=False)
class ClientConnection:
    """One browser session's outbound queue."""
    queue: asyncio.Queue
    rooms: set[str] = field(default_factory=set)
    dropped: bool = False


def _room(user_id: Any) -> str:
    return f"user-{user_id}"


def routes_for(envelope: ChangeEnvelope) -> list[Route]:
    """Browser messages produced by one envelope."""
    stats_hint: Route = ("eco-stats-update", None)
    doc = envelope.full_document or {}

    match envelope:
        case AccountChanged():
            return [("client-update", None), stats_hint]
        case StationChanged():
            return [("station-update", None), stats_hint]
        case SessionChanged():
            routes = [("charging-session-update", None)]
            if doc.get("userId"):
                routes.append(("user-charging-session-update", _room(doc["userId"])))
            return routes + [stats_hint]
        case PaymentChanged():
            routes = [("payment-update", None)]
            if doc.get("userId"):
                routes.append(("user-payment-update", _room(doc["userId"])))
            return routes + [stats_hint]
        case StatsChanged():
            return [("eco-stats-update", None)]
    raise TypeError(f"Unhandled envelope type {type(envelope).__name__}")


class RealtimeGateway:
    """Relay broadcast-channel envelopes to connected clients."""

    def __init__(self, broker: Broker, channel: str, queue_size: int = 256):
        self.broker = broker
        self.channel = channel
        self.queue_size = queue_size
        self.connections: set[ClientConnection] = set()
        self.relayed = 0
        self.dropped = 0
        self._task: Optional[asyncio.Task] = None

    # ─── Connections ──────────────────────────────────────

    def connect(self, user_id: Optional[str] = None) -> ClientConnection:
        conn = ClientConnection(queue=asyncio.Queue(maxsize=self.queue_size))
        if user_id:
            conn.rooms.add(_room(user_id))
        self.connections.add(conn)
        return conn

    def join_room(self, conn: ClientConnection, user_id: str) -> None:
        conn.rooms.add(_room(user_id))
        logger.debug("gateway.room_joined", room=_room(user_id))

    def disconnect(self, conn: ClientConnection) -> None:
        self.connections.discard(conn)

    # ─── Relay ────────────────────────────────────────────

    def handle_message(self, raw: str) -> int:
        """Decode one broadcast message and enqueue it. Returns deliveries."""
        try:
            envelope = parse_envelope(raw)
        except ValidationError as e:
            logger.warning("gateway.bad_message", error=str(e))
            return 0

        wire = envelope.to_wire()
        delivered = 0
        for message_type, room in routes_for(envelope):
            if message_type == "eco-stats-update" and envelope.event != STATS_CHANGED:
                message = {"type": message_type, "data": {"event": STATS_CHANGED, "refresh": True}}
            else:
                message = {"type": message_type, "data": wire}
            delivered += self._deliver(message, room)
        self.relayed += 1
        return delivered

    def _deliver(self, message: dict, room: Optional[str]) -> int:
        delivered = 0
        slow: list[ClientConnection] = []
        for conn in self.connections:
            if room is not None and room not in conn.rooms:
                continue
            try:
                conn.queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                slow.append(conn)
        for conn in slow:
            self._drop(conn)
        return delivered

    def _drop(self, conn: ClientConnection) -> None:
        """Unregister a slow consumer and wake its sender with the None sentinel."""
        self.connections.discard(conn)
        conn.dropped = True
        while not conn.queue.empty():
            conn.queue.get_nowait()
        conn.queue.put_nowait(None)
        self.dropped += 1
        logger.info("gateway.slow_client_dropped", rooms=sorted(conn.rooms))

    # ─── Lifecycle ────────────────────────────────────────

    def start(self) -> Optional[asyncio.Task]:
        if not self.broker.is_available():
            logger.warning("gateway.broker_unavailable", channel=self.channel)
            return None
        self._task = asyncio.create_task(
            self.broker.subscribe(self.channel, self.handle_message),
            name="gateway-subscription",
        )
        logger.info("gateway.started", channel=self.channel)
        return self._task

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    def health(self) -> dict:
        return {
            "subscribed": self._task is not None and not self._task.done(),
            "connections": len(self.connections),
            "relayed": self.relayed,
            "dropped_clients": self.dropped,
        }
