"""Fan-out publisher — envelopes onto the shared broadcast channel.

Learn: Every domain event goes to ONE channel. The gateway demultiplexes on
the envelope's `event` field, so adding a tracked collection never changes
what the gateway subscribes to.

Publishing is best-effort: failures are logged, never retried here, and
never raised back into the watcher that produced the envelope.
"""

from typing import Optional

import structlog

from evcharge.events.envelope import ChangeEnvelope
from evcharge.metrics import PipelineStats
from evcharge.realtime.broker import Broker

logger = structlog.get_logger()


class FanoutPublisher:
    """Serialize envelopes and publish them through the broker."""

    def __init__(
        self,
        broker: Broker,
        channel: str,
        stats: Optional[PipelineStats] = None,
    ):
        self.broker = broker
        self.channel = channel
        self.stats = stats or PipelineStats()

    async def publish(self, envelope: ChangeEnvelope) -> int:
        """Publish one envelope. Returns the number of receivers (0 on failure)."""
        try:
            receivers = await self.broker.publish(self.channel, envelope.to_json())
        except Exception:
            logger.exception(
                "publisher.publish_failed",
                event=envelope.event,
                document_key=envelope.document_key,
            )
            self.stats.errors += 1
            return 0

        if not self.broker.is_available():
            # broker no-op: nothing went out
            self.stats.unpublished += 1
            return 0

        self.stats.envelopes_published += 1
        self.stats.delivered += receivers
        logger.debug(
            "publisher.published",
            event=envelope.event,
            operation=envelope.operation_type,
            document_key=envelope.document_key,
            receivers=receivers,
        )
        return receivers
