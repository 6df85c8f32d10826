"""In-memory pipeline counters.

Learn: One PipelineStats instance is created per process by the context
and passed to the watchers and the publisher. Nothing here is global.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class PipelineStats:
    """Runtime statistics for monitoring."""
    changes_received: int = 0
    envelopes_published: int = 0
    unpublished: int = 0
    delivered: int = 0
    skipped: int = 0
    errors: int = 0
    started_at: Optional[datetime] = None

    def as_dict(self) -> dict:
        return {
            "changes_received": self.changes_received,
            "envelopes_published": self.envelopes_published,
            "unpublished": self.unpublished,
            "delivered": self.delivered,
            "skipped": self.skipped,
            "errors": self.errors,
            "started_at": (
                self.started_at.isoformat() if self.started_at else None
            ),
        }
