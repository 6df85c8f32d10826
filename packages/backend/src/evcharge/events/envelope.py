"""Change envelope — the canonical, transport-agnostic change event.

Learn: The envelope is a tagged union. Each tracked collection gets its own
model class whose `event` field is a fixed literal, and pydantic picks the
right class from that field when decoding. Consumers `match` on the class
instead of probing dict keys.

Wire form (camelCase, what the browser sees):

    {"event": "station-changed", "operationType": "insert",
     "documentKey": "665f...", "fullDocument": {...},
     "timestamp": "2026-10-19T10:00:00Z"}

`fullDocument` is left out entirely for deletes.
"""

import json
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

from evcharge.events.types import (
    ACCOUNT_CHANGED,
    DELETE,
    PAYMENT_CHANGED,
    SESSION_CHANGED,
    STATION_CHANGED,
    STATS_CHANGED,
)

OperationType = Literal["insert", "update", "delete", "replace"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Envelope(BaseModel):
    """Fields shared by every envelope variant."""

    operation_type: OperationType = Field(alias="operationType")
    document_key: str = Field(alias="documentKey")
    full_document: Optional[dict[str, Any]] = Field(default=None, alias="fullDocument")
    timestamp: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @model_validator(mode="after")
    def check_full_document(self):
        """Deletes never carry a body; every other operation must."""
        if self.operation_type == DELETE and self.full_document is not None:
            raise ValueError("delete envelopes must not carry fullDocument")
        if self.operation_type != DELETE and self.full_document is None:
            raise ValueError(f"{self.operation_type} envelopes require fullDocument")
        return self

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict with wire field names."""
        exclude = {"full_document"} if self.full_document is None else None
        return self.model_dump(mode="json", by_alias=True, exclude=exclude)

    def to_json(self) -> str:
        return json.dumps(self.to_wire())


class AccountChanged(_Envelope):
    event: Literal["account-changed"] = ACCOUNT_CHANGED


class StationChanged(_Envelope):
    event: Literal["station-changed"] = STATION_CHANGED


class SessionChanged(_Envelope):
    event: Literal["session-changed"] = SESSION_CHANGED


class PaymentChanged(_Envelope):
    event: Literal["payment-changed"] = PAYMENT_CHANGED


class StatsChanged(_Envelope):
    event: Literal["stats-changed"] = STATS_CHANGED


ChangeEnvelope = Annotated[
    Union[AccountChanged, StationChanged, SessionChanged, PaymentChanged, StatsChanged],
    Field(discriminator="event"),
]

ENVELOPE_TYPES: dict[str, type[_Envelope]] = {
    ACCOUNT_CHANGED: AccountChanged,
    STATION_CHANGED: StationChanged,
    SESSION_CHANGED: SessionChanged,
    PAYMENT_CHANGED: PaymentChanged,
    STATS_CHANGED: StatsChanged,
}

_adapter: TypeAdapter = TypeAdapter(ChangeEnvelope)


def build_envelope(
    event: str,
    operation_type: str,
    document_key: str,
    full_document: Optional[dict[str, Any]] = None,
    timestamp: Optional[datetime] = None,
) -> ChangeEnvelope:
    """Construct the variant for `event`. Raises KeyError for unknown tags."""
    model = ENVELOPE_TYPES[event]
    return model(
        operation_type=operation_type,
        document_key=document_key,
        full_document=full_document,
        timestamp=timestamp or utcnow(),
    )


def parse_envelope(raw: Union[str, bytes]) -> ChangeEnvelope:
    """Decode a published message back into its envelope variant.

    Raises pydantic.ValidationError for anything that isn't an envelope.
    """
    return _adapter.validate_json(raw)
