"""Change normalizer — raw MongoDB change documents → envelopes.

Learn: Pure mapping, no I/O. A change stream document looks like:

    {"operationType": "update",
     "documentKey": {"_id": ObjectId(...)},
     "fullDocument": {...},                     # with updateLookup
     "updateDescription": {"updatedFields": {...}, "removedFields": [...]}}

The envelope must be self-contained and transport-agnostic, so every BSON
identifier becomes a string and `_id` is exposed as `id`.
"""

import uuid
from datetime import datetime
from typing import Any, Mapping, Optional

from bson import ObjectId
from bson.decimal128 import Decimal128

from evcharge.errors import ChangeNormalizationError, UnknownCollectionError
from evcharge.events.envelope import ChangeEnvelope, build_envelope
from evcharge.events.types import COLLECTION_EVENTS, DELETE, OPERATION_TYPES, UPDATE


def event_for(collection: str) -> str:
    """Canonical event tag for a tracked collection."""
    try:
        return COLLECTION_EVENTS[collection]
    except KeyError:
        raise UnknownCollectionError(collection) from None


def coerce_ids(value: Any) -> Any:
    """Recursively turn BSON identifier types into strings."""
    if isinstance(value, (ObjectId, uuid.UUID, Decimal128)):
        return str(value)
    if isinstance(value, Mapping):
        return {k: coerce_ids(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [coerce_ids(v) for v in value]
    return value


def _public_document(doc: Mapping[str, Any], key: str) -> dict[str, Any]:
    body = coerce_ids({k: v for k, v in doc.items() if k != "_id"})
    body["id"] = key
    return body


def normalize(
    collection: str,
    change: Mapping[str, Any],
    now: Optional[datetime] = None,
) -> ChangeEnvelope:
    """Map one change notification from `collection` to its envelope.

    Raises UnknownCollectionError for untracked collections and
    ChangeNormalizationError for operations the envelope can't express.
    """
    event = event_for(collection)

    operation_type = change.get("operationType")
    if operation_type not in OPERATION_TYPES:
        raise ChangeNormalizationError(
            f"Unsupported operation {operation_type!r} on {collection}"
        )

    key_doc = change.get("documentKey") or {}
    if "_id" not in key_doc:
        raise ChangeNormalizationError(f"Change on {collection} has no documentKey")
    key = str(coerce_ids(key_doc["_id"]))

    full_document = None
    if operation_type != DELETE:
        doc = change.get("fullDocument")
        if doc is None and operation_type == UPDATE:
            # updateLookup found nothing (deleted since); ship what changed
            doc = (change.get("updateDescription") or {}).get("updatedFields") or {}
        if doc is None:
            raise ChangeNormalizationError(
                f"{operation_type} on {collection} arrived without fullDocument"
            )
        full_document = _public_document(doc, key)

    return build_envelope(
        event,
        operation_type,
        key,
        full_document=full_document,
        timestamp=now,
    )
