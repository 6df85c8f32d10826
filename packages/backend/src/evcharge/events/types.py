"""Event type constants and the tracked-collection table.

Learn: Centralizing event tags as constants prevents typos and makes the
wire contract discoverable. Browser-facing code switches on these strings,
so renaming one is a breaking change.
"""

# ─── Canonical event tags (wire contract) ────────────────

ACCOUNT_CHANGED = "account-changed"
STATION_CHANGED = "station-changed"
SESSION_CHANGED = "session-changed"
PAYMENT_CHANGED = "payment-changed"
STATS_CHANGED = "stats-changed"

EVENT_TAGS = (
    ACCOUNT_CHANGED,
    STATION_CHANGED,
    SESSION_CHANGED,
    PAYMENT_CHANGED,
    STATS_CHANGED,
)

# ─── Store operation taxonomy ────────────────────────────

INSERT = "insert"
UPDATE = "update"
DELETE = "delete"
REPLACE = "replace"

OPERATION_TYPES = (INSERT, UPDATE, DELETE, REPLACE)

# ─── Tracked collections ─────────────────────────────────

COLLECTION_EVENTS = {
    "clients": ACCOUNT_CHANGED,
    "stations": STATION_CHANGED,
    "charging_sessions": SESSION_CHANGED,
    "payments": PAYMENT_CHANGED,
    "eco_stats": STATS_CHANGED,
}
