"""EV Charge — real-time propagation for the charging dashboards.

Watches the charging app's MongoDB collections, turns every change into
a canonical envelope, and fans it out over Redis to browser sessions.
Also keeps the cached dashboard stats fresh.
"""

__version__ = "0.1.0"
