"""Health check endpoint.

Learn: Reports whether the server is up and how each dependency is doing:
MongoDB reachability, broker availability, and per-collection watcher
state. Any unhealthy dependency makes the overall status "degraded":
the service keeps running, real-time delivery is just partial.
"""

from fastapi import APIRouter, Depends

from evcharge import __version__
from evcharge.context import RealtimeContext, get_context

router = APIRouter()


@router.get("/health")
async def health_check(ctx: RealtimeContext = Depends(get_context)):
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    # Check MongoDB
    try:
        await ctx.db.command("ping")
        checks["mongodb"] = "ok"
    except Exception as e:
        checks["mongodb"] = f"error: {e}"

    # Check Redis
    if not ctx.broker.is_available():
        checks["redis"] = "unavailable"
    elif await ctx.broker.ping():
        checks["redis"] = "ok"
    else:
        checks["redis"] = "error: ping failed"

    checks["watchers"] = "ok" if ctx.capture.healthy else "degraded"

    status = "healthy" if all(
        v == "ok" for k, v in checks.items() if k != "version"
    ) else "degraded"

    return {
        "status": status,
        **checks,
        "collections": ctx.capture.health(),
    }
