"""Dashboard stats API — cached read and manual recompute trigger.

Learn: GET /dashboard/stats serves the Redis snapshot the periodic job
maintains and only recomputes on a cache miss. /update-stats runs the job
synchronously, which is how operators warm the cache by hand.
"""

from fastapi import APIRouter, Depends, HTTPException

from evcharge.context import RealtimeContext, get_context
from evcharge.stats.models import StatMetric

router = APIRouter()


@router.get("/dashboard/stats", response_model=list[StatMetric])
async def get_dashboard_stats(ctx: RealtimeContext = Depends(get_context)):
    """Cached dashboard stats, recomputed on a cache miss."""
    stats = await ctx.stats_job.cached_stats()
    if stats is None:
        stats = await ctx.stats_job.run_once()
    if stats is None:
        raise HTTPException(status_code=500, detail="Failed to fetch dashboard stats")
    return stats


@router.api_route("/update-stats", methods=["GET", "POST"])
async def update_stats(ctx: RealtimeContext = Depends(get_context)):
    """Run one stats recomputation now and return the result."""
    stats = await ctx.stats_job.run_once()
    if stats is None:
        raise HTTPException(status_code=503, detail="Failed to update stats")
    return {
        "message": "Stats updated successfully",
        "stats": [m.model_dump(mode="json") for m in stats],
    }
