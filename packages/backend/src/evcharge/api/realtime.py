"""Real-time pipeline API — watcher health and manual restarts.

Learn: Watchers never reconnect on their own. When a collection's stream
fails, an operator checks GET /realtime/watchers and restarts that one
watcher; the others are untouched.
"""

from fastapi import APIRouter, Depends, HTTPException

from evcharge.context import RealtimeContext, get_context

router = APIRouter()


@router.get("/realtime/watchers")
async def list_watchers(ctx: RealtimeContext = Depends(get_context)):
    """Per-collection watcher state plus pipeline counters."""
    return {
        "broker_available": ctx.broker.is_available(),
        "collections": ctx.capture.health(),
        "pipeline": ctx.stats.as_dict(),
        "gateway": ctx.gateway.health(),
        "stats_job": {
            "state": ctx.stats_job.state,
            "cycles": ctx.stats_job.cycles,
            "failures": ctx.stats_job.failures,
        },
    }


@router.post("/realtime/watchers/{name}/restart")
async def restart_watcher(name: str, ctx: RealtimeContext = Depends(get_context)):
    """Close and reopen one collection's change stream."""
    if name not in ctx.capture.watchers:
        raise HTTPException(status_code=404, detail=f"Collection {name!r} is not watched")
    ok = await ctx.capture.restart(name)
    return {"collection": name, "restarted": ok, **ctx.capture.watchers[name].health()}
