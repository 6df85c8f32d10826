"""FastAPI application factory.

Learn: App factory pattern. create_app() returns a configured FastAPI
instance. Lifespan builds the RealtimeContext at startup (MongoDB, Redis,
watchers, stats job, gateway) and tears it down at shutdown.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from evcharge import __version__
from evcharge.api import api_router
from evcharge.config import Settings, settings as default_settings
from evcharge.context import build_context

logger = structlog.get_logger()


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """Build and return the FastAPI application."""
    cfg = app_settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown lifecycle.

        Learn: Anything before `yield` runs at startup, after `yield` at
        shutdown. Broker and watcher failures are logged, not fatal;
        the app works without real-time features.
        """
        logger.info(
            "evcharge.starting",
            version=__version__,
            environment=cfg.environment,
            port=cfg.port,
        )

        ctx = await build_context(cfg)
        app.state.context = ctx
        try:
            all_watching = await ctx.start()
        except Exception:
            await ctx.close()
            raise
        logger.info(
            "evcharge.started",
            broker_available=ctx.broker.is_available(),
            all_watchers_open=all_watching,
        )

        yield

        logger.info("evcharge.shutdown")
        await ctx.close()

    app = FastAPI(
        title="EV Charge Real-Time",
        description="Change capture, stats cache and live fan-out for the EV charging dashboards",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    from evcharge.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: evcharge.main:app)
app = create_app()
