"""
Unified dashboard backend — application entry point.
"""

from __future__ import annotations

import logging
import sys

import uvicorn
from fastapi import FastAPI

from api.middleware import register_middleware
from api.routes import router as resource_router
from auth.routes import router as auth_router
from config.settings import config
from connectors.registry import ConnectorRegistry
from connectors.routes import router as connector_router
from database.session import init_models

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stdout,
)
for _noisy in ("httpcore", "httpx", "urllib3", "googleapiclient.discovery_cache"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Unified Dashboard",
        version="1.0.0",
        description="GitHub, Gmail, Google Calendar and Slack behind one session.",
    )

    register_middleware(app)

    # Routes
    app.include_router(auth_router, prefix="/auth")
    app.include_router(resource_router)
    app.include_router(connector_router, prefix="/api")

    @app.on_event("startup")
    async def on_startup():
        logger.info("Discovering connectors…")
        ConnectorRegistry().discover()

        await init_models()
        logger.info("Application ready to accept requests.")

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )
