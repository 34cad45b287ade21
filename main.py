"""
Fitbit ↔ Discord Linked Roles — application entry point.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import uvicorn
from fastapi import FastAPI

from api.middleware import register_middleware
from api.routes import router
from config.settings import Settings, config
from core.services import Services, build_services

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stdout,
)
for _noisy in ("httpcore", "httpx", "aiosqlite", "asyncio"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    settings = settings or config
    services = services or build_services(settings)

    app = FastAPI(
        title="Fitbit Linked Roles",
        version="1.0.0",
        description="Links Discord accounts to Fitbit and keeps role metadata in sync.",
    )
    app.state.services = services

    register_middleware(app)
    app.include_router(router)

    @app.on_event("startup")
    async def on_startup():
        await services.startup()
        logger.info("Application ready to accept requests.")

    @app.on_event("shutdown")
    async def on_shutdown():
        await services.shutdown()

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
