"""
FitLink — Fitbit OAuth2 + PKCE connector service, application entry point.
"""

from __future__ import annotations

import logging
import sys

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import register_middleware
from config.settings import config
from connectors.encryption import is_encryption_enabled
from connectors.errors import ConfigurationError, StorageError
from connectors.routes import router as fitbit_router
from connectors.state_store import prune_expired_states
from database.session import async_session_factory, init_db

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stdout,
)
for _noisy in ("httpcore", "httpx", "sqlalchemy.engine"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title="FitLink",
        version="1.0.0",
        description="Delegated Fitbit access via OAuth2 Authorization Code + PKCE.",
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_middleware(app)

    # Routes
    app.include_router(fitbit_router, prefix="/api/v1/fitbit")

    @app.get("/health")
    async def health():
        return {"status": "healthy", "service": "fitlink"}

    @app.on_event("startup")
    async def on_startup():
        await init_db()

        missing = config.missing_fitbit_settings()
        if missing:
            logger.error(
                "Fitbit OAuth not configured — missing %s; /initiate will fail until set",
                ", ".join(missing),
            )

        try:
            is_encryption_enabled()
        except ConfigurationError:
            logger.critical("TOKEN_ENCRYPTION_KEY is invalid; every Fitbit connect will fail to store its grant")

        # Clean up states abandoned before the previous shutdown
        try:
            async with async_session_factory() as session:
                pruned = await prune_expired_states(session)
        except StorageError:
            logger.warning("Could not prune expired OAuth states at startup", exc_info=True)
        else:
            if pruned:
                logger.info("Pruned %d expired OAuth states from previous run", pruned)

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
