"""
Realty Desk Web API - Main FastAPI Application

Local bridge between the desktop front-end and the account core:
- Login / registration / session restore
- Reward units earned from ads and spent on gated features
- Premium subscription upgrade and cancellation
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

# Add parent directory to path to import the account package and config
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from account import AccountContext, build_account_context
from config import settings

logger = logging.getLogger(__name__)


def _cors_origins():
    origins = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ]
    if settings.API_HOST and settings.API_HOST not in ["localhost", "127.0.0.1"]:
        origins.extend([
            f"http://{settings.API_HOST}:5173",
            f"http://{settings.API_HOST}:{settings.API_PORT}",
        ])
    return origins


def create_app(context: Optional[AccountContext] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        context: Pre-built account context (tests inject one wired to fakes).
            When omitted, one is built from settings at startup and closed
            on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.basicConfig(level=settings.LOG_LEVEL)
        owns_context = context is None
        account = context
        if owns_context:
            settings.create_directories()
            account = build_account_context(settings)

        result = await account.identity.initialize()
        if not result.ok:
            logger.warning(f"Session restore failed: {result.message}")

        app.state.account = account
        logger.info(f"Realty Desk API ready on http://{settings.API_HOST}:{settings.API_PORT}")
        yield

        logger.info("Realty Desk API shutting down...")
        if owns_context:
            await account.aclose()

    app = FastAPI(
        title="Realty Desk Web API",
        description="Account, rewards and subscription services for the desktop client",
        version="1.0.0",
        lifespan=lifespan,
        redirect_slashes=False,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Accept",
            "Authorization",
            "Content-Type",
            "Origin",
            "X-Requested-With",
        ],
    )

    from web_ui.api.routes import account, auth, rewards, subscription

    app.include_router(auth.router, prefix="/api/v1/auth", tags=["Authentication"])
    app.include_router(account.router, prefix="/api/v1/account", tags=["Account"])
    app.include_router(rewards.router, prefix="/api/v1/rewards", tags=["Rewards"])
    app.include_router(subscription.router, prefix="/api/v1/subscription", tags=["Subscription"])

    @app.get("/")
    async def root():
        """API root endpoint"""
        return {
            "name": "Realty Desk Web API",
            "version": "1.0.0",
            "docs": "/docs",
        }

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
