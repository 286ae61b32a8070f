from __future__ import annotations
"""genstudio — FastAPI application entry point.

Mounts the generation API, configures CORS, and checks the Runware
credentials on startup.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from genstudio import __version__
from genstudio.api.router import api_router
from genstudio.config import get_settings, mask_key
from genstudio.services.runware_client import close_http_client

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: check configuration on startup, close clients on shutdown."""
    logger.info("%s starting up...", settings.APP_NAME)
    if settings.RUNWARE_API_KEY:
        logger.info("Runware API key: %s", mask_key(settings.RUNWARE_API_KEY))
    else:
        logger.critical(
            "RUNWARE_API_KEY not configured: every generation request will fail "
            "with configuration_error"
        )
    logger.info("Runware endpoints: ws=%s http=%s", settings.RUNWARE_WS_URL, settings.RUNWARE_API_URL)

    yield

    await close_http_client()
    logger.info("%s shut down", settings.APP_NAME)


app = FastAPI(
    title="genstudio API",
    description="Image and video generation on top of the Runware inference API",
    version=__version__,
    lifespan=lifespan,
    redirect_slashes=False,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/health")
async def health():
    """Health check."""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": __version__,
        "api_key_configured": bool(settings.RUNWARE_API_KEY),
    }
