"""
dbsnap — database snapshot service
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from dbsnap import __version__
from dbsnap.api import health, migrate
from dbsnap.config import settings
from dbsnap.core.dialects import register_default_dialects

# ── Logging ──────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=settings.log_level_value,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger("dbsnap")


@asynccontextmanager
async def lifespan(app: FastAPI):
    register_default_dialects()
    logger.info("dbsnap starting up…")
    yield
    logger.info("dbsnap shutting down.")


# ── App ───────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="dbsnap",
    description="Copy a relational database into an embedded snapshot for test environments.",
    version=__version__,
    lifespan=lifespan,
)

# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(health.router,  prefix="/api")
app.include_router(migrate.router, prefix="/api")


if __name__ == "__main__":
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
