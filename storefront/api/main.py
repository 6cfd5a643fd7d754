"""
FastAPI app assembly: logging, gateway lifecycle and router wiring.
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from storefront.api.diagnostics import router as diagnostics_router
from storefront.db.gateway import get_gateway

# Configure logging
LOG_LEVEL_NAME = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL = getattr(logging, LOG_LEVEL_NAME, logging.INFO)
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)
logger.setLevel(LOG_LEVEL)
logger.info("app_startup: log_level=%s", LOG_LEVEL_NAME)


@asynccontextmanager
async def lifespan(app: FastAPI):
    gateway = get_gateway()
    connected = await gateway.initialize()
    logger.info("app_ready: database_connected=%s", connected)
    try:
        yield
    finally:
        await gateway.disconnect()


app = FastAPI(
    title="Storefront Service",
    description="Storefront backend with a connection-resilient database gateway.",
    version="1.0.0",
    lifespan=lifespan,
)

# Avoid implicit trailing-slash redirects for predictable URLs
app.router.redirect_slashes = False

app.include_router(diagnostics_router)
