from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ..config import get_settings, validate_settings
from .routes import context, refresher, router

settings = validate_settings(get_settings())
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not settings.has_credentials:
        logger.warning("CROWDSEC_USER / CROWDSEC_PASSWORD not set; LAPI login will fail")
    logger.info(
        "Dashboard started: lookback=%s, refresh=%ds",
        settings.lookback_period,
        context.refresh_interval,
    )
    refresher.start()
    try:
        yield
    finally:
        context.range_selector.cancel()
        await refresher.stop()


app = FastAPI(title="Crowdlens API", version="0.1.0", lifespan=lifespan)

app.include_router(router)
