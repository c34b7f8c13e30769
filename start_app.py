#!/usr/bin/env python
"""Run the booking sync API under uvicorn; PORT and HOST come from the environment."""
import logging
import os

import uvicorn

from app.core.config import get_settings
from app.core import logging_config  # noqa: F401  configures logging on import

logger = logging.getLogger("start_app")


if __name__ == "__main__":
    settings = get_settings()
    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", 8000))

    logger.info(f"Starting Villa Booking Sync ({settings.ENVIRONMENT}) on {host}:{port}")

    uvicorn.run(
        "app.main:app",
        host=host,
        port=port,
        reload=settings.ENVIRONMENT == "development",
        log_level=os.environ.get("LOG_LEVEL", "info").lower(),
    )
