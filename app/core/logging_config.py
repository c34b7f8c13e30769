# app/core/logging_config.py
"""
Logging setup, applied once when this module is first imported.

App loggers follow LOG_LEVEL (default INFO). Adapter traffic can be turned up
on its own with ADAPTER_LOG_LEVEL without drowning in SQL or scheduler noise.
Log messages never carry credentials: anything that may echo a platform
response is passed through CredentialVault.redact first.
"""

import logging
import os

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "sqlalchemy": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "asyncpg": logging.WARNING,
    "aiosqlite": logging.WARNING,
    "apscheduler": logging.WARNING,  # one line per job execution otherwise
}


def _level(name: str, default: str = "INFO") -> int:
    return getattr(logging, os.environ.get(name, default).upper(), logging.INFO)


def configure_logging():
    app_level = _level("LOG_LEVEL")

    logging.basicConfig(level=app_level, format=LOG_FORMAT, handlers=[logging.StreamHandler()])

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    logging.getLogger("app").setLevel(app_level)
    logging.getLogger("app.integrations").setLevel(_level("ADAPTER_LOG_LEVEL", logging.getLevelName(app_level)))

    logging.getLogger(__name__).debug(f"Logging configured at level {logging.getLevelName(app_level)}")


configure_logging()
