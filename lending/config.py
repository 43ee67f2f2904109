import os
import logging


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./lending.db")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ALLOW_OWNER_RENTAL = os.getenv("ALLOW_OWNER_RENTAL", "true").lower() not in (
    "false",
    "0",
    "no",
)
HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8000"))


def configure_logging():
    """
    Configure root logging from LOG_LEVEL.

    basicConfig is a no-op when the root logger already has handlers,
    so servers that install their own logging (uvicorn, pytest) keep it.
    """
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
