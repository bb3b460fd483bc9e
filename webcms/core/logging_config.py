"""
Logging setup for webcms.
"""
import logging

from webcms.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger from settings."""
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    # SQL echo is controlled by sqlalchemy's own logger
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
