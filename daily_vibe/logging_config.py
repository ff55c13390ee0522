"""Logging setup for the API server and operator commands."""

import logging


def configure_logging(level: int | str = logging.INFO) -> None:
    """Configure root logging.

    Args:
        level: Logging level name or number (default: INFO)
    """
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logging.getLogger("daily_vibe").setLevel(level)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
