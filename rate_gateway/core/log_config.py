"""
Logging setup for entry points.

Library modules only create loggers (logging.getLogger(__name__)); the
embedding application decides handlers and format. Scripts call
configure_logging() once at startup.
"""
import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for a script run."""
    if level is None:
        from rate_gateway.core.config import settings
        level = settings.LOG_LEVEL

    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    # httpx logs every request at INFO, too chatty next to our own [HTTP] lines
    logging.getLogger("httpx").setLevel(logging.WARNING)
