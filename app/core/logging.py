from __future__ import annotations
import logging

from app.core.config import LOG_LEVEL

_configured = False

def configure_logging(level: str | None = None) -> None:
    """Install a single root handler. Safe to call more than once."""
    global _configured
    if _configured:
        return
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # httpx logs every request at INFO; the poller issues one per second.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _configured = True
