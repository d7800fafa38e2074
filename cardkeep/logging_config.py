"""Local logging setup for cardkeep.

Two files live under ``<home>/logs``:

- ``local-YYYY-MM-DD.log``: the ``cardkeep`` logger tree
- ``card-events-YYYY-MM-DD.log``: one line per card/profile/sync event
"""

import logging
from datetime import datetime
from typing import Optional

from cardkeep.utils import get_cardkeep_home

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _log_dir():
    log_dir = get_cardkeep_home() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def setup_cardkeep_logging(owner_id: str = "default", level: str = "INFO") -> logging.Logger:
    """Configure the ``cardkeep`` logger with a dated file handler.

    Args:
        owner_id: Owner the process is running for (logged once at startup).
        level: Level name, case-insensitive. Unknown names fall back to INFO.

    Returns:
        The configured ``cardkeep`` logger. Calling again does not add
        duplicate handlers.
    """
    logger = logging.getLogger("cardkeep")
    resolved = getattr(logging, str(level).upper(), None)
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logger.setLevel(resolved)

    if not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        log_file = _log_dir() / f"local-{datetime.now().strftime('%Y-%m-%d')}.log"
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)

    has_console = any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        for h in logger.handlers
    )
    if resolved <= logging.DEBUG and not has_console:
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(console)

    logger.debug("cardkeep logging configured for owner=%s", owner_id)
    return logger


def log_card_event(event_type: str, details: str, owner_id: str = "default") -> None:
    """Append a single event line to today's card-events file."""
    now = datetime.now()
    event_file = _log_dir() / f"card-events-{now.strftime('%Y-%m-%d')}.log"
    line = f"{now.isoformat(timespec='seconds')} | {event_type} | owner={owner_id} | {details}\n"
    with open(event_file, "a", encoding="utf-8") as f:
        f.write(line)


def log_card_saved(owner_id: str, fingerprint: str, source: Optional[str] = None) -> None:
    log_card_event("save", f"card={fingerprint[:12]}..., source={source or 'manual'}", owner_id)


def log_card_deleted(owner_id: str, fingerprint: str, local: int, remote: int) -> None:
    log_card_event(
        "delete", f"card={fingerprint[:12]}..., local={local}, remote={remote}", owner_id
    )


def log_sync(owner_id: str, direction: str, count: int, errors: int = 0) -> None:
    """Record a sync phase outcome."""
    log_card_event("sync", f"direction={direction}, count={count}, errors={errors}", owner_id)
