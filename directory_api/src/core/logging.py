from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import Optional, Union


# Request-scoped values stamped onto every log record
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
site_key_var: ContextVar[Optional[str]] = ContextVar("site_key", default=None)

# Libraries that log per statement or per connection at INFO
_QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncio")


class LoggingContextFilter(logging.Filter):
    """
    Inject correlation_id and site_key from contextvars into each record.

    Requests outside a public site path (health, admin) log site=-.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        record.correlation_id = correlation_id_var.get() or "-"
        record.site_key = site_key_var.get() or "-"
        return True


# PUBLIC_INTERFACE
def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """
    Configure root logging with a single-line structured format.

    Parameters:
        level: numeric level or a level name such as "DEBUG"
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s | %(levelname)s | %(name)s | cid=%(correlation_id)s | site=%(site_key)s | %(message)s"
        )
    )
    handler.addFilter(LoggingContextFilter())

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
