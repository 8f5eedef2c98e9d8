"""Per-session logging context.

One engine serves many client sessions, so log lines from the resolver,
reservation and admin paths are tagged with the session that caused them.
The engine opens a ``session_scope`` around every call that takes a
``session_id``; the id lives in a ContextVar, so threads and asyncio tasks
each see their own.

Usage:
    with session_scope("SESSION-abc123"):
        engine.book("Ana", "haircut", "2030-01-15", "09:00")
    # every record logged inside carries record.session_id == "SESSION-abc123"
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

NO_SESSION = "-"

LOG_FORMAT = "%(asctime)s [%(name)s] [%(session_id)s] %(levelname)s: %(message)s"

_session_id: ContextVar[str] = ContextVar("session_id", default=NO_SESSION)


def get_session_id() -> str:
    return _session_id.get()


@contextmanager
def session_scope(session_id: Optional[str]) -> Iterator[str]:
    """Tag everything logged inside the block with ``session_id``.

    ``None`` keeps whatever session is already active. The previous id is
    restored on exit, including when the block raises.
    """
    if session_id is None:
        yield _session_id.get()
        return
    token = _session_id.set(session_id)
    try:
        yield session_id
    finally:
        _session_id.reset(token)


class SessionIdFilter(logging.Filter):
    """Adds ``session_id`` to records that do not carry one yet."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "session_id"):
            record.session_id = _session_id.get()  # type: ignore[attr-defined]
        return True


def install_session_filter(logger: Optional[logging.Logger] = None) -> None:
    """Attach a SessionIdFilter to every handler of ``logger`` (root by default).

    Handlers formatted with LOG_FORMAT need the attribute on every record,
    including records from loggers that never went through
    ``get_session_logger``.
    """
    target = logger or logging.getLogger()
    for handler in target.handlers:
        if not any(isinstance(f, SessionIdFilter) for f in handler.filters):
            handler.addFilter(SessionIdFilter())


def get_session_logger(name: str) -> logging.Logger:
    """Return a module logger whose records carry the active session id."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, SessionIdFilter) for f in logger.filters):
        logger.addFilter(SessionIdFilter())
    return logger
