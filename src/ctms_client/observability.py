from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

RESERVED_LOG_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "message",
}


def _clean_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in fields.items() if k not in RESERVED_LOG_KEYS}


def meta(action: str, ref: Optional[Any] = None, **fields: Any) -> Dict[str, Any]:
    """Build the ``extra`` dict carrying action/ref metadata."""
    return {"action": action, "ref": "" if ref is None else str(ref), **_clean_fields(fields)}


def log_event(
    event: str,
    logger: logging.Logger | None = None,
    *,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """
    Minimal structured logging helper.
    - Uses the logger with an extra dict so formatters can include keys.
    - Drops reserved LogRecord attributes to avoid collisions.
    """
    log = logger or logging.getLogger("ctms_client.observability")
    log.log(level, event, extra=_clean_fields(fields))


@contextmanager
def log_operation(
    logger: logging.Logger,
    action: str,
    ref: Optional[Any] = None,
    message: str = "",
) -> Iterator[Dict[str, Any]]:
    """
    Logs ``message`` at debug level on entry; any exception escaping the block
    is logged at error level with the same action/ref metadata and re-raised.
    """
    extra = meta(action, ref)
    logger.debug(message or action, extra=extra)
    try:
        yield extra
    except Exception as exc:
        logger.error(
            f"{message or action} failed: {exc}",
            extra={**extra, "error_type": type(exc).__name__},
        )
        raise


__all__ = ["log_event", "log_operation", "meta"]
