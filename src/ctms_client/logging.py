"""
logfmt output for the ``ctms_client`` loggers.

Operations log with ``extra={"action": ..., "ref": ...}``; the client adds
request fields (method, url, status, duration_ms, attempt). Records without
some of them are still formatted.
"""

import logging
import time
from typing import IO, Any, Iterable, Optional

PACKAGE_LOGGER = "ctms_client"

LOG_EXTRA_FIELDS = (
    "action",
    "ref",
    "method",
    "url",
    "status",
    "duration_ms",
    "attempt",
    "error_type",
)

_NEEDS_QUOTES = (" ", "=", '"', "\t")


def _logfmt_value(val: Any) -> str:
    if isinstance(val, bool):
        return "true" if val else "false"
    if isinstance(val, (int, float)):
        return str(val)
    text = str(val).replace("\n", "\\n")
    if not text or any(ch in text for ch in _NEEDS_QUOTES):
        return '"' + text.replace('"', '\\"') + '"'
    return text


class LogfmtFormatter(logging.Formatter):
    """
    One ``key=value`` line per record: level, logger, event, then the CTMS
    extras in ``fields`` order. ``with_time`` prefixes a UTC ISO timestamp.
    """

    def __init__(
        self,
        fields: Iterable[str] = LOG_EXTRA_FIELDS,
        *,
        with_time: bool = False,
    ):
        super().__init__()
        self.fields = tuple(fields)
        self.with_time = with_time

    def format(self, record: logging.LogRecord) -> str:
        pairs = []
        if self.with_time:
            stamp = time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created))
            pairs.append(("time", f"{stamp}.{int(record.msecs):03d}Z"))
        pairs.append(("level", record.levelname.lower()))
        pairs.append(("logger", record.name))

        event = record.getMessage()
        if event:
            pairs.append(("event", event))

        for key in self.fields:
            val = getattr(record, key, None)
            if val is not None and val != "":
                pairs.append((key, val))

        if record.exc_info and record.exc_info[0] is not None:
            pairs.append(("exc_type", record.exc_info[0].__name__))

        return " ".join(f"{key}={_logfmt_value(val)}" for key, val in pairs)


def setup_logging(
    level: str = "INFO",
    *,
    stream: Optional[IO[str]] = None,
    with_time: bool = False,
    logger_name: str = PACKAGE_LOGGER,
) -> logging.Logger:
    """
    Sends ``logger_name`` (the SDK's own loggers by default) to ``stream``
    in logfmt. Calling it again replaces the handler it installed before.
    The application's root logger is left alone.
    """
    logger = logging.getLogger(logger_name)
    for handler in list(logger.handlers):
        if isinstance(handler.formatter, LogfmtFormatter):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(LogfmtFormatter(with_time=with_time))
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False
    return logger


__all__ = ["setup_logging", "LogfmtFormatter", "LOG_EXTRA_FIELDS", "PACKAGE_LOGGER"]
