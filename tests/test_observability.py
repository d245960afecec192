import io
import logging

import pytest
from ctms_client.logging import LogfmtFormatter, setup_logging
from ctms_client.observability import log_event, log_operation, meta


def _record(msg, **extra):
    record = logging.LogRecord("ctms_client.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_logfmt_includes_action_and_ref():
    line = LogfmtFormatter().format(
        _record("get item", action="get item", ref="/Projects/A b/", status=200)
    )

    assert "level=info" in line
    assert 'event="get item"' in line
    assert 'action="get item"' in line
    assert 'ref="/Projects/A b/"' in line
    assert "status=200" in line


def test_logfmt_skips_missing_extras():
    line = LogfmtFormatter().format(_record("plain"))
    assert "action=" not in line
    assert "ref=" not in line


def test_meta_drops_reserved_keys():
    extra = meta("move asset", None, msg="clash", attempt=2)
    assert extra == {"action": "move asset", "ref": "", "attempt": 2}


def test_log_event_emits_fields(caplog):
    logger = logging.getLogger("ctms_client.test")
    with caplog.at_level(logging.INFO, logger="ctms_client.test"):
        log_event("connected", logger, action="connect", name="ignored")

    record = caplog.records[0]
    assert record.getMessage() == "connected"
    assert record.action == "connect"


def test_log_operation_logs_and_reraises(caplog):
    logger = logging.getLogger("ctms_client.test")
    with caplog.at_level(logging.DEBUG, logger="ctms_client.test"):
        with pytest.raises(RuntimeError):
            with log_operation(logger, "get item", "/Projects/", "get item by id"):
                raise RuntimeError("boom")

    entry, failure = caplog.records
    assert entry.levelno == logging.DEBUG
    assert entry.ref == "/Projects/"
    assert failure.levelno == logging.ERROR
    assert failure.getMessage() == "get item by id failed: boom"
    assert failure.error_type == "RuntimeError"
    assert failure.action == "get item"


def test_logfmt_quotes_values_with_quotes_and_newlines():
    line = LogfmtFormatter(fields=("ref",)).format(
        _record("conflict", ref='say "hi"\nnow', action="ignored")
    )

    assert 'ref="say \\"hi\\"\\nnow"' in line
    assert "action=" not in line


def test_logfmt_with_time_prefix():
    line = LogfmtFormatter(with_time=True).format(_record("plain"))
    assert line.startswith("time=")
    assert line.split(" ")[0].endswith("Z")


def test_setup_logging_targets_package_logger_only():
    stream = io.StringIO()
    root_handlers = list(logging.getLogger().handlers)
    logger = setup_logging("debug", stream=stream)
    try:
        setup_logging("debug", stream=stream)
        assert logger.name == "ctms_client"
        assert len(logger.handlers) == 1
        assert logging.getLogger().handlers == root_handlers

        logging.getLogger("ctms_client.paging").debug(
            "page 0", extra={"action": "get pages", "ref": "/Projects/"}
        )
        assert stream.getvalue().strip() == (
            'level=debug logger=ctms_client.paging event="page 0" '
            'action="get pages" ref=/Projects/'
        )
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        logger.propagate = True
        logger.setLevel(logging.NOTSET)
