import logging
from datetime import datetime, timezone

from logging_config import ContextualFormatter


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="services.fanout",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="Device stats lookup failed",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_appends_context_in_declared_order() -> None:
    formatter = ContextualFormatter(fmt="%(message)s")

    line = formatter.format(_record(reason="timeout", device_id="dev-1", elapsed_ms=12.3456))

    assert line == "Device stats lookup failed | device_id=dev-1 reason=timeout elapsed_ms=12.346"


def test_formatter_quotes_values_and_skips_missing_keys() -> None:
    formatter = ContextualFormatter(fmt="%(message)s", extra_keys=["reason", "status", "range"])
    moment = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    line = formatter.format(_record(reason="disk detached", status=None, range=moment))

    assert line == "Device stats lookup failed | reason='disk detached' range=2024-06-01T12:00:00+00:00"


def test_formatter_without_context_leaves_message_alone() -> None:
    formatter = ContextualFormatter(fmt="%(levelname)s %(message)s")

    assert formatter.format(_record()) == "WARNING Device stats lookup failed"
