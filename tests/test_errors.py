import logging

from scheduled_notify.core import errors


def test_log_exception_formats_context_and_traceback(caplog):
    logger = logging.getLogger("test_errors")
    caplog.set_level(logging.ERROR)

    try:
        raise errors.PublishError("smtp down")
    except errors.PublishError as exc:
        errors.log_exception(logger, "Publish failed", extra={"rule_id": "r1", "group": None}, exc=exc)

    [record] = caplog.records
    assert record.getMessage() == "Publish failed rule_id=r1: smtp down"
    assert record.exc_info is not None


def test_log_exception_without_exc_uses_active_exception(caplog):
    logger = logging.getLogger("test_errors")
    caplog.set_level(logging.ERROR)

    try:
        raise RuntimeError("boom")
    except RuntimeError:
        errors.log_exception(logger, "Unexpected failure")

    assert caplog.records[-1].exc_info[0] is RuntimeError


def test_error_messages():
    assert str(errors.RuleNotFoundError("abc")) == "Scheduled notification rule not found: abc"
    err = errors.UnsupportedGroupError("BOM_CONSUMED")
    assert err.group == "BOM_CONSUMED"
    assert "not a supported notification group" in str(err)
    assert issubclass(errors.AggregationError, errors.ScheduledNotificationError)
