"""Tests for the structured logging system (lifecycle_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from io import StringIO
from uuid import uuid4

import pytest

from lifecycle_kernel.domain.values import ReplacementType
from lifecycle_kernel.exceptions import InsufficientStockError, UnitNotSoldError
from lifecycle_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "lifecycle_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("unit_sold", extra={"ledger_seq": 42, "seller_code": "DEALER-01"})

        record = _parse_log(stream)
        assert record["ledger_seq"] == 42
        assert record["seller_code"] == "DEALER-01"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", serial_number="SN-1")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["serial_number"] == "SN-1"

    def test_context_wins_over_extra_with_same_key(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(serial_number="SN-CTX")
        get_logger("test").info("dup", extra={"serial_number": "SN-EXTRA"})

        assert _parse_log(stream)["serial_number"] == "SN-CTX"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_code_extracted(self):
        """Kernel exceptions carry a .code and structured attributes."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise InsufficientStockError("SC-01", "PCB-MAIN", 0, 1)
        except InsufficientStockError:
            get_logger("test").error("stock_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "INSUFFICIENT_STOCK"
        assert record["exc_type"] == "InsufficientStockError"
        assert record["exc_part_code"] == "PCB-MAIN"
        assert record["exc_available"] == 0
        assert record["exc_requested"] == 1

    def test_not_sold_code(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise UnitNotSoldError("SN-9")
        except UnitNotSoldError:
            get_logger("test").warning("rejected", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "UNIT_NOT_SOLD"
        assert record["exc_serial_number"] == "SN-9"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "actor_id" not in record

    def test_uuid_date_and_enum_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info(
            "typed",
            extra={
                "visit_ref": uid,
                "sale_date": date(2024, 1, 15),
                "replacement_type": ReplacementType.REPAIR,
            },
        )

        record = _parse_log(stream)
        assert record["visit_ref"] == str(uid)
        assert record["sale_date"] == "2024-01-15"
        assert record["replacement_type"] == "REPAIR"

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        # default level is INFO
        logs = _parse_all_logs(stream)
        assert len(logs) == 2
        for record in logs:
            assert {"ts", "level", "logger", "message"} <= record.keys()


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", visit_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "visit_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner"):
            assert LogContext.get_all()["correlation_id"] == "inner"
        assert LogContext.get_all()["correlation_id"] == "outer"

    def test_bind_restores_none(self):
        assert "actor_id" not in LogContext.get_all()
        with LogContext.bind(actor_id="temp"):
            assert LogContext.get_all()["actor_id"] == "temp"
        assert "actor_id" not in LogContext.get_all()

    def test_bind_skips_none_values(self):
        with LogContext.bind(actor_id="a1", holder_code=None):
            ctx = LogContext.get_all()
        assert ctx == {"actor_id": "a1"}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            actor_id="a",
            holder_code="SC-01",
            serial_number="SN-1",
            visit_id="v",
        )
        assert LogContext.get_all() == {
            "correlation_id": "c",
            "actor_id": "a",
            "holder_code": "SC-01",
            "serial_number": "SN-1",
            "visit_id": "v",
        }


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=handler)
        get_logger("test").info("once")

        assert len(_parse_all_logs(stream)) == 1

    def test_level_respected(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.WARNING, handler=handler)
        logger = get_logger("test")
        logger.info("hidden")
        logger.warning("shown")

        logs = _parse_all_logs(stream)
        assert [r["message"] for r in logs] == ["shown"]

    def test_does_not_propagate_to_root(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        assert logging.getLogger("lifecycle_kernel").propagate is False
