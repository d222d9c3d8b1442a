"""Tests for the structured logging system (inventory_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from inventory_kernel.domain.values import TransactionType
from inventory_kernel.exceptions import InsufficientStockError
from inventory_kernel.logging_config import (
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
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


class TestStructuredFormatter:
    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_all_logs(stream)[0]
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "inventory_kernel.test"
        assert "ts" in record

    def test_decimals_and_uuids_serialized_exactly(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        item_id = uuid4()
        get_logger("test").info(
            "stock_delta_applied",
            extra={"delta": Decimal("-2.500"), "item_id": item_id},
        )

        record = _parse_all_logs(stream)[0]
        assert record["delta"] == "-2.500"
        assert record["item_id"] == str(item_id)

    def test_kernel_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise InsufficientStockError("A001", "Main", Decimal("1"), Decimal("3"))
        except InsufficientStockError:
            get_logger("test").error("stock_error", exc_info=True)

        record = _parse_all_logs(stream)[0]
        assert record["exc_code"] == "INSUFFICIENT_STOCK"
        assert record["exc_type"] == "InsufficientStockError"
        assert record["exc_available"] == "1"
        assert record["exc_requested"] == "3"
        assert "traceback" in record

    def test_level_by_name(self):
        handler, stream = _make_handler()
        configure_logging(level="warning", handler=handler)
        logger = get_logger("test")
        logger.info("dropped")
        logger.warning("kept")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["kept"]


class TestLogContext:
    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", operation="create")
        get_logger("test").info("test_msg")

        record = _parse_all_logs(stream)[0]
        assert record["correlation_id"] == "abc-123"
        assert record["operation"] == "create"

    def test_bind_restores_previous_values(self):
        LogContext.set(operation="outer")
        tx_id = uuid4()
        with LogContext.bind(operation="inner", transaction_id=tx_id):
            assert LogContext.get_all() == {"operation": "inner", "transaction_id": str(tx_id)}
        assert LogContext.get_all() == {"operation": "outer"}

    def test_set_rejects_unknown_fields(self):
        with pytest.raises(TypeError):
            LogContext.set(event_id="e-1")

    def test_bind_accepts_enums(self):
        with LogContext.bind(operation=TransactionType.TRANSFER):
            assert LogContext.get_all() == {"operation": "TRANSFER"}

    def test_bind_ignores_none(self):
        with LogContext.bind(actor_id=None, operation="delete"):
            assert "actor_id" not in LogContext.get_all()

    def test_extra_fields_alongside_context(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        with LogContext.bind(transaction_id="ctx"):
            get_logger("test").info("m", extra={"reference_no": "R1"})

        record = _parse_all_logs(stream)[0]
        assert record["transaction_id"] == "ctx"
        assert record["reference_no"] == "R1"


class TestConfigureLogging:
    def test_idempotent(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=handler)
        assert len(logging.getLogger("inventory_kernel").handlers) == 1

    def test_unknown_level_name_rejected(self):
        with pytest.raises(ValueError):
            configure_logging(level="chatty")
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        assert logging.getLogger("inventory_kernel").handlers == [handler]

    def test_does_not_propagate_to_root(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        assert logging.getLogger("inventory_kernel").propagate is False
