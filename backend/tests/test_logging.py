"""
Tests for structured logging and bound log context.
"""

import json
import logging

import pytest

from shared.config.logging import (
    ContextFilter,
    DevelopmentFormatter,
    StructuredFormatter,
    bind_log_context,
    clear_log_context,
    get_logger,
)


@pytest.fixture(autouse=True)
def fresh_context():
    clear_log_context()
    yield
    clear_log_context()


def make_record(logger_name="rest_api.orders", msg="Item added", **fields):
    record = logging.LogRecord(logger_name, logging.INFO, __file__, 1, msg, (), None)
    record.extra_data = fields or None
    ContextFilter().filter(record)
    return record


class TestStructuredLogger:
    def test_keyword_arguments_become_fields(self, caplog):
        logger = get_logger("rest_api.orders")

        with caplog.at_level(logging.INFO, logger="rest_api.orders"):
            logger.info("Item added", order_id=12, quantity=2)

        record = caplog.records[-1]
        assert record.getMessage() == "Item added"
        assert record.extra_data == {"order_id": 12, "quantity": 2}

    def test_exc_info_is_not_a_field(self, caplog):
        logger = get_logger("rest_api.billing")

        with caplog.at_level(logging.ERROR, logger="rest_api.billing"):
            try:
                raise RuntimeError("printer offline")
            except RuntimeError:
                logger.error("Receipt dispatch failed", order_id=3, exc_info=True)

        record = caplog.records[-1]
        assert record.exc_info is not None
        assert record.extra_data == {"order_id": 3}


class TestFormatters:
    def test_json_merges_bound_context(self):
        bind_log_context(restaurant_id=1, staff_id=None)
        bind_log_context(session_id=5)

        entry = json.loads(StructuredFormatter().format(make_record(order_id=7)))

        assert entry["message"] == "Item added"
        assert entry["data"] == {"restaurant_id": 1, "session_id": 5, "order_id": 7}

    def test_call_fields_win_over_context(self):
        bind_log_context(restaurant_id=1)

        entry = json.loads(StructuredFormatter().format(make_record(restaurant_id=2)))

        assert entry["data"]["restaurant_id"] == 2

    def test_development_line(self):
        line = DevelopmentFormatter().format(make_record(order_id=7))

        assert "rest_api.orders: Item added" in line
        assert "order_id=7" in line
