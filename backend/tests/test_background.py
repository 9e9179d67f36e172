"""
Tests for fire-and-forget delivery of notifications and receipts.
"""

import asyncio
import logging

from rest_api.services.background import drain_background, pending_count, run_in_background
from rest_api.services.notifications import Notification, notify_in_background
from rest_api.services.receipts import Receipt, emit_in_background
from tests.conftest import RESTAURANT_ID, RecordingNotifier, RecordingReceiptSink


def notification(title="New Order"):
    return Notification(restaurant_id=RESTAURANT_ID, actor_id=None, title=title, message="Table T1")


class TestRunInBackground:
    async def test_task_is_tracked_until_done(self):
        gate = asyncio.Event()

        async def wait_for_gate():
            await gate.wait()

        run_in_background(wait_for_gate(), task_name="gate")
        assert pending_count() == 1

        gate.set()
        await drain_background()

        assert pending_count() == 0

    async def test_failure_is_logged_not_raised(self, caplog):
        async def explode():
            raise RuntimeError("printer offline")

        with caplog.at_level(logging.ERROR, logger="rest_api.services.background"):
            run_in_background(explode(), task_name="receipt:9")
            await drain_background()

        record = caplog.records[-1]
        assert record.getMessage() == "Background task failed"
        assert record.extra_data["task_name"] == "receipt:9"
        assert record.extra_data["error_type"] == "RuntimeError"

    async def test_drain_gives_up_after_timeout(self):
        gate = asyncio.Event()

        async def wait_for_gate():
            await gate.wait()

        run_in_background(wait_for_gate(), task_name="stuck")

        await drain_background(timeout=0.01)

        assert pending_count() == 1
        gate.set()
        await drain_background()


class TestDelivery:
    async def test_notification_arrives_after_drain(self):
        notifier = RecordingNotifier()

        notify_in_background(notifier, notification())
        assert notifier.sent == []

        await drain_background()
        assert notifier.titles() == ["New Order"]

    async def test_missing_notifier_schedules_nothing(self):
        notify_in_background(None, notification())

        assert pending_count() == 0

    async def test_notifier_error_is_logged_with_title(self, caplog):
        async def broken(notification):
            raise ConnectionError("redis down")

        notifier = RecordingNotifier()
        notifier.dispatch = broken

        with caplog.at_level(logging.ERROR, logger="rest_api.services.notifications"):
            notify_in_background(notifier, notification("Order Ready"))
            await drain_background()

        record = caplog.records[-1]
        assert record.getMessage() == "Failed to dispatch notification"
        assert record.extra_data["title"] == "Order Ready"

    async def test_receipt_arrives_after_drain(self):
        sink = RecordingReceiptSink()
        receipt = Receipt(order_id=3, total_qty=1, total_cents=450, items=[])

        emit_in_background(sink, RESTAURANT_ID, receipt)
        await drain_background()

        assert [r.order_id for r in sink.receipts] == [3]
