"""
Tests for course firing: release decisions and explicit "fire course".
"""

import pytest

from rest_api.services.background import drain_background
from rest_api.services.domain import LineItem, OrderValidationError
from rest_api.services.domain.course_firing import resolve_course, should_release
from shared.config.constants import KITCHEN_ROLES, Courses, ItemType, OrderItemStatus


def line(id, course, *, started=False, type=ItemType.FOOD, status=OrderItemStatus.PENDING):
    return LineItem(
        id=id,
        menu_item_id=1,
        name=f"item-{id}",
        unit_price_cents=100,
        sum_price_cents=100,
        type=type,
        course=course,
        is_started=started,
        status=status,
    )


class TestResolveCourse:
    def test_drink_is_always_course_four(self):
        assert resolve_course(ItemType.DRINK, Courses.STARTER, None, Courses.MAIN) == Courses.DRINKS

    def test_explicit_course_wins(self):
        assert resolve_course(ItemType.FOOD, Courses.DESSERT, Courses.STARTER, Courses.MAIN) == 3

    def test_selected_course_before_menu_default(self):
        assert resolve_course(ItemType.FOOD, None, Courses.STARTER, Courses.MAIN) == 1

    def test_unknown_course_is_rejected(self):
        with pytest.raises(OrderValidationError):
            resolve_course(ItemType.FOOD, 7, None, Courses.MAIN)


class TestShouldRelease:
    """Release policy for new and incremented lines."""

    def test_drinks_and_starters_always_release(self):
        items = [line(1, Courses.STARTER)]
        assert should_release(items, course=Courses.DRINKS, item_type=ItemType.DRINK)
        assert should_release([], course=Courses.STARTER, item_type=ItemType.FOOD)

    def test_held_while_lower_course_on_order(self):
        items = [line(1, Courses.STARTER, started=True)]
        assert not should_release(
            items, course=Courses.MAIN, item_type=ItemType.FOOD, auto_fire_lowest=True
        )

    def test_joins_course_already_firing(self):
        items = [line(1, Courses.STARTER), line(2, Courses.MAIN, started=True)]
        assert should_release(items, course=Courses.MAIN, item_type=ItemType.FOOD)

    def test_lowest_course_releases_when_auto_fire_on(self):
        items = [line(1, Courses.DESSERT)]
        assert should_release(
            items, course=Courses.MAIN, item_type=ItemType.FOOD, auto_fire_lowest=True
        )
        assert not should_release(
            items, course=Courses.MAIN, item_type=ItemType.FOOD, auto_fire_lowest=False
        )

    def test_drinks_do_not_count_towards_lowest_course(self):
        items = [line(1, Courses.DRINKS, started=True, type=ItemType.DRINK)]
        assert should_release(
            items, course=Courses.DESSERT, item_type=ItemType.FOOD, auto_fire_lowest=True
        )

    def test_cancelled_lines_are_ignored(self):
        items = [line(1, Courses.STARTER, status=OrderItemStatus.CANCELLED)]
        assert should_release(
            items, course=Courses.MAIN, item_type=ItemType.FOOD, auto_fire_lowest=True
        )

    def test_merge_target_is_excluded(self):
        items = [line(1, Courses.MAIN)]
        assert should_release(
            items, course=Courses.MAIN, item_type=ItemType.FOOD, exclude_id=1, auto_fire_lowest=True
        )


class TestFireCourse:
    """Explicit release of held lines."""

    async def test_fire_releases_held_lines_and_creates_tasks(self, table_engine, store, menu):
        await table_engine.add_item(menu["soup"])
        steak = await table_engine.add_item(menu["steak"], quantity=2)
        assert steak.is_started is False

        fired = await table_engine.fire_course(Courses.MAIN)

        assert fired == 1
        assert table_engine.ctx.find_item(steak.id).is_started is True
        tasks = await store.tasks.find_by_item(steak.id)
        assert len(tasks) == 2

    async def test_items_added_after_fire_release_immediately(self, table_engine, menu):
        await table_engine.add_item(menu["soup"])
        await table_engine.add_item(menu["steak"])
        await table_engine.fire_course(Courses.MAIN)

        cake = await table_engine.add_item(menu["cake"], course=Courses.MAIN)

        assert cake.is_started is True

    async def test_fire_with_nothing_held_returns_zero(self, table_engine, menu, notifier):
        await table_engine.add_item(menu["soup"])
        await drain_background()
        notifier.sent.clear()

        assert await table_engine.fire_course(Courses.MAIN) == 0
        await drain_background()
        assert notifier.sent == []

    async def test_fire_sends_kitchen_notification(self, table_engine, menu, notifier):
        await table_engine.add_item(menu["soup"])
        await table_engine.add_item(menu["steak"])
        await table_engine.add_item(menu["cake"])
        await drain_background()
        notifier.sent.clear()

        await table_engine.fire_course(Courses.DESSERT)
        await drain_background()

        assert len(notifier.sent) == 1
        assert notifier.sent[0].title == "Course 3 Fired!"
        assert notifier.sent[0].roles == KITCHEN_ROLES
        assert "1 item(s)" in notifier.sent[0].message

    async def test_fire_leaves_other_courses_held(self, table_engine, menu):
        await table_engine.add_item(menu["soup"])
        steak = await table_engine.add_item(menu["steak"])
        cake = await table_engine.add_item(menu["cake"])

        await table_engine.fire_course(Courses.DESSERT)

        assert table_engine.ctx.find_item(cake.id).is_started is True
        assert table_engine.ctx.find_item(steak.id).is_started is False

    async def test_unknown_course_is_rejected(self, table_engine):
        with pytest.raises(OrderValidationError):
            await table_engine.fire_course(5)
