"""
Course Firing Controller.

Decides whether a new or incremented line goes to kitchen/bar right away
(is_started = true) or waits for an explicit "fire course" action.
"""

from __future__ import annotations

from typing import Sequence

from shared.config.constants import BAR_ROLES, KITCHEN_ROLES, Courses, ItemType, OrderItemStatus, Priority
from shared.config.logging import orders_logger as logger
from shared.config.settings import settings
from rest_api.models import OrderItem
from rest_api.repositories import OrderStore
from rest_api.services.notifications import Notification, Notifier, notify_in_background
from .errors import OrderValidationError
from .optimistic import OptimisticUpdateManager
from .order_session import ItemId, LineItem, OrderSession
from .task_dispatcher import PreparationTaskDispatcher


def resolve_course(
    item_type: str,
    requested: int | None,
    selected: int | None,
    default: int,
) -> int:
    """Drinks always land in course 4; otherwise the explicit choice wins."""
    if item_type == ItemType.DRINK:
        return Courses.DRINKS
    for course in (requested, selected, default):
        if course is not None:
            if course not in Courses.ALL:
                raise OrderValidationError(f"Unknown course {course}")
            return course
    return Courses.MAIN


def should_release(
    items: Sequence[LineItem],
    *,
    course: int,
    item_type: str,
    exclude_id: ItemId | None = None,
    auto_fire_lowest: bool | None = None,
) -> bool:
    """
    Release now if the line is a drink, a starter, joins a course that is
    already firing, or (with auto-fire on) belongs to the lowest food course
    on the order. `exclude_id` is the line being merged into.
    """
    if item_type == ItemType.DRINK or course == Courses.DRINKS:
        return True
    if course == Courses.STARTER:
        return True

    others = [i for i in items if i.id != exclude_id and not i.is_cancelled]
    if any(i.course == course and i.is_started for i in others):
        return True

    if auto_fire_lowest is None:
        auto_fire_lowest = settings.auto_fire_lowest_course
    if not auto_fire_lowest:
        return False

    # Drinks never take part in the lowest-course comparison
    food_courses = [i.course for i in others if not i.is_drink]
    return not food_courses or course <= min(food_courses)


class CourseFiringController:
    """Holds back later courses and fires them on demand."""

    def __init__(
        self,
        ctx: OrderSession,
        store: OrderStore,
        optimistic: OptimisticUpdateManager,
        dispatcher: PreparationTaskDispatcher,
        notifier: Notifier | None = None,
        *,
        auto_fire_lowest: bool | None = None,
    ):
        self._ctx = ctx
        self._store = store
        self._optimistic = optimistic
        self._dispatcher = dispatcher
        self._notifier = notifier
        self._auto_fire_lowest = auto_fire_lowest

    def should_release(
        self, *, course: int, item_type: str, exclude_id: ItemId | None = None
    ) -> bool:
        return should_release(
            self._ctx.items,
            course=course,
            item_type=item_type,
            exclude_id=exclude_id,
            auto_fire_lowest=self._auto_fire_lowest,
        )

    def held_items(self, course: int) -> list[LineItem]:
        return [
            i for i in self._ctx.active_items()
            if i.course == course and not i.is_started
        ]

    async def fire_course(self, course: int) -> int:
        """
        Release every held line of `course` and create their tasks in one pass.

        Returns the number of lines fired (0 when nothing was held).
        """
        ctx = self._ctx
        restaurant_id = ctx.require_context()
        if course not in Courses.ALL:
            raise OrderValidationError(f"Unknown course {course}")
        if ctx.order is None:
            return 0
        held = self.held_items(course)
        if not held:
            logger.info("Nothing to fire", order_id=ctx.order.id, course=course)
            return 0

        order_id = ctx.order.id

        def mutate_local() -> None:
            for line in held:
                line.is_started = True
                if line.is_prepared:
                    self._dispatcher.mirror_release(ctx, line)

        async def persist() -> dict[str, int]:
            async def unit(store: OrderStore) -> dict[str, int]:
                rows: Sequence[OrderItem] = await store.items.find_by(
                    OrderItem.order_id == order_id,
                    OrderItem.course == course,
                    OrderItem.is_started.is_(False),
                    OrderItem.status != OrderItemStatus.CANCELLED,
                )
                fired = {ItemType.FOOD: 0, ItemType.DRINK: 0, "lines": 0}
                for row in rows:
                    store.items.update(row, is_started=True)
                    fired["lines"] += 1
                    if row.type in ItemType.PREPARED:
                        tasks = await self._dispatcher.release_item(row)
                        fired[row.type] += len(tasks)
                return fired

            return await self._store.run("fire course", unit, restaurant_id=restaurant_id)

        fired = await self._optimistic.with_optimistic_update(
            mutate_local, persist, label="fire course"
        )
        logger.info(
            "Course fired",
            order_id=order_id,
            course=course,
            lines=fired["lines"],
            food_units=fired[ItemType.FOOD],
            drink_units=fired[ItemType.DRINK],
        )
        self._notify_fired(restaurant_id, course, fired)
        return fired["lines"]

    def _notify_fired(self, restaurant_id: int, course: int, fired: dict[str, int]) -> None:
        table = self._ctx.table_label or "?"
        for item_type, roles in ((ItemType.FOOD, KITCHEN_ROLES), (ItemType.DRINK, BAR_ROLES)):
            units = fired[item_type]
            if not units:
                continue
            notify_in_background(
                self._notifier,
                Notification(
                    restaurant_id=restaurant_id,
                    actor_id=self._ctx.staff_id,
                    title=f"Course {course} Fired!",
                    message=f"Table {table}: {units} item(s) to prepare",
                    priority=Priority.HIGH,
                    roles=roles,
                ),
            )
