"""
Order Aggregate service.

Line-item mutations on the current order. Each one validates first, then
goes through the optimistic update manager: local change, store write,
re-fetch (or full rollback on failure).
"""

from __future__ import annotations

from typing import Sequence

from shared.config.constants import (
    ItemType,
    Limits,
    OrderItemStatus,
    OrderStatus,
    PaymentStatus,
    StoreTable,
    ChangeEvent,
    TaskStatus,
)
from shared.config.logging import orders_logger as logger
from rest_api.models import MenuItem, Order, OrderItem, OrderItemModifier, utcnow
from rest_api.repositories import OrderStore
from .course_firing import CourseFiringController, resolve_course
from .errors import (
    ItemInPreparationError,
    ModifierSelectionError,
    OrderValidationError,
    QuantityBelowMinimumError,
    StaleReferenceError,
)
from .modifiers import ModifierSelection
from .optimistic import OptimisticUpdateManager
from .order_session import (
    ItemId,
    LineItem,
    OrderSession,
    OrderView,
    is_temp_id,
    new_temp_id,
)
from .task_dispatcher import PreparationTaskDispatcher


class OrderAggregate:
    """
    Mutations of one order's line items.

    Also the engine's OrderCreator: table occupancy and counter sales create
    their order through `create_order`.
    """

    def __init__(
        self,
        ctx: OrderSession,
        store: OrderStore,
        optimistic: OptimisticUpdateManager,
        dispatcher: PreparationTaskDispatcher,
        courses: CourseFiringController,
    ):
        self._ctx = ctx
        self._store = store
        self._optimistic = optimistic
        self._dispatcher = dispatcher
        self._courses = courses

    # =========================================================================
    # Order creation (OrderCreator capability)
    # =========================================================================

    async def create_order(
        self,
        store: OrderStore,
        *,
        restaurant_id: int,
        session_id: int | None,
        staff_id: int | None,
        is_counter: bool = False,
    ) -> Order:
        """Insert an empty order inside the caller's unit of work."""
        order = Order(
            restaurant_id=restaurant_id,
            session_id=session_id,
            staff_id=staff_id,
            status=OrderStatus.PENDING,
            total_cents=0,
            tip_cents=0,
            is_counter=is_counter,
        )
        await store.orders.add(order)
        return order

    async def ensure_order(self) -> OrderView:
        """The current order, created on first use. Reuses the session's open order."""
        ctx = self._ctx
        if ctx.order is not None:
            return ctx.order
        restaurant_id = ctx.require_context()

        async def unit(store: OrderStore) -> Order:
            if ctx.session_id is not None:
                existing = await store.orders.find_open_for_session(ctx.session_id)
                if existing is not None:
                    return existing
            return await self.create_order(
                store,
                restaurant_id=restaurant_id,
                session_id=ctx.session_id,
                staff_id=ctx.staff_id,
                is_counter=ctx.is_counter,
            )

        order = await self._store.run("create order", unit, restaurant_id=restaurant_id)
        ctx.order = OrderView.model_validate(order)
        logger.info("Order opened", order_id=order.id, session_id=ctx.session_id)
        return ctx.order

    # =========================================================================
    # Add / merge
    # =========================================================================

    async def _load_menu_item(self, menu_item_id: int) -> MenuItem:
        menu_item = await self._store.read(
            "load menu item", lambda store: store.menu.get(menu_item_id)
        )
        if menu_item is None or menu_item.restaurant_id != self._ctx.restaurant_id:
            raise StaleReferenceError("Menu item", menu_item_id)
        if not menu_item.is_available:
            raise OrderValidationError(f"'{menu_item.name}' is not available")
        return menu_item

    @staticmethod
    def _build_selection(menu_item: MenuItem, modifier_ids: Sequence[int]) -> ModifierSelection:
        selection = ModifierSelection.for_menu_item(menu_item)
        by_id = {m.id: m for group in selection.groups for m in group.modifiers}
        for modifier_id in modifier_ids:
            modifier = by_id.get(modifier_id)
            if modifier is None:
                raise ModifierSelectionError(
                    f"Modifier {modifier_id} does not apply to '{menu_item.name}'"
                )
            if not modifier.is_available:
                raise ModifierSelectionError(f"'{modifier.name}' is not available")
            selection.toggle(modifier)
        selection.validate()
        return selection

    def _merge_target(self, menu_item_id: int, course: int) -> LineItem | None:
        """An unmodified pending line of the same menu item in the same course."""
        for line in self._ctx.items:
            if (
                line.menu_item_id == menu_item_id
                and line.course == course
                and line.status == OrderItemStatus.PENDING
                and line.payment_status != PaymentStatus.COMPLETED
                and line.is_unmodified
                and not is_temp_id(line.id)
            ):
                return line
        return None

    async def add_or_increment_item(
        self,
        menu_item_id: int,
        modifier_ids: Sequence[int] = (),
        *,
        course: int | None = None,
        quantity: int = 1,
    ) -> LineItem:
        """
        Add a menu item to the order, merging into an identical pending line.

        Raises MissingContextError before anything is applied when there is
        no session/restaurant.
        """
        ctx = self._ctx
        restaurant_id = ctx.require_context()
        if not Limits.MIN_QUANTITY <= quantity <= Limits.MAX_QUANTITY:
            raise QuantityBelowMinimumError(
                f"Quantity must be between {Limits.MIN_QUANTITY} and {Limits.MAX_QUANTITY}"
            )

        menu_item = await self._load_menu_item(menu_item_id)
        selection = self._build_selection(menu_item, modifier_ids)
        order = await self.ensure_order()

        item_type = menu_item.type
        line_course = resolve_course(item_type, course, ctx.selected_course, menu_item.course)
        unit_price = menu_item.price_cents + selection.price_adjustment_cents
        modifiers = selection.views()

        target = None if modifiers else self._merge_target(menu_item.id, line_course)
        release = self._courses.should_release(
            course=line_course,
            item_type=item_type,
            exclude_id=target.id if target else None,
        )
        prepared = item_type in ItemType.PREPARED

        if target is not None:
            line = target
        else:
            line = LineItem(
                id=new_temp_id(),
                order_id=order.id,
                menu_item_id=menu_item.id,
                name=menu_item.name,
                quantity=0,
                unit_price_cents=unit_price,
                sum_price_cents=0,
                type=item_type,
                course=line_course,
                is_started=release,
                modifiers=modifiers,
                created_at=utcnow(),
            )
        temp_id = line.id
        grow_by = quantity if target is not None and target.is_started else None

        def mutate_local() -> None:
            if target is None:
                ctx.items.append(line)
            line.set_quantity(line.quantity + quantity)
            line.is_started = line.is_started or release
            if line.is_started and prepared:
                self._dispatcher.mirror_release(ctx, line, units=grow_by)

        async def persist() -> tuple[int, int]:
            async def unit(store: OrderStore) -> tuple[int, int]:
                units = None
                if target is not None:
                    row = await store.items.get(target.id)
                    if row is None or row.status == OrderItemStatus.CANCELLED:
                        raise StaleReferenceError("Order item", target.id)
                    if row.is_started:
                        units = quantity
                    new_quantity = row.quantity + quantity
                    store.items.update(
                        row,
                        quantity=new_quantity,
                        sum_price_cents=row.unit_price_cents * new_quantity,
                        is_started=row.is_started or release,
                    )
                else:
                    row = OrderItem(
                        order_id=order.id,
                        menu_item_id=menu_item.id,
                        name=menu_item.name,
                        quantity=quantity,
                        unit_price_cents=unit_price,
                        sum_price_cents=unit_price * quantity,
                        type=item_type,
                        course=line_course,
                        is_started=release,
                        status=OrderItemStatus.PENDING,
                        payment_status=PaymentStatus.PENDING,
                        modifiers=[
                            OrderItemModifier(
                                modifier_id=m.modifier_id,
                                name=m.name,
                                price_adjustment_cents=m.price_adjustment_cents,
                            )
                            for m in modifiers
                        ],
                    )
                    await store.items.add(row)
                    if modifiers:
                        store.tracker.record(StoreTable.ORDER_ITEM_MODIFIERS, ChangeEvent.INSERT)

                created = 0
                if row.is_started and row.type in ItemType.PREPARED:
                    created = len(await self._dispatcher.release_item(row, units=units))
                return row.id, created

            return await self._store.run("add item", unit, restaurant_id=restaurant_id)

        item_id, created = await self._optimistic.with_optimistic_update(
            mutate_local,
            persist,
            label="add item",
            on_success=lambda result: ctx.replace_id(temp_id, result[0]),
        )
        logger.info(
            "Item added",
            order_id=order.id,
            order_item_id=item_id,
            menu_item_id=menu_item.id,
            quantity=quantity,
            merged=target is not None,
            released=release,
        )
        if created:
            self._dispatcher.notify_release(
                restaurant_id=restaurant_id,
                actor_id=ctx.staff_id,
                table_label=ctx.table_label,
                item_name=menu_item.name,
                item_type=item_type,
                units=created,
            )
        return ctx.find_item(item_id) or line

    # =========================================================================
    # Quantity / removal / notes
    # =========================================================================

    def _editable_line(self, item_id: ItemId) -> LineItem:
        line = self._ctx.require_item(item_id)
        if is_temp_id(line.id):
            raise StaleReferenceError("Order item", item_id)
        if line.is_cancelled:
            raise OrderValidationError(f"'{line.name}' was voided")
        if line.is_paid:
            raise OrderValidationError(f"'{line.name}' is already paid")
        return line

    async def change_quantity(self, item_id: ItemId, delta: int) -> LineItem:
        """+1 adds a task when the line is released; -1 retracts the newest pending task."""
        if delta not in (1, -1):
            raise OrderValidationError("Quantity changes by one unit at a time")
        ctx = self._ctx
        restaurant_id = ctx.require_context()
        line = self._editable_line(item_id)

        new_quantity = line.quantity + delta
        if new_quantity < Limits.MIN_QUANTITY:
            raise QuantityBelowMinimumError("Quantity cannot go below 1")
        if new_quantity > Limits.MAX_QUANTITY:
            raise OrderValidationError(f"Quantity cannot exceed {Limits.MAX_QUANTITY}")

        tracked = line.is_started and line.is_prepared
        if tracked and delta < 0:
            if not any(t.status == TaskStatus.PENDING for t in ctx.tasks_for(line.id)):
                raise ItemInPreparationError("Every unit of this item is already in preparation")

        def mutate_local() -> None:
            line.set_quantity(new_quantity)
            if tracked:
                if delta > 0:
                    self._dispatcher.mirror_release(ctx, line, units=1)
                else:
                    self._dispatcher.mirror_retract(ctx, line)

        async def persist() -> int:
            async def unit(store: OrderStore) -> int:
                row = await store.items.get(line.id)
                if row is None:
                    raise StaleReferenceError("Order item", line.id)
                quantity = row.quantity + delta
                if quantity < Limits.MIN_QUANTITY:
                    raise QuantityBelowMinimumError("Quantity cannot go below 1")
                store.items.update(
                    row, quantity=quantity, sum_price_cents=row.unit_price_cents * quantity
                )
                created = 0
                if row.is_started and row.type in ItemType.PREPARED:
                    if delta > 0:
                        created = len(await self._dispatcher.release_item(row, units=1))
                    else:
                        await self._dispatcher.retract_one_unit(row.id)
                return created

            return await self._store.run("change quantity", unit, restaurant_id=restaurant_id)

        created = await self._optimistic.with_optimistic_update(
            mutate_local, persist, label="change quantity"
        )
        logger.info("Quantity changed", order_item_id=line.id, delta=delta)
        if created:
            self._dispatcher.notify_release(
                restaurant_id=restaurant_id,
                actor_id=ctx.staff_id,
                table_label=ctx.table_label,
                item_name=line.name,
                item_type=line.type,
                units=created,
            )
        return ctx.find_item(line.id) or line

    async def remove_item(self, item_id: ItemId) -> None:
        """Delete a line and its tasks, unless a unit has entered preparation."""
        ctx = self._ctx
        restaurant_id = ctx.require_context()
        line = self._editable_line(item_id)
        if line.status != OrderItemStatus.PENDING or any(
            t.status != TaskStatus.PENDING for t in ctx.tasks_for(line.id)
        ):
            raise ItemInPreparationError(f"'{line.name}' is already being prepared")

        def mutate_local() -> None:
            ctx.items.remove(line)
            self._dispatcher.mirror_delete(ctx, line)

        async def persist() -> None:
            async def unit(store: OrderStore) -> None:
                row = await store.items.get(line.id)
                if row is None:
                    raise StaleReferenceError("Order item", line.id)
                if row.status != OrderItemStatus.PENDING or await store.tasks.count_started_for_item(row.id):
                    raise ItemInPreparationError(f"'{row.name}' is already being prepared")
                await self._dispatcher.delete_all_tasks_for(row.id)
                await store.item_modifiers.delete_for_item(row.id)
                await store.items.delete_by_id(row.id)

            await self._store.run("remove item", unit, restaurant_id=restaurant_id)

        await self._optimistic.with_optimistic_update(mutate_local, persist, label="remove item")
        logger.info("Item removed", order_item_id=line.id)

    async def annotate_note(self, item_id: ItemId, text: str | None) -> LineItem:
        ctx = self._ctx
        restaurant_id = ctx.require_context()
        line = self._editable_line(item_id)
        note = (text or "").strip() or None
        if note is not None and len(note) > Limits.MAX_NOTE_LENGTH:
            raise OrderValidationError(f"Note exceeds {Limits.MAX_NOTE_LENGTH} characters")

        def mutate_local() -> None:
            line.note = note

        async def persist() -> None:
            async def unit(store: OrderStore) -> None:
                row = await store.items.get(line.id)
                if row is None:
                    raise StaleReferenceError("Order item", line.id)
                store.items.update(row, note=note)

            await self._store.run("annotate note", unit, restaurant_id=restaurant_id)

        await self._optimistic.with_optimistic_update(mutate_local, persist, label="annotate note")
        return ctx.find_item(line.id) or line

    # =========================================================================
    # Reorder
    # =========================================================================

    async def reorder_item(self, item_id: ItemId, quantity: int = 1) -> LineItem:
        """Order the same menu item again, with the same modifiers and course."""
        line = self._ctx.require_item(item_id)
        return await self.add_or_increment_item(
            line.menu_item_id,
            [m.modifier_id for m in line.modifiers],
            course=line.course,
            quantity=quantity,
        )

    async def repeat_round(self) -> list[LineItem]:
        """Re-add every active, unpaid line with its quantity."""
        lines = [line.model_copy(deep=True) for line in self._ctx.unpaid_items()]
        added = []
        for line in lines:
            added.append(
                await self.add_or_increment_item(
                    line.menu_item_id,
                    [m.modifier_id for m in line.modifiers],
                    course=line.course,
                    quantity=line.quantity,
                )
            )
        return added
