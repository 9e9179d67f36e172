"""
Pytest configuration and fixtures for backend tests.

Each test gets a fresh in-memory SQLite database (aiosqlite) and an
OrderStore whose change feed, notifier and receipt sink are recording fakes.
"""

from dataclasses import dataclass, field

import pytest
from httpx import ASGITransport, AsyncClient

from rest_api.main import app
from rest_api.models import (
    Base,
    MenuItem,
    MenuItemModifierGroup,
    Modifier,
    ModifierGroup,
    RestaurantTable,
)
from rest_api.repositories import OrderStore
from rest_api.routers._common import get_change_publisher, get_notifier, get_receipt_sink
from rest_api.services.background import drain_background
from rest_api.services.domain import OrderEngine
from rest_api.services.notifications import Notification
from rest_api.services.receipts import Receipt
from shared.config.constants import Courses, ItemType
from shared.infrastructure.db import build_engine, build_session_factory, get_db
from shared.infrastructure.retry import RetryConfig


RESTAURANT_ID = 1
OTHER_RESTAURANT_ID = 2
WAITER_ID = 7

# SQLite in-memory database for testing
SQLALCHEMY_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Fast, single-attempt-on-logic-errors store policy for tests
TEST_RETRY = RetryConfig(timeout=5.0, max_attempts=2, initial_delay=0.0, max_delay=0.0)

STAFF_HEADERS = {
    "X-Restaurant-Id": str(RESTAURANT_ID),
    "X-Staff-Id": str(WAITER_ID),
    "X-Staff-Name": "Ana",
}


# =============================================================================
# Recording collaborators
# =============================================================================


@dataclass
class RecordingChangeFeed:
    """Collects (restaurant_id, table, event) triples instead of publishing."""

    changes: list[tuple[int, str, str]] = field(default_factory=list)

    async def __call__(self, restaurant_id: int, table: str, event: str) -> None:
        self.changes.append((restaurant_id, table, event))

    def tables(self) -> set[str]:
        return {table for _, table, _ in self.changes}


@dataclass
class RecordingNotifier:
    sent: list[Notification] = field(default_factory=list)

    async def dispatch(self, notification: Notification) -> None:
        self.sent.append(notification)

    def titles(self) -> list[str]:
        return [n.title for n in self.sent]


@dataclass
class RecordingReceiptSink:
    receipts: list[Receipt] = field(default_factory=list)

    async def emit(self, restaurant_id: int, receipt: Receipt) -> None:
        self.receipts.append(receipt)


@pytest.fixture(autouse=True)
async def drain_deliveries():
    """Let background notifications and receipts finish inside the test."""
    yield
    await drain_background()


# =============================================================================
# Database
# =============================================================================


@pytest.fixture(scope="function")
async def db_engine():
    """Fresh schema per test."""
    engine = build_engine(SQLALCHEMY_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(db_engine):
    session_factory = build_session_factory(db_engine)
    async with session_factory() as session:
        yield session


@pytest.fixture
def change_feed():
    return RecordingChangeFeed()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def receipt_sink():
    return RecordingReceiptSink()


@pytest.fixture
def store(db_session, change_feed):
    return OrderStore(db_session, change_publisher=change_feed, retry_config=TEST_RETRY)


# =============================================================================
# Seed data
# =============================================================================


@pytest.fixture
async def seed_tables(db_session):
    """Three available tables and one belonging to another restaurant."""
    tables = [
        RestaurantTable(restaurant_id=RESTAURANT_ID, label="T1", capacity=4),
        RestaurantTable(restaurant_id=RESTAURANT_ID, label="T2", capacity=2),
        RestaurantTable(restaurant_id=RESTAURANT_ID, label="T3", capacity=6),
        RestaurantTable(restaurant_id=OTHER_RESTAURANT_ID, label="X1", capacity=4),
    ]
    db_session.add_all(tables)
    await db_session.commit()
    return tables


@pytest.fixture
async def seed_menu(db_session):
    """
    A small menu keyed by short name.

    burger carries a required single-choice "Cooking" group and a capped
    "Extras" group (max 2, egg unavailable).
    """
    items = {
        "soup": MenuItem(
            restaurant_id=RESTAURANT_ID, name="Soup", price_cents=450,
            type=ItemType.FOOD, course=Courses.STARTER, preparation_minutes=10,
        ),
        "steak": MenuItem(
            restaurant_id=RESTAURANT_ID, name="Steak", price_cents=1800,
            type=ItemType.FOOD, course=Courses.MAIN, preparation_minutes=20,
        ),
        "cake": MenuItem(
            restaurant_id=RESTAURANT_ID, name="Cake", price_cents=650,
            type=ItemType.FOOD, course=Courses.DESSERT,
        ),
        "wine": MenuItem(
            restaurant_id=RESTAURANT_ID, name="Wine", price_cents=700,
            type=ItemType.DRINK, course=Courses.DRINKS, preparation_minutes=3,
        ),
        "shirt": MenuItem(
            restaurant_id=RESTAURANT_ID, name="T-Shirt", price_cents=1500,
            type="merch", course=Courses.MAIN,
        ),
        "burger": MenuItem(
            restaurant_id=RESTAURANT_ID, name="Burger", price_cents=1200,
            type=ItemType.FOOD, course=Courses.MAIN,
        ),
        "sold_out": MenuItem(
            restaurant_id=RESTAURANT_ID, name="Lobster", price_cents=4000,
            type=ItemType.FOOD, course=Courses.MAIN, is_available=False,
        ),
        "foreign": MenuItem(
            restaurant_id=OTHER_RESTAURANT_ID, name="Elsewhere", price_cents=100,
            type=ItemType.FOOD, course=Courses.MAIN,
        ),
    }
    db_session.add_all(items.values())
    await db_session.flush()

    cooking = ModifierGroup(
        restaurant_id=RESTAURANT_ID, name="Cooking", min_selection=1, max_selection=1
    )
    extras = ModifierGroup(
        restaurant_id=RESTAURANT_ID, name="Extras", min_selection=0, max_selection=2
    )
    db_session.add_all([cooking, extras])
    await db_session.flush()

    modifiers = {
        "rare": Modifier(group_id=cooking.id, name="Rare"),
        "well_done": Modifier(group_id=cooking.id, name="Well done"),
        "cheese": Modifier(group_id=extras.id, name="Cheese", price_adjustment_cents=150),
        "bacon": Modifier(group_id=extras.id, name="Bacon", price_adjustment_cents=200),
        "egg": Modifier(
            group_id=extras.id, name="Egg", price_adjustment_cents=100, is_available=False
        ),
    }
    db_session.add_all(modifiers.values())
    db_session.add_all(
        [
            MenuItemModifierGroup(menu_item_id=items["burger"].id, group_id=cooking.id, position=0),
            MenuItemModifierGroup(menu_item_id=items["burger"].id, group_id=extras.id, position=1),
        ]
    )
    await db_session.commit()
    # Engines load the menu with its modifier groups themselves
    db_session.expunge_all()
    return {"items": items, "modifiers": modifiers}


@pytest.fixture
def menu(seed_menu):
    """Menu item ids by short name."""
    return {name: item.id for name, item in seed_menu["items"].items()}


@pytest.fixture
def modifiers(seed_menu):
    """Modifier ids by short name."""
    return {name: modifier.id for name, modifier in seed_menu["modifiers"].items()}


# =============================================================================
# Engines
# =============================================================================


@pytest.fixture
def make_engine(store, notifier, receipt_sink):
    """Factory for restaurant-level engines sharing the test store."""

    def factory(restaurant_id: int = RESTAURANT_ID, **options) -> OrderEngine:
        options.setdefault("notifier", notifier)
        options.setdefault("receipt_sink", receipt_sink)
        return OrderEngine.for_restaurant(
            store,
            restaurant_id=restaurant_id,
            staff_id=WAITER_ID,
            staff_name="Ana",
            **options,
        )

    return factory


@pytest.fixture
async def table_engine(make_engine, seed_tables, seed_menu):
    """Engine bound to a freshly occupied T1 (2 guests)."""
    engine = make_engine()
    table_id = seed_tables[0].id
    await engine.reserve_table(table_id)
    await engine.occupy_table(table_id, guests=2)
    return engine


@pytest.fixture
async def counter_engine(make_engine, seed_menu):
    """Engine with an open over-the-counter order."""
    engine = make_engine()
    await engine.open_counter_order()
    return engine


# =============================================================================
# HTTP
# =============================================================================


@pytest.fixture(scope="function")
async def client(db_session, change_feed, notifier, receipt_sink):
    """
    Async HTTP client with database session and collaborators overridden.
    """

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_change_publisher] = lambda: change_feed
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_receipt_sink] = lambda: receipt_sink

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()
