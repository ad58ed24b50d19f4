from datetime import date
from decimal import Decimal

import pytest_asyncio

from database.db import Database
from database.models import UserRole


@pytest_asyncio.fixture
async def database(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'gogo_delivery.db'}")
    await database.create_tables()
    yield database
    await database.close()


@pytest_asyncio.fixture
async def customer(database):
    user_id, error = await database.add_user("alice", "secret", date(1995, 4, 12), "Alice", "Novak")
    assert error is None
    return user_id


@pytest_asyncio.fixture
async def rider(database):
    user_id, error = await database.add_user(
        "bob", "wheels", date(1990, 1, 30), role=UserRole.Rider
    )
    assert error is None
    return user_id


@pytest_asyncio.fixture
async def address(database, customer):
    address_id, error = await database.add_user_address(customer, "Minsk", "Lenina", 5, apartment="12")
    assert error is None
    return address_id


@pytest_asyncio.fixture
async def category(database):
    category_id, error = await database.add_category("Pizza", "Hot and round", preview=b"\xff\xd8\xff")
    assert error is None
    return category_id


@pytest_asyncio.fixture
async def margherita(database, category):
    food_id, error = await database.add_food("Margherita", category, Decimal("4.50"), False, count=10)
    assert error is None
    return food_id


@pytest_asyncio.fixture
async def pepperoni(database, category):
    food_id, error = await database.add_food("Pepperoni", category, Decimal("12.00"), False, count=3)
    assert error is None
    return food_id
