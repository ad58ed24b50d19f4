from datetime import date, datetime

import pytest
from sqlalchemy.exc import IntegrityError

from database.models import Cart, Favorite, Feedback, Order, OrderFood, User, UserRole


async def _add_and_commit(database, row):
    session = await database.get_session()
    try:
        session.add(row)
        await session.commit()
    finally:
        await session.close()


async def test_cart_count_must_be_positive(database, customer, margherita):
    for count in (0, -1):
        with pytest.raises(IntegrityError):
            await _add_and_commit(database, Cart(
                customer_id=customer, food_id=margherita, count=count, add_time=datetime(2023, 5, 1)
            ))


async def test_order_food_count_must_be_positive(database, customer, address, margherita):
    order_id, error = await database.add_order(customer, address)
    assert error is None

    with pytest.raises(IntegrityError):
        await _add_and_commit(database, OrderFood(order_id=order_id, food_id=margherita, count=0))


async def test_feedback_rating_is_bounded(database, customer, address):
    order_id, _ = await database.add_order(customer, address)

    for rating in (-1, 6):
        with pytest.raises(IntegrityError):
            await _add_and_commit(database, Feedback(order_id=order_id, rating=rating))

    await _add_and_commit(database, Feedback(order_id=order_id, rating=0))
    await _add_and_commit(database, Feedback(order_id=order_id, rating=5, comment="Fast"))


async def test_duplicate_username_is_rejected(database, customer):
    with pytest.raises(IntegrityError):
        await _add_and_commit(database, User(
            username="alice", password="0" * 64, birth_date=date(2000, 1, 1)
        ))

    user_id, error = await database.add_user("alice", "other", date(2000, 1, 1))
    assert user_id is None
    assert error == "Username is already taken"


async def test_duplicate_favorite_is_rejected(database, customer, margherita):
    favorite_id, error = await database.add_user_favorite(customer, margherita)
    assert error is None
    assert favorite_id

    favorite_id, error = await database.add_user_favorite(customer, margherita)
    assert favorite_id is None
    assert error is not None

    with pytest.raises(IntegrityError):
        await _add_and_commit(database, Favorite(
            user_id=customer, food_id=margherita, add_time=datetime(2023, 5, 1)
        ))


async def test_category_with_food_cannot_be_deleted(database, category, margherita):
    deleted, error = await database.delete_category(category)
    assert deleted is False
    assert error == "Category still contains food"

    categories, _ = await database.get_categories()
    assert [c.id for c in categories] == [category]

    deleted, error = await database.delete_food(margherita)
    assert deleted and error is None
    deleted, error = await database.delete_category(category)
    assert deleted and error is None


async def test_deleting_user_purges_owned_rows(database, customer, address, margherita):
    await database.add_cart_item(customer, margherita, 2)
    await database.add_user_favorite(customer, margherita)
    await database.add_notification(customer, "Welcome")

    deleted, error = await database.delete_user(customer)
    assert deleted and error is None

    assert (await database.get_user_addresses(customer)) == ([], None)
    assert (await database.get_cart_food(customer)) == ([], None)
    assert (await database.get_favorite_food(customer)) == ([], None)
    assert (await database.get_user_notifications(customer)) == ([], None)


async def test_deleting_rider_keeps_order(database, customer, address, rider):
    order_id, _ = await database.add_order(customer, address)
    taken, _ = await database.take_order(rider, order_id)
    assert taken

    deleted, error = await database.delete_user(rider)
    assert deleted and error is None

    orders, error = await database.get_orders()
    assert error is None
    assert [o.order.id for o in orders] == [order_id]
    assert orders[0].order.rider_id is None
    assert orders[0].rider is None


async def test_address_used_by_order_cannot_be_deleted(database, customer, address):
    await database.add_order(customer, address)

    deleted, error = await database.delete_user_address(customer, address)
    assert deleted is False
    assert error == "Address is used by an order"


async def test_role_defaults_to_customer(database):
    session = await database.get_session()
    try:
        user = User(username="carol", password="0" * 64, birth_date=date(1988, 2, 2))
        session.add(user)
        await session.commit()
        assert user.role == UserRole.Customer
    finally:
        await session.close()


async def test_order_needs_existing_address(database, customer):
    with pytest.raises(IntegrityError):
        await _add_and_commit(database, Order(
            customer_id=customer, address_id=999, create_time=datetime(2023, 5, 1)
        ))
