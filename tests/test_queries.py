from uuid import uuid4

import pytest

from order_service import commands, queries
from order_service.errors import Forbidden, NotFound


@pytest.fixture
async def orders(session, redis, make_product):
    product_id = await make_product(stock=100)
    placed = {}
    for owner in ("alice", "alice", "bob"):
        agg = await commands.create_order(session, redis, owner, [{"product": product_id, "quantity": 1}])
        placed.setdefault(owner, []).append(str(agg.id))
    return placed


async def test_user_sees_only_own_orders(session, orders):
    # Scenario E
    result = await queries.list_orders(session, "alice", "user")
    assert len(result) == 2
    assert all(o["owner"] == "alice" for o in result)
    assert {o["id"] for o in result} == set(orders["alice"])


async def test_admin_sees_all_orders(session, orders):
    result = await queries.list_orders(session, "root", "admin")
    assert len(result) == 3


async def test_user_without_orders_gets_empty_list(session, orders):
    assert await queries.list_orders(session, "carol", "user") == []


async def test_get_order_for_owner_and_admin(session, orders):
    order_id = orders["bob"][0]
    owned = await queries.get_order_for(session, order_id, "bob", "user")
    as_admin = await queries.get_order_for(session, order_id, "root", "admin")
    assert owned == as_admin


async def test_get_order_for_other_user_is_forbidden(session, orders):
    with pytest.raises(Forbidden):
        await queries.get_order_for(session, orders["bob"][0], "alice", "user")


async def test_get_order_for_missing(session):
    with pytest.raises(NotFound):
        await queries.get_order_for(session, uuid4(), "alice", "admin")


async def test_get_order_is_repeatable(session, orders):
    order_id = orders["alice"][0]
    first = await queries.get_order(session, order_id)
    second = await queries.get_order(session, order_id)
    assert first == second


async def test_list_products(session, make_product):
    await make_product(name="Beta", price=1.5, stock=2)
    await make_product(name="Alpha", price=3.0, stock=0)
    products = await queries.list_products(session)
    assert [p["name"] for p in products] == ["Alpha", "Beta"]
    assert products[1]["price"] == 1.5
