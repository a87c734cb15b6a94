import json
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from uuid import uuid4

import httpx
import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from order_service import main, schema


class RecordingRedis:
    """Stands in for the Redis pool; keeps published messages."""

    def __init__(self):
        self.messages = []

    async def publish(self, channel, message):
        self.messages.append((channel, json.loads(message)))
        return 1


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    async with engine.begin() as conn:
        await schema.create_schema(conn)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def redis():
    return RecordingRedis()


@pytest.fixture
def make_product(session_factory):
    async def _make(name="Widget", price=10.0, stock=5):
        product_id = uuid4()
        async with session_factory() as s:
            await s.execute(
                text("INSERT INTO products (id, name, price, stock) VALUES (:id, :name, :price, :stock)"),
                {"id": str(product_id), "name": name, "price": price, "stock": stock},
            )
            await s.commit()
        return product_id

    return _make


@pytest.fixture
async def client(session_factory, redis, monkeypatch):
    monkeypatch.setattr(main, "async_session", session_factory)
    monkeypatch.setattr(main, "redis_pool", redis)
    transport = httpx.ASGITransport(app=main.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
