"""
Order Service - テーブル定義

PostgreSQL と SQLite の両方で動く DDL のみを使う。
タイムスタンプは ISO 8601 文字列で保存する。
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection

STATEMENTS = [
    # 商品（カタログ側の所有。このサービスは stock のみ更新する）
    """
    CREATE TABLE IF NOT EXISTS products (
        id VARCHAR(36) PRIMARY KEY,
        name VARCHAR(255) NOT NULL,
        price NUMERIC(12, 2) NOT NULL,
        stock INTEGER NOT NULL DEFAULT 0 CHECK (stock >= 0),
        updated_at VARCHAR(40)
    )
    """,
    # (aggregate_id, version) の一意性で楽観的ロックを実現する
    """
    CREATE TABLE IF NOT EXISTS event_store (
        aggregate_id VARCHAR(36) NOT NULL,
        aggregate_type VARCHAR(50) NOT NULL,
        event_type VARCHAR(100) NOT NULL,
        event_data TEXT NOT NULL,
        version INTEGER NOT NULL,
        created_at VARCHAR(40) NOT NULL,
        PRIMARY KEY (aggregate_id, version)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS orders_read_model (
        id VARCHAR(36) PRIMARY KEY,
        owner_id VARCHAR(64) NOT NULL,
        items TEXT NOT NULL,
        total_amount NUMERIC(12, 2) NOT NULL,
        status VARCHAR(20) NOT NULL,
        status_history TEXT NOT NULL,
        shipping_address TEXT,
        created_at VARCHAR(40) NOT NULL,
        updated_at VARCHAR(40) NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS ix_orders_owner ON orders_read_model (owner_id)",
]


async def create_schema(conn: AsyncConnection) -> None:
    for statement in STATEMENTS:
        await conn.execute(text(statement))
