"""
Order Service - FastAPI エントリーポイント

CQRS パターンに従い、Command (POST/PUT) と Query (GET) を分離。
注文の状態変更はすべてイベントとして記録し、ステータス履歴はその投影。

レスポンスは {success, data, count?, error?} 形式で返す。
"""

import logging
import os
from contextlib import asynccontextmanager
from uuid import UUID

import redis.asyncio as aioredis
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from . import commands, event_store, queries, schema, stock
from .auth import Requester, get_requester, require_admin
from .errors import NotFound, OrderServiceError
from .events import OrderStatus

DATABASE_URL = os.environ["DATABASE_URL"]
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

engine = create_async_engine(DATABASE_URL, echo=False)
async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
redis_pool: aioredis.Redis | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global redis_pool
    async with engine.begin() as conn:
        await schema.create_schema(conn)
    redis_pool = aioredis.from_url(REDIS_URL, decode_responses=True)
    yield
    await redis_pool.aclose()
    await engine.dispose()


app = FastAPI(title="Order Service", lifespan=lifespan)


# ── Error Handlers ───────────────────────────────

@app.exception_handler(OrderServiceError)
async def handle_service_error(request: Request, exc: OrderServiceError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message},
    )


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        loc = ".".join(str(part) for part in errors[0]["loc"] if part != "body")
        message = f"{loc}: {errors[0]['msg']}" if loc else errors[0]["msg"]
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"success": False, "error": message})


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error"},
    )


# ── Request Models ───────────────────────────────

class OrderItemRequest(BaseModel):
    product: UUID
    quantity: int = Field(ge=1)


class ShippingAddress(BaseModel):
    street: str | None = None
    city: str | None = None
    state: str | None = None
    zipCode: str | None = None
    country: str | None = None


class CreateOrderRequest(BaseModel):
    items: list[OrderItemRequest] = Field(min_length=1)
    shippingAddress: ShippingAddress | None = None


class UpdateStatusRequest(BaseModel):
    status: OrderStatus
    note: str | None = None


# ── Command Endpoints (Write 側) ─────────────────

@app.post("/orders", status_code=201)
async def cmd_create_order(
    req: CreateOrderRequest,
    requester: Requester = Depends(get_requester),
):
    """注文作成コマンド"""
    async with async_session() as session:
        agg = await commands.create_order(
            session, redis_pool,
            requester.id,
            [item.model_dump() for item in req.items],
            req.shippingAddress.model_dump(exclude_none=True) if req.shippingAddress else None,
        )
        order = await queries.get_order(session, agg.id)
        return {"success": True, "data": order}


@app.put("/orders/{order_id}")
async def cmd_update_order_status(
    order_id: UUID,
    req: UpdateStatusRequest,
    requester: Requester = Depends(require_admin),
):
    """ステータス更新コマンド（管理者のみ）"""
    async with async_session() as session:
        agg = await commands.update_order_status(
            session, redis_pool, order_id, req.status, req.note
        )
        order = await queries.get_order(session, agg.id)
        return {"success": True, "data": order}


@app.put("/orders/{order_id}/cancel")
async def cmd_cancel_order(
    order_id: UUID,
    requester: Requester = Depends(get_requester),
):
    """注文キャンセルコマンド（所有者または管理者）"""
    async with async_session() as session:
        agg = await commands.cancel_order(
            session, redis_pool, order_id, requester.id, requester.role
        )
        order = await queries.get_order(session, agg.id)
        return {"success": True, "data": order}


# ── Query Endpoints (Read 側) ────────────────────

@app.get("/orders")
async def query_list_orders(requester: Requester = Depends(get_requester)):
    async with async_session() as session:
        orders = await queries.list_orders(session, requester.id, requester.role)
        return {"success": True, "count": len(orders), "data": orders}


@app.get("/orders/{order_id}")
async def query_get_order(
    order_id: UUID,
    requester: Requester = Depends(get_requester),
):
    async with async_session() as session:
        order = await queries.get_order_for(session, order_id, requester.id, requester.role)
        return {"success": True, "data": order}


@app.get("/products")
async def query_list_products():
    """在庫と価格の確認用（商品の作成・削除はカタログ側の責務）"""
    async with async_session() as session:
        products = await queries.list_products(session)
        return {"success": True, "count": len(products), "data": products}


@app.get("/products/{product_id}")
async def query_get_product(product_id: UUID):
    async with async_session() as session:
        product = await stock.get_product(session, product_id)
        if product is None:
            raise NotFound("Product not found")
        return {"success": True, "data": product}


# ── Event Store (デバッグ用) ─────────────────────

@app.get("/events")
async def get_all_events():
    async with async_session() as session:
        return await event_store.load_all_events(session)


@app.get("/events/{aggregate_id}")
async def get_aggregate_events(aggregate_id: UUID):
    async with async_session() as session:
        return await event_store.load_events(session, aggregate_id)


@app.get("/health")
async def health():
    return {"status": "ok", "service": "order-service"}
