"""
测试公共夹具

每个测试使用 tmp_path 下独立的 SQLite 文件数据库，写入演示数据：
厂商库存 5 台（VF8 Plus / 珍珠白），四种角色各一个用户。
"""

import os

# 必须在导入应用之前设置
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("AUTO_BACKUP_ENABLED", "false")

from typing import Dict, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from dealerflow.core.deps import get_db
from dealerflow.db.init_db import ensure_tables_exist
from dealerflow.db.seed import seed_demo_data
from dealerflow.main import app
from dealerflow.schemas.order import OrderItemCreate
from dealerflow.services.inventory_ledger import get_stock
from dealerflow.services.orders import submit_order


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'dealerflow_test.db'}")
    await ensure_tables_exist(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def demo(session_factory) -> Dict:
    async with session_factory() as session:
        return await seed_demo_data(session)


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def as_user(user) -> Dict[str, str]:
    """请求头：以该用户身份操作"""
    return {"X-User-Id": str(user.id)}


@pytest.fixture
def make_order(session_factory, demo):
    """由经销商销售创建一张 new 订单，返回订单ID"""

    async def _make(quantity: int = 2, unit_price: float = 10000, lines: Optional[list] = None) -> int:
        items = lines or [OrderItemCreate(
            variant_id=demo["variant"].id,
            color_id=demo["color"].id,
            quantity=quantity,
            unit_price=unit_price,
        )]
        async with session_factory() as session:
            order = await submit_order(
                session,
                demo["dealer_staff"],
                customer_id=demo["customer"].id,
                items=items,
                payment_method="cash",
            )
            return order.id

    return _make


@pytest.fixture
def stock_of(session_factory, demo):
    """读取某个归属方的 (数量, 预留) ，默认演示车型/颜色"""

    async def _read(owner, variant_id: Optional[int] = None, color_id: Optional[int] = None):
        async with session_factory() as session:
            stock = await get_stock(
                session,
                owner.id,
                variant_id or demo["variant"].id,
                color_id or demo["color"].id,
            )
            if stock is None:
                return 0, 0
            return stock.quantity, stock.reserved_quantity

    return _read
