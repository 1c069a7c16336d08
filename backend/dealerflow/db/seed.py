"""
演示数据
- 厂商、两个经销商、客户
- 一个车型版本和颜色，厂商期初库存 5 台
- 四种角色各一个用户（另一个经销商再配一个销售，用于数据隔离演示）
"""

import logging
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession

from dealerflow.core.config import settings
from dealerflow.core.permissions import ADMIN, DEALER_MANAGER, DEALER_STAFF, EVM_STAFF
from dealerflow.models.entity import Entity
from dealerflow.models.user import User
from dealerflow.models.vehicle import VehicleColor, VehicleVariant
from dealerflow.services.inventory_ledger import receive_stock

logger = logging.getLogger(__name__)

INITIAL_MANUFACTURER_STOCK = 5


async def seed_demo_data(db: AsyncSession) -> Dict[str, Any]:
    """写入演示数据并提交，返回创建的对象"""
    manufacturer = Entity(name="VinFast 厂商", code=settings.MANUFACTURER_CODE,
                          entity_type="manufacturer", region="总部")
    dealer = Entity(name="城东经销商", code="D001", entity_type="dealer",
                    address="城东大道 1 号", region="华东")
    other_dealer = Entity(name="城西经销商", code="D002", entity_type="dealer",
                          address="城西路 8 号", region="华东")
    customer = Entity(name="张三", code="C001", entity_type="customer",
                      phone="13800000000", address="幸福小区 3 栋")
    db.add_all([manufacturer, dealer, other_dealer, customer])

    variant = VehicleVariant(model_name="VF8", trim="Plus", msrp=Decimal("45000.00"))
    color = VehicleColor(name="珍珠白", code="WHITE")
    db.add_all([variant, color])
    await db.flush()

    users = {
        "dealer_staff": User(username="staff", role=DEALER_STAFF, dealer_id=dealer.id),
        "dealer_manager": User(username="manager", role=DEALER_MANAGER, dealer_id=dealer.id),
        "evm_staff": User(username="evm", role=EVM_STAFF),
        "admin": User(username="admin", role=ADMIN),
        "other_staff": User(username="other_staff", role=DEALER_STAFF, dealer_id=other_dealer.id),
    }
    db.add_all(users.values())
    await db.flush()

    await receive_stock(db, manufacturer.id, variant.id, color.id, INITIAL_MANUFACTURER_STOCK,
                        operator_id=users["admin"].id, reason="期初库存")
    await db.commit()

    logger.info(f"🌱 演示数据已写入: 厂商库存 {INITIAL_MANUFACTURER_STOCK} 台")
    return {
        "manufacturer": manufacturer,
        "dealer": dealer,
        "other_dealer": other_dealer,
        "customer": customer,
        "variant": variant,
        "color": color,
        **users,
    }
