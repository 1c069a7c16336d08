"""报价：保存、发送、批准、转订单"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from dealerflow.core.exceptions import ForbiddenError, InvalidRequestError, InvalidTransitionError, NotFoundError
from dealerflow.models.audit_log import AuditLog
from dealerflow.schemas.quote import QuoteItemCreate
from dealerflow.services.quote_workflow import create_quote, transition_quote


@pytest.fixture
def quote_items(demo):
    return [QuoteItemCreate(
        variant_id=demo["variant"].id,
        color_id=demo["color"].id,
        quantity=2,
        unit_price=10000,
    )]


async def test_total_defaults_to_subtotal_minus_discount_plus_fees(db, demo, quote_items):
    quote = await create_quote(db, demo["dealer_staff"], demo["customer"].id, quote_items,
                               discount=500, fees=200)
    assert quote.status == "draft"
    assert quote.subtotal == Decimal("20000")
    assert quote.total == Decimal("19700")


async def test_submitted_total_is_kept(db, demo, quote_items):
    quote = await create_quote(db, demo["dealer_staff"], demo["customer"].id, quote_items,
                               discount=500, total=18888)
    assert quote.total == Decimal("18888")


async def test_evm_cannot_quote(db, demo, quote_items):
    with pytest.raises(ForbiddenError):
        await create_quote(db, demo["evm_staff"], demo["customer"].id, quote_items)


async def test_customer_must_exist(db, demo, quote_items):
    with pytest.raises(NotFoundError):
        await create_quote(db, demo["dealer_staff"], demo["dealer"].id, quote_items)


async def test_convert_creates_new_order_with_quote_total(db, demo, quote_items, stock_of):
    quote = await create_quote(db, demo["dealer_staff"], demo["customer"].id, quote_items,
                               discount=1000)

    quote, order = await transition_quote(db, quote.id, "send", demo["dealer_staff"])
    assert quote.status == "sent"
    assert order is None

    quote, _ = await transition_quote(db, quote.id, "approve", demo["dealer_manager"])
    assert quote.status == "accepted"

    quote, order = await transition_quote(db, quote.id, "convert", demo["dealer_staff"])
    assert quote.status == "converted"
    assert order.status == "new"
    assert order.quote_id == quote.id
    assert order.total_amount == Decimal("19000")
    assert [(item.quantity, item.unit_price) for item in order.items] == [(2, Decimal("10000"))]
    assert order.flows[0].meta_data == {"quote_id": quote.id}
    # 转订单不占用库存
    assert await stock_of(demo["manufacturer"]) == (5, 0)

    result = await db.execute(
        select(AuditLog.action).where(AuditLog.resource_type == "quote").order_by(AuditLog.id)
    )
    assert list(result.scalars().all()) == ["create", "status", "status", "convert"]


async def test_staff_cannot_approve(db, demo, quote_items):
    quote = await create_quote(db, demo["dealer_staff"], demo["customer"].id, quote_items)
    with pytest.raises(ForbiddenError):
        await transition_quote(db, quote.id, "approve", demo["dealer_staff"])


async def test_cannot_convert_before_approval(db, demo, quote_items):
    quote = await create_quote(db, demo["dealer_staff"], demo["customer"].id, quote_items)
    await transition_quote(db, quote.id, "send", demo["dealer_staff"])
    with pytest.raises(InvalidTransitionError) as exc_info:
        await transition_quote(db, quote.id, "convert", demo["dealer_staff"])
    assert exc_info.value.current_status == "sent"


async def test_converted_quote_is_final(db, demo, quote_items):
    quote = await create_quote(db, demo["dealer_staff"], demo["customer"].id, quote_items)
    await transition_quote(db, quote.id, "approve", demo["dealer_manager"])
    await transition_quote(db, quote.id, "convert", demo["dealer_staff"])
    with pytest.raises(InvalidTransitionError):
        await transition_quote(db, quote.id, "convert", demo["dealer_staff"])


async def test_other_dealer_cannot_touch_quote(db, demo, quote_items):
    quote = await create_quote(db, demo["dealer_staff"], demo["customer"].id, quote_items)
    with pytest.raises(ForbiddenError):
        await transition_quote(db, quote.id, "send", demo["other_staff"])


async def test_quote_needs_items(db, demo):
    with pytest.raises(InvalidRequestError) as exc_info:
        await create_quote(db, demo["dealer_staff"], demo["customer"].id, [])
    assert exc_info.value.detail["code"] == "invalid_request"
