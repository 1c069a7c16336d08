"""库存台账：预留、释放、调拨、分配"""

import pytest
from sqlalchemy import select

from dealerflow.core.exceptions import InsufficientInventoryError
from dealerflow.models.stock import StockFlow
from dealerflow.services.inventory_ledger import (
    AllocationLine, aggregate_lines, allocate, get_stock, receive_stock,
    release_stock, reserve_stock, transfer_stock,
)


@pytest.fixture
def sku(demo):
    return demo["variant"].id, demo["color"].id


class TestReserveRelease:

    async def test_reserve_within_available(self, db, demo, sku):
        stock = await reserve_stock(db, demo["manufacturer"].id, *sku, 3)
        await db.commit()
        assert (stock.quantity, stock.reserved_quantity) == (5, 3)
        assert stock.available_quantity == 2

    async def test_reserve_beyond_available(self, db, demo, sku):
        await reserve_stock(db, demo["manufacturer"].id, *sku, 4)
        with pytest.raises(InsufficientInventoryError) as exc_info:
            await reserve_stock(db, demo["manufacturer"].id, *sku, 2)
        error = exc_info.value
        assert (error.requested, error.available) == (2, 1)
        assert error.detail["variant_id"] == sku[0]
        assert error.detail["color_id"] == sku[1]

    async def test_reserve_unknown_stock(self, db, demo, sku):
        with pytest.raises(InsufficientInventoryError) as exc_info:
            await reserve_stock(db, demo["dealer"].id, *sku, 1)
        assert exc_info.value.available == 0

    async def test_release_never_goes_negative(self, db, demo, sku):
        await reserve_stock(db, demo["manufacturer"].id, *sku, 2)
        stock = await release_stock(db, demo["manufacturer"].id, *sku, 5)
        assert stock.reserved_quantity == 0
        assert stock.quantity == 5

    async def test_quantity_must_be_positive(self, db, demo, sku):
        with pytest.raises(ValueError):
            await reserve_stock(db, demo["manufacturer"].id, *sku, 0)


class TestTransfer:

    async def test_transfer_requires_reservation(self, db, demo, sku):
        with pytest.raises(InsufficientInventoryError):
            await transfer_stock(db, demo["manufacturer"].id, demo["dealer"].id, *sku, 1)

    async def test_transfer_creates_destination(self, db, demo, sku):
        await reserve_stock(db, demo["manufacturer"].id, *sku, 2)
        source, target = await transfer_stock(db, demo["manufacturer"].id, demo["dealer"].id, *sku, 2)
        await db.commit()
        assert (source.quantity, source.reserved_quantity) == (3, 0)
        assert (target.quantity, target.reserved_quantity) == (2, 0)
        assert target.owner_id == demo["dealer"].id

    async def test_hold_at_destination(self, db, demo, sku):
        await reserve_stock(db, demo["manufacturer"].id, *sku, 2)
        _, target = await transfer_stock(db, demo["manufacturer"].id, demo["dealer"].id, *sku, 2,
                                         hold_at_destination=True)
        assert (target.quantity, target.reserved_quantity) == (2, 2)
        assert target.available_quantity == 0


class TestAllocate:

    async def test_allocate_all_available(self, db, demo, sku):
        await allocate(db, demo["manufacturer"].id, demo["dealer"].id, [AllocationLine(*sku, 5)])
        await db.commit()

        manufacturer = await get_stock(db, demo["manufacturer"].id, *sku)
        dealer = await get_stock(db, demo["dealer"].id, *sku)
        assert (manufacturer.quantity, manufacturer.reserved_quantity) == (0, 0)
        assert (dealer.quantity, dealer.reserved_quantity) == (5, 0)

    async def test_allocate_is_all_or_nothing(self, db, demo, sku):
        # 第二个车型没有库存
        variant_id, color_id = sku
        other_variant = variant_id + 1000
        lines = [AllocationLine(variant_id, color_id, 2), AllocationLine(other_variant, color_id, 1)]

        with pytest.raises(InsufficientInventoryError) as exc_info:
            await allocate(db, demo["manufacturer"].id, demo["dealer"].id, lines)
        assert exc_info.value.variant_id == other_variant
        await db.rollback()

        manufacturer = await get_stock(db, demo["manufacturer"].id, *sku)
        assert (manufacturer.quantity, manufacturer.reserved_quantity) == (5, 0)
        assert await get_stock(db, demo["dealer"].id, *sku) is None

    async def test_same_sku_lines_checked_in_total(self, db, demo, sku):
        lines = [AllocationLine(*sku, 3), AllocationLine(*sku, 3)]
        assert aggregate_lines(lines)[sku] == 6
        with pytest.raises(InsufficientInventoryError) as exc_info:
            await allocate(db, demo["manufacturer"].id, demo["dealer"].id, lines)
        assert (exc_info.value.requested, exc_info.value.available) == (6, 5)

    async def test_same_sku_lines_within_total(self, db, demo, sku):
        lines = [AllocationLine(*sku, 2), AllocationLine(*sku, 3)]
        await allocate(db, demo["manufacturer"].id, demo["dealer"].id, lines, hold_at_destination=True)
        await db.commit()

        manufacturer = await get_stock(db, demo["manufacturer"].id, *sku)
        dealer = await get_stock(db, demo["dealer"].id, *sku)
        assert (manufacturer.quantity, manufacturer.reserved_quantity) == (0, 0)
        assert (dealer.quantity, dealer.reserved_quantity) == (5, 5)

    async def test_every_mutation_is_journaled(self, db, demo, sku):
        await allocate(db, demo["manufacturer"].id, demo["dealer"].id, [AllocationLine(*sku, 2)],
                       order_id=None, reason="测试分配")
        await db.commit()

        result = await db.execute(select(StockFlow).order_by(StockFlow.id))
        flow_types = [flow.flow_type for flow in result.scalars().all()]
        # 期初入库 + 预留 + 调出 + 调入
        assert flow_types == ["in", "reserve", "transfer_out", "transfer_in"]


async def test_receive_adds_quantity(db, demo, sku):
    stock = await receive_stock(db, demo["dealer"].id, *sku, 4)
    await db.commit()
    assert (stock.quantity, stock.reserved_quantity) == (4, 0)
