"""单号：计数器递增、按前缀独立、超过 999 不回绕"""

from datetime import datetime

import pytest
from sqlalchemy import select

from dealerflow.models.sequence import DocumentSequence
from dealerflow.services.locks import atomic, sequence_key
from dealerflow.services.numbering import ORDER_PREFIX, PAYMENT_PREFIX, generate_no


def _today() -> str:
    return datetime.now().strftime("%Y%m%d")


async def _next(db, prefix: str) -> str:
    async with atomic(db, [sequence_key(prefix)]):
        return await generate_no(db, prefix)


async def test_first_number_of_the_day(db):
    assert await _next(db, ORDER_PREFIX) == f"SO{_today()}001"
    assert await _next(db, ORDER_PREFIX) == f"SO{_today()}002"


async def test_prefixes_count_separately(db):
    await _next(db, ORDER_PREFIX)
    await _next(db, ORDER_PREFIX)
    assert await _next(db, PAYMENT_PREFIX) == f"PAY{_today()}001"


async def test_sequence_continues_past_999(db):
    db.add(DocumentSequence(name=f"SO{_today()}", current_value=999))
    await db.commit()

    assert await _next(db, ORDER_PREFIX) == f"SO{_today()}1000"
    assert await _next(db, ORDER_PREFIX) == f"SO{_today()}1001"

    result = await db.execute(select(DocumentSequence).where(DocumentSequence.name == f"SO{_today()}"))
    assert result.scalar_one().current_value == 1001


async def test_rolled_back_number_is_reused(db):
    with pytest.raises(RuntimeError):
        async with atomic(db, [sequence_key(ORDER_PREFIX)]):
            await generate_no(db, ORDER_PREFIX)
            raise RuntimeError("下单失败")

    assert await _next(db, ORDER_PREFIX) == f"SO{_today()}001"
