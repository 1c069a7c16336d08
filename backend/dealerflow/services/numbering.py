"""
单号生成：{前缀}{年月日}{序号}，如 SO20241202001

序号来自计数器行而不是已有单号的最大值，当天超过 999 张时自然变为四位。
调用方必须在 sequence_key(prefix) 的锁内调用，并在锁内提交（services.locks.atomic）。
"""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dealerflow.models.sequence import DocumentSequence

logger = logging.getLogger(__name__)

ORDER_PREFIX = "SO"
PAYMENT_PREFIX = "PAY"
REQUEST_PREFIX = "VR"
QUOTE_PREFIX = "QT"


async def generate_no(db: AsyncSession, prefix: str) -> str:
    """递增当天的计数器并返回新单号"""
    name = f"{prefix}{datetime.now().strftime('%Y%m%d')}"

    result = await db.execute(
        select(DocumentSequence)
        .where(DocumentSequence.name == name)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    sequence = result.scalar_one_or_none()
    if sequence is None:
        sequence = DocumentSequence(name=name, current_value=0)
        db.add(sequence)

    sequence.current_value += 1
    await db.flush()
    return f"{name}{sequence.current_value:03d}"
