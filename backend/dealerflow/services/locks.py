"""
按键加锁的临界区

库存台账的每次变更都必须在涉及到的库存键（车型, 颜色, 归属方）的锁内完成，
并且在持锁期间提交事务，这样两个并发的分配请求不会同时看到"库存充足"。

- 锁按键排序后依次获取，避免两个请求交叉持锁导致死锁
- 不同订单只要不争用同一批库存键就不会互相阻塞
- 锁对象用弱引用保存，没有人持有时自动回收

这是单进程内的临界区；多进程部署时依赖数据库的行锁（SELECT ... FOR UPDATE）。
"""

import asyncio
import logging
import weakref
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, AsyncIterator, Hashable, Iterable, List, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def stock_key(owner_id: int, variant_id: int, color_id: Any) -> Tuple:
    return ("stock", owner_id, variant_id, color_id)


def order_key(order_id: int) -> Tuple:
    return ("order", order_id)


def request_key(request_id: int) -> Tuple:
    return ("vehicle_request", request_id)


def quote_key(quote_id: int) -> Tuple:
    return ("quote", quote_id)


def sequence_key(prefix: str) -> Tuple:
    """单号计数器，同一前缀的单据串行取号"""
    return ("sequence", prefix)


class KeyedLocks:
    """按键分配的 asyncio 锁集合"""

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[Hashable, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, keys: Iterable[Hashable]) -> AsyncIterator[None]:
        ordered = sorted(set(keys), key=repr)
        # 先拿到全部锁对象的强引用，持锁期间不会被回收
        locks: List[asyncio.Lock] = [self._lock_for(key) for key in ordered]
        async with AsyncExitStack() as stack:
            for lock in locks:
                await stack.enter_async_context(lock)
            yield


workflow_locks = KeyedLocks()


@asynccontextmanager
async def atomic(db: AsyncSession, keys: Iterable[Hashable]) -> AsyncIterator[None]:
    """
    在给定键的锁内执行一次完整的事务

    正常退出时提交，任何异常都回滚后原样抛出；提交发生在锁释放之前。
    """
    async with workflow_locks.hold(keys):
        try:
            yield
            await db.commit()
        except Exception:
            await db.rollback()
            raise
