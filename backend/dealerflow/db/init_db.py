import asyncio
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from dealerflow.db.session import engine as default_engine
from dealerflow.db.base import Base

# 导入全部模型，确保表能被创建
import dealerflow.models  # noqa: F401


async def ensure_tables_exist(engine: Optional[AsyncEngine] = None) -> None:
    """
    确保数据库表存在（应用启动时调用）
    """
    async with (engine or default_engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


if __name__ == "__main__":
    asyncio.run(ensure_tables_exist())
