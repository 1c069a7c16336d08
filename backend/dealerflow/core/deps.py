"""依赖注入 - 数据库会话与当前操作人"""
from typing import AsyncGenerator, Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from dealerflow.db.session import SessionLocal
from dealerflow.models.user import User


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    获取数据库会话依赖
    """
    async with SessionLocal() as session:
        yield session


async def get_current_user(
    db: AsyncSession = Depends(get_db),
    x_user_id: Optional[int] = Header(None)) -> User:
    """
    根据 X-User-Id 请求头加载当前操作人
    认证由网关负责，这里只做身份解析
    """
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="缺少 X-User-Id 请求头")
    user = await db.get(User, x_user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="操作人不存在或已禁用")
    return user
