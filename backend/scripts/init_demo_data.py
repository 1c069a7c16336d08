"""
演示数据初始化脚本
- 重建数据库表
- 写入厂商、经销商、客户、车型和四种角色的用户
- 厂商期初库存
"""

import asyncio
import sys
import os

# 添加项目路径
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dealerflow.db.base import Base
from dealerflow.db.session import engine, SessionLocal
from dealerflow.db.seed import seed_demo_data
import dealerflow.models  # noqa: F401


async def main():
    print("🗑️  重建数据库表...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with SessionLocal() as db:
        created = await seed_demo_data(db)

    print("\n✅ 演示数据初始化完成！")
    print("   请求时通过 X-User-Id 请求头指定操作人：")
    for key in ("dealer_staff", "dealer_manager", "evm_staff", "admin", "other_staff"):
        user = created[key]
        print(f"   {user.id:>3}  {user.username:<12} {user.role_display}")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
