"""
一键清除演示数据脚本
保留用户账户和车型目录，清除订单、库存、申请、报价等业务数据
"""

import asyncio
import sys
import os

# 添加项目路径
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from dealerflow.db.session import SessionLocal, engine


async def clear_business_data():
    """清除所有业务数据，保留用户与车型"""
    print("=" * 60)
    print("🧹 经销商履约系统 - 清除演示数据")
    print("=" * 60 + "\n")

    print("⚠️  警告：此操作将删除所有业务数据！")
    print("   包括：订单、交付、收款、库存、调车申请、报价、操作日志")
    print("   保留：用户账户、实体、车型和颜色\n")

    confirm = input("确认清除所有演示数据？输入 'YES' 确认: ")
    if confirm != "YES":
        print("\n❌ 操作已取消")
        return

    print("\n🗑️  开始清除数据...\n")

    # 按照外键依赖顺序删除
    tables_to_clear = [
        ("df_audit_logs", "操作日志"),
        ("df_payments", "收款"),
        ("df_deliveries", "交付"),
        ("df_stock_flows", "库存流水"),
        ("df_stocks", "库存"),
        ("df_order_flows", "订单流程"),
        ("df_order_items", "订单明细"),
        ("df_orders", "订单"),
        ("df_quote_items", "报价明细"),
        ("df_quotes", "报价"),
        ("df_request_flows", "调车申请流程"),
        ("df_vehicle_request_items", "调车申请明细"),
        ("df_vehicle_requests", "调车申请"),
        ("df_document_sequences", "单号计数器"),
    ]

    async with SessionLocal() as db:
        try:
            for table, name in tables_to_clear:
                await db.execute(text(f"DELETE FROM {table}"))
                print(f"   ✓ 清除 {name}")
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            print(f"\n❌ 清除失败: {e}")
            return

    await engine.dispose()

    print("\n" + "=" * 60)
    print("✅ 演示数据已清除！")
    print("=" * 60)
    print("\n💡 提示：")
    print("   厂商库存为空，需要先入库后才能分配订单和审批调车申请")


if __name__ == "__main__":
    asyncio.run(clear_business_data())
