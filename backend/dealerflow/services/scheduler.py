"""
定时任务调度器
使用 APScheduler 每天定时备份 SQLite 数据库，只保留最近 N 份自动备份
"""

import os
import shutil
import logging
from datetime import datetime
from typing import List, Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from dealerflow.core.config import settings

logger = logging.getLogger(__name__)

AUTO_BACKUP_PREFIX = "auto_backup_"

# 全局调度器实例
scheduler: Optional[AsyncIOScheduler] = None


def get_db_path(database_uri: Optional[str] = None) -> Optional[str]:
    """数据库文件路径；非 SQLite 数据库返回 None"""
    uri = database_uri or settings.SQLITE_DATABASE_URI
    for prefix in ("sqlite+aiosqlite:///", "sqlite:///"):
        if uri.startswith(prefix):
            return uri[len(prefix):]
    return None


def get_backup_dir(db_path: str) -> str:
    """备份目录：数据库文件同级的 backups/"""
    backup_dir = os.path.join(os.path.dirname(os.path.abspath(db_path)), "backups")
    os.makedirs(backup_dir, exist_ok=True)
    return backup_dir


def run_backup(db_path: Optional[str] = None, keep_count: Optional[int] = None) -> Optional[str]:
    """执行一次备份，返回备份文件路径；数据库文件不存在时跳过"""
    db_path = db_path or get_db_path()
    if not db_path or not os.path.exists(db_path):
        logger.warning(f"数据库文件不存在，跳过备份: {db_path}")
        return None

    backup_dir = get_backup_dir(db_path)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    backup_filename = f"{AUTO_BACKUP_PREFIX}{timestamp}.db"
    backup_path = os.path.join(backup_dir, backup_filename)

    shutil.copy2(db_path, backup_path)
    size_mb = os.stat(backup_path).st_size / 1024 / 1024
    logger.info(f"✅ 自动备份完成: {backup_filename} ({size_mb:.2f} MB)")

    cleanup_old_backups(backup_dir, keep_count=keep_count or settings.AUTO_BACKUP_KEEP_COUNT)
    return backup_path


def cleanup_old_backups(backup_dir: str, keep_count: int = 7) -> List[str]:
    """删除超出保留数量的自动备份，返回被删除的文件名"""
    auto_backups = [
        filename for filename in os.listdir(backup_dir)
        if filename.startswith(AUTO_BACKUP_PREFIX) and filename.endswith(".db")
    ]
    # 文件名带时间戳，倒序即最新在前
    auto_backups.sort(reverse=True)

    removed = []
    for filename in auto_backups[keep_count:]:
        os.remove(os.path.join(backup_dir, filename))
        removed.append(filename)
        logger.info(f"🗑️ 清理旧备份: {filename}")
    return removed


def auto_backup():
    """定时任务入口：失败只记录日志，不影响调度器"""
    try:
        run_backup()
    except OSError as e:
        logger.error(f"❌ 自动备份失败: {str(e)}")


def init_scheduler():
    """初始化并启动调度器"""
    global scheduler

    if not settings.AUTO_BACKUP_ENABLED:
        logger.info("📦 自动备份已禁用")
        return

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        auto_backup,
        trigger=CronTrigger(
            hour=settings.AUTO_BACKUP_HOUR,
            minute=settings.AUTO_BACKUP_MINUTE
        ),
        id="auto_backup",
        name="自动数据库备份",
        replace_existing=True
    )

    scheduler.start()
    logger.info(f"⏰ 定时任务调度器已启动 - 自动备份时间: 每天 {settings.AUTO_BACKUP_HOUR:02d}:{settings.AUTO_BACKUP_MINUTE:02d}")


def shutdown_scheduler():
    """关闭调度器"""
    global scheduler
    if scheduler:
        scheduler.shutdown()
        scheduler = None
        logger.info("⏰ 定时任务调度器已关闭")


def get_scheduler_status() -> dict:
    """调度器状态"""
    if not scheduler:
        return {"enabled": settings.AUTO_BACKUP_ENABLED, "running": False, "jobs": []}

    jobs = [
        {
            "id": job.id,
            "name": job.name,
            "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None
        }
        for job in scheduler.get_jobs()
    ]
    return {"enabled": settings.AUTO_BACKUP_ENABLED, "running": scheduler.running, "jobs": jobs}
