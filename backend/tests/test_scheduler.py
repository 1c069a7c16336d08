"""数据库自动备份"""

import os

from dealerflow.services import scheduler
from dealerflow.services.scheduler import (
    AUTO_BACKUP_PREFIX, cleanup_old_backups, get_db_path, run_backup,
)


def test_db_path_from_uri():
    assert get_db_path("sqlite:///./data/app.db") == "./data/app.db"
    assert get_db_path("sqlite+aiosqlite:////tmp/app.db") == "/tmp/app.db"
    assert get_db_path("postgresql://localhost/app") is None


def test_backup_copies_database(tmp_path):
    db_file = tmp_path / "dealerflow.db"
    db_file.write_bytes(b"sqlite-bytes")

    backup_path = run_backup(str(db_file), keep_count=3)

    assert backup_path is not None
    assert os.path.basename(backup_path).startswith(AUTO_BACKUP_PREFIX)
    assert os.path.dirname(backup_path) == str(tmp_path / "backups")
    with open(backup_path, "rb") as f:
        assert f.read() == b"sqlite-bytes"


def test_missing_database_is_skipped(tmp_path):
    assert run_backup(str(tmp_path / "absent.db")) is None
    assert not (tmp_path / "backups").exists()


def test_cleanup_keeps_newest(tmp_path):
    names = [f"{AUTO_BACKUP_PREFIX}2026010{day}_030000_000000.db" for day in range(1, 6)]
    for name in names:
        (tmp_path / name).write_bytes(b"")
    (tmp_path / "manual_backup.db").write_bytes(b"")

    removed = cleanup_old_backups(str(tmp_path), keep_count=2)

    assert sorted(removed) == names[:3]
    remaining = sorted(os.listdir(tmp_path))
    assert remaining == sorted(names[3:] + ["manual_backup.db"])


def test_disabled_scheduler_reports_not_running():
    scheduler.init_scheduler()
    status = scheduler.get_scheduler_status()
    assert status == {"enabled": False, "running": False, "jobs": []}
    scheduler.shutdown_scheduler()
