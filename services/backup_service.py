"""
Automated Backup Service
Periodic JSON export of users and orders
"""

import datetime
import json
import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional

from sqlalchemy import select

from config import Config
from database import get_async_session
from models import Order, User

logger = logging.getLogger(__name__)

_USER_FIELDS = (
    "telegram_id", "username", "balance", "total_spent", "joined_at", "last_order_at", "is_banned",
)
_ORDER_FIELDS = (
    "provider_order_id", "telegram_id", "username", "service", "link", "quantity", "cost",
    "status", "provider_status", "created_at", "updated_at",
)


def _serialize(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


def _row_to_dict(row, fields) -> Dict[str, Any]:
    return {name: _serialize(getattr(row, name)) for name in fields}


class BackupService:
    """JSON export backups of the storefront tables"""

    def __init__(self, backup_dir: Optional[str] = None, retention_days: Optional[int] = None):
        self.backup_dir = Path(backup_dir or Config.BACKUP_PATH)
        self.retention_days = Config.BACKUP_RETENTION_DAYS if retention_days is None else retention_days

    async def export_snapshot(self) -> Dict[str, Any]:
        """Collect users and orders into a JSON-serializable dict"""
        async with get_async_session() as session:
            users = (await session.execute(select(User).order_by(User.id))).scalars().all()
            orders = (await session.execute(select(Order).order_by(Order.id))).scalars().all()

            return {
                "created_at": datetime.datetime.utcnow().isoformat(),
                "users": [_row_to_dict(user, _USER_FIELDS) for user in users],
                "orders": [_row_to_dict(order, _ORDER_FIELDS) for order in orders],
            }

    async def create_backup(self) -> str:
        """Write a timestamped backup file and return its path"""
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
        backup_path = self.backup_dir / f"backup_{timestamp}.json"

        snapshot = await self.export_snapshot()
        with open(backup_path, "w") as f:
            json.dump(snapshot, f, indent=2, default=str)

        logger.info(
            f"💾 Backup created: {backup_path} "
            f"({len(snapshot['users'])} users, {len(snapshot['orders'])} orders)"
        )
        return str(backup_path)

    def cleanup_old_backups(self) -> int:
        """Remove backups older than the retention window"""
        if self.retention_days <= 0 or not self.backup_dir.exists():
            return 0

        cutoff_date = datetime.datetime.now() - datetime.timedelta(days=self.retention_days)
        deleted_count = 0
        for backup_file in self.backup_dir.glob("backup_*.json"):
            timestamp_str = backup_file.stem.replace("backup_", "")
            try:
                backup_date = datetime.datetime.strptime(timestamp_str, "%Y%m%d_%H%M%S")
            except ValueError:
                logger.debug(f"Skipping unrecognized backup file {backup_file}")
                continue
            if backup_date < cutoff_date:
                backup_file.unlink()
                deleted_count += 1

        if deleted_count > 0:
            logger.info(f"🧹 Deleted {deleted_count} old backups")
        return deleted_count


# Global backup service instance
backup_service = BackupService()


async def run_backup():
    """Scheduled backup job"""
    try:
        logger.info("💾 Starting automated backup")
        await backup_service.create_backup()
        backup_service.cleanup_old_backups()
    except (OSError, ValueError) as e:
        logger.error(f"❌ Backup failed: {e}")
