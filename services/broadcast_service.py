"""Admin broadcast to every registered user, paced and logged"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List

from sqlalchemy import select
from telegram import Bot
from telegram.error import TelegramError, Forbidden, BadRequest

from config import Config
from database import get_async_session
from models import BroadcastLog, User

logger = logging.getLogger(__name__)


@dataclass
class BroadcastResult:
    total_users: int
    delivered: int
    failed: int
    started_at: datetime
    duration: float


class BroadcastService:
    """Sends one message to all users, one at a time"""

    def __init__(self, bot: Bot, delay: float = None):
        self.bot = bot
        self.delay = Config.BROADCAST_DELAY_SECONDS if delay is None else delay

    async def _recipients(self) -> List[int]:
        async with get_async_session() as session:
            result = await session.execute(
                select(User.telegram_id).where(User.is_banned.is_(False)).order_by(User.id)
            )
            return [row for row in result.scalars().all()]

    async def _send(self, telegram_id: int, message: str) -> bool:
        try:
            await self.bot.send_message(chat_id=telegram_id, text=message)
            return True
        except Forbidden:
            logger.info(f"User {telegram_id} has blocked the bot")
            return False
        except BadRequest as e:
            logger.info(f"Bad request for user {telegram_id}: {e}")
            return False
        except TelegramError as e:
            logger.warning(f"Telegram error for user {telegram_id}: {e}")
            return False

    async def broadcast(self, message: str, admin_user_id: int) -> BroadcastResult:
        """Deliver `message` to every user and record a broadcast log entry"""
        started_at = datetime.utcnow()
        recipients = await self._recipients()
        logger.info(f"📢 BROADCAST_STARTED: admin {admin_user_id} -> {len(recipients)} users")

        delivered = 0
        for index, telegram_id in enumerate(recipients):
            if await self._send(telegram_id, message):
                delivered += 1
            if self.delay and index < len(recipients) - 1:
                await asyncio.sleep(self.delay)

        async with get_async_session() as session:
            session.add(BroadcastLog(
                message=message,
                sent_by=admin_user_id,
                recipients_count=delivered,
                created_at=datetime.utcnow(),
            ))

        result = BroadcastResult(
            total_users=len(recipients),
            delivered=delivered,
            failed=len(recipients) - delivered,
            started_at=started_at,
            duration=(datetime.utcnow() - started_at).total_seconds(),
        )
        logger.info(
            f"✅ BROADCAST_COMPLETED: {result.delivered}/{result.total_users} delivered in {result.duration:.1f}s"
        )
        return result
