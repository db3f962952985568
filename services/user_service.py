"""User registration and lookups"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from models import User
from services.order_queries import get_user

logger = logging.getLogger(__name__)


async def register_user(session: AsyncSession, telegram_id: int, username: Optional[str]) -> Tuple[User, bool]:
    """
    Create the user on first contact.

    Existing users keep their balance and history; only a changed username
    is refreshed. Returns (user, created).
    """
    user = await get_user(session, telegram_id)
    if user is not None:
        if username and user.username != username:
            user.username = username
        return user, False

    user = User(
        telegram_id=telegram_id,
        username=username,
        balance=Decimal("0.00"),
        total_spent=Decimal("0.00"),
        joined_at=datetime.utcnow(),
        is_banned=False,
    )
    session.add(user)
    await session.flush()
    logger.info(f"👋 NEW_USER: {telegram_id} (@{username or 'NoUsername'})")
    return user, True


async def is_banned(session: AsyncSession, telegram_id: int) -> bool:
    user = await get_user(session, telegram_id)
    return bool(user and user.is_banned)
