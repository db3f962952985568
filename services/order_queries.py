"""Read-side order and user queries shared by handlers and services"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from models import Order, OrderStatus, ServiceKind, User, ACTIVE_ORDER_STATUSES
from utils.constants import RECENT_ORDERS_LIMIT


async def get_user(session: AsyncSession, telegram_id: int) -> Optional[User]:
    result = await session.execute(select(User).where(User.telegram_id == telegram_id))
    return result.scalar_one_or_none()


async def find_active_order(
    session: AsyncSession, telegram_id: int, link: str, service: ServiceKind
) -> Optional[Order]:
    """An order for the same user, link and service that is still pending or processing"""
    result = await session.execute(
        select(Order).where(
            Order.telegram_id == telegram_id,
            Order.link == link,
            Order.service == service.value,
            Order.status.in_(ACTIVE_ORDER_STATUSES),
        ).limit(1)
    )
    return result.scalar_one_or_none()


async def recent_orders(session: AsyncSession, telegram_id: int, limit: int = RECENT_ORDERS_LIMIT) -> List[Order]:
    result = await session.execute(
        select(Order)
        .where(Order.telegram_id == telegram_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def count_orders(session: AsyncSession, telegram_id: Optional[int] = None, statuses=None,
                       created_since: Optional[datetime] = None) -> int:
    stmt = select(func.count(Order.id))
    if telegram_id is not None:
        stmt = stmt.where(Order.telegram_id == telegram_id)
    if statuses is not None:
        stmt = stmt.where(Order.status.in_(list(statuses)))
    if created_since is not None:
        stmt = stmt.where(Order.created_at >= created_since)
    result = await session.execute(stmt)
    return int(result.scalar_one())


async def count_users(session: AsyncSession) -> int:
    result = await session.execute(select(func.count(User.id)))
    return int(result.scalar_one())


async def completed_order_count(session: AsyncSession, telegram_id: int) -> int:
    return await count_orders(session, telegram_id=telegram_id, statuses=[OrderStatus.COMPLETED.value])


async def active_order_count(session: AsyncSession, telegram_id: Optional[int] = None) -> int:
    return await count_orders(session, telegram_id=telegram_id, statuses=ACTIVE_ORDER_STATUSES)
