"""
Balance Ledger

Debit and credit on a user's balance as single atomic UPDATE statements, so
concurrent writers never lose an update. Neither operation checks
sufficiency; callers verify funds before debiting.
"""

import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from models import User

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def quantize_money(amount) -> Decimal:
    """Round a currency amount to two decimals"""
    return Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)


class BalanceLedger:
    """Ledger operations - run inside the caller's transaction"""

    @staticmethod
    async def debit(session: AsyncSession, telegram_id: int, amount, mark_order: bool = False) -> bool:
        """balance -= amount, total_spent += amount. Returns False if the user row is missing."""
        value = quantize_money(amount)
        values = {
            "balance": User.balance - value,
            "total_spent": User.total_spent + value,
        }
        if mark_order:
            values["last_order_at"] = datetime.utcnow()

        result = await session.execute(
            update(User).where(User.telegram_id == telegram_id).values(**values)
        )
        if result.rowcount != 1:
            logger.error(f"❌ LEDGER_DEBIT_MISSED: user {telegram_id} not found for debit of {value}")
            return False

        logger.info(f"💸 LEDGER_DEBIT: user {telegram_id} -{value}")
        return True

    @staticmethod
    async def credit(session: AsyncSession, telegram_id: int, amount) -> bool:
        """balance += amount. Returns False if the user row is missing."""
        value = quantize_money(amount)
        result = await session.execute(
            update(User).where(User.telegram_id == telegram_id).values(balance=User.balance + value)
        )
        if result.rowcount != 1:
            logger.error(f"❌ LEDGER_CREDIT_MISSED: user {telegram_id} not found for credit of {value}")
            return False

        logger.info(f"💰 LEDGER_CREDIT: user {telegram_id} +{value}")
        return True
