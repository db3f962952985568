"""
Order Status Reconciliation

Polls the SMM provider for every order still pending or processing and moves
the local status forward. A transition to cancelled credits the order's cost
in the same transaction as the conditional status update, so an order is
refunded at most once no matter how many cycles observe it.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from telegram import Bot

from config import Config
from database import get_async_session
from models import ACTIVE_ORDER_STATUSES, Order, OrderStatus
from services.balance_ledger import BalanceLedger
from services.notification_service import (
    order_cancelled_text, order_completed_text, order_partial_text, send_telegram_notification,
)
from services.order_status import ProviderStatusOutcome, map_provider_status, resolve_transition
from services.smm_provider_service import smm_provider_service

logger = logging.getLogger(__name__)

_NOTIFICATION_TEXT = {
    OrderStatus.COMPLETED: order_completed_text,
    OrderStatus.PARTIAL: order_partial_text,
    OrderStatus.CANCELLED: order_cancelled_text,
}


@dataclass
class CycleSummary:
    checked: int = 0
    transitioned: int = 0
    refunded: int = 0
    skipped: int = 0
    unrecognized: int = 0
    errors: int = 0


class OrderStatusMonitor:
    """Single-flight reconciler for provider orders"""

    def __init__(self, provider=None, bot: Optional[Bot] = None, batch_size: Optional[int] = None):
        self.provider = provider or smm_provider_service
        self.bot = bot
        self.batch_size = batch_size or Config.STATUS_CHECK_BATCH_SIZE
        self._cycle_lock = asyncio.Lock()

    async def _load_batch(self) -> List[Order]:
        """Oldest non-terminal orders first"""
        async with get_async_session() as session:
            result = await session.execute(
                select(Order)
                .where(Order.status.in_(ACTIVE_ORDER_STATUSES))
                .order_by(Order.created_at.asc(), Order.id.asc())
                .limit(self.batch_size)
            )
            return list(result.scalars().all())

    async def run_cycle(self) -> Optional[CycleSummary]:
        """
        One reconciliation pass.

        Returns None without doing anything when another cycle still holds
        the token.
        """
        if self._cycle_lock.locked():
            logger.warning("⚠️ ORDER_STATUS_CYCLE_SKIPPED: previous cycle still running")
            return None

        async with self._cycle_lock:
            summary = CycleSummary()
            orders = await self._load_batch()
            if orders:
                logger.info(f"🔄 Checking {len(orders)} active orders with the provider")

            for order in orders:
                try:
                    await self._check_order(order, summary)
                except SQLAlchemyError as e:
                    # Failures stay per order; the rest of the batch is still polled
                    summary.errors += 1
                    logger.error(f"❌ ORDER_STATUS_CHECK_FAILED: order {order.provider_order_id}: {e}")

            if summary.transitioned or summary.unrecognized or summary.errors:
                logger.info(
                    f"✅ ORDER_STATUS_CYCLE_DONE: checked={summary.checked} transitioned={summary.transitioned} "
                    f"refunded={summary.refunded} skipped={summary.skipped} unrecognized={summary.unrecognized} "
                    f"errors={summary.errors}"
                )
            return summary

    async def _check_order(self, order: Order, summary: CycleSummary):
        summary.checked += 1
        provider_status = await self.provider.get_order_status(order.provider_order_id)
        if provider_status is None:
            logger.debug(f"Provider gave no usable status for order {order.provider_order_id} - retry next cycle")
            summary.skipped += 1
            return

        outcome = map_provider_status(provider_status.status)
        if outcome == ProviderStatusOutcome.UNRECOGNIZED:
            summary.unrecognized += 1
            logger.warning(
                f"⚠️ UNRECOGNIZED_PROVIDER_STATUS: order {order.provider_order_id} reported {provider_status.status!r}"
            )

        current = OrderStatus(order.status)
        target = resolve_transition(current, outcome)
        if target is None:
            await self._record_provider_status(order, provider_status.status)
            return

        applied = await self._apply_transition(order, current, target, provider_status.status)
        if not applied:
            return

        summary.transitioned += 1
        if target == OrderStatus.CANCELLED:
            summary.refunded += 1
        await self._notify(order, target)

    async def _record_provider_status(self, order: Order, provider_text: str):
        """No transition: only remember what the provider said"""
        if provider_text == order.provider_status:
            return
        async with get_async_session() as session:
            await session.execute(
                update(Order)
                .where(Order.id == order.id, Order.status == order.status)
                .values(provider_status=provider_text, updated_at=datetime.utcnow())
            )

    async def _apply_transition(self, order: Order, current: OrderStatus, target: OrderStatus,
                                provider_text: str) -> bool:
        """
        Conditional status update plus its ledger effect, committed together.

        Returns False if the order already left `current`.
        """
        async with get_async_session() as session:
            result = await session.execute(
                update(Order)
                .where(Order.id == order.id, Order.status == current.value)
                .values(status=target.value, provider_status=provider_text, updated_at=datetime.utcnow())
            )
            if result.rowcount != 1:
                logger.info(
                    f"Order {order.provider_order_id} already moved past {current.value} - transition skipped"
                )
                return False

            if target == OrderStatus.CANCELLED:
                await BalanceLedger.credit(session, order.telegram_id, order.cost)

        order.status = target.value
        order.provider_status = provider_text
        if target == OrderStatus.CANCELLED:
            logger.info(f"💰 ORDER_REFUNDED: order {order.provider_order_id} credited {order.cost} to user {order.telegram_id}")
        logger.info(f"🔀 ORDER_STATUS: order {order.provider_order_id} {current.value} -> {target.value}")
        return True

    async def _notify(self, order: Order, target: OrderStatus):
        build_text = _NOTIFICATION_TEXT.get(target)
        if build_text is None or self.bot is None:
            return
        await send_telegram_notification(self.bot, order.telegram_id, build_text(order))


# Global monitor instance
order_status_monitor = OrderStatusMonitor()


async def check_order_statuses():
    """Background job to reconcile active orders with the provider"""
    await order_status_monitor.run_cycle()
