"""
Order Placement Engine

Turns a confirmed conversation into a provider order and a balance debit.

Flow:
1. Claim the AWAITING_CONFIRMATION session (compare-and-swap to IDLE) so a
   double tap on Confirm can only place one order.
2. Duplicate guard, then balance check, both before any money moves.
3. Provider call, outside any transaction.
4. Order insert and debit committed together.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from telegram import Bot

from database import get_async_session
from models import ConversationState, Order, OrderStatus, ServiceKind
from services.balance_ledger import BalanceLedger, quantize_money
from services.conversation_service import ConversationConflictError, ConversationService
from services.notification_service import announce_order_to_group
from services.order_queries import find_active_order, get_user
from services.settings_service import SettingsService
from services.smm_provider_service import smm_provider_service

logger = logging.getLogger(__name__)


class PlacementOutcome(Enum):
    SUCCESS = "success"
    NO_PENDING_ORDER = "no_pending_order"
    DUPLICATE = "duplicate"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    PROVIDER_FAILED = "provider_failed"
    CONFLICT = "conflict"
    RECORD_FAILED = "record_failed"


@dataclass
class PlacementResult:
    outcome: PlacementOutcome
    order: Optional[Order] = None
    balance: Optional[Decimal] = None
    cost: Optional[Decimal] = None
    details: dict = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.outcome == PlacementOutcome.SUCCESS


@dataclass
class _ClaimedOrder:
    service: ServiceKind
    link: str
    quantity: int
    cost: Decimal
    provider_service_id: int


class OrderPlacementService:
    """Confirms pending orders collected by the conversation dialog"""

    def __init__(self, provider=None):
        self.provider = provider or smm_provider_service

    async def _claim(self, telegram_id: int):
        """
        Phase 1: consume the confirmation step and check preconditions.

        Returns (claimed order, None) to proceed or (None, PlacementResult)
        to stop. Every outcome leaves the session IDLE.
        """
        async with get_async_session() as session:
            snapshot = await ConversationService.get(session, telegram_id)
            if snapshot.state != ConversationState.AWAITING_CONFIRMATION or snapshot.cost is None:
                return None, PlacementResult(PlacementOutcome.NO_PENDING_ORDER)

            try:
                await ConversationService.transition(session, snapshot, ConversationState.IDLE)
            except ConversationConflictError:
                return None, PlacementResult(PlacementOutcome.CONFLICT)

            cost = quantize_money(snapshot.cost)

            duplicate = await find_active_order(session, telegram_id, snapshot.link, snapshot.service)
            if duplicate is not None:
                logger.info(
                    f"🚫 DUPLICATE_ORDER_BLOCKED: user {telegram_id} has active order "
                    f"{duplicate.provider_order_id} for {snapshot.service.value}"
                )
                return None, PlacementResult(
                    PlacementOutcome.DUPLICATE,
                    details={"provider_order_id": duplicate.provider_order_id},
                )

            user = await get_user(session, telegram_id)
            balance = quantize_money(user.balance) if user else Decimal("0.00")
            if user is None or balance < cost:
                logger.info(f"💳 INSUFFICIENT_BALANCE: user {telegram_id} balance {balance} < cost {cost}")
                return None, PlacementResult(PlacementOutcome.INSUFFICIENT_BALANCE, balance=balance, cost=cost)

            service_id = await SettingsService.get_provider_service_id(session, snapshot.service)
            return _ClaimedOrder(
                service=snapshot.service,
                link=snapshot.link,
                quantity=snapshot.quantity,
                cost=cost,
                provider_service_id=service_id,
            ), None

    async def confirm_order(self, telegram_id: int, username: Optional[str] = None,
                            bot: Optional[Bot] = None) -> PlacementResult:
        """Place the order awaiting confirmation for a user"""
        claimed, stopped = await self._claim(telegram_id)
        if stopped is not None:
            return stopped

        # Phase 2: provider call, no transaction open
        provider_order = await self.provider.create_order(
            claimed.provider_service_id, claimed.link, claimed.quantity
        )
        if provider_order is None or not provider_order.order_id:
            logger.warning(
                f"⚠️ PROVIDER_ORDER_FAILED: user {telegram_id} {claimed.service.value} x {claimed.quantity}"
            )
            return PlacementResult(PlacementOutcome.PROVIDER_FAILED, cost=claimed.cost)

        # Phase 3: order insert + debit in one transaction
        try:
            async with get_async_session() as session:
                order = Order(
                    provider_order_id=provider_order.order_id,
                    telegram_id=telegram_id,
                    username=username,
                    service=claimed.service.value,
                    link=claimed.link,
                    quantity=claimed.quantity,
                    cost=claimed.cost,
                    status=OrderStatus.PENDING.value,
                    provider_status=provider_order.status,
                )
                session.add(order)
                await session.flush()

                if not await BalanceLedger.debit(session, telegram_id, claimed.cost, mark_order=True):
                    raise SQLAlchemyError(f"User {telegram_id} vanished before debit")

                group_chat_id = await SettingsService.get_group_chat_id(session)
        except SQLAlchemyError as e:
            logger.critical(
                f"🚨 ORDER_RECORD_FAILED: provider accepted order {provider_order.order_id} for user "
                f"{telegram_id} but it could not be recorded: {e}"
            )
            return PlacementResult(
                PlacementOutcome.RECORD_FAILED,
                cost=claimed.cost,
                details={"provider_order_id": provider_order.order_id},
            )

        logger.info(
            f"✅ ORDER_PLACED: user {telegram_id} provider order {order.provider_order_id} "
            f"{claimed.service.value} x {claimed.quantity} cost {claimed.cost}"
        )

        await announce_order_to_group(bot, group_chat_id, order)
        return PlacementResult(PlacementOutcome.SUCCESS, order=order, cost=claimed.cost)


order_placement_service = OrderPlacementService()
