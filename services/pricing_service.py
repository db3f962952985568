"""Order pricing"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from models import ServiceKind
from services.balance_ledger import quantize_money
from services.settings_service import SettingsService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Quote:
    service: ServiceKind
    quantity: int
    price_per_1k: Decimal
    cost: Decimal


def calculate_cost(price_per_1k: Decimal, quantity: int) -> Decimal:
    """cost = round(price / 1000 * quantity, 2)"""
    return quantize_money(Decimal(str(price_per_1k)) / Decimal(1000) * Decimal(quantity))


async def quote_order(session: AsyncSession, service: ServiceKind, quantity: int) -> Quote:
    """Price an order with the price in effect right now"""
    price = await SettingsService.get_price_per_1k(session, service)
    cost = calculate_cost(price, quantity)
    logger.debug(f"Quoted {quantity} {service.value} at {price}/1k = {cost}")
    return Quote(service=service, quantity=quantity, price_per_1k=price, cost=cost)
