"""
Telegram Notification Service

Direct user and group messaging for order events. Every send is best-effort:
failures are logged and reported as False, never raised.
"""

import logging
from decimal import Decimal
from typing import Optional

from telegram import Bot
from telegram.error import TelegramError, Forbidden

from config import Config
from models import Order, ServiceKind
from utils.constants import SERVICE_EMOJIS, SERVICE_TITLES

logger = logging.getLogger(__name__)


def _money(amount) -> str:
    return f"{Config.CURRENCY_SYMBOL}{Decimal(str(amount)):.2f}"


def _service_label(service: str) -> str:
    return SERVICE_TITLES[ServiceKind(service)]


def _service_emoji(service: str) -> str:
    return SERVICE_EMOJIS[ServiceKind(service)]


async def send_telegram_notification(bot: Bot, telegram_id: int, message: str, **kwargs) -> bool:
    """
    Send a message to a user or chat.

    Args:
        bot: python-telegram-bot Bot instance
        telegram_id: Target chat id
        message: Text to send

    Returns:
        True if delivered, False otherwise
    """
    try:
        await bot.send_message(chat_id=telegram_id, text=message, **kwargs)
        logger.debug(f"✅ TELEGRAM_SENT: chat={telegram_id}")
        return True
    except Forbidden:
        logger.info(f"🚫 TELEGRAM_BLOCKED: chat={telegram_id} has blocked the bot")
        return False
    except TelegramError as e:
        logger.warning(f"❌ TELEGRAM_ERROR: chat={telegram_id}, error={e}")
        return False


# ----------------------------------------------------------------------
# Order event messages
# ----------------------------------------------------------------------

def order_placed_text(order: Order) -> str:
    return (
        f"✅ Order placed successfully!\n\n"
        f"🆔 Order ID: {order.provider_order_id}\n"
        f"{_service_emoji(order.service)} Service: {_service_label(order.service)}\n"
        f"🔗 Link: {order.link}\n"
        f"🔢 Quantity: {order.quantity}\n"
        f"💰 Cost: {_money(order.cost)}\n\n"
        f"You will be notified when it completes."
    )


def order_completed_text(order: Order) -> str:
    return (
        f"🎉 Your order {order.provider_order_id} is completed!\n\n"
        f"{_service_label(order.service)}: {order.quantity} delivered to {order.link}"
    )


def order_partial_text(order: Order) -> str:
    return (
        f"⚠️ Your order {order.provider_order_id} was partially delivered.\n\n"
        f"{_service_label(order.service)} for {order.link}. Contact support "
        f"{Config.ADMIN_USERNAME} if you have questions."
    )


def order_cancelled_text(order: Order) -> str:
    return (
        f"❌ Your order {order.provider_order_id} was cancelled by the provider.\n\n"
        f"💰 {_money(order.cost)} has been refunded to your balance."
    )


def group_announcement_text(order: Order) -> str:
    handle = f"@{order.username}" if order.username else str(order.telegram_id)
    return (
        f"🆕 New order\n"
        f"👤 {handle}\n"
        f"{_service_emoji(order.service)} {_service_label(order.service)} x {order.quantity}\n"
        f"🔗 {order.link}\n"
        f"🆔 {order.provider_order_id}"
    )


async def announce_order_to_group(bot: Optional[Bot], group_chat_id: Optional[int], order: Order) -> bool:
    """Best-effort new-order announcement to the configured group"""
    if bot is None or not group_chat_id:
        return False

    delivered = await send_telegram_notification(bot, group_chat_id, group_announcement_text(order))
    if not delivered:
        logger.warning(f"⚠️ GROUP_ANNOUNCE_FAILED: order {order.provider_order_id} to group {group_chat_id}")
    return delivered
