"""
Admin commands - pricing, provider service ids, manual balance credits,
stats panel and broadcast. Every command is restricted to ADMIN_IDS.
"""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from telegram import Update
from telegram.ext import CommandHandler, ContextTypes

from config import Config
from database import get_async_session
from models import ServiceKind
from services.balance_ledger import BalanceLedger, quantize_money
from services.broadcast_service import BroadcastService
from services.notification_service import send_telegram_notification
from services.order_queries import active_order_count, count_orders, count_users
from services.settings_service import SettingsService
from utils.admin_security import admin_required
from utils.constants import PRICE_SETTING_BY_SERVICE, SERVICE_ID_SETTING_BY_SERVICE

logger = logging.getLogger(__name__)

_SERVICE_ALIASES = {
    "like": ServiceKind.LIKES,
    "likes": ServiceKind.LIKES,
    "view": ServiceKind.VIEWS,
    "views": ServiceKind.VIEWS,
}


def parse_service(raw: str) -> Optional[ServiceKind]:
    return _SERVICE_ALIASES.get((raw or "").strip().lower())


@admin_required
async def setprice_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/setprice <likes|views> <pricePer1K>"""
    args = context.args or []
    if len(args) < 2:
        await update.message.reply_text("Usage: /setprice <likes|views> <pricePer1K>")
        return

    service = parse_service(args[0])
    if service is None:
        await update.message.reply_text("Unknown type. Use likes or views")
        return
    try:
        price = Decimal(args[1])
    except InvalidOperation:
        await update.message.reply_text("Invalid price.")
        return
    if not price.is_finite() or price <= 0:
        await update.message.reply_text("Invalid price.")
        return

    async with get_async_session() as session:
        await SettingsService.set(session, PRICE_SETTING_BY_SERVICE[service], price)

    logger.info(f"💲 PRICE_CHANGED by admin {update.effective_user.id}: {service.value} = {price} per 1K")
    await update.message.reply_text(f"✅ Price updated: {service.value} = {price} per 1K")


@admin_required
async def setservice_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/setservice <likes|views> <serviceId>"""
    args = context.args or []
    if len(args) < 2:
        await update.message.reply_text("Usage: /setservice <likes|views> <serviceId>")
        return

    service = parse_service(args[0])
    if service is None:
        await update.message.reply_text("Unknown type. Use likes or views")
        return
    try:
        service_id = int(args[1])
    except ValueError:
        await update.message.reply_text("Invalid service id.")
        return

    async with get_async_session() as session:
        await SettingsService.set(session, SERVICE_ID_SETTING_BY_SERVICE[service], service_id)

    await update.message.reply_text(f"✅ Service ID updated: {service.value} = {service_id}")


@admin_required
async def addbalance_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/addbalance <userid> <amount> - manual credit after a verified payment"""
    args = context.args or []
    if len(args) < 2:
        await update.message.reply_text("Usage: /addbalance <userid> <amount>")
        return

    try:
        telegram_id = int(args[0])
        amount = quantize_money(Decimal(args[1]))
    except (ValueError, InvalidOperation):
        await update.message.reply_text("Invalid args")
        return
    if amount <= 0:
        await update.message.reply_text("Invalid args")
        return

    async with get_async_session() as session:
        credited = await BalanceLedger.credit(session, telegram_id, amount)

    if not credited:
        await update.message.reply_text(f"❌ User {telegram_id} not found. They must /start the bot first.")
        return

    logger.info(f"💰 ADMIN_CREDIT: admin {update.effective_user.id} added {amount} to {telegram_id}")
    await update.message.reply_text(f"✅ Added {Config.CURRENCY_SYMBOL}{amount} to {telegram_id}")
    await send_telegram_notification(
        context.bot, telegram_id,
        f"✅ {Config.CURRENCY_SYMBOL}{amount} has been added to your balance by admin.",
    )


@admin_required
async def panel_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/panel - user and order counters"""
    today = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    async with get_async_session() as session:
        users_count = await count_users(session)
        orders_today = await count_orders(session, created_since=today)
        running = await active_order_count(session)

    await update.message.reply_text(
        f"📊 Panel\n"
        f"👥 Users: {users_count}\n"
        f"🛒 Orders Today: {orders_today}\n"
        f"🔄 Running Orders: {running}"
    )


@admin_required
async def broadcast_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/broadcast <message> - runs in the background and reports when done"""
    # Keep the admin's line breaks
    parts = (update.message.text or "").split(None, 1)
    message = parts[1].strip() if len(parts) > 1 else ""
    if not message:
        await update.message.reply_text("Usage: /broadcast Your message here")
        return

    admin_id = update.effective_user.id
    service = BroadcastService(context.bot)

    async def run_broadcast():
        result = await service.broadcast(message, admin_id)
        await send_telegram_notification(
            context.bot, admin_id,
            f"📢 Broadcast completed. Sent to {result.delivered} of {result.total_users} users.",
        )

    await update.message.reply_text("📢 Broadcast started...")
    context.application.create_task(run_broadcast(), update=update)


def register_admin_handlers(application) -> None:
    application.add_handler(CommandHandler("setprice", setprice_command))
    application.add_handler(CommandHandler("setservice", setservice_command))
    application.add_handler(CommandHandler("addbalance", addbalance_command))
    application.add_handler(CommandHandler("panel", panel_command))
    application.add_handler(CommandHandler("broadcast", broadcast_command))
    logger.info("Registered admin command handlers")
