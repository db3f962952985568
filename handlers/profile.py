"""Profile handlers - balance and order counts"""

import logging
from decimal import Decimal
from telegram import Update
from telegram.ext import CallbackQueryHandler, CommandHandler, ContextTypes

from config import Config
from database import get_async_session
from services.order_queries import active_order_count, completed_order_count, get_user
from utils.callback_utils import safe_answer_callback_query
from utils.constants import CallbackData
from utils.keyboards import home_keyboard

logger = logging.getLogger(__name__)


async def build_profile_text(telegram_id: int, username) -> str:
    async with get_async_session() as session:
        user = await get_user(session, telegram_id)
        completed = await completed_order_count(session, telegram_id)
        pending = await active_order_count(session, telegram_id)

    balance = Decimal(str(user.balance)) if user else Decimal("0")
    spent = Decimal(str(user.total_spent)) if user else Decimal("0")
    return (
        f"👤 Username: @{username or 'NoUsername'}\n"
        f"💰 Balance: {Config.CURRENCY_SYMBOL}{balance:.2f}\n"
        f"💸 Total Spent: {Config.CURRENCY_SYMBOL}{spent:.2f}\n"
        f"📦 Total Orders: {completed + pending}\n"
        f"✅ Completed: {completed}\n"
        f"⏳ Pending: {pending}"
    )


async def handle_profile_button(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    await safe_answer_callback_query(query)
    text = await build_profile_text(query.from_user.id, query.from_user.username)
    await query.message.reply_text(text, reply_markup=home_keyboard())


async def profile_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    user = update.effective_user
    if not user or not update.message:
        return
    await update.message.reply_text(await build_profile_text(user.id, user.username))


def register_profile_handlers(application) -> None:
    application.add_handler(CallbackQueryHandler(handle_profile_button, pattern=f"^{CallbackData.MY_PROFILE}$"))
    application.add_handler(CommandHandler("profile", profile_command))
    logger.info("Registered profile handlers")
