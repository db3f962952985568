"""
Start and navigation handlers - /start, Home, Support
"""

import logging
from telegram import Update
from telegram.constants import ParseMode
from telegram.ext import CallbackQueryHandler, CommandHandler, ContextTypes

from config import Config
from database import get_async_session
from services.conversation_service import ConversationService
from services.user_service import register_user
from utils.access_guards import SUSPENDED_TEXT
from utils.callback_utils import safe_answer_callback_query
from utils.constants import CallbackData
from utils.keyboards import home_keyboard, main_menu_keyboard

logger = logging.getLogger(__name__)

WELCOME_TEXT = "👋 *Welcome!*\nUse buttons below to operate the bot."


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Register the user on first contact and show the main menu"""
    user = update.effective_user
    if not user or not update.message:
        return

    async with get_async_session() as session:
        db_user, created = await register_user(session, user.id, user.username)
        banned = db_user.is_banned
        if not banned:
            # /start abandons any half-finished dialog
            await ConversationService.clear(session, user.id)

    if banned:
        await update.message.reply_text(SUSPENDED_TEXT)
        return

    if created:
        logger.info(f"✅ User {user.id} registered via /start")
    await update.message.reply_text(WELCOME_TEXT, parse_mode=ParseMode.MARKDOWN, reply_markup=main_menu_keyboard())


async def handle_home(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    await safe_answer_callback_query(query)

    async with get_async_session() as session:
        await ConversationService.clear(session, query.from_user.id)

    await query.message.reply_text(WELCOME_TEXT, parse_mode=ParseMode.MARKDOWN, reply_markup=main_menu_keyboard())


async def handle_support(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    await safe_answer_callback_query(query)
    await query.message.reply_text(
        f"💬 Need help?\n\nContact admin: {Config.ADMIN_USERNAME}",
        reply_markup=home_keyboard(),
    )


def register_start_handlers(application) -> None:
    """Register /start and navigation buttons"""
    application.add_handler(CommandHandler("start", start_command))
    application.add_handler(CallbackQueryHandler(handle_home, pattern=f"^{CallbackData.HOME}$"))
    application.add_handler(CallbackQueryHandler(handle_support, pattern=f"^{CallbackData.SUPPORT}$"))
    logger.info("Registered start and navigation handlers")
