"""
Unified Text Router - routes free text to the dialog step the user is in

Text that no active dialog expects falls through unanswered.
"""

import logging
from telegram import Update
from telegram.ext import ContextTypes, MessageHandler, filters

from database import get_async_session
from handlers.funding import FUNDING_TEXT_STEPS
from handlers.orders import ORDER_TEXT_STEPS
from services.conversation_service import ConversationService
from services.user_service import is_banned
from utils.access_guards import SUSPENDED_TEXT

logger = logging.getLogger(__name__)


class UnifiedTextRouter:
    """Central router for all private text messages"""

    STEP_HANDLERS = {**FUNDING_TEXT_STEPS, **ORDER_TEXT_STEPS}

    @staticmethod
    async def route_text_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Route text messages to the handler for the user's conversation state"""
        user = update.effective_user
        message = update.message

        if not user or not message or not message.text:
            return

        async with get_async_session() as session:
            banned = await is_banned(session, user.id)
            snapshot = None if banned else await ConversationService.get(session, user.id)

        if banned:
            logger.warning(f"🚫 BLOCKED_MESSAGE: banned user {user.id} sent text")
            await message.reply_text(SUSPENDED_TEXT)
            return

        step_handler = UnifiedTextRouter.STEP_HANDLERS.get(snapshot.state)
        if step_handler is None:
            logger.debug(f"Text from user {user.id} in state {snapshot.state.value} - not consumed")
            return

        logger.info(f"🎯 ROUTE: user {user.id} text -> {snapshot.state.value}")
        consumed = await step_handler(update, context, snapshot)
        if not consumed:
            logger.debug(f"Step {snapshot.state.value} did not consume text from user {user.id}")


def register_text_router(application) -> None:
    """Register after all command handlers so commands win"""
    application.add_handler(MessageHandler(
        filters.TEXT & ~filters.COMMAND & filters.ChatType.PRIVATE,
        UnifiedTextRouter.route_text_message,
    ))
    logger.info("Registered unified text router")
