"""
Access guards for user-facing handlers
"""

import logging
from functools import wraps

from database import get_async_session
from services.user_service import is_banned
from utils.callback_utils import safe_answer_callback_query

logger = logging.getLogger(__name__)

SUSPENDED_TEXT = "❌ Your account has been suspended and you cannot access this service."


def block_banned_users(func):
    """Decorator that stops banned users before the handler body runs"""

    @wraps(func)
    async def wrapper(update, context, *args, **kwargs):
        user = update.effective_user
        if not user:
            return

        async with get_async_session() as session:
            banned = await is_banned(session, user.id)

        if banned:
            logger.warning(f"🚫 BLOCKED_ACTION: banned user {user.id} tried {func.__name__}")
            if update.callback_query:
                await safe_answer_callback_query(update.callback_query, "❌ Account suspended", show_alert=True)
                if update.callback_query.message:
                    await update.callback_query.message.reply_text(SUSPENDED_TEXT)
            elif update.effective_message:
                await update.effective_message.reply_text(SUSPENDED_TEXT)
            return

        return await func(update, context, *args, **kwargs)
    return wrapper
