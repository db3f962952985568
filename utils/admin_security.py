"""
Admin Security Module
Allow-list authorization for administrative commands
"""

import logging
from functools import wraps
from typing import Optional

from config import Config

logger = logging.getLogger(__name__)


def is_admin(user_id: Optional[int]) -> bool:
    """True only for Telegram ids listed in ADMIN_IDS"""
    if user_id is None:
        return False
    return int(user_id) in Config.ADMIN_IDS


def admin_required(func):
    """Decorator to require admin access for handler functions"""

    @wraps(func)
    async def wrapper(update, context):
        user = update.effective_user
        if not user:
            return

        if not is_admin(user.id):
            logger.warning(f"🚫 ADMIN_ACCESS_DENIED: user {user.id} tried {func.__name__}")
            if update.callback_query:
                await update.callback_query.answer("❌ Admin access required")
            elif update.effective_message:
                await update.effective_message.reply_text("❌ You are not authorized to use this command.")
            return

        return await func(update, context)
    return wrapper
