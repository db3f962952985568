"""
Utility functions for handling callback queries safely
"""

import logging
from typing import Optional

from telegram.error import TelegramError

logger = logging.getLogger(__name__)


async def safe_answer_callback_query(query, text: Optional[str] = None, show_alert: bool = False):
    """
    Answer a callback query first thing so the button stops spinning.

    Expired or already-answered queries are logged and ignored; the button
    action still runs.
    """
    if not query:
        return

    try:
        if text:
            await query.answer(text, show_alert=show_alert)
        else:
            await query.answer()
    except TelegramError as answer_error:
        user_id = query.from_user.id if query.from_user else 0
        logger.debug(f"Callback answer failed for user {user_id} (non-critical): {answer_error}")
