"""
Add Fund flow - amount entry, QR payment instructions, screenshot submission

Balance is credited manually by an admin (/addbalance) after checking the
screenshot; nothing here touches the balance.
"""

import logging
import os
from datetime import datetime

from telegram import Update
from telegram.constants import ParseMode
from telegram.error import TelegramError
from telegram.ext import CallbackQueryHandler, ContextTypes, MessageHandler, filters

from config import Config
from database import get_async_session
from models import ConversationState
from services.conversation_service import ConversationService, SessionSnapshot, StepOutcome
from utils.access_guards import block_banned_users
from utils.callback_utils import safe_answer_callback_query
from utils.constants import CallbackData

logger = logging.getLogger(__name__)

CONFLICT_TEXT = "⚠️ That step was already handled. Please continue from the latest message."


def _payment_caption(amount) -> str:
    return (
        f"📲 Pay {Config.CURRENCY_SYMBOL}{amount} using PhonePe / Paytm / UPI.\n\n"
        f"✅ Scan the QR below to pay.\n\n"
        f"After payment, send the screenshot here.\n\n"
        f"⚡ To add balance quickly, forward the bot's generated payment message to the admin: "
        f"{Config.ADMIN_USERNAME}"
    )


@block_banned_users
async def handle_add_fund(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Add Fund button: supersedes any active dialog and asks for an amount"""
    query = update.callback_query
    await safe_answer_callback_query(query)

    async with get_async_session() as session:
        await ConversationService.start_funding(session, query.from_user.id)

    await query.message.reply_text(
        f"Please enter the *amount* you want to add (minimum {Config.CURRENCY_SYMBOL}{Config.MIN_FUNDING_AMOUNT}).",
        parse_mode=ParseMode.MARKDOWN,
    )


async def handle_funding_amount(update: Update, context: ContextTypes.DEFAULT_TYPE,
                                snapshot: SessionSnapshot) -> bool:
    """Text in AWAITING_AMOUNT. Returns whether the message was consumed."""
    user = update.effective_user
    message = update.message

    async with get_async_session() as session:
        result = await ConversationService.submit_funding_amount(
            session, snapshot, message.text, username=user.username
        )

    if result.outcome == StepOutcome.REJECTED:
        await message.reply_text(f"❌ {result.message}")
    elif result.outcome == StepOutcome.CONFLICT:
        await message.reply_text(CONFLICT_TEXT)
    elif result.outcome == StepOutcome.ACCEPTED:
        await _send_payment_instructions(update, result.data["amount"])
    return result.consumed


async def _send_payment_instructions(update: Update, amount) -> None:
    caption = _payment_caption(amount)
    if os.path.exists(Config.QR_IMAGE_PATH):
        try:
            with open(Config.QR_IMAGE_PATH, "rb") as qr_image:
                await update.message.reply_photo(photo=qr_image, caption=caption)
            return
        except (OSError, TelegramError) as e:
            logger.warning(f"⚠️ QR image could not be sent ({Config.QR_IMAGE_PATH}): {e}")
    await update.message.reply_text(caption)


@block_banned_users
async def handle_payment_photo(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Photo while a funding request awaits its screenshot"""
    user = update.effective_user
    message = update.message
    if not user or not message or not message.photo:
        return

    # Largest rendition is last
    file_id = message.photo[-1].file_id

    async with get_async_session() as session:
        snapshot = await ConversationService.get(session, user.id)
        result = await ConversationService.submit_payment_proof(session, snapshot, file_id)

    if result.outcome == StepOutcome.CONFLICT:
        await message.reply_text(CONFLICT_TEXT)
        return
    if result.outcome != StepOutcome.ACCEPTED:
        await message.reply_text(
            "Please first select *Add Fund* and enter an amount. Then send screenshot.",
            parse_mode=ParseMode.MARKDOWN,
        )
        return

    request_text = (
        f"📤 Payment Request Received!\n\n"
        f"👤 User: @{user.username or 'NoUsername'}\n"
        f"🆔 User ID: {user.id}\n"
        f"💰 Amount (User Wrote): {Config.CURRENCY_SYMBOL}{result.data['amount']}\n"
        f"📅 Time: {datetime.utcnow().strftime('%Y-%m-%d %H:%M:%S')} UTC\n\n"
        f"🖼 Screenshot below 👇\n"
        f"➡️ Admin, please verify and add balance if payment is confirmed.\n\n"
        f"⚡ To add balance quickly, just forward this message to the admin.\n\n"
        f"📞 Admin Contact: {Config.ADMIN_USERNAME}"
    )
    await message.reply_text(request_text)
    try:
        await message.reply_photo(photo=file_id, caption="Payment screenshot (forward to admin)")
    except TelegramError as e:
        logger.warning(f"⚠️ Could not echo payment screenshot for user {user.id}: {e}")


def register_funding_handlers(application) -> None:
    application.add_handler(CallbackQueryHandler(handle_add_fund, pattern=f"^{CallbackData.ADD_FUND}$"))
    application.add_handler(MessageHandler(filters.PHOTO & filters.ChatType.PRIVATE, handle_payment_photo))
    logger.info("Registered funding handlers")


FUNDING_TEXT_STEPS = {
    ConversationState.AWAITING_AMOUNT: handle_funding_amount,
}
