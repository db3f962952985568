"""
Order flow handlers

Service description -> Order -> link -> quantity -> summary -> Confirm/Cancel,
plus the "My Orders" listing.
"""

import logging
from telegram import Update
from telegram.constants import ParseMode
from telegram.ext import CallbackQueryHandler, CommandHandler, ContextTypes

from config import Config
from database import get_async_session
from models import ConversationState, ServiceKind
from services.conversation_service import ConversationService, SessionSnapshot, StepOutcome
from services.notification_service import order_placed_text
from services.order_placement_service import PlacementOutcome, order_placement_service
from services.order_queries import recent_orders
from services.settings_service import SettingsService
from utils.access_guards import block_banned_users
from utils.callback_utils import safe_answer_callback_query
from utils.constants import (
    CallbackData, SERVICE_BOUNDS, SERVICE_BY_CALLBACK, SERVICE_EMOJIS, SERVICE_TITLES, STATUS_EMOJIS,
)
from utils.keyboards import cancel_keyboard, confirm_order_keyboard, home_keyboard, service_keyboard

logger = logging.getLogger(__name__)

CONFLICT_TEXT = "⚠️ That step was already handled. Please continue from the latest message."
DUPLICATE_TEXT = (
    "⚠️ Your previous order for this same link is not completed yet! "
    "Please wait until it completes before placing a new one."
)


def _money(amount) -> str:
    return f"{Config.CURRENCY_SYMBOL}{amount:.2f}"


# ==================== SERVICE INFO ====================

async def handle_service_info(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Likes / Views button: price and bounds with an Order button"""
    query = update.callback_query
    await safe_answer_callback_query(query)
    service = SERVICE_BY_CALLBACK[query.data]

    async with get_async_session() as session:
        price = await SettingsService.get_price_per_1k(session, service)

    bounds = SERVICE_BOUNDS[service]
    unit = "Likes" if service == ServiceKind.LIKES else "Views"
    text = (
        f"{SERVICE_EMOJIS[service]} *{SERVICE_TITLES[service]}*\n\n"
        f"💰 Price: {Config.CURRENCY_SYMBOL}{price} per 1K {unit}\n"
        f"📉 Minimum: {bounds.minimum}\n"
        f"📈 Maximum: {bounds.maximum}\n\n"
        f"Click below to order."
    )
    await query.message.reply_text(text, parse_mode=ParseMode.MARKDOWN, reply_markup=service_keyboard(service))


# ==================== ORDER DIALOG ====================

@block_banned_users
async def handle_order_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Order button: supersedes any active dialog and asks for the post link"""
    query = update.callback_query
    await safe_answer_callback_query(query)
    service = SERVICE_BY_CALLBACK[query.data]

    async with get_async_session() as session:
        await ConversationService.start_order(session, query.from_user.id, service)

    await query.message.reply_text(
        "Please send the Instagram post link (must contain instagram.com/p/...).",
        reply_markup=cancel_keyboard(),
    )


async def handle_link_input(update: Update, context: ContextTypes.DEFAULT_TYPE,
                            snapshot: SessionSnapshot) -> bool:
    """Text in AWAITING_LINK"""
    message = update.message
    async with get_async_session() as session:
        result = await ConversationService.submit_link(session, snapshot, message.text)

    if result.outcome == StepOutcome.REJECTED:
        await message.reply_text(f"❌ {result.message}")
    elif result.outcome == StepOutcome.CONFLICT:
        await message.reply_text(CONFLICT_TEXT)
    elif result.outcome == StepOutcome.ACCEPTED:
        bounds = SERVICE_BOUNDS[snapshot.service]
        await message.reply_text(
            f"Enter quantity (minimum {bounds.minimum}, maximum {bounds.maximum}):",
            reply_markup=cancel_keyboard(),
        )
    return result.consumed


async def handle_quantity_input(update: Update, context: ContextTypes.DEFAULT_TYPE,
                                snapshot: SessionSnapshot) -> bool:
    """Text in AWAITING_QUANTITY"""
    message = update.message
    async with get_async_session() as session:
        result = await ConversationService.submit_quantity(session, snapshot, message.text)

    if result.outcome == StepOutcome.REJECTED:
        await message.reply_text(f"❌ {result.message}")
    elif result.outcome == StepOutcome.CONFLICT:
        await message.reply_text(CONFLICT_TEXT)
    elif result.outcome == StepOutcome.DUPLICATE:
        await message.reply_text(DUPLICATE_TEXT)
    elif result.outcome == StepOutcome.ACCEPTED:
        data = result.data
        summary = (
            f"✅ Order Summary\n\n"
            f"📸 Service: {SERVICE_TITLES[data['service']]}\n"
            f"🔗 Link: {data['link']}\n"
            f"📦 Quantity: {data['quantity']}\n"
            f"💰 Total Cost: {_money(data['cost'])}\n\n"
            f"Confirm order?"
        )
        await message.reply_text(summary, reply_markup=confirm_order_keyboard())
    return result.consumed


async def handle_cancel_order(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    await safe_answer_callback_query(query)

    async with get_async_session() as session:
        await ConversationService.cancel_order(session, query.from_user.id)

    await query.message.reply_text("Order cancelled.", reply_markup=home_keyboard())


@block_banned_users
async def handle_confirm_order(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Confirm button: hand over to the placement engine"""
    query = update.callback_query
    await safe_answer_callback_query(query)
    user = query.from_user

    await query.message.reply_text("Placing your order... 🔄")
    result = await order_placement_service.confirm_order(user.id, user.username, bot=context.bot)

    if result.outcome == PlacementOutcome.SUCCESS:
        text = order_placed_text(result.order)
    elif result.outcome == PlacementOutcome.NO_PENDING_ORDER:
        text = "No order data found."
    elif result.outcome == PlacementOutcome.CONFLICT:
        text = CONFLICT_TEXT
    elif result.outcome == PlacementOutcome.DUPLICATE:
        text = DUPLICATE_TEXT
    elif result.outcome == PlacementOutcome.INSUFFICIENT_BALANCE:
        text = (
            f"❌ Insufficient balance.\n"
            f"💰 Your Balance: {_money(result.balance)}\n"
            f"🛒 Order Cost: {_money(result.cost)}"
        )
    elif result.outcome == PlacementOutcome.PROVIDER_FAILED:
        text = "❌ Failed to place order with provider. Please try again later."
    else:
        text = (
            f"⚠️ Your order was sent to the provider but could not be saved. "
            f"Please contact support {Config.ADMIN_USERNAME} with order ID "
            f"{result.details.get('provider_order_id')}."
        )

    await query.message.reply_text(text, reply_markup=home_keyboard())


# ==================== MY ORDERS ====================

async def _recent_orders_text(telegram_id: int) -> str:
    async with get_async_session() as session:
        orders = await recent_orders(session, telegram_id)

    if not orders:
        return "You have no orders yet."

    lines = ["📦 Your recent orders:\n"]
    for order in orders:
        emoji = STATUS_EMOJIS.get(order.status, "•")
        lines.append(f"#{order.provider_order_id} | {order.service} | {order.quantity} | {emoji} {order.status}")
    return "\n".join(lines)


async def handle_my_orders(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    await safe_answer_callback_query(query)
    await query.message.reply_text(await _recent_orders_text(query.from_user.id), reply_markup=home_keyboard())


async def myorders_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not update.effective_user or not update.message:
        return
    await update.message.reply_text(await _recent_orders_text(update.effective_user.id))


def register_order_handlers(application) -> None:
    application.add_handler(CallbackQueryHandler(
        handle_service_info, pattern=f"^({CallbackData.SERVICE_LIKES}|{CallbackData.SERVICE_VIEWS})$"
    ))
    application.add_handler(CallbackQueryHandler(
        handle_order_start, pattern=f"^({CallbackData.ORDER_LIKES}|{CallbackData.ORDER_VIEWS})$"
    ))
    application.add_handler(CallbackQueryHandler(handle_confirm_order, pattern=f"^{CallbackData.CONFIRM_ORDER}$"))
    application.add_handler(CallbackQueryHandler(handle_cancel_order, pattern=f"^{CallbackData.CANCEL_ORDER}$"))
    application.add_handler(CallbackQueryHandler(handle_my_orders, pattern=f"^{CallbackData.MY_ORDERS}$"))
    application.add_handler(CommandHandler("myorders", myorders_command))
    logger.info("Registered order handlers")


ORDER_TEXT_STEPS = {
    ConversationState.AWAITING_LINK: handle_link_input,
    ConversationState.AWAITING_QUANTITY: handle_quantity_input,
}
