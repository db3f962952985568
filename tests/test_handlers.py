"""
Telegram handler behaviour with fake updates: registration, the text router,
funding flow, order flow and profile
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from telegram.ext import CallbackQueryHandler, CommandHandler, MessageHandler

from config import Config
from database import get_async_session
from handlers.admin import register_admin_handlers
from handlers.funding import handle_add_fund, handle_payment_photo, register_funding_handlers
from handlers.orders import (
    DUPLICATE_TEXT, handle_cancel_order, handle_confirm_order, handle_order_start, myorders_command,
    register_order_handlers,
)
from handlers.profile import build_profile_text, register_profile_handlers
from handlers.start import WELCOME_TEXT, register_start_handlers, start_command
from handlers.text_router import UnifiedTextRouter, register_text_router
from models import ConversationState, OrderStatus, ServiceKind
from services.conversation_service import ConversationService
from services.order_queries import get_user
from utils.access_guards import SUSPENDED_TEXT
from utils.constants import CallbackData

LINK = "https://www.instagram.com/p/ABC123/"


def _registered_handlers():
    application = MagicMock()
    for register in (register_start_handlers, register_funding_handlers, register_order_handlers,
                     register_profile_handlers, register_admin_handlers, register_text_router):
        register(application)
    return [call.args[0] for call in application.add_handler.call_args_list]


class TestHandlerRegistration:

    def test_every_button_has_a_handler(self):
        handlers = [h for h in _registered_handlers() if isinstance(h, CallbackQueryHandler)]
        buttons = [
            CallbackData.ADD_FUND, CallbackData.SERVICE_LIKES, CallbackData.SERVICE_VIEWS,
            CallbackData.ORDER_LIKES, CallbackData.ORDER_VIEWS, CallbackData.CONFIRM_ORDER,
            CallbackData.CANCEL_ORDER, CallbackData.MY_ORDERS, CallbackData.MY_PROFILE,
            CallbackData.SUPPORT, CallbackData.HOME,
        ]
        for data in buttons:
            matches = [h for h in handlers if h.pattern.match(data)]
            assert len(matches) == 1, f"{data} should match exactly one handler, got {len(matches)}"

    def test_commands_registered(self):
        commands = set()
        for handler in _registered_handlers():
            if isinstance(handler, CommandHandler):
                commands |= set(handler.commands)
        assert {"start", "myorders", "profile", "setprice", "setservice",
                "addbalance", "panel", "broadcast"} <= commands

    def test_text_router_registered_last(self):
        handlers = _registered_handlers()
        assert isinstance(handlers[-1], MessageHandler)
        assert handlers[-1].callback == UnifiedTextRouter.route_text_message


class TestStart:

    @pytest.mark.asyncio
    async def test_start_registers_user_once(self, db, message_update, make_context):
        update = message_update(text="/start")
        await start_command(update, make_context())
        await start_command(update, make_context())

        async with get_async_session() as session:
            user = await get_user(session, 1001)
        assert user.balance == Decimal("0.00")
        assert update.message.reply_text.await_args.args[0] == WELCOME_TEXT

    @pytest.mark.asyncio
    async def test_start_keeps_existing_balance(self, make_user, message_update, make_context, fetch_user):
        await make_user(balance="12.00")
        await start_command(message_update(text="/start"), make_context())
        assert (await fetch_user()).balance == Decimal("12.00")

    @pytest.mark.asyncio
    async def test_banned_user_refused(self, make_user, message_update, make_context):
        await make_user(is_banned=True)
        update = message_update(text="/start")
        await start_command(update, make_context())
        assert "suspended" in update.message.reply_text.await_args.args[0]


class TestFundingFlow:

    @pytest.mark.asyncio
    async def test_amount_then_screenshot(self, make_user, callback_update, message_update, make_context,
                                          monkeypatch, tmp_path):
        monkeypatch.setattr(Config, "QR_IMAGE_PATH", str(tmp_path / "missing.png"))
        await make_user()
        await handle_add_fund(callback_update(CallbackData.ADD_FUND), make_context())

        amount_update = message_update(text="100")
        await UnifiedTextRouter.route_text_message(amount_update, make_context())
        caption = amount_update.message.reply_text.await_args.args[0]
        assert "Pay ₹100" in caption

        photo = [MagicMock(file_id="small"), MagicMock(file_id="large")]
        photo_update = message_update(photo=photo)
        await handle_payment_photo(photo_update, make_context())

        request_text = photo_update.message.reply_text.await_args.args[0]
        assert "Payment Request Received" in request_text
        assert "₹100" in request_text
        assert photo_update.message.reply_photo.await_args.kwargs["photo"] == "large"

        async with get_async_session() as session:
            snapshot = await ConversationService.get(session, 1001)
        assert snapshot.state == ConversationState.IDLE

    @pytest.mark.asyncio
    async def test_screenshot_without_request(self, make_user, message_update, make_context):
        await make_user()
        update = message_update(photo=[MagicMock(file_id="x")])
        await handle_payment_photo(update, make_context())
        assert "first select" in update.message.reply_text.await_args.args[0]

    @pytest.mark.asyncio
    async def test_idle_text_falls_through(self, make_user, message_update, make_context):
        await make_user()
        update = message_update(text="hello")
        await UnifiedTextRouter.route_text_message(update, make_context())
        update.message.reply_text.assert_not_awaited()


class TestOrderFlow:

    @pytest.mark.asyncio
    async def test_full_dialog_places_order(self, make_user, callback_update, message_update, make_context,
                                            mock_provider, monkeypatch, fetch_user):
        monkeypatch.setattr("services.order_placement_service.order_placement_service.provider", mock_provider)
        await make_user(balance="5.00")

        await handle_order_start(callback_update(CallbackData.ORDER_VIEWS), make_context())

        link_update = message_update(text=LINK)
        await UnifiedTextRouter.route_text_message(link_update, make_context())
        assert "Enter quantity" in link_update.message.reply_text.await_args.args[0]

        quantity_update = message_update(text="1000")
        await UnifiedTextRouter.route_text_message(quantity_update, make_context())
        summary = quantity_update.message.reply_text.await_args.args[0]
        assert "Order Summary" in summary
        assert "₹0.90" in summary

        confirm = callback_update(CallbackData.CONFIRM_ORDER)
        await handle_confirm_order(confirm, make_context())
        final_text = confirm.callback_query.message.reply_text.await_args.args[0]
        assert "Order placed successfully" in final_text
        assert "555" in final_text
        assert (await fetch_user()).balance == Decimal("4.10")

    @pytest.mark.asyncio
    async def test_insufficient_balance_message(self, make_user, session_in_state, callback_update,
                                                make_context, mock_provider, monkeypatch):
        monkeypatch.setattr("services.order_placement_service.order_placement_service.provider", mock_provider)
        await make_user(balance="0.50")
        await session_in_state()

        confirm = callback_update(CallbackData.CONFIRM_ORDER)
        await handle_confirm_order(confirm, make_context())
        text = confirm.callback_query.message.reply_text.await_args.args[0]
        assert "Insufficient balance" in text
        assert "₹0.50" in text
        assert "₹0.90" in text

    @pytest.mark.asyncio
    async def test_duplicate_at_quantity_step(self, make_user, make_order, session_in_state,
                                              message_update, make_context):
        await make_user(balance="5.00")
        await make_order(link=LINK, status=OrderStatus.PROCESSING)
        await session_in_state(state=ConversationState.AWAITING_QUANTITY)

        update = message_update(text="1000")
        await UnifiedTextRouter.route_text_message(update, make_context())
        assert update.message.reply_text.await_args.args[0] == DUPLICATE_TEXT

    @pytest.mark.asyncio
    async def test_cancel_returns_to_idle(self, make_user, session_in_state, callback_update, make_context):
        await make_user()
        await session_in_state()

        update = callback_update(CallbackData.CANCEL_ORDER)
        await handle_cancel_order(update, make_context())

        assert update.callback_query.message.reply_text.await_args.args[0] == "Order cancelled."
        async with get_async_session() as session:
            assert (await ConversationService.get(session, 1001)).state == ConversationState.IDLE

    @pytest.mark.asyncio
    async def test_my_orders_lists_recent(self, make_user, make_order, message_update, make_context):
        await make_user()
        await make_order(provider_order_id="777", service=ServiceKind.LIKES, quantity=500)

        update = message_update(text="/myorders")
        await myorders_command(update, make_context())
        text = update.message.reply_text.await_args.args[0]
        assert "#777 | likes | 500" in text

    @pytest.mark.asyncio
    async def test_my_orders_empty(self, make_user, message_update, make_context):
        await make_user()
        update = message_update(text="/myorders")
        await myorders_command(update, make_context())
        assert update.message.reply_text.await_args.args[0] == "You have no orders yet."


class TestBannedUsers:
    """Buttons and screenshots are refused once an account is banned"""

    @pytest.mark.asyncio
    async def test_confirm_places_nothing(self, make_user, session_in_state, callback_update, make_context,
                                          mock_provider, monkeypatch, fetch_user, fetch_orders):
        monkeypatch.setattr("services.order_placement_service.order_placement_service.provider", mock_provider)
        await make_user(balance="5.00", is_banned=True)
        await session_in_state()

        confirm = callback_update(CallbackData.CONFIRM_ORDER)
        await handle_confirm_order(confirm, make_context())

        mock_provider.create_order.assert_not_awaited()
        assert await fetch_orders() == []
        assert (await fetch_user()).balance == Decimal("5.00")
        confirm.callback_query.answer.assert_awaited_once_with("❌ Account suspended", show_alert=True)
        assert confirm.callback_query.message.reply_text.await_args.args[0] == SUSPENDED_TEXT
        async with get_async_session() as session:
            snapshot = await ConversationService.get(session, 1001)
        assert snapshot.state == ConversationState.AWAITING_CONFIRMATION

    @pytest.mark.asyncio
    @pytest.mark.parametrize("data", [CallbackData.ORDER_VIEWS, CallbackData.ADD_FUND])
    async def test_dialog_buttons_do_not_start(self, data, make_user, callback_update, make_context):
        await make_user(is_banned=True)
        handler = handle_add_fund if data == CallbackData.ADD_FUND else handle_order_start

        update = callback_update(data)
        await handler(update, make_context())

        async with get_async_session() as session:
            snapshot = await ConversationService.get(session, 1001)
        assert snapshot.state == ConversationState.IDLE
        assert update.callback_query.message.reply_text.await_args.args[0] == SUSPENDED_TEXT

    @pytest.mark.asyncio
    async def test_screenshot_refused(self, make_user, message_update, make_context):
        await make_user(is_banned=True)
        update = message_update(photo=[MagicMock(file_id="x")])

        await handle_payment_photo(update, make_context())

        update.message.reply_text.assert_awaited_once_with(SUSPENDED_TEXT)
        update.message.reply_photo.assert_not_awaited()


class TestProfile:

    @pytest.mark.asyncio
    async def test_profile_counts(self, make_user, make_order):
        await make_user(balance="4.10", total_spent="2.70")
        await make_order(status=OrderStatus.COMPLETED)
        await make_order(status=OrderStatus.PENDING)
        await make_order(status=OrderStatus.CANCELLED)

        text = await build_profile_text(1001, "testuser")

        assert "@testuser" in text
        assert "₹4.10" in text
        assert "₹2.70" in text
        assert "Total Orders: 2" in text
        assert "Completed: 1" in text
        assert "Pending: 1" in text
