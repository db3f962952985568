"""
Order placement engine - claim, guards, provider call, debit

Scenarios use a mocked provider; the database is real (in-memory SQLite).
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from database import get_async_session
from models import ConversationState, OrderStatus, ServiceKind
from services.conversation_service import ConversationService
from services.order_placement_service import OrderPlacementService, PlacementOutcome
from services.settings_service import SettingsService
from utils.constants import SettingKeys

LINK = "https://www.instagram.com/p/ABC123/"


class TestConfirmOrder:

    @pytest.mark.asyncio
    async def test_successful_placement_debits_cost(self, make_user, session_in_state, mock_provider,
                                                    fetch_user, fetch_orders):
        """Balance 5.00, 1000 views at 0.90/1K -> order 555, balance 4.10"""
        await make_user(balance="5.00")
        await session_in_state(service=ServiceKind.VIEWS, quantity="1000")

        result = await OrderPlacementService(provider=mock_provider).confirm_order(1001, "testuser")

        assert result.outcome == PlacementOutcome.SUCCESS
        assert result.order.provider_order_id == "555"
        mock_provider.create_order.assert_awaited_once_with(10695, LINK, 1000)

        user = await fetch_user()
        assert user.balance == Decimal("4.10")
        assert user.total_spent == Decimal("0.90")

        orders = await fetch_orders()
        assert len(orders) == 1
        assert orders[0].status == OrderStatus.PENDING.value
        assert orders[0].cost == Decimal("0.90")
        assert orders[0].username == "testuser"

        async with get_async_session() as session:
            snapshot = await ConversationService.get(session, 1001)
        assert snapshot.state == ConversationState.IDLE

    @pytest.mark.asyncio
    async def test_insufficient_balance_never_calls_provider(self, make_user, session_in_state, mock_provider,
                                                             fetch_user, fetch_orders):
        """Balance 0.50 against a 0.90 order"""
        await make_user(balance="0.50")
        await session_in_state(service=ServiceKind.VIEWS, quantity="1000")

        result = await OrderPlacementService(provider=mock_provider).confirm_order(1001)

        assert result.outcome == PlacementOutcome.INSUFFICIENT_BALANCE
        assert result.balance == Decimal("0.50")
        assert result.cost == Decimal("0.90")
        mock_provider.create_order.assert_not_awaited()
        assert (await fetch_user()).balance == Decimal("0.50")
        assert await fetch_orders() == []

    @pytest.mark.asyncio
    async def test_empty_balance_rejects_likes_order(self, make_user, session_in_state, mock_provider,
                                                     fetch_user, fetch_orders):
        """Balance 0, 1000 likes at 1.20/1K -> rejected, nothing recorded"""
        await make_user(balance="0.00")
        await session_in_state(service=ServiceKind.LIKES, quantity="1000")

        result = await OrderPlacementService(provider=mock_provider).confirm_order(1001)

        assert result.outcome == PlacementOutcome.INSUFFICIENT_BALANCE
        assert result.balance == Decimal("0.00")
        assert result.cost == Decimal("1.20")
        mock_provider.create_order.assert_not_awaited()
        assert await fetch_orders() == []
        user = await fetch_user()
        assert user.balance == Decimal("0.00")
        assert user.total_spent == Decimal("0.00")

        async with get_async_session() as session:
            assert (await ConversationService.get(session, 1001)).state == ConversationState.IDLE

    @pytest.mark.asyncio
    async def test_exact_balance_is_enough(self, make_user, session_in_state, mock_provider, fetch_user):
        await make_user(balance="0.90")
        await session_in_state(service=ServiceKind.VIEWS, quantity="1000")

        result = await OrderPlacementService(provider=mock_provider).confirm_order(1001)

        assert result.outcome == PlacementOutcome.SUCCESS
        assert (await fetch_user()).balance == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_duplicate_active_order_blocked(self, make_user, make_order, session_in_state,
                                                  mock_provider, fetch_user):
        await make_user(balance="5.00")
        await session_in_state(service=ServiceKind.VIEWS, quantity="1000")
        # Order for the same link lands after the quantity step
        await make_order(link=LINK, service=ServiceKind.VIEWS, status=OrderStatus.PENDING)

        result = await OrderPlacementService(provider=mock_provider).confirm_order(1001)

        assert result.outcome == PlacementOutcome.DUPLICATE
        mock_provider.create_order.assert_not_awaited()
        assert (await fetch_user()).balance == Decimal("5.00")

    @pytest.mark.asyncio
    async def test_other_service_on_same_link_allowed(self, make_user, make_order, session_in_state,
                                                      mock_provider):
        await make_user(balance="5.00")
        await make_order(link=LINK, service=ServiceKind.LIKES, status=OrderStatus.PROCESSING)
        await session_in_state(service=ServiceKind.VIEWS, quantity="1000")

        result = await OrderPlacementService(provider=mock_provider).confirm_order(1001)

        assert result.outcome == PlacementOutcome.SUCCESS

    @pytest.mark.asyncio
    async def test_provider_failure_leaves_balance(self, make_user, session_in_state, mock_provider,
                                                   fetch_user, fetch_orders):
        await make_user(balance="5.00")
        await session_in_state(service=ServiceKind.VIEWS, quantity="1000")
        mock_provider.create_order = AsyncMock(return_value=None)

        result = await OrderPlacementService(provider=mock_provider).confirm_order(1001)

        assert result.outcome == PlacementOutcome.PROVIDER_FAILED
        assert (await fetch_user()).balance == Decimal("5.00")
        assert await fetch_orders() == []

    @pytest.mark.asyncio
    async def test_double_confirm_places_one_order(self, make_user, session_in_state, mock_provider,
                                                   fetch_user, fetch_orders):
        await make_user(balance="5.00")
        await session_in_state(service=ServiceKind.VIEWS, quantity="1000")
        engine = OrderPlacementService(provider=mock_provider)

        first = await engine.confirm_order(1001)
        second = await engine.confirm_order(1001)

        assert first.outcome == PlacementOutcome.SUCCESS
        assert second.outcome == PlacementOutcome.NO_PENDING_ORDER
        assert mock_provider.create_order.await_count == 1
        assert len(await fetch_orders()) == 1
        assert (await fetch_user()).balance == Decimal("4.10")

    @pytest.mark.asyncio
    async def test_no_pending_order(self, make_user, mock_provider):
        await make_user(balance="5.00")

        result = await OrderPlacementService(provider=mock_provider).confirm_order(1001)

        assert result.outcome == PlacementOutcome.NO_PENDING_ORDER
        mock_provider.create_order.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cost_fixed_at_quantity_step(self, make_user, session_in_state, mock_provider, fetch_user):
        """A price change after the summary does not alter the quoted cost"""
        await make_user(balance="5.00")
        await session_in_state(service=ServiceKind.VIEWS, quantity="1000")
        async with get_async_session() as session:
            await SettingsService.set(session, SettingKeys.PRICE_VIEWS_PER_1K, "3.00")

        result = await OrderPlacementService(provider=mock_provider).confirm_order(1001)

        assert result.cost == Decimal("0.90")
        assert (await fetch_user()).balance == Decimal("4.10")

    @pytest.mark.asyncio
    async def test_record_failure_is_reported(self, make_user, session_in_state, mock_provider, monkeypatch):
        await make_user(balance="5.00")
        await session_in_state(service=ServiceKind.VIEWS, quantity="1000")

        async def failing_debit(*args, **kwargs):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr("services.order_placement_service.BalanceLedger.debit", failing_debit)
        result = await OrderPlacementService(provider=mock_provider).confirm_order(1001)

        assert result.outcome == PlacementOutcome.RECORD_FAILED
        assert result.details["provider_order_id"] == "555"

    @pytest.mark.asyncio
    async def test_group_announcement_when_configured(self, make_user, session_in_state, mock_provider, mock_bot):
        await make_user(balance="5.00")
        await session_in_state(service=ServiceKind.VIEWS, quantity="1000")
        async with get_async_session() as session:
            await SettingsService.set(session, SettingKeys.GROUP_CHAT_ID, -100123)

        result = await OrderPlacementService(provider=mock_provider).confirm_order(1001, "testuser", bot=mock_bot)

        assert result.success
        mock_bot.send_message.assert_awaited_once()
        assert mock_bot.send_message.call_args.kwargs["chat_id"] == -100123
        assert "555" in mock_bot.send_message.call_args.kwargs["text"]
