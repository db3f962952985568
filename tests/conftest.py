"""
Shared fixtures for the storefront test suite.

Database tests run against a fresh in-memory SQLite database per test
(aiosqlite driver); the engine is disposed after each test, which drops the
database. Telegram objects are MagicMock/AsyncMock fakes.
"""

import os

# Must be set before config/database are imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["BOT_TOKEN"] = "123456:TEST-TOKEN"
os.environ["ADMIN_IDS"] = "900001,900002"
os.environ["SMM_API_KEY"] = "test-key"
os.environ.pop("GROUP_CHAT_ID", None)

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from database import async_engine, get_async_session
from models import Base, ConversationState, Order, OrderStatus, ServiceKind, User
from services.conversation_service import ConversationService
from services.smm_provider_service import ProviderOrder, ProviderOrderStatus

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


@pytest_asyncio.fixture
async def db():
    """Fresh schema for every test"""
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await async_engine.dispose()


@pytest.fixture
def make_user(db):
    """Factory: insert a user with a given balance"""

    async def _make_user(telegram_id: int = 1001, balance="0.00", username: str = "testuser",
                         total_spent="0.00", is_banned: bool = False) -> User:
        async with get_async_session() as session:
            user = User(
                telegram_id=telegram_id,
                username=username,
                balance=Decimal(str(balance)),
                total_spent=Decimal(str(total_spent)),
                joined_at=datetime.utcnow(),
                is_banned=is_banned,
            )
            session.add(user)
        return user

    return _make_user


@pytest.fixture
def make_order(db):
    """Factory: insert an order directly"""
    counter = {"next": 0}

    async def _make_order(telegram_id: int = 1001, provider_order_id: str = None,
                          service: ServiceKind = ServiceKind.VIEWS,
                          link: str = "https://www.instagram.com/p/ABC123/",
                          quantity: int = 1000, cost="0.90",
                          status: OrderStatus = OrderStatus.PENDING,
                          age_minutes: int = 0) -> Order:
        counter["next"] += 1
        created_at = datetime.utcnow() - timedelta(minutes=age_minutes)
        async with get_async_session() as session:
            order = Order(
                provider_order_id=provider_order_id or f"P{counter['next']}",
                telegram_id=telegram_id,
                username="testuser",
                service=service.value,
                link=link,
                quantity=quantity,
                cost=Decimal(str(cost)),
                status=status.value,
                created_at=created_at,
                updated_at=created_at,
            )
            session.add(order)
        return order

    return _make_order


@pytest.fixture
def fetch_user(db):
    async def _fetch_user(telegram_id: int = 1001) -> User:
        from services.order_queries import get_user
        async with get_async_session() as session:
            return await get_user(session, telegram_id)

    return _fetch_user


@pytest.fixture
def fetch_orders(db):
    async def _fetch_orders(telegram_id: int = None):
        from sqlalchemy import select
        async with get_async_session() as session:
            stmt = select(Order).order_by(Order.id)
            if telegram_id is not None:
                stmt = stmt.where(Order.telegram_id == telegram_id)
            return list((await session.execute(stmt)).scalars().all())

    return _fetch_orders


@pytest.fixture
def session_in_state(db):
    """
    Factory: walk a user's conversation to AWAITING_CONFIRMATION (or an
    earlier order step) through the real state machine.
    """

    async def _session_in_state(telegram_id: int = 1001, service: ServiceKind = ServiceKind.VIEWS,
                                link: str = "https://www.instagram.com/p/ABC123/",
                                quantity: str = "1000",
                                state: ConversationState = ConversationState.AWAITING_CONFIRMATION):
        async with get_async_session() as session:
            snapshot = await ConversationService.start_order(session, telegram_id, service)
            if state == ConversationState.AWAITING_LINK:
                return snapshot
            result = await ConversationService.submit_link(session, snapshot, link)
            snapshot = await ConversationService.get(session, telegram_id)
            if state == ConversationState.AWAITING_QUANTITY:
                return snapshot
            result = await ConversationService.submit_quantity(session, snapshot, quantity)
            assert result.state == ConversationState.AWAITING_CONFIRMATION, result
            return await ConversationService.get(session, telegram_id)

    return _session_in_state


@pytest.fixture
def mock_provider():
    """Provider fake: order creation returns id 555, status configurable"""
    provider = MagicMock()
    provider.create_order = AsyncMock(return_value=ProviderOrder(order_id="555"))
    provider.get_order_status = AsyncMock(return_value=ProviderOrderStatus(status="Pending"))
    return provider


@pytest.fixture
def mock_bot():
    bot = MagicMock()
    bot.send_message = AsyncMock(return_value=MagicMock())
    bot.send_photo = AsyncMock(return_value=MagicMock())
    return bot


@pytest.fixture
def message_update():
    """Factory: Update fake carrying a private text or photo message"""

    def _message_update(telegram_id: int = 1001, text: str = None, username: str = "testuser", photo=None):
        update = MagicMock()
        update.effective_user.id = telegram_id
        update.effective_user.username = username
        update.callback_query = None
        update.message.text = text
        update.message.photo = photo or []
        update.message.reply_text = AsyncMock()
        update.message.reply_photo = AsyncMock()
        update.effective_message = update.message
        return update

    return _message_update


@pytest.fixture
def callback_update():
    """Factory: Update fake carrying a button press"""

    def _callback_update(data: str, telegram_id: int = 1001, username: str = "testuser"):
        update = MagicMock()
        update.effective_user.id = telegram_id
        update.effective_user.username = username
        query = update.callback_query
        query.data = data
        query.from_user.id = telegram_id
        query.from_user.username = username
        query.answer = AsyncMock()
        query.message.reply_text = AsyncMock()
        update.message = None
        update.effective_message = query.message
        return update

    return _callback_update


@pytest.fixture
def make_context(mock_bot):
    def _make_context(args=None, bot=None):
        context = MagicMock()
        context.bot = bot or mock_bot
        context.args = args or []
        context.application.create_task = MagicMock()
        return context

    return _make_context
