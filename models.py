"""
SMM Storefront - Database Schema
================================

Tables backing the Telegram storefront:
- Users with an internal balance and cumulative spend
- Per-user conversation sessions (dialog cursor, versioned)
- Funding requests awaiting manual payment review
- Provider orders and their reconciliation status
- Runtime settings (prices, provider service ids)
- Broadcast log
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlalchemy import (
    Integer, BigInteger, String, Numeric, DateTime, Boolean, Text, Index, CheckConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# ============================================================================
# ENUMS - Business Logic Constants
# ============================================================================

class ServiceKind(Enum):
    """Deliverable categories sold by the storefront"""
    LIKES = "likes"
    VIEWS = "views"


class OrderStatus(Enum):
    """Order lifecycle states"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    PARTIAL = "partial"
    CANCELLED = "cancelled"


ACTIVE_ORDER_STATUSES = (OrderStatus.PENDING.value, OrderStatus.PROCESSING.value)
TERMINAL_ORDER_STATUSES = (
    OrderStatus.COMPLETED.value,
    OrderStatus.PARTIAL.value,
    OrderStatus.CANCELLED.value,
)


class ConversationState(Enum):
    """Dialog steps a user can be in"""
    IDLE = "idle"
    AWAITING_AMOUNT = "awaiting_amount"
    AWAITING_PROOF = "awaiting_proof"
    AWAITING_LINK = "awaiting_link"
    AWAITING_QUANTITY = "awaiting_quantity"
    AWAITING_CONFIRMATION = "awaiting_confirmation"


class FundingRequestStatus(Enum):
    AWAITING_PROOF = "awaiting_proof"
    SUBMITTED = "submitted"


# ============================================================================
# CORE ENTITIES
# ============================================================================

class User(Base):
    """Storefront customer keyed by Telegram id"""
    __tablename__ = 'users'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    telegram_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    username: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    total_spent: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)

    joined_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    last_order_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    is_banned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index('ix_users_telegram_id', 'telegram_id', unique=True),
    )


class ConversationSession(Base):
    """
    Transient dialog cursor, kept apart from the user profile.

    Every transition bumps `version`; writers compare-and-swap on it.
    """
    __tablename__ = 'conversation_sessions'

    telegram_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    state: Mapped[str] = mapped_column(String(32), default=ConversationState.IDLE.value, nullable=False)

    # Order dialog
    service: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    link: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    # Funding dialog
    funding_request_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class FundingRequest(Base):
    """Top-up request awaiting manual verification of the payment screenshot"""
    __tablename__ = 'funding_requests'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    telegram_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    username: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=FundingRequestStatus.AWAITING_PROOF.value, nullable=False
    )
    proof_file_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    requested_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class Order(Base):
    """Provider order - cost is fixed at creation and never recomputed"""
    __tablename__ = 'orders'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    provider_order_id: Mapped[str] = mapped_column(String(64), nullable=False)
    telegram_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    username: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    service: Mapped[str] = mapped_column(String(16), nullable=False)
    link: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    status: Mapped[str] = mapped_column(String(20), default=OrderStatus.PENDING.value, nullable=False)
    provider_status: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('ix_orders_provider_order_id', 'provider_order_id', unique=True),
        Index('ix_orders_user_link_service', 'telegram_id', 'link', 'service'),
        Index('ix_orders_status_created', 'status', 'created_at'),
        CheckConstraint('quantity > 0', name='ck_orders_quantity_positive'),
    )


class Setting(Base):
    """Runtime key/value settings mutable by admin commands"""
    __tablename__ = 'settings'

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class BroadcastLog(Base):
    """Audit record of admin broadcasts"""
    __tablename__ = 'broadcast_logs'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    sent_by: Mapped[int] = mapped_column(BigInteger, nullable=False)
    recipients_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
