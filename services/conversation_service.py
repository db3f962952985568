"""
Conversation State Machine
==========================

Per-user dialog cursor for the "add funds" and "place order" flows.

The cursor lives in its own `conversation_sessions` row, separate from the
user profile. Every transition is a compare-and-swap on (state, version): a
stale writer loses and gets ConversationConflictError instead of clobbering a
newer step. Explicit menu actions (Add Fund, Order, Cancel) supersede whatever
dialog was active and are applied unconditionally.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from config import Config
from models import (
    ConversationSession, ConversationState, FundingRequest, FundingRequestStatus, ServiceKind,
)
from services.order_queries import find_active_order
from services.pricing_service import quote_order
from utils.input_validation import InputValidator, ValidationError

logger = logging.getLogger(__name__)

_DIALOG_FIELDS = ("service", "link", "quantity", "cost", "funding_request_id")


class ConversationConflictError(Exception):
    """Raised when a transition loses the compare-and-swap race"""
    pass


class StepOutcome(Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"            # validation failed, state unchanged
    NOT_APPLICABLE = "not_applicable"  # input not expected in the current state
    DUPLICATE = "duplicate"          # active order exists, dialog cleared
    CONFLICT = "conflict"            # lost a concurrent transition


@dataclass
class SessionSnapshot:
    """Immutable view of a conversation row at a given version"""
    telegram_id: int
    state: ConversationState
    version: int
    service: Optional[ServiceKind] = None
    link: Optional[str] = None
    quantity: Optional[int] = None
    cost: Optional[Decimal] = None
    funding_request_id: Optional[int] = None

    @classmethod
    def from_row(cls, row: ConversationSession) -> "SessionSnapshot":
        return cls(
            telegram_id=row.telegram_id,
            state=ConversationState(row.state),
            version=row.version,
            service=ServiceKind(row.service) if row.service else None,
            link=row.link,
            quantity=row.quantity,
            cost=Decimal(str(row.cost)) if row.cost is not None else None,
            funding_request_id=row.funding_request_id,
        )


@dataclass
class StepResult:
    outcome: StepOutcome
    state: ConversationState
    message: Optional[str] = None
    data: dict = field(default_factory=dict)

    @property
    def consumed(self) -> bool:
        return self.outcome != StepOutcome.NOT_APPLICABLE


def _values_for(state: ConversationState, version: int, fields: dict) -> dict:
    """Column values for a transition; entering IDLE clears every dialog field"""
    values = {name: None for name in _DIALOG_FIELDS} if state == ConversationState.IDLE else {}
    for name, value in fields.items():
        if name not in _DIALOG_FIELDS:
            raise ValueError(f"Unknown conversation field: {name}")
        values[name] = value.value if isinstance(value, Enum) else value
    values.update(state=state.value, version=version, updated_at=datetime.utcnow())
    return values


class ConversationService:
    """Dialog steps over the conversation_sessions table"""

    @staticmethod
    async def get(session: AsyncSession, telegram_id: int) -> SessionSnapshot:
        """Current snapshot, creating an idle cursor on first use"""
        row = await session.get(ConversationSession, telegram_id, populate_existing=True)
        if row is None:
            row = ConversationSession(
                telegram_id=telegram_id,
                state=ConversationState.IDLE.value,
                version=1,
                updated_at=datetime.utcnow(),
            )
            session.add(row)
            await session.flush()
        return SessionSnapshot.from_row(row)

    @staticmethod
    async def transition(session: AsyncSession, snapshot: SessionSnapshot,
                         new_state: ConversationState, **fields) -> SessionSnapshot:
        """
        Compare-and-swap transition from `snapshot` to `new_state`.

        Raises ConversationConflictError if the row moved since the snapshot.
        """
        next_version = snapshot.version + 1
        result = await session.execute(
            update(ConversationSession)
            .where(
                ConversationSession.telegram_id == snapshot.telegram_id,
                ConversationSession.version == snapshot.version,
                ConversationSession.state == snapshot.state.value,
            )
            .values(**_values_for(new_state, next_version, fields))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                f"⚠️ CONVERSATION_CONFLICT: user {snapshot.telegram_id} "
                f"{snapshot.state.value}@v{snapshot.version} -> {new_state.value}"
            )
            raise ConversationConflictError(
                f"Conversation for {snapshot.telegram_id} changed since version {snapshot.version}"
            )

        logger.debug(f"🔀 CONVERSATION: user {snapshot.telegram_id} {snapshot.state.value} -> {new_state.value}")
        return await ConversationService.get(session, snapshot.telegram_id)

    @staticmethod
    async def reset(session: AsyncSession, telegram_id: int, new_state: ConversationState = ConversationState.IDLE,
                    **fields) -> SessionSnapshot:
        """Superseding transition - applies whatever the current state is"""
        current = await ConversationService.get(session, telegram_id)
        await session.execute(
            update(ConversationSession)
            .where(ConversationSession.telegram_id == telegram_id)
            .values(**_values_for(new_state, current.version + 1, {
                **{name: None for name in _DIALOG_FIELDS}, **fields
            }))
            .execution_options(synchronize_session=False)
        )
        return await ConversationService.get(session, telegram_id)

    @staticmethod
    async def clear(session: AsyncSession, telegram_id: int) -> SessionSnapshot:
        return await ConversationService.reset(session, telegram_id, ConversationState.IDLE)

    # ------------------------------------------------------------------
    # Funding dialog
    # ------------------------------------------------------------------

    @staticmethod
    async def start_funding(session: AsyncSession, telegram_id: int) -> SessionSnapshot:
        """IDLE (or any dialog) -> AWAITING_AMOUNT"""
        return await ConversationService.reset(session, telegram_id, ConversationState.AWAITING_AMOUNT)

    @staticmethod
    async def submit_funding_amount(session: AsyncSession, snapshot: SessionSnapshot, text: str,
                                    username: Optional[str] = None) -> StepResult:
        """AWAITING_AMOUNT -> AWAITING_PROOF on an amount at or above the minimum"""
        if snapshot.state != ConversationState.AWAITING_AMOUNT:
            return StepResult(StepOutcome.NOT_APPLICABLE, snapshot.state)

        try:
            amount = InputValidator.validate_funding_amount(text, Config.MIN_FUNDING_AMOUNT)
        except ValidationError as e:
            return StepResult(StepOutcome.REJECTED, snapshot.state, message=str(e))

        request = FundingRequest(
            telegram_id=snapshot.telegram_id,
            username=username,
            amount=amount,
            status=FundingRequestStatus.AWAITING_PROOF.value,
            requested_at=datetime.utcnow(),
        )
        session.add(request)
        await session.flush()

        try:
            updated = await ConversationService.transition(
                session, snapshot, ConversationState.AWAITING_PROOF, funding_request_id=request.id
            )
        except ConversationConflictError:
            await session.delete(request)
            return StepResult(StepOutcome.CONFLICT, snapshot.state)

        logger.info(f"💵 FUNDING_REQUESTED: user {snapshot.telegram_id} amount {amount} (request {request.id})")
        return StepResult(StepOutcome.ACCEPTED, updated.state, data={"amount": amount, "request_id": request.id})

    @staticmethod
    async def submit_payment_proof(session: AsyncSession, snapshot: SessionSnapshot, file_id: str) -> StepResult:
        """
        AWAITING_PROOF -> IDLE on an image.

        The image reference is attached to the funding request for manual
        review; the balance is not touched here.
        """
        if snapshot.state != ConversationState.AWAITING_PROOF or not snapshot.funding_request_id:
            return StepResult(StepOutcome.NOT_APPLICABLE, snapshot.state)

        request = await session.get(FundingRequest, snapshot.funding_request_id)
        if request is None:
            logger.error(f"❌ FUNDING_REQUEST_MISSING: {snapshot.funding_request_id} for user {snapshot.telegram_id}")
            await ConversationService.clear(session, snapshot.telegram_id)
            return StepResult(StepOutcome.NOT_APPLICABLE, ConversationState.IDLE)

        try:
            updated = await ConversationService.transition(session, snapshot, ConversationState.IDLE)
        except ConversationConflictError:
            return StepResult(StepOutcome.CONFLICT, snapshot.state)

        request.proof_file_id = file_id
        request.status = FundingRequestStatus.SUBMITTED.value
        request.submitted_at = datetime.utcnow()
        await session.flush()

        logger.info(f"🧾 FUNDING_PROOF_SUBMITTED: user {snapshot.telegram_id} request {request.id} amount {request.amount}")
        return StepResult(
            StepOutcome.ACCEPTED, updated.state,
            data={"amount": Decimal(str(request.amount)), "request_id": request.id},
        )

    # ------------------------------------------------------------------
    # Order dialog
    # ------------------------------------------------------------------

    @staticmethod
    async def start_order(session: AsyncSession, telegram_id: int, service: ServiceKind) -> SessionSnapshot:
        """IDLE (or any dialog) -> AWAITING_LINK for a service"""
        return await ConversationService.reset(
            session, telegram_id, ConversationState.AWAITING_LINK, service=service
        )

    @staticmethod
    async def submit_link(session: AsyncSession, snapshot: SessionSnapshot, text: str) -> StepResult:
        """AWAITING_LINK -> AWAITING_QUANTITY on a post link"""
        if snapshot.state != ConversationState.AWAITING_LINK:
            return StepResult(StepOutcome.NOT_APPLICABLE, snapshot.state)

        try:
            link = InputValidator.validate_post_link(text)
        except ValidationError as e:
            return StepResult(StepOutcome.REJECTED, snapshot.state, message=str(e))

        try:
            updated = await ConversationService.transition(
                session, snapshot, ConversationState.AWAITING_QUANTITY, link=link
            )
        except ConversationConflictError:
            return StepResult(StepOutcome.CONFLICT, snapshot.state)

        return StepResult(StepOutcome.ACCEPTED, updated.state, data={"link": link, "service": snapshot.service})

    @staticmethod
    async def submit_quantity(session: AsyncSession, snapshot: SessionSnapshot, text: str) -> StepResult:
        """
        AWAITING_QUANTITY -> AWAITING_CONFIRMATION on an in-bounds quantity.

        The cost is fixed here with the current price. An active order for
        the same link and service ends the dialog early.
        """
        if snapshot.state != ConversationState.AWAITING_QUANTITY:
            return StepResult(StepOutcome.NOT_APPLICABLE, snapshot.state)

        service = snapshot.service
        try:
            quantity = InputValidator.validate_quantity(text, service)
        except ValidationError as e:
            return StepResult(StepOutcome.REJECTED, snapshot.state, message=str(e))

        duplicate = await find_active_order(session, snapshot.telegram_id, snapshot.link, service)
        if duplicate is not None:
            logger.info(
                f"🚫 DUPLICATE_ORDER_BLOCKED: user {snapshot.telegram_id} already has order "
                f"{duplicate.provider_order_id} for {service.value} on this link"
            )
            await ConversationService.clear(session, snapshot.telegram_id)
            return StepResult(StepOutcome.DUPLICATE, ConversationState.IDLE)

        quote = await quote_order(session, service, quantity)
        try:
            updated = await ConversationService.transition(
                session, snapshot, ConversationState.AWAITING_CONFIRMATION,
                quantity=quantity, cost=quote.cost,
            )
        except ConversationConflictError:
            return StepResult(StepOutcome.CONFLICT, snapshot.state)

        return StepResult(
            StepOutcome.ACCEPTED, updated.state,
            data={
                "service": service,
                "link": snapshot.link,
                "quantity": quantity,
                "price_per_1k": quote.price_per_1k,
                "cost": quote.cost,
            },
        )

    @staticmethod
    async def cancel_order(session: AsyncSession, telegram_id: int) -> SessionSnapshot:
        """Any order step -> IDLE"""
        logger.info(f"🛑 ORDER_DIALOG_CANCELLED: user {telegram_id}")
        return await ConversationService.clear(session, telegram_id)
