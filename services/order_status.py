"""
Order status mapping

Translates the provider's free-text status into a closed outcome type and
decides whether a local transition applies. Transitions only move forward:
pending -> processing -> terminal.
"""

import logging
from enum import Enum
from typing import Optional

from models import OrderStatus

logger = logging.getLogger(__name__)


class ProviderStatusOutcome(Enum):
    """Every provider text maps to exactly one of these"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    PARTIAL = "partial"
    CANCELLED = "cancelled"
    UNRECOGNIZED = "unrecognized"


# Checked in order; first match wins
_VOCABULARY = (
    (("completed",), ProviderStatusOutcome.COMPLETED),
    (("partial",), ProviderStatusOutcome.PARTIAL),
    (("processing", "in progress"), ProviderStatusOutcome.PROCESSING),
    (("cancel", "refunded"), ProviderStatusOutcome.CANCELLED),
    (("pending",), ProviderStatusOutcome.PENDING),
)

_OUTCOME_TO_STATUS = {
    ProviderStatusOutcome.PENDING: OrderStatus.PENDING,
    ProviderStatusOutcome.PROCESSING: OrderStatus.PROCESSING,
    ProviderStatusOutcome.COMPLETED: OrderStatus.COMPLETED,
    ProviderStatusOutcome.PARTIAL: OrderStatus.PARTIAL,
    ProviderStatusOutcome.CANCELLED: OrderStatus.CANCELLED,
}

_STATUS_RANK = {
    OrderStatus.PENDING: 0,
    OrderStatus.PROCESSING: 1,
    OrderStatus.COMPLETED: 2,
    OrderStatus.PARTIAL: 2,
    OrderStatus.CANCELLED: 2,
}


def map_provider_status(provider_text: Optional[str]) -> ProviderStatusOutcome:
    """Case-insensitive substring match against the provider vocabulary"""
    text = (provider_text or "").strip().lower()
    if not text:
        return ProviderStatusOutcome.UNRECOGNIZED

    for needles, outcome in _VOCABULARY:
        if any(needle in text for needle in needles):
            return outcome
    return ProviderStatusOutcome.UNRECOGNIZED


def is_terminal(status: OrderStatus) -> bool:
    return _STATUS_RANK[status] == 2


def resolve_transition(current: OrderStatus, outcome: ProviderStatusOutcome) -> Optional[OrderStatus]:
    """
    Target status if the outcome moves the order forward, otherwise None.

    Unrecognized outcomes, repeats of the current status and backwards moves
    never produce a transition.
    """
    target = _OUTCOME_TO_STATUS.get(outcome)
    if target is None or target == current:
        return None
    if is_terminal(current) or _STATUS_RANK[target] <= _STATUS_RANK[current]:
        return None
    return target
