"""
Provider status vocabulary and forward-only transitions
"""

import pytest

from models import OrderStatus
from services.order_status import (
    ProviderStatusOutcome, is_terminal, map_provider_status, resolve_transition,
)


class TestMapProviderStatus:

    @pytest.mark.parametrize("text,expected", [
        ("Completed", ProviderStatusOutcome.COMPLETED),
        ("COMPLETED", ProviderStatusOutcome.COMPLETED),
        ("Partial", ProviderStatusOutcome.PARTIAL),
        ("Processing", ProviderStatusOutcome.PROCESSING),
        ("In progress", ProviderStatusOutcome.PROCESSING),
        ("Canceled", ProviderStatusOutcome.CANCELLED),
        ("Cancelled", ProviderStatusOutcome.CANCELLED),
        ("Refunded", ProviderStatusOutcome.CANCELLED),
        ("Pending", ProviderStatusOutcome.PENDING),
    ])
    def test_known_vocabulary(self, text, expected):
        assert map_provider_status(text) == expected

    @pytest.mark.parametrize("text", [None, "", "   ", "Awaiting", "Error"])
    def test_unknown_text_is_unrecognized(self, text):
        assert map_provider_status(text) == ProviderStatusOutcome.UNRECOGNIZED


class TestResolveTransition:
    """Transitions only move forward and never leave a terminal state"""

    def test_pending_to_processing(self):
        assert resolve_transition(OrderStatus.PENDING, ProviderStatusOutcome.PROCESSING) == OrderStatus.PROCESSING

    def test_pending_straight_to_terminal(self):
        assert resolve_transition(OrderStatus.PENDING, ProviderStatusOutcome.COMPLETED) == OrderStatus.COMPLETED
        assert resolve_transition(OrderStatus.PENDING, ProviderStatusOutcome.CANCELLED) == OrderStatus.CANCELLED

    def test_processing_to_partial(self):
        assert resolve_transition(OrderStatus.PROCESSING, ProviderStatusOutcome.PARTIAL) == OrderStatus.PARTIAL

    def test_repeat_is_noop(self):
        assert resolve_transition(OrderStatus.PROCESSING, ProviderStatusOutcome.PROCESSING) is None
        assert resolve_transition(OrderStatus.PENDING, ProviderStatusOutcome.PENDING) is None

    def test_backwards_is_noop(self):
        assert resolve_transition(OrderStatus.PROCESSING, ProviderStatusOutcome.PENDING) is None

    @pytest.mark.parametrize("terminal", [OrderStatus.COMPLETED, OrderStatus.PARTIAL, OrderStatus.CANCELLED])
    def test_terminal_never_moves(self, terminal):
        for outcome in ProviderStatusOutcome:
            assert resolve_transition(terminal, outcome) is None, f"{terminal} moved on {outcome}"

    def test_unrecognized_never_moves(self):
        assert resolve_transition(OrderStatus.PENDING, ProviderStatusOutcome.UNRECOGNIZED) is None

    def test_is_terminal(self):
        assert not is_terminal(OrderStatus.PENDING)
        assert not is_terminal(OrderStatus.PROCESSING)
        assert is_terminal(OrderStatus.CANCELLED)
