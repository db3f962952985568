"""
Input Validation Utilities
Parsing and validation of free-text dialog input
"""

import logging
from decimal import Decimal, InvalidOperation
from models import ServiceKind
from utils.constants import SERVICE_BOUNDS, INSTAGRAM_POST_MARKER

logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """Raised when user input fails validation; message is user-facing"""
    pass


class InputValidator:
    """Validation for the funding and order dialogs"""

    @classmethod
    def validate_funding_amount(cls, amount_str: str, min_amount: Decimal) -> Decimal:
        """Validate and convert a funding amount to Decimal"""
        if not amount_str:
            raise ValidationError("Amount cannot be empty")

        amount_str = amount_str.strip().replace(",", "")

        try:
            amount = Decimal(amount_str)
        except InvalidOperation:
            raise ValidationError(f"Invalid amount. Enter a number (minimum {min_amount}).")

        if not amount.is_finite() or amount < min_amount:
            raise ValidationError(f"Invalid amount. Enter a number (minimum {min_amount}).")

        exponent = amount.as_tuple().exponent
        if isinstance(exponent, int) and exponent < -2:
            raise ValidationError("Amount cannot have more than 2 decimal places")

        return amount

    @classmethod
    def validate_post_link(cls, text: str) -> str:
        """Require an Instagram post link"""
        link = (text or "").strip()
        if INSTAGRAM_POST_MARKER not in link:
            raise ValidationError(
                "Invalid link. Please send an Instagram post link (contains instagram.com/p/...)."
            )
        return link

    @classmethod
    def validate_quantity(cls, text: str, service: ServiceKind) -> int:
        """Parse a whole-number quantity and enforce the service bounds

        Integral decimal forms such as "1000.0" or "1e3" are accepted.
        """
        raw = (text or "").strip().replace(",", "")
        try:
            value = Decimal(raw)
        except InvalidOperation:
            raise ValidationError("Invalid quantity. Enter a number.")
        if not value.is_finite() or value != value.to_integral_value() or value <= 0:
            raise ValidationError("Invalid quantity. Enter a number.")

        quantity = int(value)
        bounds = SERVICE_BOUNDS[service]
        if quantity < bounds.minimum:
            raise ValidationError(f"Minimum order is {bounds.minimum}. Please enter a valid quantity.")
        if quantity > bounds.maximum:
            raise ValidationError(f"Maximum order is {bounds.maximum}. Please enter a valid quantity.")
        return quantity
