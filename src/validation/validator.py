"""
Balance Input Validation

DESIGN DECISION: Normalization is a pure function that runs before
anything touches the store. It can be unit tested without a database,
and the store only ever receives a well-formed Decimal.

NORMALIZATION RULES:
- Keep ASCII digits and '.'; drop everything else
  (currency symbols, thousands separators, whitespace, letters, signs)
- At least one digit must remain
- At most one decimal point may remain
- Round to cents with ROUND_HALF_UP

IMPORTANT: Validation NEVER silently fixes an unparseable amount.
It raises InvalidInputError and nothing is written.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from src.config import get_settings
from src.models.balance import CENTS, format_amount


class InvalidInputError(ValueError):
    """Operator text could not be turned into a monetary amount."""

    def __init__(self, raw_input: str, reason: str):
        self.raw_input = raw_input
        self.reason = reason
        super().__init__(reason)


def normalize_balance_input(raw_input: str) -> str:
    """
    Strip everything except digits and a single decimal point.

    "$12,345.67" -> "12345.67", " 1 000 " -> "1000"

    Raises:
        InvalidInputError: if no digits remain or more than one '.' remains
    """
    if raw_input is None:
        raise InvalidInputError("", "Please enter a balance.")

    normalized = "".join(ch for ch in raw_input if ch in "0123456789.")

    if not any(ch.isdigit() for ch in normalized):
        if not raw_input.strip():
            raise InvalidInputError(raw_input, "Please enter a balance.")
        raise InvalidInputError(
            raw_input,
            f"'{raw_input}' does not contain a number.",
        )
    if normalized.count(".") > 1:
        raise InvalidInputError(
            raw_input,
            f"'{raw_input}' contains more than one decimal point.",
        )

    return normalized


def parse_balance_amount(
    raw_input: str,
    max_amount: Optional[Decimal] = None,
) -> Decimal:
    """
    Normalize operator text and convert it to a two-digit Decimal.

    Rounding is ROUND_HALF_UP: "2.345" -> 2.35, "2.344" -> 2.34.

    Raises:
        InvalidInputError: if the text is not a usable amount
    """
    normalized = normalize_balance_input(raw_input)

    try:
        value = Decimal(normalized)
    except InvalidOperation:
        raise InvalidInputError(raw_input, f"'{raw_input}' is not a valid amount.")

    if not value.is_finite():
        raise InvalidInputError(raw_input, f"'{raw_input}' is not a valid amount.")

    try:
        amount = value.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidInputError(raw_input, f"'{raw_input}' is too large to be a balance.")

    if max_amount is not None and amount > max_amount:
        raise InvalidInputError(
            raw_input,
            f"{format_amount(amount)} is larger than the maximum "
            f"allowed balance of {format_amount(max_amount)}.",
        )

    return amount


class BalanceInputValidator:
    """
    Validates operator input against the configured limits.

    Thin wrapper around parse_balance_amount so callers don't have to
    thread settings through.
    """

    def __init__(self, max_amount: Optional[Decimal] = None):
        if max_amount is None:
            max_amount = get_settings().app.max_balance_amount
        self._max_amount = max_amount

    @property
    def max_amount(self) -> Decimal:
        return self._max_amount

    def validate(self, raw_input: str) -> Decimal:
        """Return the parsed amount or raise InvalidInputError."""
        return parse_balance_amount(raw_input, max_amount=self._max_amount)

    @staticmethod
    def get_user_friendly_message(error: InvalidInputError) -> str:
        """Message shown to the operator for a rejected input."""
        return f"{error.reason} Enter an amount such as $12,345.67."
