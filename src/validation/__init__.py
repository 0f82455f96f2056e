"""Input validation package."""

from src.validation.validator import (
    BalanceInputValidator,
    InvalidInputError,
    normalize_balance_input,
    parse_balance_amount,
)

__all__ = [
    "BalanceInputValidator",
    "InvalidInputError",
    "normalize_balance_input",
    "parse_balance_amount",
]
