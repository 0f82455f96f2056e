"""
Core Data Models for Balance Updater

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Support the audit trail

DESIGN DECISION: Amounts are Decimal with exactly two fraction digits.
Floats never touch a balance.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


CENTS = Decimal("0.01")


def format_amount(amount: Decimal, currency_symbol: str = "$") -> str:
    """Format an amount for display: 12345.6 -> '$12,345.60', -5 -> '-$5.00'."""
    quantized = amount.quantize(CENTS)
    if quantized < 0:
        return f"-{currency_symbol}{-quantized:,.2f}"
    return f"{currency_symbol}{quantized:,.2f}"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class BalanceReadStatus(str, Enum):
    """
    Outcome of reading the current balance.

    NO_DATA is the empty-store sentinel, not an error.
    """
    AVAILABLE = "available"
    NO_DATA = "no_data"
    ERROR = "error"


# =============================================================================
# CORE BALANCE MODEL
# =============================================================================

class BalanceRecord(BaseModel):
    """
    One dated account value snapshot.

    CRITICAL: At most one BalanceRecord exists per calendar day.
    The store enforces this with a unique constraint on record_date.
    Records are never updated or deleted by this system.
    """
    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique record ID"
    )
    amount: Annotated[
        Decimal,
        Field(decimal_places=2, description="Account balance (required)")
    ]
    record_date: date = Field(
        ...,
        description="Calendar day this balance belongs to"
    )
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the record was inserted (UTC)"
    )

    def display_amount(self, currency_symbol: str = "$") -> str:
        return format_amount(self.amount, currency_symbol)


class CurrentBalance(BaseModel):
    """
    What the reader hands to the UI.

    The reader never raises: a failed read becomes status=ERROR
    so the caller can show an error indicator in place of a value.
    """

    status: BalanceReadStatus
    amount: Optional[Decimal] = None
    record_date: Optional[date] = None
    error_message: Optional[str] = None
    currency_symbol: str = "$"
    read_at: datetime = Field(
        default_factory=datetime.utcnow
    )

    @model_validator(mode='after')
    def validate_status_fields(self) -> 'CurrentBalance':
        """Amount is present exactly when the status is AVAILABLE."""
        if self.status == BalanceReadStatus.AVAILABLE and self.amount is None:
            raise ValueError("An available balance must carry an amount")
        if self.status != BalanceReadStatus.AVAILABLE and self.amount is not None:
            raise ValueError(f"A {self.status.value} balance cannot carry an amount")
        if self.status == BalanceReadStatus.ERROR and not self.error_message:
            raise ValueError("An error balance must carry an error message")
        return self

    @classmethod
    def from_record(
        cls,
        record: Optional[BalanceRecord],
        currency_symbol: str = "$",
    ) -> 'CurrentBalance':
        if record is None:
            return cls(status=BalanceReadStatus.NO_DATA, currency_symbol=currency_symbol)
        return cls(
            status=BalanceReadStatus.AVAILABLE,
            amount=record.amount,
            record_date=record.record_date,
            currency_symbol=currency_symbol,
        )

    @classmethod
    def failed(cls, error_message: str, currency_symbol: str = "$") -> 'CurrentBalance':
        return cls(
            status=BalanceReadStatus.ERROR,
            error_message=error_message,
            currency_symbol=currency_symbol,
        )

    @property
    def is_error(self) -> bool:
        return self.status == BalanceReadStatus.ERROR

    @property
    def display_value(self) -> str:
        """Empty store shows as zero, matching the label operators are used to."""
        if self.status == BalanceReadStatus.ERROR:
            return "Error"
        if self.status == BalanceReadStatus.NO_DATA:
            return format_amount(Decimal("0"), self.currency_symbol)
        return format_amount(self.amount, self.currency_symbol)

    @property
    def display_text(self) -> str:
        return f"Current Balance: {self.display_value}"
