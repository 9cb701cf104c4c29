"""Data models for the loan replay engine.

This module defines the dataclasses used throughout the package: the original
loan terms, the three kinds of operation a user can apply to a plan, the rows
of the resulting schedule and the aggregate summary. All of them are frozen;
a replay always produces new objects rather than editing old ones.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Union

EQUAL_PAYMENT = "equal-payment"
EQUAL_PRINCIPAL = "equal-principal"
PAYMENT_TYPES = (EQUAL_PAYMENT, EQUAL_PRINCIPAL)

REDUCE_TERM = "reduce-term"
REDUCE_PAYMENT = "reduce-payment"
PREPAYMENT_MODES = (REDUCE_TERM, REDUCE_PAYMENT)

RATE_ADJUSTMENT = "rate-adjustment"
PAYMENT_ADJUSTMENT = "payment-adjustment"
PREPAYMENT = "prepayment"


@dataclass(frozen=True)
class LoanInput:
    """The original terms of a loan.

    Attributes
    ----------
    principal: Decimal
        The amount borrowed.
    annual_rate_percent: Decimal
        Nominal annual interest rate in percent (``4.5`` means 4.5 %).
    term_months: int
        Number of monthly periods in the original term.
    start_date: date
        Date of the first payment.
    payment_type: str
        ``"equal-payment"`` (annuity) or ``"equal-principal"``.
    """

    principal: Decimal
    annual_rate_percent: Decimal
    term_months: int
    start_date: date
    payment_type: str = EQUAL_PAYMENT


@dataclass(frozen=True)
class RateAdjustment:
    """A new annual rate, effective from the period after the target."""

    new_rate_percent: Decimal

    kind = RATE_ADJUSTMENT


@dataclass(frozen=True)
class PaymentAdjustment:
    """Replace the installment of the target period only."""

    new_payment_amount: Decimal

    kind = PAYMENT_ADJUSTMENT


@dataclass(frozen=True)
class Prepayment:
    """An extra principal payment made after the target period's installment.

    ``mode`` is ``"reduce-term"`` (keep the installment, shorten the loan) or
    ``"reduce-payment"`` (keep the term, lower the installment).
    """

    amount: Decimal
    mode: str = REDUCE_TERM

    kind = PREPAYMENT


OperationParameters = Union[RateAdjustment, PaymentAdjustment, Prepayment]


@dataclass(frozen=True)
class Summary:
    """Aggregate metrics for a schedule.

    ``monthly_payment`` is only set for equal-payment loans, while
    ``first_payment`` and ``last_payment`` are only set for equal-principal
    loans.
    """

    total_payment: Decimal
    total_interest: Decimal
    total_periods: int
    monthly_payment: Optional[Decimal] = None
    first_payment: Optional[Decimal] = None
    last_payment: Optional[Decimal] = None

    @classmethod
    def empty(cls) -> "Summary":
        return cls(total_payment=Decimal("0"), total_interest=Decimal("0"), total_periods=0)


@dataclass(frozen=True)
class Operation:
    """One entry of the operation log.

    The summaries are snapshots taken when the operation was created and are
    only kept for display; the engine never reads them.
    """

    id: str
    target_period: int
    parameters: OperationParameters
    timestamp: datetime = field(default_factory=datetime.now)
    payment_date: Optional[date] = None
    description: str = ""
    before_summary: Optional[Summary] = None
    after_summary: Optional[Summary] = None

    @property
    def type(self) -> str:
        return self.parameters.kind


@dataclass(frozen=True)
class PaymentRecord:
    """A row of the payment schedule, with money rounded to cents."""

    period: int
    date: date
    payment: Decimal
    principal_portion: Decimal
    interest_portion: Decimal
    remaining_balance: Decimal
    effective_rate_percent: Decimal
    was_adjusted: bool = False
    adjustment_kind: Optional[str] = None  # "payment", "rate" or None


@dataclass(frozen=True)
class ReplayState:
    """Simulation state carried from one period to the next.

    ``last_date`` is the date of the most recently emitted row (one month
    before the start date until period one is written). Rows themselves are
    dated from the loan start date, so the day of month does not drift.
    """

    remaining_principal: Decimal
    rate_percent: Decimal
    remaining_periods: int
    monthly_payment: Decimal
    monthly_principal: Decimal
    current_period: int
    last_date: date
