"""Caller-side validation of loan terms and operations.

The replay engine accepts anything well-formed and clamps numeric edge cases
instead of complaining. Front ends that want to reject unreasonable input
before it reaches the engine use the rules below.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Callable, List, Optional

from .data_models import (
    PAYMENT_TYPES,
    PREPAYMENT_MODES,
    LoanInput,
    OperationParameters,
    PaymentAdjustment,
    PaymentRecord,
    Prepayment,
    RateAdjustment,
)

MAX_PRINCIPAL = Decimal("100000000")
MAX_RATE_PERCENT = Decimal("50")
MAX_TERM_MONTHS = 600
MIN_PAYMENT_MARGIN = Decimal("1")


@dataclass(frozen=True)
class ValidationError:
    field: str
    message: str


@dataclass(frozen=True)
class ValidationRule:
    field: str
    validator: Callable[[Any], bool]
    message: str


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


VALIDATION_RULES: List[ValidationRule] = [
    ValidationRule(
        "principal",
        lambda v: _is_number(v) and 0 < v <= MAX_PRINCIPAL,
        "Principal must be greater than 0 and at most 100,000,000",
    ),
    ValidationRule(
        "annual_rate_percent",
        lambda v: _is_number(v) and 0 < v <= MAX_RATE_PERCENT,
        "Annual rate must be greater than 0 and at most 50%",
    ),
    ValidationRule(
        "term_months",
        lambda v: isinstance(v, int) and not isinstance(v, bool) and 0 < v <= MAX_TERM_MONTHS,
        "Term must be between 1 and 600 months",
    ),
    ValidationRule(
        "start_date",
        lambda v: isinstance(v, date),
        "Start date must be a valid date",
    ),
    ValidationRule(
        "payment_type",
        lambda v: v in PAYMENT_TYPES,
        "Payment type must be 'equal-payment' or 'equal-principal'",
    ),
]


def validate_loan_input(loan_input: LoanInput) -> List[ValidationError]:
    """Return every rule the loan terms break; an empty list means valid."""
    errors: List[ValidationError] = []
    for rule in VALIDATION_RULES:
        if not rule.validator(getattr(loan_input, rule.field, None)):
            errors.append(ValidationError(rule.field, rule.message))
    return errors


def validate_operation(parameters: OperationParameters, record: Optional[PaymentRecord]) -> List[ValidationError]:
    """Check an operation against the schedule row it targets.

    ``record`` is the current row for the target period; ``None`` means the
    period does not exist in the current schedule.
    """
    if record is None:
        return [ValidationError("target_period", "Target period is not part of the current schedule")]

    if isinstance(parameters, RateAdjustment):
        rate = parameters.new_rate_percent
        if not (_is_number(rate) and 0 < rate <= MAX_RATE_PERCENT):
            return [ValidationError("new_rate_percent", "New rate must be greater than 0 and at most 50%")]
    elif isinstance(parameters, PaymentAdjustment):
        amount = parameters.new_payment_amount
        if not _is_number(amount) or amount < 0:
            return [ValidationError("new_payment_amount", "Payment must be a non-negative amount")]
        minimum = record.interest_portion + MIN_PAYMENT_MARGIN
        if amount < minimum:
            return [
                ValidationError(
                    "new_payment_amount",
                    f"Payment must be at least the interest due plus {MIN_PAYMENT_MARGIN} ({minimum:.2f})",
                )
            ]
    elif isinstance(parameters, Prepayment):
        amount = parameters.amount
        if not _is_number(amount) or amount <= 0 or amount > record.remaining_balance:
            return [
                ValidationError(
                    "amount",
                    f"Amount must be greater than 0 and at most the remaining balance ({record.remaining_balance:.2f})",
                )
            ]
        if parameters.mode not in PREPAYMENT_MODES:
            return [ValidationError("mode", "Mode must be 'reduce-term' or 'reduce-payment'")]
    return []
