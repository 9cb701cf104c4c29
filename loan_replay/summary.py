"""Summary metrics for a replayed schedule."""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import Dict, Iterable, Optional, Sequence

from .data_models import EQUAL_PAYMENT, EQUAL_PRINCIPAL, Operation, PaymentRecord, Prepayment, Summary
from .utils import round_money

# Trailing rows left out of the representative payment vote; the final
# installments of an annuity usually differ from the rest.
TAIL_ROWS_EXCLUDED = 3


def representative_payment(schedule: Sequence[PaymentRecord]) -> Optional[Decimal]:
    """Pick the installment that best describes an equal-payment schedule.

    The most recent row that follows a rate adjustment wins. Without any rate
    adjustment, the payment seen most often among the unadjusted rows (the
    last few rows excluded) is used, ties going to the amount seen first.
    Failing that, the first row's payment is returned.
    """
    if not schedule:
        return None
    for record in reversed(schedule):
        if record.adjustment_kind == "rate":
            return record.payment

    frequency: Dict[Decimal, int] = {}
    for record in schedule[: max(1, len(schedule) - TAIL_ROWS_EXCLUDED)]:
        if not record.was_adjusted and record.payment > 0:
            rounded = round_money(record.payment)
            frequency[rounded] = frequency.get(rounded, 0) + 1

    best: Optional[Decimal] = None
    best_count = 0
    for amount, count in frequency.items():
        if count > best_count:
            best, best_count = amount, count
    if best is not None:
        return best
    return schedule[0].payment


def total_prepaid(operations: Iterable[Operation]) -> Decimal:
    """Sum of every prepayment amount in the operation log."""
    return sum(
        (op.parameters.amount for op in operations if isinstance(op.parameters, Prepayment)),
        Decimal("0"),
    )


def summarize(
    schedule: Sequence[PaymentRecord],
    payment_type: str,
    operations: Iterable[Operation] = (),
) -> Summary:
    """Aggregate a schedule into a ``Summary``.

    Prepayments are not part of any schedule row, so their amounts are added
    to ``total_payment`` explicitly.
    """
    schedule = list(schedule)
    if not schedule:
        return Summary.empty()
    regular = sum((r.payment for r in schedule), Decimal("0"))
    interest = sum((r.interest_portion for r in schedule), Decimal("0"))
    summary = Summary(
        total_payment=round_money(regular + total_prepaid(operations)),
        total_interest=round_money(interest),
        total_periods=len(schedule),
    )
    if payment_type == EQUAL_PAYMENT:
        return replace(summary, monthly_payment=representative_payment(schedule))
    if payment_type == EQUAL_PRINCIPAL:
        return replace(summary, first_payment=schedule[0].payment, last_payment=schedule[-1].payment)
    return summary
