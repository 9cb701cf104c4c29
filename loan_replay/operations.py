"""Operation log management.

A ``PaymentPlan`` owns the original loan terms and the ordered list of
operations applied to it. Every change to the list (append, delete, revert)
is followed by a full replay; the plan never patches its schedule in place.
Each appended operation carries snapshots of the summary before and after it
was applied so front ends can show its impact.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
import logging
from typing import Dict, List, Optional, Sequence
from uuid import uuid4

from .data_models import (
    EQUAL_PAYMENT,
    PREPAYMENT_MODES,
    REDUCE_TERM,
    LoanInput,
    Operation,
    OperationParameters,
    PaymentAdjustment,
    PaymentRecord,
    Prepayment,
    RateAdjustment,
    Summary,
)
from .engine import replay
from .utils import decimal_from_str
from .validation import validate_operation

logger = logging.getLogger(__name__)


class OperationNotFoundError(KeyError):
    """Raised when an operation id is not present in the log."""


class InvalidOperationError(ValueError):
    """Raised when an operation fails caller-side validation."""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("; ".join(e.message for e in self.errors))


def describe(target_period: int, parameters: OperationParameters, payment_type: str = EQUAL_PAYMENT) -> str:
    """Return a one-line human description of an operation."""
    if isinstance(parameters, RateAdjustment):
        return f"Period {target_period}: rate changed to {parameters.new_rate_percent}%"
    if isinstance(parameters, PaymentAdjustment):
        label = "installment" if payment_type == EQUAL_PAYMENT else "payment"
        return f"Period {target_period}: {label} set to {parameters.new_payment_amount:.2f}"
    mode = "shorten term" if parameters.mode == REDUCE_TERM else "lower installment"
    return f"Period {target_period}: prepaid {parameters.amount:.2f} ({mode})"


def rate_adjustment(new_rate_percent) -> RateAdjustment:
    return RateAdjustment(new_rate_percent=decimal_from_str(new_rate_percent))


def payment_adjustment(new_payment_amount) -> PaymentAdjustment:
    return PaymentAdjustment(new_payment_amount=decimal_from_str(new_payment_amount))


def prepayment(amount, mode: str = REDUCE_TERM) -> Prepayment:
    mode = mode.lower()
    if mode not in PREPAYMENT_MODES:
        raise ValueError(f"Prepayment mode must be 'reduce-term' or 'reduce-payment'; got {mode}")
    return Prepayment(amount=decimal_from_str(amount), mode=mode)


def new_operation(
    target_period: int,
    parameters: OperationParameters,
    *,
    payment_type: str = EQUAL_PAYMENT,
    payment_date=None,
    timestamp: Optional[datetime] = None,
) -> Operation:
    """Create an operation with a fresh id, timestamp and description."""
    if target_period < 1:
        raise ValueError(f"Target period must be at least 1; got {target_period}")
    return Operation(
        id=uuid4().hex,
        target_period=target_period,
        parameters=parameters,
        timestamp=timestamp or datetime.now(),
        payment_date=payment_date,
        description=describe(target_period, parameters, payment_type),
    )


class PaymentPlan:
    """A loan together with its operation log and the replayed results."""

    def __init__(self, loan_input: LoanInput, operations: Sequence[Operation] = ()) -> None:
        self.loan_input = loan_input
        self._operations: List[Operation] = list(operations)
        self.initial_schedule, self.initial_summary = replay(loan_input, [])
        self._replay()

    @property
    def operations(self) -> List[Operation]:
        return list(self._operations)

    def _replay(self) -> None:
        self.schedule, self.summary = replay(self.loan_input, self._operations)

    def _index_of(self, op_id: str) -> int:
        for idx, op in enumerate(self._operations):
            if op.id == op_id:
                return idx
        raise OperationNotFoundError(op_id)

    def record_for(self, period: int) -> Optional[PaymentRecord]:
        for record in self.schedule:
            if record.period == period:
                return record
        return None

    def add_operation(
        self,
        target_period: int,
        parameters: OperationParameters,
        *,
        validate: bool = True,
        timestamp: Optional[datetime] = None,
    ) -> Operation:
        """Append an operation and replay.

        The operation records the summary in force before it was applied and
        the summary produced once it is part of the log.
        """
        record = self.record_for(target_period)
        if validate:
            errors = validate_operation(parameters, record)
            if errors:
                raise InvalidOperationError(errors)
        op = new_operation(
            target_period,
            parameters,
            payment_type=self.loan_input.payment_type,
            payment_date=record.date if record else None,
            timestamp=timestamp,
        )
        op = replace(op, before_summary=self.summary)
        schedule, summary = replay(self.loan_input, self._operations + [op])
        op = replace(op, after_summary=summary)
        self._operations.append(op)
        self.schedule, self.summary = schedule, summary
        logger.info("Added %s (%s)", op.type, op.description)
        return op

    def delete_operation(self, op_id: str) -> Operation:
        """Remove one operation from the log and replay."""
        op = self._operations.pop(self._index_of(op_id))
        self._replay()
        logger.info("Deleted %s %s", op.type, op.id)
        return op

    def revert_to(self, op_id: str) -> List[Operation]:
        """Drop every operation appended after ``op_id`` and replay.

        Returns the operations that were removed.
        """
        idx = self._index_of(op_id)
        removed = self._operations[idx + 1 :]
        self._operations = self._operations[: idx + 1]
        self._replay()
        logger.info("Reverted to %s, dropped %d operations", op_id, len(removed))
        return removed

    def clear(self) -> None:
        self._operations = []
        self._replay()


@dataclass(frozen=True)
class Impact:
    """Change of one summary field between two snapshots.

    ``value`` is the absolute difference, ``is_positive`` tells whether the
    field grew and ``percentage`` is the signed change relative to the
    earlier value.
    """

    value: Decimal
    is_positive: bool
    percentage: Decimal


SUMMARY_FIELDS = ("total_payment", "total_interest", "total_periods")


def summary_impact(before: Optional[Summary], after: Optional[Summary], field: str) -> Optional[Impact]:
    if before is None or after is None:
        return None
    old = Decimal(getattr(before, field))
    new = Decimal(getattr(after, field))
    diff = new - old
    percentage = (diff / old * 100) if old != 0 else Decimal("0")
    return Impact(value=abs(diff), is_positive=diff > 0, percentage=percentage)


def compare_summaries(before: Optional[Summary], after: Optional[Summary]) -> Dict[str, Optional[Impact]]:
    return {field: summary_impact(before, after, field) for field in SUMMARY_FIELDS}


@dataclass(frozen=True)
class HistoryEntry:
    title: str
    summary: Summary
    operation: Optional[Operation] = None
    savings: Optional[Decimal] = None


def summary_history(plan: PaymentPlan) -> List[HistoryEntry]:
    """The initial plan followed by one entry per rate change or prepayment.

    ``savings`` is how much less is paid in total than under the initial plan;
    it is only set when the operation actually saves money.
    """
    entries = [HistoryEntry(title="Initial plan", summary=plan.initial_summary)]
    initial_total = plan.initial_summary.total_payment
    counted = [op for op in plan.operations if isinstance(op.parameters, (RateAdjustment, Prepayment))]
    for idx, op in enumerate(counted, start=1):
        after = op.after_summary or plan.summary
        impact = after.total_payment - initial_total
        title = "Rate adjustment" if isinstance(op.parameters, RateAdjustment) else "Prepayment"
        entries.append(
            HistoryEntry(
                title=f"Plan {idx}: {title}",
                summary=after,
                operation=op,
                savings=abs(impact) if impact < 0 else None,
            )
        )
    return entries
