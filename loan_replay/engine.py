"""Core replay engine for the loan calculator.

This module rebuilds an amortization schedule from the original loan terms
and an ordered log of operations. Nothing is cached between calls: every
``replay`` starts from period one and walks forward, applying each operation
at the period it targets. Results are returned as a list of ``PaymentRecord``
objects along with a ``Summary``.

Within a single period the operations are applied in a fixed order. A payment
adjustment changes the installment of that period itself. A rate adjustment
and then any prepayments take effect once the period's row has been written,
so they first show up in the following period.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal, getcontext
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .amortization import (
    annuity_payment,
    equal_principal_periods,
    monthly_rate,
    solve_remaining_periods,
)
from .data_models import (
    EQUAL_PAYMENT,
    PAYMENT_TYPES,
    REDUCE_PAYMENT,
    LoanInput,
    Operation,
    PaymentAdjustment,
    PaymentRecord,
    Prepayment,
    RateAdjustment,
    ReplayState,
    Summary,
)
from .summary import summarize
from .utils import CENT, add_months, decimal_from_str, round_money

getcontext().prec = 28  # increase precision for financial calculations

logger = logging.getLogger(__name__)


def _normalize(loan_input: LoanInput) -> Optional[LoanInput]:
    """Return ``loan_input`` with coerced numeric fields, or None if malformed."""
    try:
        principal = decimal_from_str(loan_input.principal)
        rate = decimal_from_str(loan_input.annual_rate_percent)
        term = int(loan_input.term_months)
    except (AttributeError, TypeError, ValueError):
        return None
    if principal <= 0 or term <= 0 or rate < 0 or rate > 100:
        return None
    if not isinstance(loan_input.start_date, date):
        return None
    if loan_input.payment_type not in PAYMENT_TYPES:
        return None
    return replace(loan_input, principal=principal, annual_rate_percent=rate, term_months=term)


def _normalize_operation(op: Operation) -> Optional[Operation]:
    """Return ``op`` with Decimal parameters, or None if they cannot be read."""
    params = op.parameters
    try:
        if isinstance(params, RateAdjustment):
            params = replace(params, new_rate_percent=decimal_from_str(params.new_rate_percent))
        elif isinstance(params, PaymentAdjustment):
            params = replace(params, new_payment_amount=decimal_from_str(params.new_payment_amount))
        elif isinstance(params, Prepayment):
            params = replace(params, amount=decimal_from_str(params.amount))
        else:
            return None
        target_period = int(op.target_period)
    except (AttributeError, TypeError, ValueError):
        return None
    return replace(op, parameters=params, target_period=target_period)


def initial_state(loan_input: LoanInput) -> ReplayState:
    """Build the simulation state in force before period one."""
    principal = loan_input.principal
    term = loan_input.term_months
    monthly_payment = Decimal("0")
    monthly_principal = Decimal("0")
    if loan_input.payment_type == EQUAL_PAYMENT:
        rate_per_month = monthly_rate(loan_input.annual_rate_percent)
        monthly_payment = annuity_payment(principal, rate_per_month, term)
    else:
        monthly_principal = principal / Decimal(term)
    return ReplayState(
        remaining_principal=principal,
        rate_percent=loan_input.annual_rate_percent,
        remaining_periods=term,
        monthly_payment=monthly_payment,
        monthly_principal=monthly_principal,
        current_period=1,
        last_date=add_months(loan_input.start_date, -1),
    )


def _latest(operations: Iterable[Operation], kind: type) -> Optional[Operation]:
    """Return the last operation in log order whose parameters are ``kind``."""
    found = None
    for op in operations:
        if isinstance(op.parameters, kind):
            found = op
    return found


def apply_rate_adjustment(payment_type: str, state: ReplayState, adjustment: RateAdjustment) -> ReplayState:
    """Switch to a new rate for the periods that follow.

    Annuity loans re-amortize the outstanding balance over the remaining term
    at the new rate. Equal-principal loans keep their principal installment;
    only the interest part changes.
    """
    state = replace(state, rate_percent=adjustment.new_rate_percent)
    if (
        payment_type == EQUAL_PAYMENT
        and state.remaining_principal > CENT
        and state.remaining_periods > 0
    ):
        state = replace(
            state,
            monthly_payment=annuity_payment(
                state.remaining_principal,
                monthly_rate(state.rate_percent),
                state.remaining_periods,
            ),
        )
    return state


def apply_prepayment(payment_type: str, state: ReplayState, prepayment: Prepayment) -> ReplayState:
    """Reduce the balance by an extra payment and re-derive the plan.

    In ``reduce-term`` mode the installment is held and the number of
    remaining periods is solved for. In ``reduce-payment`` mode the number of
    remaining periods is held and the installment is recomputed.
    """
    remaining = state.remaining_principal - prepayment.amount
    if remaining < 0:
        remaining = Decimal("0")
    state = replace(state, remaining_principal=remaining)
    rate_per_month = monthly_rate(state.rate_percent)

    if prepayment.mode == REDUCE_PAYMENT:
        if payment_type == EQUAL_PAYMENT:
            if remaining > CENT and state.remaining_periods > 0:
                payment = annuity_payment(remaining, rate_per_month, state.remaining_periods)
            else:
                payment = Decimal("0")
            return replace(state, monthly_payment=payment)
        if state.remaining_periods > 0:
            principal_part = remaining / Decimal(state.remaining_periods)
        else:
            principal_part = Decimal("0")
        return replace(state, monthly_principal=principal_part)

    if remaining <= CENT:
        return replace(state, remaining_periods=0)
    if payment_type == EQUAL_PAYMENT:
        periods = solve_remaining_periods(remaining, state.monthly_payment, rate_per_month)
    else:
        periods = equal_principal_periods(remaining, state.monthly_principal)
    return replace(state, remaining_periods=periods)


def step_period(
    loan_input: LoanInput,
    state: ReplayState,
    period_ops: Sequence[Operation] = (),
    rate_adjusted_previous: bool = False,
) -> Tuple[PaymentRecord, ReplayState]:
    """Simulate one period.

    Parameters
    ----------
    loan_input: LoanInput
        The (normalized) original loan terms.
    state: ReplayState
        State at the start of ``state.current_period``.
    period_ops: Sequence[Operation]
        Operations targeting this period, in log order.
    rate_adjusted_previous: bool
        Whether a rate adjustment targeted the previous period. The row is
        then flagged as rate-adjusted.

    Returns
    -------
    record: PaymentRecord
        The schedule row for this period.
    state: ReplayState
        State at the start of the next period.
    """
    remaining = state.remaining_principal
    interest = remaining * monthly_rate(state.rate_percent)

    if loan_input.payment_type == EQUAL_PAYMENT:
        payment = state.monthly_payment
        principal_portion = payment - interest
        if principal_portion > remaining:
            # last payment: pay off exactly what is left
            principal_portion = remaining
            payment = principal_portion + interest
        if principal_portion < 0:
            principal_portion = Decimal("0")
    else:
        principal_portion = min(state.monthly_principal, remaining)
        payment = principal_portion + interest

    override = _latest(period_ops, PaymentAdjustment)
    if override is not None:
        payment = override.parameters.new_payment_amount
        principal_portion = payment - interest
        if principal_portion > remaining:
            principal_portion = remaining
            payment = principal_portion + interest
        if principal_portion < 0:
            principal_portion = Decimal("0")

    if override is not None:
        adjustment_kind = "payment"
    elif rate_adjusted_previous:
        adjustment_kind = "rate"
    else:
        adjustment_kind = None

    remaining -= principal_portion
    record_date = add_months(loan_input.start_date, state.current_period - 1)
    record = PaymentRecord(
        period=state.current_period,
        date=record_date,
        payment=round_money(payment),
        principal_portion=round_money(principal_portion),
        interest_portion=round_money(interest),
        remaining_balance=round_money(max(remaining, Decimal("0"))),
        effective_rate_percent=state.rate_percent,
        was_adjusted=adjustment_kind is not None,
        adjustment_kind=adjustment_kind,
    )

    state = replace(
        state,
        remaining_principal=remaining,
        last_date=record_date,
        remaining_periods=state.remaining_periods - 1,
        current_period=state.current_period + 1,
    )

    rate_op = _latest(period_ops, RateAdjustment)
    if rate_op is not None:
        state = apply_rate_adjustment(loan_input.payment_type, state, rate_op.parameters)
    for op in period_ops:
        if isinstance(op.parameters, Prepayment):
            state = apply_prepayment(loan_input.payment_type, state, op.parameters)

    return record, state


def _group_by_period(operations: Iterable[Operation]) -> Dict[int, List[Operation]]:
    """Group operations by target period, keeping log order within a period."""
    mapping: Dict[int, List[Operation]] = {}
    for op in operations:
        mapping.setdefault(op.target_period, []).append(op)
    return mapping


def replay(loan_input: LoanInput, operations: Sequence[Operation] = ()) -> Tuple[List[PaymentRecord], Summary]:
    """Rebuild the payment schedule and summary for a loan.

    Parameters
    ----------
    loan_input: LoanInput
        The original loan terms.
    operations: Sequence[Operation]
        The operation log, oldest first.

    Returns
    -------
    schedule: List[PaymentRecord]
        One row per period. The schedule never runs past the original term,
        even if an operation left the loan unable to amortize in time.
    summary: Summary
        Aggregate metrics, see ``summary.summarize``.

    Malformed input (non-positive principal or term, a rate outside
    ``[0, 100]``, an unknown payment type) yields an empty schedule and a
    zeroed summary instead of an exception. Operation parameters are coerced
    to ``Decimal``; an operation whose parameters cannot be read is skipped.
    """
    loan = _normalize(loan_input)
    if loan is None:
        logger.warning("Malformed loan input, returning an empty schedule: %r", loan_input)
        return [], Summary.empty()

    normalized = []
    for op in operations:
        clean = _normalize_operation(op)
        if clean is None:
            logger.warning("Skipping operation with unreadable parameters: %r", op)
            continue
        normalized.append(clean)
    operations = normalized
    ops_by_period = _group_by_period(operations)
    rate_periods = {op.target_period for op in operations if isinstance(op.parameters, RateAdjustment)}
    logger.debug(
        "Replaying %s loan of %s over %d months with %d operations",
        loan.payment_type,
        loan.principal,
        loan.term_months,
        len(operations),
    )

    state = initial_state(loan)
    schedule: List[PaymentRecord] = []
    while state.remaining_principal > CENT and state.current_period <= loan.term_months:
        period_ops = ops_by_period.get(state.current_period, [])
        if period_ops:
            logger.debug(
                "Period %d: applying %s",
                state.current_period,
                ", ".join(op.type for op in period_ops),
            )
        record, state = step_period(
            loan,
            state,
            period_ops,
            rate_adjusted_previous=(state.current_period - 1) in rate_periods,
        )
        schedule.append(record)

    if state.remaining_principal > CENT:
        logger.warning(
            "Balance of %s still outstanding after the original term of %d months",
            round_money(state.remaining_principal),
            loan.term_months,
        )

    return schedule, summarize(schedule, loan.payment_type, operations)
