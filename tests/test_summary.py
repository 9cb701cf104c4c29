from datetime import date
from decimal import Decimal

from loan_replay.data_models import (
    EQUAL_PAYMENT,
    EQUAL_PRINCIPAL,
    REDUCE_TERM,
    PaymentRecord,
    Prepayment,
    RateAdjustment,
    Summary,
)
from loan_replay.engine import replay
from loan_replay.summary import representative_payment, summarize


def _record(period, payment, adjustment_kind=None):
    return PaymentRecord(
        period=period,
        date=date(2024, period, 1) if period <= 12 else date(2025, 1, 1),
        payment=Decimal(payment),
        principal_portion=Decimal("0"),
        interest_portion=Decimal("1.00"),
        remaining_balance=Decimal("0"),
        effective_rate_percent=Decimal("5"),
        was_adjusted=adjustment_kind is not None,
        adjustment_kind=adjustment_kind,
    )


def test_totals_include_prepayments(annuity_loan, make_op):
    ops = [make_op(12, Prepayment(Decimal("100000"), REDUCE_TERM))]
    schedule, summary = replay(annuity_loan, ops)
    regular = sum(r.payment for r in schedule)
    assert summary.total_payment == regular + Decimal("100000")
    assert summary.total_interest == sum(r.interest_portion for r in schedule)
    assert summary.total_periods == len(schedule)


def test_representative_payment_follows_latest_rate_change(annuity_loan, make_op):
    ops = [make_op(12, RateAdjustment(Decimal("5.5"))), make_op(60, RateAdjustment(Decimal("3.5")))]
    schedule, summary = replay(annuity_loan, ops)
    assert schedule[60].adjustment_kind == "rate"
    assert summary.monthly_payment == schedule[60].payment


def test_representative_payment_majority_vote():
    schedule = [
        _record(1, "100.00"),
        _record(2, "200.00"),
        _record(3, "200.00"),
        _record(4, "300.00", "payment"),
        _record(5, "200.00"),
        _record(6, "900.00"),
        _record(7, "900.00"),
        _record(8, "900.00"),
    ]
    # the last three rows do not vote
    assert representative_payment(schedule) == Decimal("200.00")


def test_representative_payment_tie_goes_to_first_seen():
    schedule = [
        _record(1, "100.00"),
        _record(2, "200.00"),
        _record(3, "200.00"),
        _record(4, "100.00"),
        _record(5, "50.00"),
        _record(6, "50.00"),
        _record(7, "50.00"),
    ]
    assert representative_payment(schedule) == Decimal("100.00")


def test_representative_payment_falls_back_to_first_row():
    schedule = [_record(1, "700.00", "payment"), _record(2, "650.00", "payment")]
    assert representative_payment(schedule) == Decimal("700.00")
    assert representative_payment([]) is None


def test_short_schedule_still_votes():
    assert representative_payment([_record(1, "420.00")]) == Decimal("420.00")


def test_equal_principal_summary(principal_loan):
    schedule, _ = replay(principal_loan, [])
    summary = summarize(schedule, EQUAL_PRINCIPAL)
    assert summary.first_payment == schedule[0].payment
    assert summary.last_payment == schedule[-1].payment
    assert summary.monthly_payment is None


def test_empty_schedule_summary():
    assert summarize([], EQUAL_PAYMENT) == Summary.empty()
