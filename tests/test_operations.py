from decimal import Decimal

import pytest

from loan_replay.data_models import REDUCE_PAYMENT, REDUCE_TERM, Prepayment, RateAdjustment
from loan_replay.engine import replay
from loan_replay.operations import (
    InvalidOperationError,
    OperationNotFoundError,
    PaymentPlan,
    compare_summaries,
    payment_adjustment,
    prepayment,
    rate_adjustment,
    summary_history,
    summary_impact,
)


@pytest.fixture
def plan(annuity_loan):
    return PaymentPlan(annuity_loan)


def test_new_plan_has_initial_schedule(plan):
    assert plan.operations == []
    assert plan.summary == plan.initial_summary
    assert len(plan.schedule) == 360


def test_add_operation_captures_snapshots(plan):
    before = plan.summary
    op = plan.add_operation(24, prepayment("100000", "reduce-term"))
    assert op.before_summary == before
    assert op.after_summary == plan.summary
    assert plan.summary.total_periods < before.total_periods
    assert op.payment_date == plan.schedule[23].date
    assert op.type == "prepayment"
    assert "prepaid 100000.00" in op.description


def test_plan_matches_direct_replay(plan, annuity_loan):
    plan.add_operation(12, rate_adjustment("5"))
    plan.add_operation(36, payment_adjustment("9000"))
    schedule, summary = replay(annuity_loan, plan.operations)
    assert plan.schedule == schedule
    assert plan.summary == summary


def test_delete_operation_replays(plan):
    first = plan.add_operation(12, rate_adjustment("5"))
    plan.add_operation(24, prepayment("50000", "reduce-payment"))
    plan.delete_operation(first.id)
    assert [op.type for op in plan.operations] == ["prepayment"]
    assert plan.schedule[12].effective_rate_percent == Decimal("4.5")


def test_revert_to_drops_later_operations(plan):
    first = plan.add_operation(12, rate_adjustment("5"))
    snapshot = plan.summary
    plan.add_operation(24, prepayment("50000", "reduce-term"))
    plan.add_operation(30, payment_adjustment("6000"))
    removed = plan.revert_to(first.id)
    assert len(removed) == 2
    assert [op.id for op in plan.operations] == [first.id]
    assert plan.summary == snapshot


def test_unknown_operation_id(plan):
    with pytest.raises(OperationNotFoundError):
        plan.delete_operation("missing")
    with pytest.raises(OperationNotFoundError):
        plan.revert_to("missing")


def test_invalid_operations_are_rejected(plan):
    with pytest.raises(InvalidOperationError):
        plan.add_operation(1, payment_adjustment("100"))
    with pytest.raises(InvalidOperationError):
        plan.add_operation(1, prepayment("5000000"))
    with pytest.raises(InvalidOperationError):
        plan.add_operation(500, rate_adjustment("5"))
    assert plan.operations == []


def test_validation_can_be_skipped(plan):
    op = plan.add_operation(1, payment_adjustment("100"), validate=False)
    assert plan.schedule[0].payment == Decimal("100.00")
    assert op.payment_date == plan.schedule[0].date


def test_prepayment_factory_rejects_unknown_mode():
    with pytest.raises(ValueError):
        prepayment("1000", "reduce-everything")
    assert prepayment("1000", "Reduce-Payment").mode == REDUCE_PAYMENT


def test_summary_impact(plan):
    op = plan.add_operation(12, prepayment("100000", REDUCE_TERM))
    impact = summary_impact(op.before_summary, op.after_summary, "total_interest")
    assert not impact.is_positive
    assert impact.value == op.before_summary.total_interest - op.after_summary.total_interest
    assert impact.percentage < 0
    impacts = compare_summaries(op.before_summary, op.after_summary)
    assert set(impacts) == {"total_payment", "total_interest", "total_periods"}
    assert compare_summaries(None, op.after_summary)["total_payment"] is None


def test_summary_history_reports_savings(plan):
    plan.add_operation(12, prepayment("100000", REDUCE_TERM))
    plan.add_operation(13, payment_adjustment("6000"))
    plan.add_operation(24, rate_adjustment("9"))
    history = summary_history(plan)
    assert [entry.title for entry in history] == [
        "Initial plan",
        "Plan 1: Prepayment",
        "Plan 2: Rate adjustment",
    ]
    assert history[1].savings is not None and history[1].savings > 0
    assert history[0].operation is None


def test_float_parameters_are_accepted(plan):
    plan.add_operation(12, Prepayment(100000.0))
    op = plan.add_operation(24, RateAdjustment(5.5))
    assert plan.summary.total_periods < 360
    assert op.after_summary == plan.summary
