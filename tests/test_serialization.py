from datetime import date
from decimal import Decimal

import pytest

from loan_replay.operations import PaymentPlan, prepayment
from loan_replay.serialization import (
    loan_input_from_dict,
    loan_input_to_dict,
    operation_from_dict,
    operation_to_dict,
    parameters_from_dict,
    record_to_dict,
)


def test_loan_input_dict(annuity_loan):
    data = loan_input_to_dict(annuity_loan)
    assert data["start_date"] == "2024-01-01"
    assert loan_input_from_dict(data) == annuity_loan


def test_loan_input_accepts_years_and_year_month():
    loan = loan_input_from_dict(
        {"principal": "250,000", "annual_rate_percent": 3.1, "years": 20, "start_date": "2025-06"}
    )
    assert loan.term_months == 240
    assert loan.principal == Decimal("250000")
    assert loan.annual_rate_percent == Decimal("3.1")
    assert loan.start_date == date(2025, 6, 1)


def test_loan_input_missing_field():
    with pytest.raises(ValueError, match="principal"):
        loan_input_from_dict({"annual_rate_percent": 3, "term_months": 12, "start_date": "2025-01-01"})


def test_operation_dict_keeps_snapshots(annuity_loan):
    plan = PaymentPlan(annuity_loan)
    op = plan.add_operation(6, prepayment("20000", "reduce-payment"))
    restored = operation_from_dict(operation_to_dict(op))
    assert restored.id == op.id
    assert restored.parameters == op.parameters
    assert restored.payment_date == op.payment_date
    assert restored.after_summary == op.after_summary


def test_unknown_operation_type():
    with pytest.raises(ValueError):
        parameters_from_dict("holiday", {})
    with pytest.raises(ValueError):
        parameters_from_dict("rate-adjustment", {})


def test_record_to_dict(annuity_loan):
    record = PaymentPlan(annuity_loan).schedule[0]
    data = record_to_dict(record)
    assert data["payment"] == 5066.85
    assert data["interest"] == 3750.0
    assert data["adjustment_kind"] is None
