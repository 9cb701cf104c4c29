"""Conversion between the data models and JSON-friendly dictionaries.

Money goes out as floats and comes back in through ``decimal_from_str`` so
that ``0.1`` stays ``Decimal("0.1")``. Dates use ISO strings.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from .data_models import (
    PAYMENT_ADJUSTMENT,
    PREPAYMENT,
    RATE_ADJUSTMENT,
    LoanInput,
    Operation,
    PaymentAdjustment,
    PaymentRecord,
    Prepayment,
    RateAdjustment,
    Summary,
)
from .operations import payment_adjustment, prepayment, rate_adjustment
from .utils import decimal_from_str, parse_date


def _money(value) -> Optional[float]:
    return None if value is None else float(value)


def loan_input_to_dict(loan_input: LoanInput) -> Dict[str, Any]:
    return {
        "principal": float(loan_input.principal),
        "annual_rate_percent": float(loan_input.annual_rate_percent),
        "term_months": loan_input.term_months,
        "start_date": loan_input.start_date.isoformat(),
        "payment_type": loan_input.payment_type,
    }


def loan_input_from_dict(data: Dict[str, Any]) -> LoanInput:
    """Build a ``LoanInput`` from a dictionary.

    ``years`` is accepted in place of ``term_months``. Raises ``ValueError``
    for missing or unparsable fields.
    """
    try:
        if "term_months" in data:
            term = int(data["term_months"])
        else:
            term = int(data["years"]) * 12
        return LoanInput(
            principal=decimal_from_str(data["principal"]),
            annual_rate_percent=decimal_from_str(data["annual_rate_percent"]),
            term_months=term,
            start_date=parse_date(str(data["start_date"])),
            payment_type=str(data.get("payment_type", "equal-payment")).lower(),
        )
    except KeyError as exc:
        raise ValueError(f"Missing loan field: {exc.args[0]}") from exc
    except TypeError as exc:
        raise ValueError(f"Invalid loan input: {exc}") from exc


def parameters_to_dict(parameters) -> Dict[str, Any]:
    if isinstance(parameters, RateAdjustment):
        return {"new_rate_percent": float(parameters.new_rate_percent)}
    if isinstance(parameters, PaymentAdjustment):
        return {"new_payment_amount": float(parameters.new_payment_amount)}
    return {"amount": float(parameters.amount), "mode": parameters.mode}


def parameters_from_dict(op_type: str, data: Dict[str, Any]):
    try:
        if op_type == RATE_ADJUSTMENT:
            return rate_adjustment(data["new_rate_percent"])
        if op_type == PAYMENT_ADJUSTMENT:
            return payment_adjustment(data["new_payment_amount"])
        if op_type == PREPAYMENT:
            return prepayment(data["amount"], data.get("mode", "reduce-term"))
    except KeyError as exc:
        raise ValueError(f"Missing {op_type} parameter: {exc.args[0]}") from exc
    raise ValueError(f"Unknown operation type: {op_type}")


def summary_to_dict(summary: Optional[Summary]) -> Optional[Dict[str, Any]]:
    if summary is None:
        return None
    return {
        "total_payment": float(summary.total_payment),
        "total_interest": float(summary.total_interest),
        "total_periods": summary.total_periods,
        "monthly_payment": _money(summary.monthly_payment),
        "first_payment": _money(summary.first_payment),
        "last_payment": _money(summary.last_payment),
    }


def summary_from_dict(data: Optional[Dict[str, Any]]) -> Optional[Summary]:
    if not data:
        return None

    def optional(key):
        value = data.get(key)
        return None if value is None else decimal_from_str(value)

    return Summary(
        total_payment=decimal_from_str(data["total_payment"]),
        total_interest=decimal_from_str(data["total_interest"]),
        total_periods=int(data["total_periods"]),
        monthly_payment=optional("monthly_payment"),
        first_payment=optional("first_payment"),
        last_payment=optional("last_payment"),
    )


def operation_to_dict(op: Operation) -> Dict[str, Any]:
    return {
        "id": op.id,
        "type": op.type,
        "target_period": op.target_period,
        "timestamp": op.timestamp.isoformat(),
        "payment_date": op.payment_date.isoformat() if op.payment_date else None,
        "description": op.description,
        "parameters": parameters_to_dict(op.parameters),
        "before_summary": summary_to_dict(op.before_summary),
        "after_summary": summary_to_dict(op.after_summary),
    }


def operation_from_dict(data: Dict[str, Any]) -> Operation:
    try:
        payment_date = data.get("payment_date")
        timestamp = data.get("timestamp")
        return Operation(
            id=str(data["id"]),
            target_period=int(data["target_period"]),
            parameters=parameters_from_dict(data["type"], data.get("parameters") or {}),
            timestamp=datetime.fromisoformat(timestamp) if timestamp else datetime.now(),
            payment_date=parse_date(payment_date) if payment_date else None,
            description=data.get("description", ""),
            before_summary=summary_from_dict(data.get("before_summary")),
            after_summary=summary_from_dict(data.get("after_summary")),
        )
    except KeyError as exc:
        raise ValueError(f"Missing operation field: {exc.args[0]}") from exc


def record_to_dict(record: PaymentRecord) -> Dict[str, Any]:
    return {
        "period": record.period,
        "date": record.date.isoformat(),
        "payment": float(record.payment),
        "principal": float(record.principal_portion),
        "interest": float(record.interest_portion),
        "remaining_balance": float(record.remaining_balance),
        "rate": float(record.effective_rate_percent),
        "was_adjusted": record.was_adjusted,
        "adjustment_kind": record.adjustment_kind,
    }
