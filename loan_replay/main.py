"""Command-line interface for the loan replay calculator.

This module uses the ``click`` library to implement a multi-command
interface. A loan is described either with options or with a JSON plan file,
operations (rate changes, payment changes, prepayments) are applied in target
period order, and the replayed schedule, summary or operation history is
printed or exported to JSON/CSV.
"""

from __future__ import annotations

import csv
import functools
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click

from .data_models import LoanInput, OperationParameters, PaymentRecord
from .formatter import (
    print_comparison,
    print_history,
    print_operations,
    print_schedule,
    print_summary,
)
from .log import configure_logging
from .operations import InvalidOperationError, PaymentPlan, payment_adjustment, prepayment, rate_adjustment, summary_history
from .serialization import (
    loan_input_from_dict,
    loan_input_to_dict,
    operation_to_dict,
    parameters_from_dict,
    record_to_dict,
    summary_to_dict,
)
from .utils import decimal_from_str, parse_date
from .validation import validate_loan_input

logger = logging.getLogger(__name__)

MAX_PRINTED_ROWS = 120


def parse_amount(value: str) -> float:
    """Parse a numeric string with optional suffixes.

    Accepts plain floats ("500000") and shorthand with ``k``/``m`` suffixes
    (e.g., "500k" meaning 500_000). Returns a float.
    """
    value = value.strip().lower()
    value = value.replace(",", "")
    factor = 1.0
    if value.endswith("k"):
        factor = 1_000.0
        value = value[:-1]
    elif value.endswith("m"):
        factor = 1_000_000.0
        value = value[:-1]
    try:
        return float(value) * factor
    except ValueError:
        raise click.BadParameter(f"Invalid amount: {value}")


def _parse_period(text: str, item: str) -> int:
    try:
        period = int(text)
    except ValueError:
        raise click.BadParameter(f"Invalid period in {item}")
    if period < 1:
        raise click.BadParameter(f"Period must be at least 1 in {item}")
    return period


def parse_rate_change_strings(values: Tuple[str, ...]) -> List[Tuple[int, OperationParameters]]:
    changes = []
    for item in values:
        parts = item.split(":")
        if len(parts) != 2:
            raise click.BadParameter(f"Rate change must be in PERIOD:RATE format; got {item}")
        try:
            params = rate_adjustment(parts[1].rstrip("%"))
        except ValueError as exc:
            raise click.BadParameter(str(exc))
        changes.append((_parse_period(parts[0], item), params))
    return changes


def parse_payment_change_strings(values: Tuple[str, ...]) -> List[Tuple[int, OperationParameters]]:
    changes = []
    for item in values:
        parts = item.split(":")
        if len(parts) != 2:
            raise click.BadParameter(f"Payment change must be in PERIOD:AMOUNT format; got {item}")
        params = payment_adjustment(str(parse_amount(parts[1])))
        changes.append((_parse_period(parts[0], item), params))
    return changes


def parse_prepayment_strings(values: Tuple[str, ...]) -> List[Tuple[int, OperationParameters]]:
    prepayments = []
    for item in values:
        parts = item.split(":")
        if len(parts) not in (2, 3):
            raise click.BadParameter(
                f"Prepayment must be in PERIOD:AMOUNT[:MODE] format; got {item}"
            )
        mode = parts[2] if len(parts) == 3 else "reduce-term"
        try:
            params = prepayment(str(parse_amount(parts[1])), mode)
        except ValueError as exc:
            raise click.BadParameter(str(exc))
        prepayments.append((_parse_period(parts[0], item), params))
    return prepayments


def build_loan_input(
    principal: Optional[str],
    rate: Optional[float],
    term: Optional[int],
    payment_type: str,
    start_date: Optional[str],
) -> LoanInput:
    for name, value in (("principal", principal), ("rate", rate), ("term", term), ("start-date", start_date)):
        if value is None:
            raise click.BadParameter(f"--{name} is required unless --plan is given")
    try:
        start = parse_date(start_date)
    except ValueError as exc:
        raise click.BadParameter(str(exc))
    loan_input = LoanInput(
        principal=decimal_from_str(str(parse_amount(principal))),
        annual_rate_percent=decimal_from_str(str(rate)),
        term_months=term,
        start_date=start,
        payment_type=payment_type.lower(),
    )
    errors = validate_loan_input(loan_input)
    if errors:
        raise click.BadParameter("; ".join(e.message for e in errors))
    return loan_input


def load_plan_file(path: Path) -> Tuple[LoanInput, List[Tuple[int, OperationParameters]]]:
    """Read a JSON plan file written by ``--output plan.json``."""
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        loan_input = loan_input_from_dict(data["loan"])
        operations = [
            (int(op["target_period"]), parameters_from_dict(op["type"], op.get("parameters") or {}))
            for op in data.get("operations", [])
        ]
    except (OSError, KeyError, ValueError) as exc:
        raise click.BadParameter(f"Cannot read plan file {path}: {exc}")
    return loan_input, operations


def build_plan(
    principal: Optional[str],
    rate: Optional[float],
    term: Optional[int],
    payment_type: str,
    start_date: Optional[str],
    rate_change: Tuple[str, ...],
    payment_change: Tuple[str, ...],
    prepay: Tuple[str, ...],
    plan_file: Optional[str] = None,
) -> PaymentPlan:
    """Create a plan from the command-line options and apply its operations.

    Operations are applied in target period order. Within one period the
    order is rate changes, payment changes, then prepayments.
    """
    if plan_file:
        loan_input, operations = load_plan_file(Path(plan_file))
    else:
        loan_input = build_loan_input(principal, rate, term, payment_type, start_date)
        operations = []
    operations += parse_rate_change_strings(rate_change)
    operations += parse_payment_change_strings(payment_change)
    operations += parse_prepayment_strings(prepay)
    operations.sort(key=lambda item: item[0])

    plan = PaymentPlan(loan_input)
    for period, params in operations:
        try:
            plan.add_operation(period, params)
        except InvalidOperationError as exc:
            raise click.BadParameter(f"Period {period}: {exc}")
    return plan


def export_to_json(path: Path, plan: PaymentPlan) -> None:
    """Export the loan, operations, summary and schedule to a JSON file."""
    data = {
        "loan": loan_input_to_dict(plan.loan_input),
        "operations": [operation_to_dict(op) for op in plan.operations],
        "summary": summary_to_dict(plan.summary),
        "initial_summary": summary_to_dict(plan.initial_summary),
        "schedule": [record_to_dict(r) for r in plan.schedule],
    }
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def export_to_csv(path: Path, schedule: List[PaymentRecord]) -> None:
    """Export schedule to a CSV file."""
    header = [
        "Period",
        "Date",
        "Payment",
        "Principal",
        "Interest",
        "Remaining_Balance",
        "Rate",
        "Adjustment",
    ]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for r in schedule:
            writer.writerow(
                [
                    r.period,
                    r.date.isoformat(),
                    f"{r.payment:.2f}",
                    f"{r.principal_portion:.2f}",
                    f"{r.interest_portion:.2f}",
                    f"{r.remaining_balance:.2f}",
                    str(r.effective_rate_percent),
                    r.adjustment_kind or "",
                ]
            )


def loan_options(func):
    """Attach the loan and operation options shared by every command."""
    options = [
        click.option("--principal", "-p", "principal", help="Loan amount (e.g. 1m, 500k)"),
        click.option("--rate", "-r", "rate", type=float, help="Annual interest rate (percent)"),
        click.option("--term", "-t", "term", type=int, help="Loan term in months"),
        click.option(
            "--type",
            "payment_type",
            type=click.Choice(["equal-payment", "equal-principal"]),
            default="equal-payment",
            help="Amortization style",
        ),
        click.option("--start-date", "-s", "start_date", help="First payment date (YYYY-MM or YYYY-MM-DD)"),
        click.option("--rate-change", "rate_change", multiple=True, help="Rate change in PERIOD:RATE format"),
        click.option("--payment-change", "payment_change", multiple=True, help="One-off payment in PERIOD:AMOUNT format"),
        click.option(
            "--prepay",
            "prepay",
            multiple=True,
            help="Prepayment in PERIOD:AMOUNT[:reduce-term|reduce-payment] format",
        ),
        click.option("--plan", "plan_file", type=click.Path(exists=True, dir_okay=False), help="JSON plan file"),
    ]
    for option in reversed(options):
        func = option(func)

    @functools.wraps(func)
    def wrapper(**kwargs):
        plan_kwargs = {
            key: kwargs.pop(key)
            for key in (
                "principal",
                "rate",
                "term",
                "payment_type",
                "start_date",
                "rate_change",
                "payment_change",
                "prepay",
                "plan_file",
            )
        }
        return func(plan=build_plan(**plan_kwargs), **kwargs)

    return wrapper


@click.group()
@click.option("--verbose", "-v", count=True, help="Increase log output (-v info, -vv debug)")
def cli(verbose: int) -> None:
    """Model a mortgage and replay rate changes, payment changes and prepayments."""
    level = None
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    configure_logging(level)


@cli.command()
@loan_options
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
def schedule(plan: PaymentPlan, output: Optional[str]) -> None:
    """Replay the plan and print the full payment schedule."""
    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            export_to_json(path, plan)
        elif path.suffix.lower() == ".csv":
            export_to_csv(path, plan.schedule)
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
        click.echo(f"Schedule exported to {path}")
        return
    print_summary(plan.summary)
    if len(plan.schedule) > MAX_PRINTED_ROWS:
        click.echo(f"Schedule has {len(plan.schedule)} rows; showing first {MAX_PRINTED_ROWS} rows.")
        print_schedule(plan.schedule[:MAX_PRINTED_ROWS])
    else:
        print_schedule(plan.schedule)


@cli.command()
@loan_options
@click.option("--output", "output", type=str, help="Output file path (.json)")
def summary(plan: PaymentPlan, output: Optional[str]) -> None:
    """Replay the plan and print only the summary metrics."""
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Summary export must use .json extension")
        payload: Dict[str, Any] = {"summary": summary_to_dict(plan.summary)}
        with path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
        click.echo(f"Summary exported to {path}")
    else:
        print_summary(plan.summary)


@cli.command()
@loan_options
def history(plan: PaymentPlan) -> None:
    """Print every operation with its impact on the totals."""
    print_operations(plan.operations)
    print_history(summary_history(plan))


@cli.command()
@loan_options
def compare(plan: PaymentPlan) -> None:
    """Compare the plan without operations against the plan with them."""
    print_comparison(plan.initial_summary, plan.summary, labels=["Initial", "Current"])


if __name__ == "__main__":
    cli()
