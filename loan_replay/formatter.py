"""Output helpers for the loan replay CLI.

Simple functions that render schedules, summaries and the operation history
as plain text tables using built-in printing and string formatting.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from .data_models import Operation, PaymentRecord, Summary
from .operations import HistoryEntry, compare_summaries


def print_summary(summary: Summary, title: str = "Summary") -> None:
    """Print a summary of loan metrics in a human-readable format."""
    print(title)
    print("-" * 72)
    print(f"Total payment      : {summary.total_payment:.2f}")
    print(f"Total interest     : {summary.total_interest:.2f}")
    print(f"Periods            : {summary.total_periods}")
    if summary.monthly_payment is not None:
        print(f"Monthly payment    : {summary.monthly_payment:.2f}")
    if summary.first_payment is not None:
        print(f"First payment      : {summary.first_payment:.2f}")
        print(f"Last payment       : {summary.last_payment:.2f}")
    print("-" * 72)


def print_schedule(schedule: Iterable[PaymentRecord]) -> None:
    """Print the amortization schedule as a tab-separated table."""
    headers = ["Period", "Date", "Payment", "Principal", "Interest", "Balance", "Rate", "Adjusted"]
    print("\t".join(headers))
    for record in schedule:
        row = [
            str(record.period),
            record.date.isoformat(),
            f"{record.payment:.2f}",
            f"{record.principal_portion:.2f}",
            f"{record.interest_portion:.2f}",
            f"{record.remaining_balance:.2f}",
            f"{record.effective_rate_percent}%",
            record.adjustment_kind or "",
        ]
        print("\t".join(row))


def _signed(impact, fmt: str = "{:.2f}") -> str:
    if impact is None:
        return "n/a"
    sign = "+" if impact.is_positive else "-"
    return sign + fmt.format(impact.value)


def print_operations(operations: List[Operation]) -> None:
    """Print each operation with its effect on the summary."""
    print("Operations")
    print("=" * 72)
    if not operations:
        print("No operations")
    for idx, op in enumerate(operations, start=1):
        when = f" ({op.payment_date.isoformat()})" if op.payment_date else ""
        print(f"{idx}. [{op.id[:8]}] {op.description}{when}")
        impacts = compare_summaries(op.before_summary, op.after_summary)
        print(
            f"   total payment {_signed(impacts['total_payment'])}"
            f"  interest {_signed(impacts['total_interest'])}"
            f"  periods {_signed(impacts['total_periods'], '{:.0f}')}"
        )
    print("=" * 72)


def print_history(entries: List[HistoryEntry]) -> None:
    """Print the plan snapshots produced by ``operations.summary_history``."""
    for entry in entries:
        subtitle = f" - {entry.operation.description}" if entry.operation else ""
        print(f"{entry.title}{subtitle}")
        line = f"   total {entry.summary.total_payment:.2f}  interest {entry.summary.total_interest:.2f}"
        if entry.savings is not None:
            line += f"  saves {entry.savings:.2f}"
        print(line)


def print_comparison(s1: Summary, s2: Summary, labels: Optional[List[str]] = None) -> None:
    """Print two summaries side by side.

    The difference column is ``s2 - s1``; a negative value means the second
    scenario is cheaper or shorter.
    """
    labels = labels or ["Scenario1", "Scenario2"]
    print("Comparison")
    print("=" * 72)
    print(f"{'Metric':20s} {labels[0]:>15s} {labels[1]:>15s} {'Difference':>15s}")
    for key in ("total_payment", "total_interest", "total_periods"):
        v1 = getattr(s1, key)
        v2 = getattr(s2, key)
        print(f"{key:20s} {v1:15.2f} {v2:15.2f} {v2 - v1:15.2f}")
    print("=" * 72)
