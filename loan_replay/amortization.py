"""Amortization formulas shared by the replay engine.

Two families of loan are supported. Equal-payment (annuity) loans keep the
installment constant and let the principal/interest split drift over time.
Equal-principal loans repay the same principal every month so the installment
falls as interest shrinks. The helpers below derive installments and remaining
terms for both.
"""

from __future__ import annotations

from decimal import ROUND_CEILING, Decimal, getcontext

getcontext().prec = 28  # increase precision for financial calculations


def monthly_rate(rate_percent: Decimal) -> Decimal:
    """Convert an annual nominal rate in percent into a monthly decimal rate."""
    return rate_percent / Decimal(100) / Decimal(12)


def annuity_payment(principal: Decimal, rate_per_month: Decimal, periods: int) -> Decimal:
    """Return the annuity (equal installment) monthly payment for a loan.

    The formula is:

        payment = P * (i * (1 + i)^n) / ((1 + i)^n - 1)

    where ``P`` is the principal, ``i`` is the monthly interest rate and
    ``n`` is the number of payments. When the interest rate is zero, the
    payment simplifies to ``P / n``.
    """
    if periods <= 0:
        raise ValueError("Term must be positive")
    if rate_per_month == 0:
        return principal / Decimal(periods)
    factor = (1 + rate_per_month) ** periods
    return principal * (rate_per_month * factor) / (factor - 1)


def _ceil(value: Decimal) -> int:
    # Drop representation noise so that 12.0000000000000000001 counts as 12.
    value = value.quantize(Decimal("1e-9"))
    return int(value.to_integral_value(rounding=ROUND_CEILING))


def solve_remaining_periods(balance: Decimal, payment: Decimal, rate_per_month: Decimal) -> int:
    """Number of annuity payments of ``payment`` needed to clear ``balance``.

    This inverts the annuity formula:

        n = ceil(ln(pmt / (pmt - pv * i)) / ln(1 + i))

    If the payment does not even cover one month of interest the loan can never
    amortize, and ``1`` is returned.
    """
    if rate_per_month == 0:
        if payment <= 0:
            return 1
        return max(1, _ceil(balance / payment))
    monthly_interest = balance * rate_per_month
    if payment <= monthly_interest:
        return 1
    ratio = payment / (payment - monthly_interest)
    return _ceil(ratio.ln() / (1 + rate_per_month).ln())


def equal_principal_periods(balance: Decimal, monthly_principal: Decimal) -> int:
    """Number of equal-principal installments needed to clear ``balance``."""
    if monthly_principal <= 0:
        return 1
    return _ceil(balance / monthly_principal)
