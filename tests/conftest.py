from datetime import date
from decimal import Decimal

import pytest

from loan_replay.data_models import EQUAL_PAYMENT, EQUAL_PRINCIPAL, LoanInput
from loan_replay.operations import new_operation


@pytest.fixture
def annuity_loan():
    """1,000,000 over 30 years at 4.5 %, equal payments."""
    return LoanInput(
        principal=Decimal("1000000"),
        annual_rate_percent=Decimal("4.5"),
        term_months=360,
        start_date=date(2024, 1, 1),
        payment_type=EQUAL_PAYMENT,
    )


@pytest.fixture
def principal_loan():
    """120,000 over 10 years at 6 %, equal principal."""
    return LoanInput(
        principal=Decimal("120000"),
        annual_rate_percent=Decimal("6"),
        term_months=120,
        start_date=date(2024, 1, 1),
        payment_type=EQUAL_PRINCIPAL,
    )


@pytest.fixture
def make_op():
    def factory(period, parameters):
        return new_operation(period, parameters)

    return factory
