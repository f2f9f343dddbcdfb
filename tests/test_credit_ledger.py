from decimal import Decimal

import pytest

from errors import InsufficientCreditError, ValidationError
from models import CreditBalance
from services.credit_ledger import add_credit, deduct_credit, get_credit_balance


def test_balance_is_zero_without_credit_events(db):
    assert get_credit_balance(db, 7, 1) == Decimal("0.00")


def test_add_credit_creates_then_increments(db):
    assert add_credit(db, 7, 1, "1500.50") == Decimal("1500.50")
    assert add_credit(db, 7, 1, Decimal("499.50")) == Decimal("2000.00")

    assert db.query(CreditBalance).count() == 1
    assert get_credit_balance(db, 7, 1) == Decimal("2000.00")


def test_balances_are_per_tenancy(db):
    add_credit(db, 7, 1, "100")
    add_credit(db, 7, 2, "250")

    assert get_credit_balance(db, 7, 1) == Decimal("100.00")
    assert get_credit_balance(db, 7, 2) == Decimal("250.00")


def test_deduct_exact_amount(db):
    add_credit(db, 7, 1, "5000")

    assert deduct_credit(db, 7, 1, "5000") == Decimal("0.00")
    # The row stays, zeroed.
    assert db.query(CreditBalance).count() == 1


def test_deduct_more_than_balance_changes_nothing(db):
    add_credit(db, 7, 1, "100")

    with pytest.raises(InsufficientCreditError):
        deduct_credit(db, 7, 1, "100.01")
    assert get_credit_balance(db, 7, 1) == Decimal("100.00")


def test_deduct_without_balance_row(db):
    with pytest.raises(InsufficientCreditError):
        deduct_credit(db, 7, 1, "1")


@pytest.mark.parametrize("amount", ["0", "-5"])
def test_amounts_must_be_positive(db, amount):
    with pytest.raises(ValidationError):
        add_credit(db, 7, 1, amount)
    with pytest.raises(ValidationError):
        deduct_credit(db, 7, 1, amount)
