"""
Credit ledger - per (tenant, tenancy) credit balances.

Every change is a single UPDATE evaluated by the database, so concurrent
settlements on the same tenancy cannot lose an update:

     amount = amount + :x                      (add_credit)
     amount = amount - :x WHERE amount >= :x   (deduct_credit)
"""
import logging
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from errors import InsufficientCreditError, ValidationError
from models import CreditBalance
from utils.money import ZERO, to_money

logger = logging.getLogger(__name__)


def get_credit_balance(db: Session, tenant_id: int, tenancy_id: int) -> Decimal:
     """Current credit for the pair; zero when no credit event has happened yet."""
     amount = (
          db.query(CreditBalance.amount)
          .filter(
               CreditBalance.tenant_id == tenant_id,
               CreditBalance.tenancy_id == tenancy_id,
          )
          .scalar()
     )
     return to_money(amount) if amount is not None else ZERO


def _increment(db: Session, tenant_id: int, tenancy_id: int, amount: Decimal) -> int:
     result = db.execute(
          update(CreditBalance)
          .where(
               CreditBalance.tenant_id == tenant_id,
               CreditBalance.tenancy_id == tenancy_id,
          )
          .values(amount=CreditBalance.amount + amount)
          .execution_options(synchronize_session=False)
     )
     return result.rowcount


def add_credit(db: Session, tenant_id: int, tenancy_id: int, amount) -> Decimal:
     """
     Add credit, creating the balance row on first use.

     Returns the new balance.
     """
     amount = to_money(amount)
     if amount <= ZERO:
          raise ValidationError("Credit amount must be positive")

     if _increment(db, tenant_id, tenancy_id, amount) == 0:
          try:
               with db.begin_nested():
                    db.add(CreditBalance(tenant_id=tenant_id, tenancy_id=tenancy_id, amount=amount))
          except IntegrityError:
               # Another transaction created the row first.
               _increment(db, tenant_id, tenancy_id, amount)

     balance = get_credit_balance(db, tenant_id, tenancy_id)
     logger.info("Credit +%s for tenant %s / tenancy %s (balance %s)", amount, tenant_id, tenancy_id, balance)
     return balance


def deduct_credit(db: Session, tenant_id: int, tenancy_id: int, amount) -> Decimal:
     """
     Draw down credit. Never goes below zero.

     Raises:
          InsufficientCreditError: balance is missing or smaller than amount.
     """
     amount = to_money(amount)
     if amount <= ZERO:
          raise ValidationError("Deduction must be positive")

     result = db.execute(
          update(CreditBalance)
          .where(
               CreditBalance.tenant_id == tenant_id,
               CreditBalance.tenancy_id == tenancy_id,
               CreditBalance.amount >= amount,
          )
          .values(amount=CreditBalance.amount - amount)
          .execution_options(synchronize_session=False)
     )
     if result.rowcount == 0:
          available = get_credit_balance(db, tenant_id, tenancy_id)
          raise InsufficientCreditError(f"Credit balance {available} is less than {amount}")

     balance = get_credit_balance(db, tenant_id, tenancy_id)
     logger.info("Credit -%s for tenant %s / tenancy %s (balance %s)", amount, tenant_id, tenancy_id, balance)
     return balance
