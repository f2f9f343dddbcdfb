"""
Contract limit calculator.

Derives how many rent months a single payment may prepay for a tenancy and
the largest amount that payment may be. Pure; no database access.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from config import DEPOSIT_COVERS_LAST_MONTH_RATIO
from utils.money import UNBOUNDED, to_money


@dataclass(frozen=True)
class ContractLimits:
     # None means open-ended: no month limit.
     max_months: Optional[int]
     max_payable_amount: Decimal

     @property
     def is_unbounded(self) -> bool:
          return self.max_months is None

     def max_rent_allowed(self, monthly_rent: Decimal) -> Decimal:
          if self.max_months is None:
               return UNBOUNDED
          return to_money(monthly_rent) * self.max_months


def months_between(start: date, end: date) -> int:
     """Whole calendar months from start to end, ignoring the day of month."""
     return (end.year - start.year) * 12 + (end.month - start.month)


def deposit_covers_last_month(monthly_rent: Decimal, security_deposit: Decimal) -> bool:
     rent = to_money(monthly_rent)
     if rent <= 0:
          return False
     return to_money(security_deposit) >= rent * DEPOSIT_COVERS_LAST_MONTH_RATIO


def compute_contract_limits(
     start_date: date,
     contract_end_date: Optional[date],
     monthly_rent,
     security_deposit=None,
     today: Optional[date] = None,
) -> ContractLimits:
     """
     Compute the prepayment ceiling for a tenancy.

     - No contract end date: unbounded (max_months None, amount Infinity).
     - Otherwise the contract's month count, minus one when the deposit is
       at least 90% of a month's rent (that month is deposit-covered),
       never below 1.
     - A contract that has already ended allows only the current bill: 1.

     max_payable_amount = max_months * monthly_rent + security_deposit
     """
     rent = to_money(monthly_rent)
     deposit = to_money(security_deposit)

     if contract_end_date is None:
          return ContractLimits(max_months=None, max_payable_amount=UNBOUNDED)

     today = today or date.today()
     if contract_end_date < today:
          max_months = 1
     else:
          max_months = months_between(start_date, contract_end_date)
          if deposit_covers_last_month(rent, deposit):
               max_months -= 1
          max_months = max(1, max_months)

     return ContractLimits(
          max_months=max_months,
          max_payable_amount=to_money(rent * max_months + deposit),
     )
