"""
Payment Intake - validates and stages a tenant's payment attempt.

A submission never settles anything. It checks the chosen amount against
what is owed and the contract limits, then moves the bill to
pending_confirmation for the landlord (or the gateway) to confirm.

Rules, in order:
1. Only pending or rejected bills accept a submission.
2. owed = total - credit. When credit covers the bill the only valid
   method is credit, which goes straight to the settlement engine.
3. No partial payments: amount < owed is refused.
4. One-time charges (deposit, utilities, other) are taken off the amount
   first; only the remainder counts toward rent months.
5. Rent may not be prepaid past the contract.
6. QR payments need a reference number or a proof upload.
"""
import logging
import math
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from errors import (
     BelowMinimumError,
     ExceedsContractError,
     InsufficientCreditError,
     InvalidStateError,
     MissingProofError,
     ValidationError,
)
from models import Bill, BillStatus, PaymentMethod
from services import notifications, settlement
from services.bill_ledger import bill_total, get_bill, one_time_total, transition
from services.contract_limits import ContractLimits, compute_contract_limits
from services.credit_ledger import get_credit_balance
from services.tenancy_directory import TenancyDirectory
from utils.money import ZERO, to_money

logger = logging.getLogger(__name__)

SUBMITTABLE = (BillStatus.PENDING, BillStatus.REJECTED)


@dataclass(frozen=True)
class PaymentQuote:
     """Server-side breakdown of a proposed payment."""
     bill_total: Decimal
     credit_available: Decimal
     credit_applied: Decimal
     owed: Decimal
     amount: Decimal
     one_time_charges: Decimal
     rent_portion: Decimal
     monthly_rent: Decimal
     months_covered: int
     advance_amount: Decimal
     limits: ContractLimits

     @property
     def amount_paid(self) -> Decimal:
          return to_money(self.amount + self.credit_applied)


def months_for(rent_portion: Decimal, monthly_rent: Decimal, amount: Decimal) -> int:
     if monthly_rent > ZERO:
          months = math.ceil(rent_portion / monthly_rent)
     else:
          months = 0
     if amount > ZERO:
          months = max(1, months)
     return months


def _check_bill(bill: Bill, tenant_id: Optional[int]) -> None:
     if tenant_id is not None and bill.tenant_id != tenant_id:
          raise ValidationError(f"Bill {bill.id} does not belong to tenant {tenant_id}")
     if bill.status not in SUBMITTABLE:
          raise InvalidStateError(
               f"Bill {bill.id} is '{bill.status.value}'; payments can only be submitted for pending or rejected bills"
          )


def build_quote(
     db: Session,
     bill: Bill,
     amount,
     method: PaymentMethod,
     reference_number: Optional[str] = None,
     proof_url: Optional[str] = None,
     today: Optional[date] = None,
     directory: Optional[TenancyDirectory] = None,
) -> PaymentQuote:
     """Run every intake rule against persisted state. Writes nothing."""
     method = PaymentMethod(method)
     amount = to_money(amount)
     if amount < ZERO:
          raise ValidationError("Payment amount cannot be negative")

     total = bill_total(bill)
     credit = get_credit_balance(db, bill.tenant_id, bill.tenancy_id)
     owed = to_money(total - credit)

     if owed <= ZERO:
          if method != PaymentMethod.CREDIT:
               raise InvalidStateError(
                    f"Bill {bill.id} is fully covered by credit ({credit}); pay with credit instead"
               )
     elif method == PaymentMethod.CREDIT:
          raise InsufficientCreditError(f"Credit balance {credit} does not cover bill total {total}")

     if amount < owed:
          raise BelowMinimumError(f"Amount {amount} is below the {owed} owed; partial payments are not accepted")

     tenancy = (directory or TenancyDirectory(db)).get_tenancy(bill.tenancy_id)
     rent = tenancy.monthly_rent
     one_time = one_time_total(bill)
     rent_portion = max(ZERO, to_money(amount - one_time))
     months_covered = months_for(rent_portion, rent, amount)

     limits = compute_contract_limits(
          tenancy.start_date,
          tenancy.contract_end_date,
          rent,
          tenancy.security_deposit,
          today=today,
     )
     if not limits.is_unbounded:
          max_rent = limits.max_rent_allowed(rent)
          if rent_portion > max_rent:
               raise ExceedsContractError(
                    f"Rent portion {rent_portion} exceeds the {limits.max_months} month(s) "
                    f"({max_rent}) left on the contract"
               )
          if amount > limits.max_payable_amount:
               raise ExceedsContractError(
                    f"Amount {amount} exceeds the maximum payable {limits.max_payable_amount}"
               )

     if method == PaymentMethod.QR_CODE:
          if not (reference_number and reference_number.strip()) and not proof_url:
               raise MissingProofError("QR payments need a reference number or a proof of payment upload")

     return PaymentQuote(
          bill_total=total,
          credit_available=credit,
          credit_applied=min(credit, total),
          owed=max(ZERO, owed),
          amount=amount,
          one_time_charges=one_time,
          rent_portion=rent_portion,
          monthly_rent=rent,
          months_covered=months_covered,
          advance_amount=max(ZERO, to_money(rent_portion - rent)),
          limits=limits,
     )


def quote(
     db: Session,
     bill_id: int,
     tenant_id: Optional[int],
     amount,
     method: PaymentMethod,
     reference_number: Optional[str] = None,
     proof_url: Optional[str] = None,
     today: Optional[date] = None,
     directory: Optional[TenancyDirectory] = None,
) -> PaymentQuote:
     """Validate a proposed payment without staging it (used before a gateway charge)."""
     bill = get_bill(db, bill_id)
     _check_bill(bill, tenant_id)
     return build_quote(db, bill, amount, method, reference_number, proof_url, today=today, directory=directory)


def _stage(db: Session, bill: Bill, q: PaymentQuote, method: PaymentMethod) -> None:
     transition(db, bill, BillStatus.PENDING_CONFIRMATION, expected=SUBMITTABLE)

     bill.payment_method = method
     bill.amount_paid = q.amount_paid
     bill.credit_applied = q.credit_applied
     bill.advance_amount = q.advance_amount
     bill.months_covered = q.months_covered
     db.flush()

     logger.info(
          "Bill %s staged: %s via %s covering %d month(s)",
          bill.id, q.amount_paid, method.value, q.months_covered
     )
     notifications.queue_notification(db, bill.landlord_id, notifications.PAYMENT_CONFIRMATION_NEEDED, {
          "bill_id": bill.id,
          "tenant_id": bill.tenant_id,
          "amount": str(q.amount_paid),
          "method": method.value,
          "months_covered": q.months_covered,
     })


def submit(
     db: Session,
     bill_id: int,
     tenant_id: Optional[int],
     amount,
     method: PaymentMethod,
     reference_number: Optional[str] = None,
     proof_url: Optional[str] = None,
     today: Optional[date] = None,
     directory: Optional[TenancyDirectory] = None,
) -> Bill:
     """
     Stage a cash, QR or credit payment for landlord confirmation.

     proof_url must already be stored; uploads happen before this call.
     Credit payments are settled immediately by the settlement engine.
     """
     method = PaymentMethod(method)
     if method == PaymentMethod.GATEWAY:
          raise ValidationError("Gateway payments are recorded by the payment gateway callback")

     bill = get_bill(db, bill_id, lock=True)
     _check_bill(bill, tenant_id)

     if method == PaymentMethod.CREDIT:
          return settlement.pay_with_credit(db, bill.id, tenant_id, directory=directory).bill

     q = build_quote(db, bill, amount, method, reference_number, proof_url, today=today, directory=directory)

     _stage(db, bill, q, method)
     bill.reference_number = reference_number.strip() if reference_number else None
     bill.proof_url = proof_url
     db.flush()
     return bill


def record_gateway_payment(
     db: Session,
     bill_id: int,
     transaction_id: str,
     amount,
     today: Optional[date] = None,
     directory: Optional[TenancyDirectory] = None,
) -> Bill:
     """
     Stage a payment the gateway has already charged.

     Idempotent on transaction_id: a repeated delivery returns the bill as
     it is, without re-validating or re-staging.
     """
     if not transaction_id:
          raise ValidationError("Gateway transaction id is required")

     other = (
          db.query(Bill.id)
          .filter(Bill.gateway_transaction_id == transaction_id, Bill.id != bill_id)
          .first()
     )
     if other:
          raise ValidationError(f"Transaction {transaction_id} is already recorded against bill {other.id}")

     bill = get_bill(db, bill_id, lock=True)
     if bill.gateway_transaction_id == transaction_id:
          logger.info("Gateway transaction %s already recorded on bill %s", transaction_id, bill.id)
          return bill

     _check_bill(bill, None)
     q = build_quote(db, bill, amount, PaymentMethod.GATEWAY, today=today, directory=directory)

     _stage(db, bill, q, PaymentMethod.GATEWAY)
     bill.gateway_transaction_id = transaction_id
     bill.reference_number = transaction_id
     db.flush()
     return bill
