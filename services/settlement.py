"""
Settlement Engine - turns a staged (or cash) payment into a settled one.

confirm() does, inside the caller's single transaction:
1. flips the bill to paid (compare-and-set, so a double confirm loses),
2. draws any pre-applied credit from the credit ledger,
3. appends the immutable Payment record (hash-chained),
4. spreads advance rent into future paid bills, bounded by the contract end,
5. carries any un-allocatable remainder forward as credit.

Nothing here talks to the gateway or to blob storage.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from errors import InvalidStateError, NotFoundError, ValidationError
from models import Bill, BillStatus, Payment, PaymentMethod
from services import notifications
from services.bill_ledger import add_months, bill_total, get_bill, issue_prepaid_rent, transition
from services.credit_ledger import add_credit, deduct_credit, get_credit_balance
from services.ledger_service import append_payment_record
from services.tenancy_directory import TenancyDirectory, TenancySnapshot
from utils.money import ZERO, to_money

logger = logging.getLogger(__name__)

CONFIRMABLE = (BillStatus.PENDING, BillStatus.PENDING_CONFIRMATION)


@dataclass
class SettlementResult:
     bill: Bill
     payment: Payment
     advance_bills: list[Bill] = field(default_factory=list)
     credit_added: Decimal = ZERO
     replayed: bool = False

     @property
     def months_covered(self) -> int:
          return 1 + len(self.advance_bills)


def advance_due_dates(bill: Bill, tenancy: TenancySnapshot, advance_amount: Decimal) -> list[date]:
     """
     Due dates of the future months an advance pays for.

     extra months = floor(advance / monthly rent); a fractional month is left
     for the caller to carry as credit. Generation stops at the
     first date past the contract end.
     """
     rent = tenancy.monthly_rent
     if advance_amount <= ZERO or rent <= ZERO or not bill.has_rent_component:
          return []

     extra_months = int(advance_amount // rent)
     dates = []
     for i in range(1, extra_months + 1):
          due = add_months(bill.due_date, i)
          if tenancy.contract_end_date is not None and due > tenancy.contract_end_date:
               break
          dates.append(due)
     return dates


def _check_landlord(bill: Bill, landlord_id: Optional[int]) -> None:
     if landlord_id is not None and bill.landlord_id != landlord_id:
          raise ValidationError(f"Bill {bill.id} does not belong to landlord {landlord_id}")


def _settle(
     db: Session,
     bill: Bill,
     directory: TenancyDirectory,
     credit_already_drawn: bool = False,
) -> SettlementResult:
     tenancy = directory.get_tenancy(bill.tenancy_id)
     total = bill_total(bill)
     amount_paid = to_money(bill.amount_paid) if bill.amount_paid is not None else total
     credit_applied = to_money(bill.credit_applied)
     advance = to_money(bill.advance_amount)
     method = bill.payment_method or PaymentMethod.CASH

     transition(db, bill, BillStatus.PAID, expected=CONFIRMABLE)
     bill.paid_at = datetime.utcnow().replace(microsecond=0)
     bill.payment_method = method
     bill.amount_paid = amount_paid

     if credit_applied > ZERO and not credit_already_drawn:
          deduct_credit(db, bill.tenant_id, bill.tenancy_id, credit_applied)

     due_dates = advance_due_dates(bill, tenancy, advance)
     months_covered = 1 + len(due_dates)

     payment = append_payment_record(
          db,
          bill,
          amount=total + advance,
          method=method,
          months_covered=months_covered,
          gateway_transaction_id=bill.gateway_transaction_id,
          timestamp=bill.paid_at,
     )
     bill.payment_id = payment.id
     bill.months_covered = months_covered

     advance_bills = [
          issue_prepaid_rent(
               db,
               bill,
               due,
               tenancy.monthly_rent,
               description=f"Advance Payment (Month {i + 2} of {months_covered})",
          )
          for i, due in enumerate(due_dates)
     ]

     remaining = to_money(amount_paid - total - tenancy.monthly_rent * len(advance_bills))
     credit_added = ZERO
     if remaining > ZERO:
          add_credit(db, bill.tenant_id, bill.tenancy_id, remaining)
          credit_added = remaining
     db.flush()

     logger.info(
          "Bill %s settled: payment %s for %s, %d advance month(s), credit +%s",
          bill.id, payment.id, payment.amount, len(advance_bills), credit_added
     )
     notifications.queue_notification(db, bill.tenant_id, notifications.PAYMENT_CONFIRMED, {
          "bill_id": bill.id,
          "payment_id": payment.id,
          "amount": str(amount_paid),
          "months_covered": months_covered,
          "credit_added": str(credit_added),
     })
     if credit_added > ZERO:
          notifications.queue_notification(db, bill.tenant_id, notifications.CREDIT_ADDED, {
               "tenancy_id": bill.tenancy_id,
               "amount": str(credit_added),
               "balance": str(get_credit_balance(db, bill.tenant_id, bill.tenancy_id)),
          })

     return SettlementResult(bill=bill, payment=payment, advance_bills=advance_bills, credit_added=credit_added)


def confirm(
     db: Session,
     bill_id: int,
     landlord_id: Optional[int] = None,
     directory: Optional[TenancyDirectory] = None,
) -> SettlementResult:
     """
     Landlord (or gateway) confirms a bill as paid.

     A pending bill with nothing staged is a direct cash payment of its total.

     Raises:
          InvalidStateError: bill is not pending/pending_confirmation, or a
               concurrent confirm won the race.
     """
     bill = get_bill(db, bill_id, lock=True)
     _check_landlord(bill, landlord_id)
     if bill.status not in CONFIRMABLE:
          raise InvalidStateError(f"Bill {bill.id} is '{bill.status.value}' and cannot be confirmed")

     return _settle(db, bill, directory or TenancyDirectory(db))


def reject(
     db: Session,
     bill_id: int,
     landlord_id: Optional[int] = None,
     reason: Optional[str] = None,
) -> Bill:
     """
     Landlord disputes a staged payment. No Payment or credit is touched;
     the tenant may resubmit as often as needed.
     """
     bill = get_bill(db, bill_id, lock=True)
     _check_landlord(bill, landlord_id)
     transition(db, bill, BillStatus.REJECTED, expected=[BillStatus.PENDING_CONFIRMATION])

     amount = to_money(bill.amount_paid) if bill.amount_paid is not None else bill_total(bill)
     notifications.queue_notification(db, bill.tenant_id, notifications.PAYMENT_REJECTED, {
          "bill_id": bill.id,
          "amount": str(amount),
          "reason": reason,
     })
     return bill


def pay_with_credit(
     db: Session,
     bill_id: int,
     tenant_id: Optional[int] = None,
     directory: Optional[TenancyDirectory] = None,
) -> SettlementResult:
     """
     Settle a pending or rejected bill entirely from the tenant's credit balance.

     A rejected bill passes through pending_confirmation on the way to paid,
     both steps in the caller's transaction.

     Raises:
          InsufficientCreditError: credit is smaller than the bill total.
     """
     bill = get_bill(db, bill_id, lock=True)
     if tenant_id is not None and bill.tenant_id != tenant_id:
          raise ValidationError(f"Bill {bill.id} does not belong to tenant {tenant_id}")
     if bill.status not in (BillStatus.PENDING, BillStatus.REJECTED):
          raise InvalidStateError(
               f"Bill {bill.id} is '{bill.status.value}'; only pending or rejected bills can be paid with credit"
          )

     total = bill_total(bill)
     deduct_credit(db, bill.tenant_id, bill.tenancy_id, total)
     if bill.status == BillStatus.REJECTED:
          transition(db, bill, BillStatus.PENDING_CONFIRMATION, expected=[BillStatus.REJECTED])

     bill.payment_method = PaymentMethod.CREDIT
     bill.amount_paid = total
     bill.credit_applied = total
     bill.advance_amount = ZERO
     bill.reference_number = "CREDIT_APPLIED"
     return _settle(db, bill, directory or TenancyDirectory(db), credit_already_drawn=True)


def confirm_gateway(
     db: Session,
     transaction_id: str,
     directory: Optional[TenancyDirectory] = None,
) -> SettlementResult:
     """
     Confirm the bill staged under a gateway transaction id.

     Replays are no-ops: if a Payment already exists for the transaction it
     is returned with replayed=True and nothing is written.
     """
     replay = _existing_settlement(db, transaction_id)
     if replay is not None:
          logger.info("Gateway transaction %s already settled (payment %s)", transaction_id, replay.payment.id)
          return replay

     bill = db.query(Bill).filter(Bill.gateway_transaction_id == transaction_id).first()
     if bill is None:
          raise NotFoundError(f"No bill staged for gateway transaction {transaction_id}")

     try:
          return confirm(db, bill.id, directory=directory)
     except InvalidStateError:
          # A concurrent delivery may have settled it while we waited on the lock.
          replay = _existing_settlement(db, transaction_id)
          if replay is not None:
               return replay
          raise


def _existing_settlement(db: Session, transaction_id: str) -> Optional[SettlementResult]:
     payment = db.query(Payment).filter(Payment.gateway_transaction_id == transaction_id).first()
     if payment is None:
          return None
     bill = get_bill(db, payment.bill_id)
     advance_bills = (
          db.query(Bill)
          .filter(Bill.payment_id == payment.id, Bill.is_advance_payment.is_(True))
          .order_by(Bill.due_date)
          .all()
     )
     return SettlementResult(bill=bill, payment=payment, advance_bills=advance_bills, replayed=True)
