"""
Bill Ledger - lifecycle of a single bill (payment request).

Owns line-item composition, due dates and every write to Bill.status.
Status changes go through transition(), an atomic compare-and-set on the
status column validated against models.bill.ALLOWED_TRANSITIONS.
"""
import logging
from dataclasses import dataclass, fields
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy import update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from errors import InvalidStateError, NotFoundError, ValidationError
from models import ALLOWED_TRANSITIONS, AutomatedJobRun, Bill, BillStatus
from models.bill import LINE_ITEM_FIELDS, ONE_TIME_FIELDS
from services import notifications
from services.tenancy_directory import TenancyDirectory
from utils.money import ZERO, money_sum, to_money

logger = logging.getLogger(__name__)

SCHEDULED_RENT_JOB = "scheduled_rent_bills"


@dataclass(frozen=True)
class LineItems:
     """The monetary line items of a bill. None and 0 both mean "not charged"."""
     rent_amount: Optional[Decimal] = None
     security_deposit_amount: Optional[Decimal] = None
     water: Optional[Decimal] = None
     electrical: Optional[Decimal] = None
     wifi: Optional[Decimal] = None
     other: Optional[Decimal] = None

     def as_columns(self) -> dict:
          return {
               f.name: (to_money(getattr(self, f.name)) if getattr(self, f.name) is not None else None)
               for f in fields(self)
          }


def bill_total(bill) -> Decimal:
     """The amount a bill asks for: the exact sum of its line items."""
     return money_sum(getattr(bill, name) for name in LINE_ITEM_FIELDS)


def one_time_total(bill) -> Decimal:
     """Line items that never span months (everything except rent)."""
     return money_sum(getattr(bill, name) for name in ONE_TIME_FIELDS)


def validate_line_items(items: LineItems) -> dict:
     columns = items.as_columns()
     negative = [name for name, value in columns.items() if value is not None and value < ZERO]
     if negative:
          raise ValidationError(f"Line items cannot be negative: {', '.join(negative)}")
     if not any(value is not None and value > ZERO for value in columns.values()):
          raise ValidationError("At least one line item must be greater than zero")
     return columns


def get_bill(db: Session, bill_id: int, lock: bool = False) -> Bill:
     """
     Load a bill with fresh state.

     lock=True takes a row lock (SELECT ... FOR UPDATE) until the
     transaction ends; databases without row locks ignore it and rely on
     transition()'s compare-and-set.
     """
     query = db.query(Bill).filter(Bill.id == bill_id).populate_existing()
     if lock:
          query = query.with_for_update()
     bill = query.first()
     if bill is None:
          raise NotFoundError(f"Bill with ID {bill_id} not found")
     return bill


def list_bills(
     db: Session,
     tenancy_id: Optional[int] = None,
     tenant_id: Optional[int] = None,
     landlord_id: Optional[int] = None,
     status: Optional[BillStatus] = None,
) -> list[Bill]:
     query = db.query(Bill)
     if tenancy_id:
          query = query.filter(Bill.tenancy_id == tenancy_id)
     if tenant_id:
          query = query.filter(Bill.tenant_id == tenant_id)
     if landlord_id:
          query = query.filter(Bill.landlord_id == landlord_id)
     if status:
          query = query.filter(Bill.status == status)
     return query.order_by(Bill.due_date.desc(), Bill.id.desc()).all()


def transition(
     db: Session,
     bill: Bill,
     target: BillStatus,
     expected: Optional[Iterable[BillStatus]] = None,
) -> Bill:
     """
     Move a bill to target status.

     The UPDATE only matches while the row is still in one of the allowed
     source states, so of two concurrent callers exactly one wins; the other
     gets InvalidStateError and should re-fetch.

     Args:
          expected: narrows the allowed source states for this call site.
     """
     target = BillStatus(target)
     sources = {source for source, targets in ALLOWED_TRANSITIONS.items() if target in targets}
     if expected is not None:
          sources &= {BillStatus(s) for s in expected}

     if bill.status not in sources:
          raise InvalidStateError(
               f"Bill {bill.id} cannot move from '{bill.status.value}' to '{target.value}'"
          )

     db.flush()
     result = db.execute(
          update(Bill)
          .where(Bill.id == bill.id, Bill.status.in_(sorted(sources)))
          .values(status=target)
          .execution_options(synchronize_session=False)
     )
     if result.rowcount != 1:
          db.refresh(bill)
          raise InvalidStateError(
               f"Bill {bill.id} was changed concurrently (now '{bill.status.value}')"
          )

     previous = bill.status
     set_committed_value(bill, "status", target)
     logger.info("Bill %s: %s -> %s", bill.id, previous.value, target.value)
     return bill


def issue(
     db: Session,
     tenancy_id: int,
     line_items: LineItems,
     due_date: Optional[date],
     description: Optional[str] = None,
     receipt_url: Optional[str] = None,
     directory: Optional[TenancyDirectory] = None,
) -> Bill:
     """
     Issue a new pending bill for an active tenancy.

     Raises:
          ValidationError: no positive line item, a negative one, no due date,
               or the tenancy is not active.
          NotFoundError: unknown tenancy.
     """
     if due_date is None:
          raise ValidationError("due_date is required")
     columns = validate_line_items(line_items)

     tenancy = (directory or TenancyDirectory(db)).get_tenancy(tenancy_id)
     if not tenancy.is_active:
          raise ValidationError(f"Tenancy {tenancy_id} is not active")

     bill = Bill(
          tenancy_id=tenancy.id,
          tenant_id=tenancy.tenant_id,
          landlord_id=tenancy.landlord_id,
          due_date=due_date,
          description=description,
          receipt_url=receipt_url,
          status=BillStatus.PENDING,
          is_advance_payment=False,
          **columns,
     )
     db.add(bill)
     db.flush()

     total = bill_total(bill)
     logger.info("Issued bill %s for tenancy %s: %s due %s", bill.id, tenancy.id, total, due_date)
     notifications.queue_notification(db, bill.tenant_id, notifications.BILL_ISSUED, {
          "bill_id": bill.id,
          "amount": str(total),
          "due_date": due_date.isoformat(),
     })
     return bill


def edit(
     db: Session,
     bill_id: int,
     line_items: LineItems,
     due_date: Optional[date] = None,
     description: Optional[str] = None,
) -> Bill:
     """Replace a pending bill's line items (and optionally due date). Status is untouched."""
     bill = get_bill(db, bill_id, lock=True)
     if bill.status != BillStatus.PENDING:
          raise InvalidStateError(f"Only pending bills can be edited (bill {bill.id} is '{bill.status.value}')")

     for name, value in validate_line_items(line_items).items():
          setattr(bill, name, value)
     if due_date is not None:
          bill.due_date = due_date
     if description is not None:
          bill.description = description
     db.flush()

     notifications.queue_notification(db, bill.tenant_id, notifications.BILL_UPDATED, {
          "bill_id": bill.id,
          "amount": str(bill_total(bill)),
          "due_date": bill.due_date.isoformat(),
     })
     return bill


def cancel(db: Session, bill_id: int) -> None:
     """Landlord withdraws a pending bill."""
     bill = get_bill(db, bill_id, lock=True)
     transition(db, bill, BillStatus.CANCELLED, expected=[BillStatus.PENDING])
     notifications.queue_notification(db, bill.tenant_id, notifications.BILL_CANCELLED, {
          "bill_id": bill.id,
          "amount": str(bill_total(bill)),
     })


def issue_prepaid_rent(
     db: Session,
     parent: Bill,
     due_date: date,
     rent: Decimal,
     description: str,
) -> Bill:
     """Insert a rent-only bill already funded by parent's payment (advance month)."""
     bill = Bill(
          tenancy_id=parent.tenancy_id,
          tenant_id=parent.tenant_id,
          landlord_id=parent.landlord_id,
          rent_amount=to_money(rent),
          due_date=due_date,
          description=description,
          status=BillStatus.PAID,
          payment_method=parent.payment_method,
          payment_id=parent.payment_id,
          amount_paid=to_money(rent),
          months_covered=1,
          is_advance_payment=True,
          paid_at=parent.paid_at,
     )
     db.add(bill)
     return bill


def add_months(day: date, months: int) -> date:
     """Same day-of-month `months` later, clamped to the month's last day."""
     return day + relativedelta(months=months)


def generate_scheduled_rent_bills(
     db: Session,
     today: Optional[date] = None,
     directory: Optional[TenancyDirectory] = None,
) -> list[Bill]:
     """
     Issue this month's rent bill for every active tenancy that lacks one.

     Runs at most once per calendar month: the job's AutomatedJobRun row is
     checked and advanced in the same transaction as the inserted bills.
     This can be called by a scheduled job (the trigger itself is external).
     """
     today = today or date.today()
     period = today.strftime("%Y-%m")
     directory = directory or TenancyDirectory(db)

     run = (
          db.query(AutomatedJobRun)
          .filter(AutomatedJobRun.job_type == SCHEDULED_RENT_JOB)
          .with_for_update()
          .first()
     )
     if run is not None and run.last_period == period:
          logger.info("Scheduled rent bills already generated for %s", period)
          return []

     month_start = today.replace(day=1)
     next_month = add_months(month_start, 1)
     created = []

     for tenancy in directory.list_active():
          if tenancy.contract_end_date is not None and tenancy.contract_end_date < month_start:
               continue

          existing = (
               db.query(Bill.id)
               .filter(
                    Bill.tenancy_id == tenancy.id,
                    Bill.rent_amount > 0,
                    Bill.due_date >= month_start,
                    Bill.due_date < next_month,
                    Bill.status != BillStatus.CANCELLED,
               )
               .first()
          )
          if existing:
               continue

          due_date = month_start + relativedelta(day=tenancy.start_date.day)
          created.append(issue(
               db,
               tenancy.id,
               LineItems(rent_amount=tenancy.monthly_rent),
               due_date,
               description=f"Monthly rent for {period}",
               directory=directory,
          ))

     if run is None:
          db.add(AutomatedJobRun(job_type=SCHEDULED_RENT_JOB, last_period=period, last_run_at=datetime.utcnow()))
     else:
          run.last_period = period
          run.last_run_at = datetime.utcnow()
     db.flush()

     logger.info("Generated %d scheduled rent bills for %s", len(created), period)
     return created
