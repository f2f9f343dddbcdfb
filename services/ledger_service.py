"""
Payment ledger - blockchain-like immutable payment records.

When a bill is settled:
1. Compute SHA-256 hash from bill_id + tenant_id + amount + method + timestamp
2. Store the Payment with a reference to the previous record's hash (chain)
3. Payment records are append-only; no update/delete

Verification: recompute hash and compare with stored hash; optionally verify chain.
"""
import hashlib
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import desc
from sqlalchemy.orm import Session

from errors import InvalidStateError
from models import Bill, Payment, PaymentMethod
from utils.money import to_money

# Genesis block: no previous record
GENESIS_HASH = "0"


def _normalize_timestamp(ts: datetime) -> str:
     """Normalize timestamp to ISO format for deterministic hashing."""
     return ts.replace(microsecond=0).isoformat()


def compute_transaction_hash(
     bill_id: int,
     tenant_id: int,
     amount: Decimal,
     method: PaymentMethod,
     timestamp: datetime
) -> str:
     """
     Compute SHA-256 hash for a payment record.

     Input string: bill_id|tenant_id|amount|method|timestamp (canonical format).
     Returns 64-char hex string.
     """
     payload = "|".join([
          str(bill_id),
          str(tenant_id),
          f"{to_money(amount):.2f}",
          PaymentMethod(method).value,
          _normalize_timestamp(timestamp)
     ])
     return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def get_previous_hash(db: Session) -> str:
     """Get the transaction_hash of the most recent payment, or GENESIS_HASH if empty."""
     last = db.query(Payment).order_by(desc(Payment.id)).limit(1).first()
     if last is None:
          return GENESIS_HASH
     return last.transaction_hash


def append_payment_record(
     db: Session,
     bill: Bill,
     amount: Decimal,
     method: PaymentMethod,
     months_covered: int = 1,
     gateway_transaction_id: Optional[str] = None,
     timestamp: Optional[datetime] = None
) -> Payment:
     """
     Append an immutable payment record for a settled bill.

     Raises:
          InvalidStateError: If the bill already has a payment (double settlement).
     """
     if timestamp is None:
          timestamp = datetime.utcnow().replace(microsecond=0)

     existing = db.query(Payment).filter(Payment.bill_id == bill.id).first()
     if existing:
          raise InvalidStateError(f"Payment already recorded for bill {bill.id}")

     payment = Payment(
          bill_id=bill.id,
          tenancy_id=bill.tenancy_id,
          tenant_id=bill.tenant_id,
          landlord_id=bill.landlord_id,
          amount=to_money(amount),
          method=method,
          months_covered=months_covered,
          gateway_transaction_id=gateway_transaction_id,
          transaction_hash=compute_transaction_hash(bill.id, bill.tenant_id, amount, method, timestamp),
          previous_hash=get_previous_hash(db),
          created_at=timestamp,
     )
     db.add(payment)
     db.flush()
     return payment


def _recompute(payment: Payment) -> str:
     return compute_transaction_hash(
          payment.bill_id,
          payment.tenant_id,
          payment.amount,
          payment.method,
          payment.created_at
     )


def verify_payment_record(db: Session, bill_id: int) -> Tuple[bool, str]:
     """
     Verify the payment for a bill by recomputing its hash and chain link.

     Returns:
          (success: bool, message: str)
     """
     payment = db.query(Payment).filter(Payment.bill_id == bill_id).first()
     if payment is None:
          return False, "Payment record not found"

     computed = _recompute(payment)
     if computed != payment.transaction_hash:
          return False, f"Hash mismatch: stored={payment.transaction_hash[:16]}..., computed={computed[:16]}..."

     if payment.previous_hash != GENESIS_HASH:
          prev = (
               db.query(Payment)
               .filter(Payment.id < payment.id)
               .order_by(desc(Payment.id))
               .limit(1)
               .first()
          )
          if prev is None:
               return False, "Previous chain link not found"
          if prev.transaction_hash != payment.previous_hash:
               return False, "Chain broken: previous_hash does not match previous record"

     return True, "Verification passed"


def verify_full_chain(db: Session) -> Tuple[bool, str, int]:
     """
     Verify the entire payment chain from first to last record.

     Returns:
          (all_valid: bool, message: str, entries_checked: int)
     """
     payments = db.query(Payment).order_by(Payment.id).all()
     if not payments:
          return True, "Chain is empty (no entries)", 0

     prev_hash = GENESIS_HASH
     checked = 0

     for payment in payments:
          if payment.previous_hash != prev_hash:
               return False, f"Chain broken at payment id={payment.id}: previous_hash mismatch", checked
          if _recompute(payment) != payment.transaction_hash:
               return False, f"Hash mismatch at payment id={payment.id}", checked
          prev_hash = payment.transaction_hash
          checked += 1

     return True, "Full chain verification passed", checked


def list_payments(
     db: Session,
     tenancy_id: Optional[int] = None,
     tenant_id: Optional[int] = None,
     landlord_id: Optional[int] = None,
     date_from: Optional[date] = None,
     date_to: Optional[date] = None,
) -> List[Payment]:
     """
     Payment history, newest first. Both date bounds are inclusive and apply
     to the day the payment was settled.
     """
     query = db.query(Payment)
     if tenancy_id:
          query = query.filter(Payment.tenancy_id == tenancy_id)
     if tenant_id:
          query = query.filter(Payment.tenant_id == tenant_id)
     if landlord_id:
          query = query.filter(Payment.landlord_id == landlord_id)
     if date_from:
          query = query.filter(Payment.created_at >= datetime.combine(date_from, time.min))
     if date_to:
          query = query.filter(Payment.created_at < datetime.combine(date_to + timedelta(days=1), time.min))
     return query.order_by(desc(Payment.created_at), desc(Payment.id)).all()
