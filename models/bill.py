import enum

from sqlalchemy import (
     Boolean,
     CheckConstraint,
     Column,
     Date,
     DateTime,
     Enum,
     ForeignKey,
     Integer,
     Numeric,
     String,
     Text,
)
from sqlalchemy.orm import relationship

from .base import Base, TimestampMixin


class BillStatus(str, enum.Enum):
     """Bill status. Values are the wire-exact strings."""
     PENDING = "pending"
     PENDING_CONFIRMATION = "pending_confirmation"
     PAID = "paid"
     CANCELLED = "cancelled"
     REJECTED = "rejected"


class PaymentMethod(str, enum.Enum):
     CASH = "cash"
     QR_CODE = "qr_code"
     GATEWAY = "gateway"
     CREDIT = "credit"


# Every legal status edge. Nothing else may write Bill.status.
ALLOWED_TRANSITIONS = {
     BillStatus.PENDING: {
          BillStatus.PENDING_CONFIRMATION,
          BillStatus.PAID,
          BillStatus.CANCELLED,
     },
     BillStatus.PENDING_CONFIRMATION: {
          BillStatus.PAID,
          BillStatus.REJECTED,
     },
     BillStatus.REJECTED: {
          BillStatus.PENDING_CONFIRMATION,
     },
     BillStatus.PAID: set(),
     BillStatus.CANCELLED: set(),
}

# Line items in the order they appear on a bill.
LINE_ITEM_FIELDS = (
     "rent_amount",
     "security_deposit_amount",
     "water",
     "electrical",
     "wifi",
     "other",
)

# Charges that never span more than one month.
ONE_TIME_FIELDS = (
     "security_deposit_amount",
     "water",
     "electrical",
     "wifi",
     "other",
)


def _enum_values(enum_cls):
     return [member.value for member in enum_cls]


class Bill(TimestampMixin, Base):
     """
     Bill model - a single payment request owed by a tenant for a tenancy.

     Line items are fixed nullable columns; the owed total is always
     services.bill_ledger.bill_total(bill), never a stored figure.
     """
     __tablename__ = "bills"
     __table_args__ = tuple(
          CheckConstraint(f"{field} IS NULL OR {field} >= 0", name=f"ck_bills_{field}_non_negative")
          for field in LINE_ITEM_FIELDS
     )

     id = Column(Integer, primary_key=True, autoincrement=True)

     tenancy_id = Column(
          Integer,
          ForeignKey("tenancies.id", ondelete="RESTRICT"),
          nullable=False,
          index=True
     )
     tenant_id = Column(Integer, nullable=False, index=True)
     landlord_id = Column(Integer, nullable=False, index=True)

     # Line items
     rent_amount = Column(Numeric(12, 2), nullable=True)
     security_deposit_amount = Column(Numeric(12, 2), nullable=True)
     water = Column(Numeric(12, 2), nullable=True)
     electrical = Column(Numeric(12, 2), nullable=True)
     wifi = Column(Numeric(12, 2), nullable=True)
     other = Column(Numeric(12, 2), nullable=True)

     due_date = Column(Date, nullable=False, index=True)
     description = Column(Text, nullable=True)
     receipt_url = Column(String(500), nullable=True)  # landlord proof of charge

     # Tenant submission
     payment_method = Column(
          Enum(PaymentMethod, name="payment_method", values_callable=_enum_values),
          nullable=True
     )
     reference_number = Column(String(255), nullable=True)
     proof_url = Column(String(500), nullable=True)
     amount_paid = Column(Numeric(12, 2), nullable=True)
     credit_applied = Column(Numeric(12, 2), nullable=True)
     advance_amount = Column(Numeric(12, 2), nullable=True)
     months_covered = Column(Integer, nullable=True)
     gateway_transaction_id = Column(String(255), nullable=True, unique=True)

     status = Column(
          Enum(BillStatus, name="bill_status", values_callable=_enum_values),
          default=BillStatus.PENDING,
          nullable=False,
          index=True
     )
     is_advance_payment = Column(Boolean, default=False, nullable=False)
     # payments.id; advance bills share their parent's payment
     payment_id = Column(Integer, nullable=True, index=True)
     paid_at = Column(DateTime, nullable=True)

     tenancy = relationship("Tenancy", back_populates="bills")

     def __repr__(self):
          return f"<Bill(id={self.id}, tenancy_id={self.tenancy_id}, status='{self.status.value}', due_date={self.due_date})>"

     @property
     def has_rent_component(self) -> bool:
          return self.rent_amount is not None and self.rent_amount > 0
