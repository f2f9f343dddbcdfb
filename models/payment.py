"""
Payment model - immutable settlement record, blockchain-like.

One row per paid bill, created by the settlement engine. Each record stores a
SHA-256 hash of (bill_id + tenant_id + amount + method + timestamp) and the
previous record's hash, forming a chain. Records are append-only; income
reporting reads from here.
"""
from sqlalchemy import Column, Integer, Numeric, String, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship

from .base import Base
from .bill import PaymentMethod


class Payment(Base):
     __tablename__ = "payments"

     id = Column(Integer, primary_key=True, autoincrement=True)
     bill_id = Column(
          Integer,
          ForeignKey("bills.id", ondelete="RESTRICT"),  # Prevent delete once settled
          nullable=False,
          unique=True,  # One payment per bill
          index=True
     )
     tenancy_id = Column(Integer, nullable=False, index=True)
     tenant_id = Column(Integer, nullable=False, index=True)
     landlord_id = Column(Integer, nullable=False, index=True)

     amount = Column(Numeric(12, 2), nullable=False)
     method = Column(
          Enum(PaymentMethod, name="payment_method", values_callable=lambda e: [m.value for m in e]),
          nullable=False
     )
     months_covered = Column(Integer, nullable=False, default=1)
     gateway_transaction_id = Column(String(255), nullable=True, unique=True)

     transaction_hash = Column(String(64), nullable=False, unique=True, index=True)  # SHA-256 hex length
     previous_hash = Column(String(64), nullable=False, index=True)  # "0" for genesis
     created_at = Column(DateTime, nullable=False)

     bill = relationship("Bill", foreign_keys=[bill_id])

     def __repr__(self):
          return f"<Payment(id={self.id}, bill_id={self.bill_id}, amount={self.amount}, hash={self.transaction_hash[:16]}...)>"
