from sqlalchemy import Column, Integer, Numeric, CheckConstraint, UniqueConstraint

from .base import Base, TimestampMixin


class CreditBalance(TimestampMixin, Base):
     """
     Tenant credit held against one tenancy.

     Created on the first credit event, never deleted, only zeroed. Only the
     settlement engine writes it, and only through the atomic helpers in
     services.credit_ledger.
     """
     __tablename__ = "credit_balances"
     __table_args__ = (
          UniqueConstraint("tenant_id", "tenancy_id", name="uq_credit_balances_tenant_tenancy"),
          CheckConstraint("amount >= 0", name="ck_credit_balances_non_negative"),
     )

     id = Column(Integer, primary_key=True, autoincrement=True)
     tenant_id = Column(Integer, nullable=False, index=True)
     tenancy_id = Column(Integer, nullable=False, index=True)
     amount = Column(Numeric(12, 2), nullable=False, default=0)

     def __repr__(self):
          return f"<CreditBalance(tenant_id={self.tenant_id}, tenancy_id={self.tenancy_id}, amount={self.amount})>"
