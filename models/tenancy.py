import enum

from sqlalchemy import Column, Integer, Numeric, Date, Enum
from sqlalchemy.orm import relationship

from .base import Base, TimestampMixin


class TenancyStatus(str, enum.Enum):
     PENDING = "pending"
     ACTIVE = "active"
     ENDED = "ended"


class Tenancy(TimestampMixin, Base):
     """
     Tenancy model - the lease between a tenant and a property.

     Owned by the tenancy directory; the billing engine only reads it,
     through services.tenancy_directory.
     """
     __tablename__ = "tenancies"

     id = Column(Integer, primary_key=True, autoincrement=True)
     tenant_id = Column(Integer, nullable=False, index=True)
     landlord_id = Column(Integer, nullable=False, index=True)
     property_id = Column(Integer, nullable=False, index=True)

     # Contract terms
     start_date = Column(Date, nullable=False)
     contract_end_date = Column(Date, nullable=True)  # NULL = open-ended
     monthly_rent = Column(Numeric(12, 2), nullable=False)
     security_deposit = Column(Numeric(12, 2), nullable=False, default=0)

     status = Column(
          Enum(TenancyStatus, name="tenancy_status", values_callable=lambda e: [m.value for m in e]),
          default=TenancyStatus.ACTIVE,
          nullable=False,
          index=True,
     )

     bills = relationship("Bill", back_populates="tenancy")

     def __repr__(self):
          return f"<Tenancy(id={self.id}, tenant_id={self.tenant_id}, rent={self.monthly_rent})>"
