"""
Tenancy directory boundary.

The billing engine never touches tenancy rows directly; it asks the
directory for an immutable snapshot of the contract facts it needs.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from errors import NotFoundError
from models import Tenancy, TenancyStatus
from utils.money import to_money


@dataclass(frozen=True)
class TenancySnapshot:
     id: int
     tenant_id: int
     landlord_id: int
     property_id: int
     start_date: date
     contract_end_date: Optional[date]
     monthly_rent: Decimal
     security_deposit: Decimal
     status: TenancyStatus

     @property
     def is_active(self) -> bool:
          return self.status == TenancyStatus.ACTIVE


class TenancyDirectory:
     """Reads tenancies from the shared database."""

     def __init__(self, db: Session):
          self.db = db

     def get_tenancy(self, tenancy_id: int) -> TenancySnapshot:
          tenancy = self.db.get(Tenancy, tenancy_id)
          if tenancy is None:
               raise NotFoundError(f"Tenancy with ID {tenancy_id} not found")
          return _snapshot(tenancy)

     def list_active(self) -> list[TenancySnapshot]:
          rows = (
               self.db.query(Tenancy)
               .filter(Tenancy.status == TenancyStatus.ACTIVE)
               .order_by(Tenancy.id)
               .all()
          )
          return [_snapshot(row) for row in rows]


def _snapshot(tenancy: Tenancy) -> TenancySnapshot:
     return TenancySnapshot(
          id=tenancy.id,
          tenant_id=tenancy.tenant_id,
          landlord_id=tenancy.landlord_id,
          property_id=tenancy.property_id,
          start_date=tenancy.start_date,
          contract_end_date=tenancy.contract_end_date,
          monthly_rent=to_money(tenancy.monthly_rent),
          security_deposit=to_money(tenancy.security_deposit),
          status=tenancy.status,
     )
