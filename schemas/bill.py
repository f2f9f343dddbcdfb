"""
Pydantic schemas for Bill API request/response validation.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict

from models import Bill, BillStatus, PaymentMethod
from services.bill_ledger import LineItems, bill_total


class LineItemsIn(BaseModel):
     """Monetary line items. Omitted items are not charged."""
     rent_amount: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
     security_deposit_amount: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
     water: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
     electrical: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
     wifi: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
     other: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)

     def to_line_items(self) -> LineItems:
          return LineItems(**self.model_dump())


class BillCreate(BaseModel):
     """Schema for issuing a new bill."""
     tenancy_id: int = Field(..., gt=0, description="Tenancy being billed")
     line_items: LineItemsIn
     due_date: date = Field(..., description="Payment due date")
     description: Optional[str] = Field(None, max_length=1000)
     receipt_url: Optional[str] = Field(None, max_length=500, description="Landlord proof of charge")

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "tenancy_id": 1,
                    "line_items": {"water": 450.00, "electrical": 1200.00},
                    "due_date": "2026-11-05",
                    "description": "October utilities"
               }
          }
     )


class BillUpdate(BaseModel):
     """Schema for editing a pending bill."""
     line_items: LineItemsIn
     due_date: Optional[date] = None
     description: Optional[str] = Field(None, max_length=1000)


class BillReject(BaseModel):
     reason: Optional[str] = Field(None, max_length=500)


class BillResponse(BaseModel):
     """Schema for bill response. total is computed server-side."""
     id: int
     tenancy_id: int
     tenant_id: int
     landlord_id: int
     rent_amount: Optional[Decimal] = None
     security_deposit_amount: Optional[Decimal] = None
     water: Optional[Decimal] = None
     electrical: Optional[Decimal] = None
     wifi: Optional[Decimal] = None
     other: Optional[Decimal] = None
     total: Decimal
     advance_amount: Optional[Decimal] = None
     amount_paid: Optional[Decimal] = None
     credit_applied: Optional[Decimal] = None
     months_covered: Optional[int] = None
     due_date: date
     description: Optional[str] = None
     receipt_url: Optional[str] = None
     proof_url: Optional[str] = None
     reference_number: Optional[str] = None
     payment_method: Optional[PaymentMethod] = None
     status: BillStatus
     is_advance_payment: bool = False
     payment_id: Optional[int] = None
     paid_at: Optional[datetime] = None
     created_at: Optional[datetime] = None

     model_config = ConfigDict(
          from_attributes=True,
          json_schema_extra={
               "example": {
                    "id": 12,
                    "tenancy_id": 1,
                    "tenant_id": 7,
                    "landlord_id": 3,
                    "rent_amount": 10000.00,
                    "total": 10000.00,
                    "due_date": "2026-11-05",
                    "status": "pending",
                    "is_advance_payment": False
               }
          }
     )

     @classmethod
     def from_bill(cls, bill: Bill) -> "BillResponse":
          data = {name: getattr(bill, name) for name in cls.model_fields if name != "total"}
          data["total"] = bill_total(bill)
          return cls(**data)


class BillListResponse(BaseModel):
     bills: List[BillResponse]
     total: int
