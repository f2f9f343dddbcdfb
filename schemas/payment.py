"""
Pydantic schemas for payment submission, settlement and gateway APIs.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict

from models import Payment, PaymentMethod
from schemas.bill import BillResponse
from services.settlement import SettlementResult


class PaymentResponse(BaseModel):
     id: int
     bill_id: int
     tenancy_id: int
     tenant_id: int
     landlord_id: int
     amount: Decimal
     method: PaymentMethod
     months_covered: int
     gateway_transaction_id: Optional[str] = None
     transaction_hash: str
     previous_hash: str
     created_at: datetime

     model_config = ConfigDict(from_attributes=True)

     @classmethod
     def from_payment(cls, payment: Payment) -> "PaymentResponse":
          return cls.model_validate(payment)


class PaymentListResponse(BaseModel):
     payments: List[PaymentResponse]
     total: int
     total_amount: Decimal


class SettlementResponse(BaseModel):
     """Response for ConfirmPayment / PayWithCredit."""
     bill: BillResponse
     payment: PaymentResponse
     advance_months_created: int
     advance_bills: List[BillResponse]
     credit_added: Decimal
     replayed: bool = False

     @classmethod
     def from_result(cls, result: SettlementResult) -> "SettlementResponse":
          return cls(
               bill=BillResponse.from_bill(result.bill),
               payment=PaymentResponse.from_payment(result.payment),
               advance_months_created=len(result.advance_bills),
               advance_bills=[BillResponse.from_bill(b) for b in result.advance_bills],
               credit_added=result.credit_added,
               replayed=result.replayed,
          )


class CheckoutRequest(BaseModel):
     bill_id: int = Field(..., gt=0, description="Bill to create checkout for")
     amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, description="Amount the tenant chose to pay")

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "bill_id": 12,
                    "amount": 25000.00
               }
          }
     )


class CheckoutResponse(BaseModel):
     checkout_id: str
     redirect_url: str
     months_covered: int
     amount: Decimal


class GatewayConfirmRequest(BaseModel):
     """Replay-safe confirmation keyed on the gateway transaction id."""
     transaction_id: str = Field(
          ...,
          min_length=1,
          max_length=255,
          description="Gateway transaction / checkout id",
     )

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "transaction_id": "PM-CHECKOUT-abc123xyz",
               }
          }
     )


class CreditBalanceResponse(BaseModel):
     tenant_id: int
     tenancy_id: int
     amount: Decimal
