"""
Payment gateway API.

POST /payments/checkout: validate the chosen amount, then open a PayMaya checkout.
GET /payments: payment history, scoped to the caller.
POST /payments/webhook: PayMaya result; the charge is read back, staged and settled.
POST /payments/confirm: replay a gateway transaction (idempotent reconciliation).

A checkout never changes a bill: the bill stays pending until the gateway
reports a successful charge.
"""
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from database import get_session
from dependencies import ADMIN_ROLE, TENANT_ROLE, landlord_scope, require_role, tenant_scope, verify_token
from errors import BillingError, NotFoundError
from models import PaymentMethod
from schemas.payment import (
     CheckoutRequest,
     CheckoutResponse,
     GatewayConfirmRequest,
     PaymentListResponse,
     PaymentResponse,
     SettlementResponse,
)
from services import ledger_service, payment_intake, settlement
from services.gateway import SUCCESS_EVENTS, PayMayaGateway, transaction_id_from_payload
from services.ledger_service import verify_full_chain, verify_payment_record
from utils.money import money_sum

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])


def get_gateway() -> PayMayaGateway:
     return PayMayaGateway()


@router.get(
     "",
     response_model=PaymentListResponse,
     summary="List settled payments"
)
def list_payments(
     tenancy_id: Optional[int] = Query(None, description="Filter by tenancy ID"),
     tenant_id: Optional[int] = Query(None, description="Filter by tenant ID (staff only)"),
     landlord_id: Optional[int] = Query(None, description="Filter by landlord ID (staff only)"),
     date_from: Optional[date] = Query(None, description="Settled on or after"),
     date_to: Optional[date] = Query(None, description="Settled on or before"),
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token)
):
     """
     Payment history and income statement. Tenants see what they paid,
     landlords what they received; admins may filter by either.
     """
     tenant_filter = tenant_scope(token)
     landlord_filter = landlord_scope(token)
     if token.get("role") == ADMIN_ROLE:
          tenant_filter, landlord_filter = tenant_id, landlord_id

     payments = ledger_service.list_payments(
          db,
          tenancy_id=tenancy_id,
          tenant_id=tenant_filter,
          landlord_id=landlord_filter,
          date_from=date_from,
          date_to=date_to,
     )
     return PaymentListResponse(
          payments=[PaymentResponse.from_payment(p) for p in payments],
          total=len(payments),
          total_amount=money_sum(p.amount for p in payments),
     )


@router.post(
     "/checkout",
     response_model=CheckoutResponse,
     summary="Open a gateway checkout for a bill"
)
def create_checkout(
     body: CheckoutRequest,
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token),
     gateway: PayMayaGateway = Depends(get_gateway),
):
     require_role(token, TENANT_ROLE, ADMIN_ROLE)
     quote = payment_intake.quote(db, body.bill_id, tenant_scope(token), body.amount, PaymentMethod.GATEWAY)
     checkout = gateway.create_checkout(body.bill_id, quote.amount, description=f"Bill #{body.bill_id}")
     logger.info("Checkout %s opened for bill %s (%s)", checkout.checkout_id, body.bill_id, quote.amount)
     return CheckoutResponse(
          checkout_id=checkout.checkout_id,
          redirect_url=checkout.redirect_url,
          months_covered=quote.months_covered,
          amount=quote.amount,
     )


def _settle_gateway_charge(db: Session, gateway: PayMayaGateway, transaction_id: str):
     """
     Settle a gateway transaction, staging it from the gateway's own record
     if nothing is staged yet. Amounts in a webhook body are never trusted.
     """
     try:
          return settlement.confirm_gateway(db, transaction_id)
     except NotFoundError:
          pass

     charge = gateway.fetch_charge(transaction_id)
     try:
          payment_intake.record_gateway_payment(db, charge.bill_id, charge.transaction_id, charge.amount)
     except BillingError as exc:
          logger.warning(
               "Gateway transaction %s (bill %s, %s) charged but not staged: %s",
               charge.transaction_id, charge.bill_id, charge.amount, exc.message
          )
          raise
     return settlement.confirm_gateway(db, charge.transaction_id)


@router.post("/webhook")
def paymaya_webhook(
     payload: dict = Body(...),
     db: Session = Depends(get_session),
     gateway: PayMayaGateway = Depends(get_gateway),
):
     """
     Receives PayMaya payment result.

     Only the transaction id is taken from the body; the bill and amount are
     read back from PayMaya. Redeliveries return the original settlement.
     """
     event = payload.get("event") or payload.get("status")
     if event not in SUCCESS_EVENTS:
          logger.info("Ignoring gateway event %s", event)
          return {"message": "Ignored non-success event"}

     transaction_id = transaction_id_from_payload(payload.get("data") or payload)
     result = _settle_gateway_charge(db, gateway, transaction_id)
     return SettlementResponse.from_result(result).model_dump(mode="json")


@router.post(
     "/confirm",
     response_model=SettlementResponse,
     summary="Confirm a gateway payment by transaction id"
)
def confirm_gateway_payment(
     body: GatewayConfirmRequest,
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token),
     gateway: PayMayaGateway = Depends(get_gateway),
):
     """
     Settle a charge the gateway already took.

     If nothing is staged for the transaction yet (the webhook never landed),
     the charge is read back from the gateway and staged first.
     """
     return SettlementResponse.from_result(_settle_gateway_charge(db, gateway, body.transaction_id))


@router.get(
     "/ledger/verify-chain",
     summary="Verify full payment ledger chain"
)
def verify_ledger_chain(
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token),
):
     """
     Recompute hashes for all payment records and verify the chain.
     Returns verification result and number of entries checked.
     """
     valid, message, count = verify_full_chain(db)
     return {
          "verified": valid,
          "message": message,
          "entries_checked": count,
     }


@router.get(
     "/ledger/verify/{bill_id}",
     summary="Verify the payment record of a bill"
)
def verify_bill_payment(
     bill_id: int,
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token),
):
     valid, message = verify_payment_record(db, bill_id)
     return {
          "verified": valid,
          "message": message,
          "bill_id": bill_id,
     }
