"""
Bill API routes for the RentEase billing backend.

Landlords issue, edit, cancel, confirm and reject bills; tenants submit
payments against them. Business rules live in the services; these routes
parse input, scope the caller and shape the response. Billing errors
propagate to the handler registered in errors.py.

Role-based access:
- Tenant: only own bills; may submit payments and pay with credit
- Landlord: only bills they issued; may issue, edit, cancel, confirm, reject
- Admin: any bill
"""
import logging
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from config import PROOF_CONTAINER
from database import get_session
from dependencies import ADMIN_ROLE, LANDLORD_ROLE, TENANT_ROLE, landlord_scope, require_role, tenant_scope, verify_token
from errors import BillingError
from models import Bill, BillStatus, PaymentMethod
from schemas.bill import BillCreate, BillListResponse, BillReject, BillResponse, BillUpdate
from schemas.payment import SettlementResponse
from services import bill_ledger, payment_intake, settlement
from services.proof_storage import delete_artifact, upload_artifact
from services.tenancy_directory import TenancyDirectory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bills", tags=["bills"])


def _can_access_bill(token: dict, bill: Bill) -> bool:
     tenant_id = tenant_scope(token)
     if tenant_id is not None:
          return bill.tenant_id == tenant_id
     landlord_id = landlord_scope(token)
     if landlord_id is not None:
          return bill.landlord_id == landlord_id
     return token.get("role") == ADMIN_ROLE


def _get_accessible_bill(db: Session, token: dict, bill_id: int) -> Bill:
     bill = bill_ledger.get_bill(db, bill_id)
     if not _can_access_bill(token, bill):
          raise HTTPException(
               status_code=status.HTTP_403_FORBIDDEN,
               detail="You do not have permission to view this bill"
          )
     return bill


@router.post(
     "",
     response_model=BillResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Issue a new bill"
)
def issue_bill(
     body: BillCreate,
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token)
):
     """
     Issue a bill against an active tenancy.

     - **tenancy_id**: tenancy being billed (tenant and landlord are taken from it)
     - **line_items**: rent, deposit, water, electrical, wifi, other; at least one must be positive
     - **due_date**: payment due date
     """
     require_role(token, LANDLORD_ROLE, ADMIN_ROLE)
     directory = TenancyDirectory(db)
     landlord_id = landlord_scope(token)
     if landlord_id is not None and directory.get_tenancy(body.tenancy_id).landlord_id != landlord_id:
          raise HTTPException(
               status_code=status.HTTP_403_FORBIDDEN,
               detail="You can only bill your own tenancies"
          )

     bill = bill_ledger.issue(
          db,
          body.tenancy_id,
          body.line_items.to_line_items(),
          body.due_date,
          description=body.description,
          receipt_url=body.receipt_url,
          directory=directory,
     )
     return BillResponse.from_bill(bill)


@router.get(
     "",
     response_model=BillListResponse,
     summary="List bills with filters"
)
def list_bills(
     tenancy_id: Optional[int] = Query(None, description="Filter by tenancy ID"),
     status: Optional[BillStatus] = Query(None, description="Filter by status"),
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token)
):
     """Tenants and landlords only ever see their own bills."""
     bills = bill_ledger.list_bills(
          db,
          tenancy_id=tenancy_id,
          tenant_id=tenant_scope(token),
          landlord_id=landlord_scope(token),
          status=status,
     )
     return BillListResponse(
          bills=[BillResponse.from_bill(b) for b in bills],
          total=len(bills),
     )


@router.post(
     "/generate-scheduled",
     response_model=BillListResponse,
     summary="Generate this month's rent bills"
)
def generate_scheduled(
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token)
):
     """
     Issue the current month's rent bill for every active tenancy without one.
     Safe to call repeatedly; only the first call in a month creates bills.
     """
     require_role(token, ADMIN_ROLE)
     bills = bill_ledger.generate_scheduled_rent_bills(db)
     return BillListResponse(
          bills=[BillResponse.from_bill(b) for b in bills],
          total=len(bills),
     )


@router.get(
     "/{bill_id}",
     response_model=BillResponse,
     summary="Get bill by ID"
)
def get_bill(
     bill_id: int,
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token)
):
     return BillResponse.from_bill(_get_accessible_bill(db, token, bill_id))


@router.put(
     "/{bill_id}",
     response_model=BillResponse,
     summary="Edit a pending bill"
)
def edit_bill(
     bill_id: int,
     body: BillUpdate,
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token)
):
     """Replace the line items of a bill that is still pending. The total is recomputed."""
     require_role(token, LANDLORD_ROLE, ADMIN_ROLE)
     _get_accessible_bill(db, token, bill_id)
     bill = bill_ledger.edit(
          db,
          bill_id,
          body.line_items.to_line_items(),
          due_date=body.due_date,
          description=body.description,
     )
     return BillResponse.from_bill(bill)


@router.post(
     "/{bill_id}/cancel",
     response_model=BillResponse,
     summary="Cancel a pending bill"
)
def cancel_bill(
     bill_id: int,
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token)
):
     require_role(token, LANDLORD_ROLE, ADMIN_ROLE)
     _get_accessible_bill(db, token, bill_id)
     bill_ledger.cancel(db, bill_id)
     return BillResponse.from_bill(bill_ledger.get_bill(db, bill_id))


@router.post(
     "/{bill_id}/payments",
     response_model=BillResponse,
     summary="Submit a payment for landlord confirmation"
)
def submit_payment(
     bill_id: int,
     amount: Decimal = Form(...),
     method: PaymentMethod = Form(...),
     reference_number: Optional[str] = Form(None),
     proof: Optional[UploadFile] = File(None),
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token)
):
     """
     Stage a cash, QR or credit payment.

     - **amount**: what the tenant is paying now; anything above the bill is advance rent
     - **method**: cash, qr_code or credit (gateway payments go through /api/payments/checkout)
     - **reference_number** / **proof**: QR payments need at least one of these
     """
     require_role(token, TENANT_ROLE, ADMIN_ROLE)
     bill = _get_accessible_bill(db, token, bill_id)

     proof_url = None
     if proof is not None and proof.filename:
          proof_url = upload_artifact(proof, PROOF_CONTAINER, bill.tenant_id)

     try:
          bill = payment_intake.submit(
               db,
               bill_id,
               tenant_scope(token),
               amount,
               method,
               reference_number=reference_number,
               proof_url=proof_url,
          )
     except BillingError:
          if proof_url:
               delete_artifact(proof_url)
          raise
     return BillResponse.from_bill(bill)


@router.post(
     "/{bill_id}/pay-with-credit",
     response_model=SettlementResponse,
     summary="Settle a bill from the credit balance"
)
def pay_with_credit(
     bill_id: int,
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token)
):
     require_role(token, TENANT_ROLE, ADMIN_ROLE)
     _get_accessible_bill(db, token, bill_id)
     result = settlement.pay_with_credit(db, bill_id, tenant_scope(token))
     return SettlementResponse.from_result(result)


@router.post(
     "/{bill_id}/confirm",
     response_model=SettlementResponse,
     summary="Confirm a bill as paid"
)
def confirm_payment(
     bill_id: int,
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token)
):
     """
     Confirm a staged payment, or record a direct cash payment on a pending bill.

     Creates the payment record, any advance-month bills and any credit carried forward.
     """
     require_role(token, LANDLORD_ROLE, ADMIN_ROLE)
     result = settlement.confirm(db, bill_id, landlord_scope(token))
     logger.info("Bill %s confirmed by user %s", bill_id, token.get("id"))
     return SettlementResponse.from_result(result)


@router.post(
     "/{bill_id}/reject",
     response_model=BillResponse,
     summary="Reject a staged payment"
)
def reject_payment(
     bill_id: int,
     body: Optional[BillReject] = None,
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token)
):
     require_role(token, LANDLORD_ROLE, ADMIN_ROLE)
     bill = settlement.reject(
          db,
          bill_id,
          landlord_scope(token),
          reason=body.reason if body else None,
     )
     return BillResponse.from_bill(bill)
