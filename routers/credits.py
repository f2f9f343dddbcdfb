"""
Credit balance lookup.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from database import get_session
from dependencies import tenant_scope, verify_token
from schemas.payment import CreditBalanceResponse
from services.credit_ledger import get_credit_balance

router = APIRouter(prefix="/api/credits", tags=["credits"])


@router.get(
     "/{tenant_id}/{tenancy_id}",
     response_model=CreditBalanceResponse,
     summary="Get a tenant's credit balance for a tenancy"
)
def read_credit_balance(
     tenant_id: int,
     tenancy_id: int,
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token),
):
     """Zero when the tenant has never had credit on this tenancy."""
     own_id = tenant_scope(token)
     if own_id is not None and own_id != tenant_id:
          raise HTTPException(
               status_code=status.HTTP_403_FORBIDDEN,
               detail="You can only view your own credit balance"
          )
     return CreditBalanceResponse(
          tenant_id=tenant_id,
          tenancy_id=tenancy_id,
          amount=get_credit_balance(db, tenant_id, tenancy_id),
     )
