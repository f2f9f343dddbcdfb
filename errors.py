"""
Billing error taxonomy and the FastAPI handler that renders it.

Services raise these; routers let them propagate. Each error carries a
machine-readable code and the HTTP status it maps to.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class BillingError(Exception):
     code = "billing_error"
     http_status = status.HTTP_400_BAD_REQUEST

     def __init__(self, message: str = ""):
          super().__init__(message or self.code)
          self.message = message or self.code


class ValidationError(BillingError):
     """Malformed bill, line items or request data."""
     code = "validation_error"
     http_status = 422


class InvalidStateError(BillingError):
     """Illegal status transition, including a lost concurrent race."""
     code = "invalid_state"
     http_status = status.HTTP_409_CONFLICT


class BelowMinimumError(BillingError):
     """Partial payment attempt."""
     code = "below_minimum"
     http_status = 422


class ExceedsContractError(BillingError):
     """Payment would prepay past the contract end."""
     code = "exceeds_contract"
     http_status = 422


class MissingProofError(BillingError):
     """QR payment without a reference number or proof upload."""
     code = "missing_proof"
     http_status = 422


class InsufficientCreditError(BillingError):
     code = "insufficient_credit"
     http_status = status.HTTP_409_CONFLICT


class NotFoundError(BillingError):
     code = "not_found"
     http_status = status.HTTP_404_NOT_FOUND


class GatewayError(BillingError):
     """Payment gateway call failed; no state was changed."""
     code = "gateway_error"
     http_status = status.HTTP_502_BAD_GATEWAY


def register_error_handlers(app: FastAPI) -> None:
     @app.exception_handler(BillingError)
     async def billing_error_handler(request: Request, exc: BillingError):
          logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
          return JSONResponse(
               status_code=exc.http_status,
               content={"error": exc.code, "detail": exc.message},
          )

     # Unknown paths; missing records are NotFoundError above.
     @app.exception_handler(StarletteHTTPException)
     async def http_error_handler(request: Request, exc: StarletteHTTPException):
          if exc.status_code == status.HTTP_404_NOT_FOUND:
               return JSONResponse(status_code=404, content={"error": "Route not found"})
          return JSONResponse(
               status_code=exc.status_code,
               content={"error": "http_error", "detail": exc.detail},
               headers=getattr(exc, "headers", None),
          )
