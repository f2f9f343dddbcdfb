"""
PayMaya checkout client.

Creates hosted checkouts for a validated payment and reads back their
result. Calls are plain HTTP with bounded retries; none of this runs inside
a billing transaction, and a failure here never changes a bill.
"""
import base64
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from config import (
     CURRENCY,
     GATEWAY_MAX_RETRIES,
     GATEWAY_TIMEOUT_SECONDS,
     PAYMAYA_BASE_URL,
     PAYMAYA_PUBLIC_KEY,
     PAYMAYA_SECRET_KEY,
     PAYMENT_REDIRECT_BASE,
)
from errors import GatewayError, ValidationError
from utils.money import to_money

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = "BILL-"
SUCCESS_EVENTS = {"CHECKOUT.SUCCESS", "PAYMENT_SUCCESS"}


@dataclass(frozen=True)
class Checkout:
     checkout_id: str
     redirect_url: str


@dataclass(frozen=True)
class GatewayCharge:
     transaction_id: str
     bill_id: int
     amount: Decimal


def bill_reference(bill_id: int) -> str:
     return f"{REFERENCE_PREFIX}{bill_id}"


def parse_bill_reference(reference: Optional[str]) -> int:
     if not reference or not reference.startswith(REFERENCE_PREFIX):
          raise ValidationError(f"Invalid payment reference: {reference!r}")
     try:
          return int(reference[len(REFERENCE_PREFIX):])
     except ValueError:
          raise ValidationError(f"Invalid payment reference: {reference!r}")


def _retrying_session(max_retries: int) -> requests.Session:
     # POST is not in Retry's default allowed_methods, so a checkout is
     # only retried when the connection failed before anything was sent.
     retry = Retry(
          total=max_retries,
          backoff_factor=0.5,
          status_forcelist=(502, 503, 504),
     )
     session = requests.Session()
     session.mount("https://", HTTPAdapter(max_retries=retry))
     session.mount("http://", HTTPAdapter(max_retries=retry))
     return session


def _basic_auth(key: Optional[str]) -> dict:
     auth = base64.b64encode(f"{key}:".encode()).decode()
     return {
          "Content-Type": "application/json",
          "Authorization": f"Basic {auth}"
     }


class PayMayaGateway:

     def __init__(
          self,
          base_url: str = PAYMAYA_BASE_URL,
          public_key: Optional[str] = PAYMAYA_PUBLIC_KEY,
          secret_key: Optional[str] = PAYMAYA_SECRET_KEY,
          max_retries: int = GATEWAY_MAX_RETRIES,
          timeout: float = GATEWAY_TIMEOUT_SECONDS,
          session: Optional[requests.Session] = None,
     ):
          self.base_url = base_url.rstrip("/")
          self.public_key = public_key
          self.secret_key = secret_key
          self.timeout = timeout
          self.http = session or _retrying_session(max_retries)

     def create_checkout(self, bill_id: int, amount: Decimal, description: str = "Rent payment") -> Checkout:
          """Open a hosted checkout for an amount intake has already validated."""
          payload = {
               "totalAmount": {
                    "value": float(to_money(amount)),
                    "currency": CURRENCY
               },
               "items": [{
                    "name": description,
                    "quantity": 1,
                    "totalAmount": {"value": float(to_money(amount))}
               }],
               "requestReferenceNumber": bill_reference(bill_id),
               "redirectUrl": {
                    "success": f"{PAYMENT_REDIRECT_BASE}/payment-success?bill={bill_id}",
                    "failure": f"{PAYMENT_REDIRECT_BASE}/payment-failure?bill={bill_id}",
                    "cancel": f"{PAYMENT_REDIRECT_BASE}/payment-cancel?bill={bill_id}"
               }
          }

          try:
               response = self.http.post(
                    f"{self.base_url}/checkout/v1/checkouts",
                    json=payload,
                    headers=_basic_auth(self.public_key),
                    timeout=self.timeout,
               )
          except requests.RequestException as exc:
               logger.warning("PayMaya checkout for bill %s failed: %s", bill_id, exc)
               raise GatewayError("Payment gateway unavailable") from exc

          if response.status_code not in (200, 201):
               logger.warning("PayMaya checkout for bill %s rejected: %s", bill_id, response.text)
               raise GatewayError(f"Payment gateway error: {response.text}")

          data = response.json()
          return Checkout(checkout_id=data["checkoutId"], redirect_url=data["redirectUrl"])

     def fetch_charge(self, checkout_id: str) -> GatewayCharge:
          """Read a checkout back and return its charge if it was paid."""
          try:
               response = self.http.get(
                    f"{self.base_url}/checkout/v1/checkouts/{checkout_id}",
                    headers=_basic_auth(self.secret_key),
                    timeout=self.timeout,
               )
          except requests.RequestException as exc:
               raise GatewayError("Payment gateway unavailable") from exc

          if response.status_code != 200:
               raise GatewayError(f"Payment gateway error: {response.text}")

          data = response.json()
          if data.get("paymentStatus") != "PAYMENT_SUCCESS":
               raise GatewayError(f"Checkout {checkout_id} is not paid ({data.get('paymentStatus')})")
          return charge_from_payload(data)


def transaction_id_from_payload(data: dict) -> str:
     transaction_id = data.get("id") or data.get("checkoutId")
     if not transaction_id:
          raise ValidationError("Gateway payload is missing the transaction id")
     return str(transaction_id)


def charge_from_payload(data: dict) -> GatewayCharge:
     """Extract the charge from a checkout object or webhook data block."""
     amount = data.get("totalAmount") or {}
     value = amount.get("value") if isinstance(amount, dict) else amount
     if value is None:
          value = data.get("amount")
     transaction_id = data.get("id") or data.get("checkoutId")
     if not transaction_id or value is None:
          raise ValidationError("Gateway payload is missing the transaction id or amount")
     return GatewayCharge(
          transaction_id=str(transaction_id),
          bill_id=parse_bill_reference(data.get("requestReferenceNumber")),
          amount=to_money(value),
     )
