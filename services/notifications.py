"""
Notification dispatcher boundary.

Billing services queue events on the session; they are sent only after the
transaction commits and dropped if it rolls back. Delivery is best effort:
failures are logged and never propagate into a financial operation.
"""
import logging
from typing import Any, Optional

import requests
from sqlalchemy import event
from sqlalchemy.orm import Session

from config import NOTIFY_WEBHOOK_URL, NOTIFY_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

# Event types
BILL_ISSUED = "bill_issued"
BILL_UPDATED = "bill_updated"
BILL_CANCELLED = "bill_cancelled"
PAYMENT_CONFIRMATION_NEEDED = "payment_confirmation_needed"
PAYMENT_CONFIRMED = "payment_confirmed"
PAYMENT_REJECTED = "payment_rejected"
CREDIT_ADDED = "credit_added"

PENDING_KEY = "pending_notifications"
DISPATCHER_KEY = "notification_dispatcher"


class NotificationDispatcher:
     """Posts events to the external notification service."""

     def __init__(self, webhook_url: Optional[str] = NOTIFY_WEBHOOK_URL, timeout: float = NOTIFY_TIMEOUT_SECONDS):
          self.webhook_url = webhook_url
          self.timeout = timeout

     def notify(self, recipient_id: int, event_type: str, payload: dict[str, Any]) -> None:
          try:
               self._send(recipient_id, event_type, payload)
          except Exception:
               logger.exception("Notification %s to user %s failed", event_type, recipient_id)

     def _send(self, recipient_id: int, event_type: str, payload: dict[str, Any]) -> None:
          if not self.webhook_url:
               logger.info("NOTIFY_WEBHOOK_URL not set; dropping %s for user %s", event_type, recipient_id)
               return

          response = requests.post(
               self.webhook_url,
               headers={"Content-Type": "application/json"},
               json={
                    "recipient_id": recipient_id,
                    "event_type": event_type,
                    "payload": payload,
               },
               timeout=self.timeout,
          )
          if response.status_code not in (200, 201, 202, 204):
               raise RuntimeError(f"Notification service error {response.status_code}: {response.text}")


default_dispatcher = NotificationDispatcher()


def bind_dispatcher(db: Session, dispatcher) -> None:
     """Route this session's notifications to a specific dispatcher."""
     db.info[DISPATCHER_KEY] = dispatcher


def queue_notification(db: Session, recipient_id: int, event_type: str, payload: dict[str, Any]) -> None:
     db.info.setdefault(PENDING_KEY, []).append((recipient_id, event_type, payload))


@event.listens_for(Session, "after_commit")
def _dispatch_after_commit(session: Session) -> None:
     pending = session.info.pop(PENDING_KEY, [])
     if not pending:
          return
     dispatcher = session.info.get(DISPATCHER_KEY, default_dispatcher)
     for recipient_id, event_type, payload in pending:
          dispatcher.notify(recipient_id, event_type, payload)


@event.listens_for(Session, "after_soft_rollback")
def _discard_on_rollback(session: Session, previous_transaction) -> None:
     # Savepoint rollbacks keep the outer transaction's events.
     if previous_transaction.parent is None:
          session.info.pop(PENDING_KEY, None)
