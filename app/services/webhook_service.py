from __future__ import annotations

import logging
from dataclasses import dataclass

from app.core.exceptions import PayloadError, VerificationError
from app.core.security import verify_verification_token
from app.schemas.kofi import KofiEvent
from app.services.reconciler import ReconcileAction, Reconciler
from app.services.subscriber_store import SubscriberStore

logger = logging.getLogger(__name__)


@dataclass
class WebhookResult:
    action: ReconcileAction
    email: str | None = None
    event_type: str | None = None


class WebhookService:
    """Verifies a Ko-fi event and applies it to the store under the store lock."""

    def __init__(self, store: SubscriberStore, reconciler: Reconciler, verification_token: str):
        self.store = store
        self.reconciler = reconciler
        self._verification_token = verification_token

    def handle(self, event: KofiEvent) -> WebhookResult:
        if not verify_verification_token(event.verification_token, self._verification_token):
            raise VerificationError("Invalid verification token")

        if not event.is_subscription:
            logger.info("Ignoring Ko-fi event type=%s message_id=%s", event.type, event.message_id)
            return WebhookResult(ReconcileAction.IGNORED, event.email, event.type)

        missing = event.missing_subscription_fields()
        if missing:
            raise PayloadError(f"Subscription event missing required field(s): {', '.join(missing)}")

        with self.store.lock:
            records = self.store.load()
            result = self.reconciler.reconcile(event, records)
            if result.changed:
                self.store.save(result.records)

        return WebhookResult(result.action, event.email, event.type)
