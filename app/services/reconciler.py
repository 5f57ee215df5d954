"""
Folds Ko-fi Subscription events into the subscriber list.

Two strategies exist because Ko-fi tells us about renewals twice: through
the payment flags on the event and implicitly through whether the email is
already known. ``lookup`` trusts the store, ``flags`` trusts the event and
is the only one that deactivates on a failed payment.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable

from app.models.tier import UNKNOWN_TIER
from app.schemas.kofi import KofiEvent
from app.schemas.subscriber import SubscriberRecord

logger = logging.getLogger(__name__)

Clock = Callable[[], str]

# Renewal only overwrites these when the event carries a non-empty value.
RENEWABLE_FIELDS: dict[str, str] = {
    "tier_name": "tier",
    "amount": "amount",
    "currency": "currency",
    "from_name": "name",
}


class ReconcileAction(str, Enum):
    CREATED = "created"
    RENEWED = "renewed"
    DEACTIVATED = "deactivated"
    IGNORED = "ignored"


@dataclass
class ReconcileResult:
    action: ReconcileAction
    records: list[SubscriberRecord]
    subscriber: SubscriberRecord | None = None

    @property
    def changed(self) -> bool:
        return self.action is not ReconcileAction.IGNORED


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def find_subscriber(records: list[SubscriberRecord], email: str | None) -> SubscriberRecord | None:
    """Linear scan by email; the first match wins."""
    if not email:
        return None
    for record in records:
        if record.email == email:
            return record
    return None


def create_subscriber(event: KofiEvent, now: str) -> SubscriberRecord:
    stamp = event.timestamp or now
    return SubscriberRecord(
        id=event.kofi_transaction_id,
        email=event.email,
        name=event.from_name,
        tier=event.tier_name or UNKNOWN_TIER,
        amount=event.amount,
        currency=event.currency,
        subscribed_at=stamp,
        last_payment=stamp,
        active=True,
    )


def renew_subscriber(record: SubscriberRecord, event: KofiEvent, now: str) -> None:
    record.active = True
    record.last_payment = event.timestamp or now
    for event_field, record_field in RENEWABLE_FIELDS.items():
        value = getattr(event, event_field)
        if value:
            setattr(record, record_field, value)


def deactivate_subscriber(record: SubscriberRecord, event: KofiEvent, now: str) -> None:
    record.active = False
    record.failed_at = event.timestamp or now


class Reconciler(ABC):
    policy: str = ""

    def __init__(self, clock: Clock = utc_now_iso):
        self.clock = clock

    @abstractmethod
    def reconcile(self, event: KofiEvent, records: list[SubscriberRecord]) -> ReconcileResult:
        """Apply one event to ``records`` in place and report what happened."""

    def _create(self, event: KofiEvent, records: list[SubscriberRecord]) -> ReconcileResult:
        subscriber = create_subscriber(event, self.clock())
        records.append(subscriber)
        logger.info("New subscriber: %s <%s> at tier %s", subscriber.name, subscriber.email, subscriber.tier)
        return ReconcileResult(ReconcileAction.CREATED, records, subscriber)

    def _renew(self, subscriber: SubscriberRecord, event: KofiEvent, records: list[SubscriberRecord]) -> ReconcileResult:
        renew_subscriber(subscriber, event, self.clock())
        logger.info("Subscription renewed: %s <%s> tier %s", subscriber.name, subscriber.email, subscriber.tier)
        return ReconcileResult(ReconcileAction.RENEWED, records, subscriber)


class LookupReconciler(Reconciler):
    """Known email renews, unknown email creates. Payment flags are ignored."""

    policy = "lookup"

    def reconcile(self, event: KofiEvent, records: list[SubscriberRecord]) -> ReconcileResult:
        subscriber = find_subscriber(records, event.email)
        if subscriber is not None:
            return self._renew(subscriber, event, records)
        return self._create(event, records)


class FlagReconciler(Reconciler):
    """Dispatches on Ko-fi's payment flags; failure wins over the other two."""

    policy = "flags"

    def reconcile(self, event: KofiEvent, records: list[SubscriberRecord]) -> ReconcileResult:
        subscriber = find_subscriber(records, event.email)

        if event.is_subscription_payment_failed:
            if subscriber is None:
                logger.info("Payment failed for unknown subscriber <%s>, nothing to deactivate", event.email)
                return ReconcileResult(ReconcileAction.IGNORED, records)
            deactivate_subscriber(subscriber, event, self.clock())
            logger.info("Subscription payment failed: %s <%s> deactivated", subscriber.name, subscriber.email)
            return ReconcileResult(ReconcileAction.DEACTIVATED, records, subscriber)

        if event.is_first_subscription_payment:
            if subscriber is not None:
                logger.warning("First payment for already known subscriber <%s>, renewing instead", event.email)
                return self._renew(subscriber, event, records)
            return self._create(event, records)

        if event.is_subscription_payment:
            if subscriber is None:
                # Store was reset or the first payment was never delivered.
                logger.info("Renewal for unknown subscriber <%s>, adding", event.email)
                return self._create(event, records)
            return self._renew(subscriber, event, records)

        logger.info("Subscription event for <%s> carries no payment flag, ignoring", event.email)
        return ReconcileResult(ReconcileAction.IGNORED, records)


RECONCILERS: dict[str, type[Reconciler]] = {
    LookupReconciler.policy: LookupReconciler,
    FlagReconciler.policy: FlagReconciler,
}


def get_reconciler(policy: str, clock: Clock = utc_now_iso) -> Reconciler:
    try:
        return RECONCILERS[policy](clock=clock)
    except KeyError:
        raise ValueError(f"Unknown reconcile policy: {policy!r}") from None
