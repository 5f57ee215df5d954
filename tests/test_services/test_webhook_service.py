from __future__ import annotations

import json
import threading
import time

import pytest

from app.core.exceptions import PayloadError, VerificationError
from app.schemas.kofi import KofiEvent
from app.services.reconciler import FlagReconciler, LookupReconciler, ReconcileAction
from app.services.subscriber_store import InMemorySubscriberStore, JsonFileSubscriberStore
from app.services.webhook_service import WebhookService
from conftest import TEST_TOKEN, make_event


def service(store, reconciler=None, token=TEST_TOKEN) -> WebhookService:
    return WebhookService(store=store, reconciler=reconciler or LookupReconciler(), verification_token=token)


def event(**overrides) -> KofiEvent:
    return KofiEvent.model_validate(make_event(**overrides))


def test_subscription_event_is_persisted(memory_store):
    result = service(memory_store).handle(event())

    assert result.action is ReconcileAction.CREATED
    assert memory_store.save_count == 1
    assert memory_store.load()[0].email == "a@x.com"


@pytest.mark.parametrize("token", ["wrong", "", None])
def test_bad_token_never_touches_store(memory_store, token):
    with pytest.raises(VerificationError):
        service(memory_store).handle(event(verification_token=token))

    assert memory_store.save_count == 0
    assert memory_store.load() == []


def test_unset_secret_rejects_everything(memory_store):
    with pytest.raises(VerificationError):
        service(memory_store, token="").handle(event(verification_token=""))


@pytest.mark.parametrize("event_type", ["Donation", "Shop Order", "Commission", None])
def test_non_subscription_types_are_ignored(memory_store, event_type):
    result = service(memory_store).handle(event(type=event_type))

    assert result.action is ReconcileAction.IGNORED
    assert memory_store.save_count == 0


def test_subscription_without_email_is_rejected(memory_store):
    with pytest.raises(PayloadError):
        service(memory_store).handle(event(email=""))

    assert memory_store.save_count == 0


def test_ignored_flag_event_does_not_write(memory_store):
    svc = service(memory_store, reconciler=FlagReconciler())

    result = svc.handle(event(is_first_subscription_payment=False, is_subscription_payment=False))

    assert result.action is ReconcileAction.IGNORED
    assert memory_store.save_count == 0


def test_each_applied_event_writes_once(memory_store):
    svc = service(memory_store)
    svc.handle(event(timestamp="2024-01-01T00:00:00Z"))
    svc.handle(event(timestamp="2024-02-01T00:00:00Z"))

    assert memory_store.save_count == 2
    assert len(memory_store.load()) == 1


def test_store_lock_is_released_after_handling():
    store = InMemorySubscriberStore()
    service(store).handle(event())

    assert not store.lock.locked()


class SlowLoadStore(JsonFileSubscriberStore):
    """Widens the gap between load and save so unsynchronised writers would collide."""

    def load(self):
        records = super().load()
        time.sleep(0.01)
        return records


def test_concurrent_events_are_all_persisted(tmp_path):
    path = tmp_path / "subscribers.json"
    svc = service(SlowLoadStore(path))
    emails = [f"user{i}@x.com" for i in range(8)]
    errors = []

    def deliver(email):
        try:
            svc.handle(event(email=email))
        except Exception as exc:  # surfaced below
            errors.append(exc)

    threads = [threading.Thread(target=deliver, args=(email,)) for email in emails]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    stored = json.loads(path.read_text())["subscribers"]
    assert sorted(s["email"] for s in stored) == sorted(emails)


def test_unreadable_entry_survives_event_handling(tmp_path):
    path = tmp_path / "subscribers.json"
    orphan = {"name": "no email", "tier": "Plus", "subscribed_at": "2024-01-01T00:00:00Z"}
    path.write_text(json.dumps({"subscribers": [
        {"email": "keep1@x.com", "tier": "Plus", "subscribed_at": "2024-01-01T00:00:00Z", "active": True},
        orphan,
        {"email": "keep2@x.com", "tier": "Basic", "subscribed_at": "2024-01-01T00:00:00Z", "active": True},
    ]}))

    service(JsonFileSubscriberStore(path)).handle(event(email="new@x.com"))

    stored = json.loads(path.read_text())["subscribers"]
    assert [s.get("email") for s in stored] == ["keep1@x.com", "keep2@x.com", "new@x.com", None]
    assert orphan in stored
