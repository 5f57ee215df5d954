"""Shared API dependencies."""
from __future__ import annotations

import threading
from pathlib import Path

from fastapi import Depends

from app.config import Settings, get_settings
from app.core.security import require_dashboard_access
from app.services.reconciler import get_reconciler
from app.services.subscriber_store import JsonFileSubscriberStore, SubscriberStore
from app.services.webhook_service import WebhookService

# One store per path so every request shares the same lock.
_stores: dict[Path, JsonFileSubscriberStore] = {}
_stores_lock = threading.Lock()


def get_store(settings: Settings = Depends(get_settings)) -> SubscriberStore:
    path = settings.subscribers_file.resolve()
    with _stores_lock:
        store = _stores.get(path)
        if store is None:
            store = JsonFileSubscriberStore(path)
            _stores[path] = store
        return store


def get_webhook_service(
    store: SubscriberStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> WebhookService:
    return WebhookService(
        store=store,
        reconciler=get_reconciler(settings.reconcile_policy),
        verification_token=settings.kofi_verification_token.get_secret_value(),
    )


__all__ = ["get_settings", "get_store", "get_webhook_service", "require_dashboard_access"]
