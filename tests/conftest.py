import os
import sys
import tempfile
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

TEST_TOKEN = "test-verification-token"

os.environ.setdefault('APP_ENV', 'test')
os.environ.setdefault('KOFI_VERIFICATION_TOKEN', TEST_TOKEN)
os.environ.setdefault('SUBSCRIBERS_FILE', str(Path(tempfile.mkdtemp()) / 'subscribers.json'))
os.environ.setdefault('DASHBOARD_AUTH', 'none')

from app.config import Settings, get_settings  # noqa: E402
from app.main import app  # noqa: E402
from app.services.subscriber_store import InMemorySubscriberStore  # noqa: E402


def make_event(**overrides):
    event = {
        "verification_token": TEST_TOKEN,
        "message_id": "3a1fac0c-f960-4506-a60e-824979a74e74",
        "timestamp": "2024-01-01T00:00:00Z",
        "type": "Subscription",
        "is_public": True,
        "from_name": "A",
        "message": None,
        "amount": "20.00",
        "url": "https://ko-fi.com/Home/CoffeeShop?txid=00000000-1111-2222-3333-444444444444",
        "email": "a@x.com",
        "currency": "USD",
        "is_subscription_payment": True,
        "is_first_subscription_payment": True,
        "kofi_transaction_id": "00000000-1111-2222-3333-444444444444",
        "tier_name": "Plus",
    }
    event.update(overrides)
    return event


@pytest.fixture
def memory_store():
    return InMemorySubscriberStore()


@pytest.fixture
def make_settings():
    def _make(**values):
        base = {
            "KOFI_VERIFICATION_TOKEN": TEST_TOKEN,
            "SUBSCRIBERS_FILE": os.environ["SUBSCRIBERS_FILE"],
        }
        base.update(values)
        return Settings(_env_file=None, **base)

    return _make


@pytest.fixture
def client_factory(memory_store, make_settings):
    """Build a TestClient bound to an in-memory store and custom settings."""
    from fastapi.testclient import TestClient

    from app.api.dependencies import get_store

    def _factory(**setting_values):
        test_settings = make_settings(**setting_values)
        app.dependency_overrides[get_settings] = lambda: test_settings
        app.dependency_overrides[get_store] = lambda: memory_store
        return TestClient(app)

    yield _factory
    app.dependency_overrides.clear()
