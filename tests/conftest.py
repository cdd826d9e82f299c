import pytest
from fastapi.testclient import TestClient

from tiffin.core.config import Settings
from tiffin.main import create_app
from tiffin.services import build_services
from tiffin.services.payment import MockPaymentLinkService
from tiffin.services.store import InMemoryOrderStore

ADMIN_PIN = "4321"
KEY_SECRET = "key_secret_test"
WEBHOOK_SECRET = "webhook_secret_test"


def make_settings(**overrides) -> Settings:
    values = dict(
        env_mode="development",
        store_backend="memory",
        admin_pin=ADMIN_PIN,
        upi_id="sharma@okicici",
        business_name="Sharma Tiffin",
        razorpay_key_secret=KEY_SECRET,
        razorpay_webhook_secret=WEBHOOK_SECRET,
        app_base_url="https://tiffin.example.com",
        delivery_slabs=[{"maxKm": 3, "fee": 20}, {"maxKm": 7, "fee": 40}],
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def services(settings):
    return build_services(
        settings,
        store=InMemoryOrderStore(),
        link_service=MockPaymentLinkService(),
    )


@pytest.fixture
def client(services):
    app = create_app(services=services)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers():
    return {"X-Admin-Pin": ADMIN_PIN}
