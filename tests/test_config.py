import json

import pytest

from conftest import make_settings
from tiffin.core.config import EnvironmentMode, StoreBackend
from tiffin.services.payment import MockPaymentLinkService, RazorpayPaymentLinkService, create_payment_link_service
from tiffin.services.store import InMemoryOrderStore, JsonFileOrderStore, create_order_store


def test_business_config_file_overlay(tmp_path):
    shared = tmp_path / "business.json"
    shared.write_text(json.dumps({
        "pricing": {"dailyMeal": 95, "breakfast": 45, "monthlyVeg": 3100, "monthlyNonVeg": 3900},
        "delivery": {"slabs": [{"maxKm": 5, "fee": 25}]},
        "upiId": "shared@upi",
        "businessName": "Shared Tiffin",
    }), encoding="utf-8")

    settings = make_settings(business_config_file=str(shared), upi_id=None)

    assert settings.pricing["dailyMeal"] == 95
    assert settings.delivery_slabs == [{"maxKm": 5, "fee": 25}]
    assert settings.upi_id == "shared@upi"
    assert settings.business_name == "Shared Tiffin"


def test_env_mode_is_case_insensitive():
    assert make_settings(env_mode="STAGING").env_mode == EnvironmentMode.STAGING


def test_invalid_env_mode():
    with pytest.raises(ValueError):
        make_settings(env_mode="qa")


def test_production_config_lists_missing_keys():
    settings = make_settings(
        env_mode="production",
        admin_pin=None,
        razorpay_key_id=None,
        razorpay_webhook_secret=None,
    )

    assert settings.validate_production_config() == [
        "ADMIN_PIN",
        "RAZORPAY_KEY_ID",
        "RAZORPAY_WEBHOOK_SECRET",
    ]


def test_cors_origins_list():
    settings = make_settings(cors_origins="https://a.example, https://b.example")
    assert settings.cors_origins_list == ["https://a.example", "https://b.example"]


def test_store_factory(tmp_path):
    assert isinstance(create_order_store(make_settings(store_backend="memory")), InMemoryOrderStore)

    store = create_order_store(make_settings(store_backend=StoreBackend.JSON, data_directory=str(tmp_path)))
    assert isinstance(store, JsonFileOrderStore)
    assert store.path == tmp_path / "db.json"


async def test_payment_service_factory():
    assert isinstance(create_payment_link_service(make_settings()), MockPaymentLinkService)

    service = create_payment_link_service(make_settings(env_mode="staging"))
    assert isinstance(service, RazorpayPaymentLinkService)
    await service.aclose()
