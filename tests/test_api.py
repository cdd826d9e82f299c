import json
from urllib.parse import parse_qs, urlsplit

from fastapi.testclient import TestClient

from conftest import ADMIN_PIN, KEY_SECRET, WEBHOOK_SECRET, make_settings
from tiffin.main import create_app
from tiffin.services import build_services
from tiffin.services.payment import MockPaymentLinkService
from tiffin.services.store import InMemoryOrderStore
from tiffin.services.verification import sign

DAILY_ORDER = {"mobile": "9876543210", "type": "daily", "qty": 2, "distanceKm": 5, "note": "less spicy"}


def place_order(client, **overrides):
    body = dict(DAILY_ORDER)
    body.update(overrides)
    response = client.post("/orders", json=body)
    assert response.status_code == 200, response.text
    return response.json()


# =============================================================================
# ROOT, HEALTH, PRICING
# =============================================================================

def test_root(client):
    data = client.get("/").json()
    assert data["ok"] is True
    assert data["name"] == "Sharma Tiffin"


def test_health(client):
    data = client.get("/health").json()
    assert data == {"ok": True, "status": "operational", "store": "memory", "paymentProvider": "mock"}


def test_menu(client):
    pricing = client.get("/menu").json()["pricing"]
    assert pricing["dailyMeal"] == 90
    assert set(pricing) == {"dailyMeal", "breakfast", "monthlyVeg", "monthlyNonVeg"}


def test_delivery_fee(client):
    assert client.get("/delivery/fee", params={"km": 5}).json() == {"km": 5, "fee": 40}
    assert client.get("/delivery/fee", params={"km": 50}).json()["fee"] == 40


def test_delivery_fee_negative_km_clamped(client):
    assert client.get("/delivery/fee", params={"km": -4}).json() == {"km": 0, "fee": 20}


def test_quote(client):
    response = client.get("/quote", params={"type": "daily", "qty": 2, "km": 5})
    assert response.json() == {"unitPrice": 90, "deliveryFee": 40, "amount": 220}


def test_quote_unknown_plan(client):
    response = client.get("/quote", params={"type": "dinner", "qty": 1})
    assert response.status_code == 400
    assert response.json()["error"] == "unknown_plan_type"


# =============================================================================
# ORDERS
# =============================================================================

def test_place_order_with_upi(client):
    data = place_order(client)

    order = data["order"]
    assert data["ok"] is True
    assert order["status"] == "pending_payment"
    assert (order["unitPrice"], order["deliveryFee"], order["amount"]) == (90, 40, 220)
    assert order["note"] == "less spicy"

    payment = data["payment"]
    assert payment["method"] == "upi"
    assert payment["amount"] == 220
    params = parse_qs(urlsplit(payment["upiUrl"]).query)
    assert params["pa"] == ["sharma@okicici"]
    assert params["am"] == ["220.00"]
    assert params["tn"] == [f"Order {order['id']}"]


def test_client_supplied_amount_is_ignored(client):
    data = place_order(client, amount=1, unitPrice=1)
    assert data["order"]["amount"] == 220


def test_place_order_with_payment_link(client, services):
    data = place_order(
        client,
        mobile=None,
        customer={"name": "Asha", "phone": "9000000001", "address": "12 MG Road"},
        paymentMethod="payment_link",
    )

    order_id = data["order"]["id"]
    assert data["payment"]["url"].startswith("https://rzp.io/i/mock")
    link = services.link_service.links[order_id]
    assert link.raw["callback_url"] == f"https://tiffin.example.com/payments/webhook?orderId={order_id}"
    assert link.raw["notes"] == {"orderId": order_id}


def test_payment_link_order_requires_customer_name(client):
    response = client.post("/orders", json=dict(DAILY_ORDER, paymentMethod="payment_link"))
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


def test_place_order_requires_contact(client):
    response = client.post("/orders", json={"type": "daily", "qty": 1, "distanceKm": 2})
    assert response.status_code == 400
    assert response.json()["ok"] is False


def test_place_order_rejects_bad_qty(client):
    response = client.post("/orders", json=dict(DAILY_ORDER, qty=0))
    assert response.status_code == 400


def test_place_order_rejects_unknown_type(client):
    response = client.post("/orders", json=dict(DAILY_ORDER, type="dinner"))
    assert response.status_code == 400


def test_get_order(client):
    order_id = place_order(client)["order"]["id"]

    data = client.get(f"/orders/{order_id}").json()
    assert data["id"] == order_id
    assert data["status"] == "pending_payment"


def test_get_unknown_order(client):
    response = client.get("/orders/nope1234")
    assert response.status_code == 404
    assert response.json() == {"ok": False, "error": "not_found", "message": "Order nope1234 not found"}


# =============================================================================
# ADMIN
# =============================================================================

def test_admin_login(client):
    assert client.post("/admin/login", json={"pin": ADMIN_PIN}).json() == {"ok": True}
    assert client.post("/admin/login", json={"pin": "0000"}).json() == {"ok": False}


def test_admin_orders_requires_pin(client):
    assert client.get("/admin/orders").status_code == 401
    assert client.get("/admin/orders", headers={"X-Admin-Pin": "0000"}).status_code == 401


def test_admin_orders_most_recent_first(client, admin_headers):
    first = place_order(client)["order"]["id"]
    second = place_order(client)["order"]["id"]

    orders = client.get("/admin/orders", headers=admin_headers).json()
    assert [o["id"] for o in orders] == [second, first]


def test_admin_status_update(client, admin_headers):
    order_id = place_order(client)["order"]["id"]

    response = client.post(
        f"/admin/orders/{order_id}/status",
        json={"status": "preparing"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["order"]["status"] == "preparing"
    assert response.json()["order"]["history"][-1]["actor"] == "admin"


def test_admin_status_update_with_body_pin(client):
    order_id = place_order(client)["order"]["id"]

    response = client.post(f"/admin/orders/{order_id}/status", json={"status": "cancelled", "pin": ADMIN_PIN})
    assert response.json()["order"]["status"] == "cancelled"


def test_admin_status_update_errors(client, admin_headers):
    order_id = place_order(client)["order"]["id"]
    url = f"/admin/orders/{order_id}/status"

    assert client.post(url, json={"status": "preparing"}).status_code == 401
    assert client.post("/admin/orders/unknown1/status", json={"status": "delivered"}, headers=admin_headers).status_code == 404
    assert client.post(url, json={"status": "paid"}, headers=admin_headers).status_code == 400

    client.post(url, json={"status": "delivered"}, headers=admin_headers)
    response = client.post(url, json={"status": "preparing"}, headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["error"] == "invalid_transition"


# =============================================================================
# PAYMENTS
# =============================================================================

def test_create_standalone_link(client):
    response = client.post(
        "/payments/create_link",
        json={"amount": 150, "customer": {"name": "Asha", "phone": "9876543210"}},
    )
    assert response.status_code == 200
    assert response.json()["url"].startswith("https://rzp.io/i/mock")


def test_create_link_missing_parameters(client):
    response = client.post("/payments/create_link", json={"amount": 150})
    assert response.status_code == 400
    assert response.json()["error"] == "missing_parameters"


def test_create_link_for_order_charges_stored_amount(client, services):
    order_id = place_order(client)["order"]["id"]

    response = client.post(
        "/payments/create_link",
        json={"orderId": order_id, "amount": 1, "customer": {"name": "Asha"}},
    )

    assert response.status_code == 200
    link = services.link_service.links[order_id]
    assert link.amount == 220
    assert link.raw["customer"] == {"name": "Asha", "contact": "9876543210"}


def test_create_link_for_unknown_order(client):
    response = client.post("/payments/create_link", json={"orderId": "unknown1"})
    assert response.status_code == 404


def test_provider_error_is_relayed():
    services = build_services(
        make_settings(),
        store=InMemoryOrderStore(),
        link_service=MockPaymentLinkService(failure_rate=1.0),
    )
    with TestClient(create_app(services=services)) as client:
        response = client.post(
            "/payments/create_link",
            json={"amount": 150, "customer": {"name": "Asha", "phone": "9876543210"}},
        )

    assert response.status_code == 502
    assert response.json()["error"] == "razorpay_error"


def redirect_params(order_id, signature=None):
    return {
        "razorpay_payment_id": "pay_001",
        "razorpay_payment_link_id": "plink_001",
        "razorpay_signature": signature or sign(KEY_SECRET, "plink_001|pay_001"),
        "orderId": order_id,
    }


def test_payment_redirect_marks_paid(client):
    order_id = place_order(client)["order"]["id"]

    response = client.get("/payments/webhook", params=redirect_params(order_id))
    assert response.status_code == 200
    assert response.text == "OK"

    order = client.get(f"/orders/{order_id}").json()
    assert order["status"] == "paid"
    assert order["payment"]["providerRef"] == "pay_001"
    assert order["payment"]["verified"] is True

    # provider retries are acknowledged without changes
    assert client.get("/payments/webhook", params=redirect_params(order_id)).text == "OK"
    assert len(client.get(f"/orders/{order_id}").json()["history"]) == 1


def test_payment_redirect_bad_signature(client):
    order_id = place_order(client)["order"]["id"]

    response = client.get("/payments/webhook", params=redirect_params(order_id, signature="f" * 64))

    assert response.status_code == 400
    assert response.text == "Signature verification failed"
    assert client.get(f"/orders/{order_id}").json()["status"] == "pending_payment"


def test_payment_redirect_without_key_secret():
    services = build_services(
        make_settings(razorpay_key_secret=None),
        store=InMemoryOrderStore(),
        link_service=MockPaymentLinkService(),
    )
    with TestClient(create_app(services=services)) as client:
        response = client.get("/payments/webhook", params=redirect_params("any"))

    assert response.status_code == 500
    assert response.text == "Missing RAZORPAY_KEY_SECRET"


def test_razorpay_webhook(client):
    order_id = place_order(client)["order"]["id"]
    body = json.dumps({
        "event": "payment_link.paid",
        "payload": {
            "payment": {"entity": {"id": "pay_009", "notes": {"orderId": order_id}}},
            "payment_link": {"entity": {"id": "plink_009", "reference_id": order_id}},
        },
    }).encode("utf-8")

    response = client.post(
        "/payments/razorpay-webhook",
        content=body,
        headers={"x-razorpay-signature": sign(WEBHOOK_SECRET, body), "Content-Type": "application/json"},
    )

    assert response.text == "OK"
    order = client.get(f"/orders/{order_id}").json()
    assert order["status"] == "paid"
    assert order["payment"]["source"] == "webhook"


def test_razorpay_webhook_bad_signature(client):
    response = client.post(
        "/payments/razorpay-webhook",
        content=b'{"event": "payment.captured"}',
        headers={"x-razorpay-signature": "deadbeef"},
    )
    assert response.status_code == 400
    assert response.text == "Bad signature"


# =============================================================================
# ERRORS
# =============================================================================

class BrokenStore(InMemoryOrderStore):
    async def get(self, order_id):
        raise RuntimeError("disk on fire")


def test_unexpected_error_hides_internals():
    services = build_services(make_settings(), store=BrokenStore(), link_service=MockPaymentLinkService())
    with TestClient(create_app(services=services), raise_server_exceptions=False) as client:
        response = client.get("/orders/abc")

    assert response.status_code == 500
    assert response.json() == {"ok": False, "error": "server_error", "message": "An unexpected error occurred"}


def test_payment_redirect_non_ascii_signature(client):
    order_id = place_order(client)["order"]["id"]

    response = client.get("/payments/webhook", params=redirect_params(order_id, signature="é" * 64))

    assert response.status_code == 400
    assert response.text == "Signature verification failed"


def test_razorpay_webhook_non_ascii_signature(client):
    response = client.post(
        "/payments/razorpay-webhook",
        content=b'{"event": "payment.captured"}',
        headers={"x-razorpay-signature": b"\xe9abc"},
    )
    assert response.status_code == 400
    assert response.text == "Bad signature"


def test_non_finite_distance_is_rejected(client):
    assert client.get("/quote", params={"type": "daily", "qty": 1, "km": "nan"}).status_code == 400
    assert client.get("/delivery/fee", params={"km": "inf"}).status_code == 400
    assert client.get("/delivery/fee", params={"km": "nan"}).status_code == 400


def test_provider_failure_returns_stored_order_id():
    services = build_services(
        make_settings(),
        store=InMemoryOrderStore(),
        link_service=MockPaymentLinkService(failure_rate=1.0),
    )
    with TestClient(create_app(services=services)) as client:
        response = client.post(
            "/orders",
            json=dict(DAILY_ORDER, customer={"name": "Asha"}, paymentMethod="payment_link"),
        )
        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "razorpay_error"

        order_id = body["detail"]["orderId"]
        assert client.get(f"/orders/{order_id}").json()["status"] == "pending_payment"

        services.link_service.failure_rate = 0.0
        retry = client.post("/payments/create_link", json={"orderId": order_id})
        assert retry.status_code == 200
        assert services.link_service.links[order_id].amount == 220
