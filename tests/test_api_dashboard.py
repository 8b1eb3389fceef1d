import hashlib
import hmac
import json

import pytest
from fastapi.testclient import TestClient

from conftest import auth_headers, fetch_all, seed
from logistics_hub.api.app import create_app
from logistics_hub.cache import clear_caches
from logistics_hub.common.db_tables import (
    customers,
    delivery_proofs,
    documents,
    payment_transactions,
    shipments,
    user_roles,
)

ADMIN_ID = "u-admin"
USER_ID = "u-driver"


@pytest.fixture(autouse=True)
def _empty_caches():
    clear_caches()
    yield
    clear_caches()


@pytest.fixture
def client(config, logger, vendor):
    seed(
        config.database_url,
        user_roles,
        [{"user_id": ADMIN_ID, "role": "admin"}, {"user_id": USER_ID, "role": "user"}],
    )
    with TestClient(create_app(config, logger=logger, vendor_transport=vendor.transport)) as test_client:
        yield test_client


def _admin():
    return auth_headers(ADMIN_ID, email="admin@hub.example")


def _user():
    return auth_headers(USER_ID, email="driver@hub.example")


def _signed(body: bytes, secret: str = "whsk_test_secret") -> str:
    signature = hmac.new(secret.encode(), b"1700000000." + body, hashlib.sha256).hexdigest()
    return f"t=1700000000,te={signature},li="


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok", "env": "dev"}


def test_me_reports_role_and_home(client):
    assert client.get("/api/me", headers=_user()).json() == {
        "id": USER_ID,
        "email": "driver@hub.example",
        "role": "user",
        "home": "/user-dashboard",
    }


def test_admin_route_redirects_regular_user(client):
    response = client.get("/api/customers", headers=_user())

    assert response.status_code == 403
    assert response.json() == {"error": "Insufficient role", "redirect_to": "/user-dashboard"}


def test_customer_lifecycle(client, config):
    created = client.post(
        "/api/customers",
        json={"name": "Acme Trading", "email": "ap@acme.example", "city": "Makati", "state": "NCR", "credit_limit": "1000"},
        headers=_admin(),
    )
    assert created.status_code == 201
    customer_id = created.json()["id"]

    listing = client.get("/api/customers", headers=_admin()).json()
    assert listing[0]["location"] == "Makati, NCR"
    assert listing[0]["credit_status"] == "good"

    names = client.get("/api/customers/names", headers=_user()).json()
    assert names == [{"id": customer_id, "name": "Acme Trading"}]

    assert client.put(f"/api/customers/{customer_id}", json={"name": "Ac"}, headers=_admin()).status_code == 422
    assert client.delete(f"/api/customers/{customer_id}", headers=_admin()).status_code == 204
    missing = client.get(f"/api/customers/{customer_id}", headers=_admin())
    assert missing.status_code == 404
    assert fetch_all(config.database_url, customers) == []


def test_shipment_create_and_list(client, config):
    seed(config.database_url, customers, [{"id": "c-1", "name": "Acme Trading"}])

    created = client.post(
        "/api/shipments",
        json={"tracking_id": "TRK-1", "customer_id": "c-1", "origin": "Manila", "destination": "Cebu"},
        headers=_admin(),
    )
    assert created.status_code == 201
    assert client.post(
        "/api/shipments",
        json={"tracking_id": "TRK-2", "customer_id": "c-1", "origin": "Manila", "destination": "Cebu"},
        headers=_user(),
    ).status_code == 403

    (row,) = client.get("/api/shipments", headers=_user()).json()
    assert row["customer_name"] == "Acme Trading"
    assert row["status"] == "processing"

    metrics = client.get("/api/dashboard/metrics", headers=_admin()).json()
    assert metrics["active_shipments"] == 1


def test_shipment_conflicts_and_unknown_customer(client, config):
    seed(config.database_url, customers, [{"id": "c-1", "name": "Acme Trading"}])
    body = {"tracking_id": "TRK-1", "customer_id": "c-1", "origin": "Manila", "destination": "Cebu"}

    assert client.post("/api/shipments", json=body, headers=_admin()).status_code == 201
    duplicate = client.post("/api/shipments", json=body, headers=_admin())
    orphan = client.post(
        "/api/shipments", json={**body, "tracking_id": "TRK-2", "customer_id": "c-missing"}, headers=_admin()
    )

    assert duplicate.status_code == 409
    assert duplicate.json() == {"error": "Conflicts with an existing record"}
    assert orphan.status_code == 404
    assert orphan.json() == {"error": "customer not found: c-missing"}
    assert [row["tracking_id"] for row in fetch_all(config.database_url, shipments)] == ["TRK-1"]


def test_track_endpoint_returns_normalised_view(client, config, vendor):
    seed(
        config.database_url,
        customers,
        [{"id": "c-1", "name": "Acme Trading"}],
    )
    client.post(
        "/api/shipments",
        json={"tracking_id": "TRK-5", "customer_id": "c-1", "origin": "Manila", "destination": "Cebu",
              "courier_order_id": "ORD-5"},
        headers=_admin(),
    )
    vendor.add("GET", "/v3/orders/ORD-5", json={"data": {"status": "COMPLETED", "stops": [{"address": "Cebu"}]}})

    response = client.post("/api/shipments/TRK-5/track", headers=_user())

    assert response.status_code == 200
    assert response.json()["status"] == "COMPLETED"
    assert response.json()["description"] == "Cebu"
    (row,) = client.get("/api/shipments", headers=_user()).json()
    assert row["status"] == "delivered"


def test_proof_upload_and_search(client, config):
    response = client.post(
        "/api/proofs",
        data={"tracking_id": "TRK-42", "notes": "front desk"},
        files={"image": ("door.jpg", b"jpeg-bytes", "image/jpeg")},
        headers=_user(),
    )

    assert response.status_code == 201
    proof = response.json()
    assert proof["user_id"] == USER_ID
    assert proof["image_url"].startswith("https://cdn.example.test/storage/v1/object/public/delivery-proofs/TRK-42-")
    assert client.get("/api/proofs", headers=_user()).status_code == 403
    found = client.get("/api/proofs", params={"search": "trk-42"}, headers=_admin()).json()
    assert [row["tracking_id"] for row in found] == ["TRK-42"]
    assert len(fetch_all(config.database_url, delivery_proofs)) == 1


def test_customer_payment_starts_intent(client, config, vendor):
    seed(config.database_url, customers, [{"id": "c-1", "name": "Acme Trading"}])
    vendor.add(
        "POST",
        "/v1/payment_intents",
        json={"data": {"id": "pi_500", "attributes": {"client_key": "pi_500_client", "status": "awaiting_payment_method"}}},
    )

    response = client.post("/api/customers/c-1/payments", json={"amount": "250.00"}, headers=_admin())

    assert response.status_code == 201
    assert response.json()["payment_intent_id"] == "pi_500"
    assert client.post("/api/customers/c-1/payments", json={"amount": "0"}, headers=_admin()).status_code == 422


def test_return_page_credits_once(client, config, vendor):
    seed(config.database_url, customers, [{"id": "c-1", "name": "Acme Trading", "credit_used": 1000}])
    seed(
        config.database_url,
        payment_transactions,
        [{"customer_id": "c-1", "payment_intent_id": "pi_88", "amount": 400, "status": "pending"}],
    )
    vendor.add("GET", "/v1/payment_intents/pi_88", json={"data": {"id": "pi_88", "attributes": {"status": "succeeded"}}})

    first = client.get("/payments/return", params={"payment_intent_id": "pi_88"})
    second = client.get("/payments/return", params={"payment_intent_id": "pi_88"})

    assert first.status_code == second.status_code == 200
    assert 'data-state="completed"' in first.text
    assert 'data-state="completed"' in second.text
    (customer,) = fetch_all(config.database_url, customers)
    assert float(customer["credit_used"]) == 600.0
    assert len(vendor.calls("GET", "/v1/payment_intents/pi_88")) == 1


def test_return_page_without_or_with_unknown_intent(client):
    assert client.get("/payments/return").status_code == 400
    missing = client.get("/payments/return", params={"payment_intent_id": "pi_nope"})
    assert missing.status_code == 404
    assert 'data-state="unknown"' in missing.text


def test_webhook_rejects_bad_signature(client, vendor):
    body = json.dumps({"data": {"attributes": {"data": {"id": "pi_88"}}}}).encode()

    response = client.post(
        "/payments/webhook", content=body, headers={"Paymongo-Signature": _signed(body, secret="wrong")}
    )

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid signature"}
    assert vendor.requests == []


def test_webhook_reconciles_payment(client, config, vendor):
    seed(config.database_url, customers, [{"id": "c-1", "name": "Acme Trading", "credit_used": 1000}])
    seed(
        config.database_url,
        payment_transactions,
        [{"customer_id": "c-1", "payment_intent_id": "pi_88", "amount": 400, "status": "pending"}],
    )
    vendor.add("GET", "/v1/payment_intents/pi_88", json={"data": {"id": "pi_88", "attributes": {"status": "succeeded"}}})
    body = json.dumps(
        {"data": {"attributes": {"type": "payment.paid", "data": {"id": "pay_1", "attributes": {"payment_intent_id": "pi_88"}}}}}
    ).encode()

    first = client.post("/payments/webhook", content=body, headers={"Paymongo-Signature": _signed(body)})
    replay = client.post("/payments/webhook", content=body, headers={"Paymongo-Signature": _signed(body)})

    assert first.json()["result"] == "credited"
    assert replay.json()["result"] == "already_reconciled"
    (customer,) = fetch_all(config.database_url, customers)
    assert float(customer["credit_used"]) == 600.0


def test_webhook_for_untracked_intent_is_ignored(client, vendor):
    body = json.dumps({"data": {"attributes": {"data": {"id": "pi_elsewhere"}}}}).encode()

    response = client.post("/payments/webhook", content=body, headers={"Paymongo-Signature": _signed(body)})

    assert response.status_code == 200
    assert response.json() == {"received": True, "result": "ignored"}


def test_transactions_page(client, vendor):
    vendor.add(
        "GET",
        "/v1/payments",
        json={"data": [{"id": "pay_1", "attributes": {"amount": 10000, "status": "paid"}}], "has_more": False},
    )

    response = client.get("/api/payments/transactions", headers=_admin())

    assert response.status_code == 200
    payload = response.json()
    assert payload["rows"][0]["amount"] == "100.00"
    assert payload["pages"] == [1]


def test_report_download(client, config):
    response = client.get("/api/reports/customers.pdf", headers=_admin())

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")
    (document,) = fetch_all(config.database_url, documents)
    assert document["created_by"] == ADMIN_ID
    assert client.get("/api/reports/invoices.pdf", headers=_admin()).status_code == 404


def test_cache_clear(client):
    response = client.post("/api/cache/clear", headers=_admin())

    assert response.json() == {"cleared": ["transaction_pages", "vendor_payment_pages"]}
