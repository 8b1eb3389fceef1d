from decimal import Decimal

import pytest
from pydantic import ValidationError

from conftest import seed
from logistics_hub.common.db_tables import customers, shipments
from logistics_hub.customers.schemas import CustomerIn
from logistics_hub.customers.service import (
    create_customer,
    credit_status,
    delete_customer,
    get_customer,
    list_customer_names,
    list_customers,
    update_customer,
)
from logistics_hub.errors import NotFoundError


@pytest.mark.parametrize(
    ("used", "limit", "expected"),
    [
        (0, 1000, "good"),
        (799, 1000, "good"),
        (800, 1000, "warning"),
        (1000, 1000, "exceeded"),
        (1500, 1000, "exceeded"),
        (0, 0, "good"),
        (10, 0, "exceeded"),
        (None, None, "good"),
    ],
)
def test_credit_status_thresholds(used, limit, expected):
    assert credit_status(used, limit) == expected


def test_customer_payload_normalises_optional_fields():
    payload = CustomerIn(
        name="  Acme Trading ",
        email="",
        phone="   ",
        city="Makati",
        credit_limit="not-a-number",
        unknown_field="ignored",
    )

    assert payload.name == "Acme Trading"
    assert payload.email is None
    assert payload.phone is None
    assert payload.city == "Makati"
    assert payload.credit_limit == Decimal("0")
    assert "unknown_field" not in payload.to_row()


def test_customer_payload_rejects_short_name_and_bad_email():
    with pytest.raises(ValidationError):
        CustomerIn(name="Ab")
    with pytest.raises(ValidationError):
        CustomerIn(name="Acme Trading", email="not-an-email")


def test_customer_payload_keeps_numeric_credit_limit():
    payload = CustomerIn(name="Acme Trading", email="ops@acme.example", credit_limit="2500.50")

    row = payload.to_row()
    assert row["credit_limit"] == Decimal("2500.50")
    assert row["email"] == "ops@acme.example"


@pytest.mark.asyncio
async def test_list_customers_enriches_rows(database_url):
    seed(
        database_url,
        customers,
        [
            {"id": "c-2", "name": "Zenith Foods", "city": "Cebu", "state": "Central Visayas",
             "credit_limit": 1000, "credit_used": 850},
            {"id": "c-1", "name": "Acme Trading", "credit_limit": 0, "credit_used": 0},
        ],
    )
    seed(
        database_url,
        shipments,
        [
            {"tracking_id": "TRK-001", "customer_id": "c-2", "origin": "Manila", "destination": "Cebu",
             "status": "in-transit"},
            {"tracking_id": "TRK-002", "customer_id": "c-2", "origin": "Manila", "destination": "Davao",
             "status": None},
            {"tracking_id": "TRK-003", "customer_id": "c-2", "origin": "Manila", "destination": "Iloilo",
             "status": "delivered"},
        ],
    )

    rows = await list_customers(database_url)

    assert [row["name"] for row in rows] == ["Acme Trading", "Zenith Foods"]
    acme, zenith = rows
    assert acme["location"] == ", "
    assert acme["active_shipments"] == 0
    assert acme["credit_status"] == "good"
    assert zenith["location"] == "Cebu, Central Visayas"
    assert zenith["active_shipments"] == 2
    assert zenith["credit_status"] == "warning"


@pytest.mark.asyncio
async def test_customer_crud_round(database_url):
    created = await create_customer(
        database_url, CustomerIn(name="Harbor Supplies", email="ap@harbor.example", credit_limit="5000")
    )
    assert created["id"]
    assert Decimal(str(created["credit_used"])) == Decimal("0")

    updated = await update_customer(
        database_url, created["id"], CustomerIn(name="Harbor Supplies Inc", credit_limit="7500")
    )
    assert updated["name"] == "Harbor Supplies Inc"
    assert updated["updated_at"] is not None

    names = await list_customer_names(database_url)
    assert names == [{"id": created["id"], "name": "Harbor Supplies Inc"}]

    await delete_customer(database_url, created["id"])
    with pytest.raises(NotFoundError):
        await get_customer(database_url, created["id"])


@pytest.mark.asyncio
async def test_missing_customer_raises_not_found(database_url):
    with pytest.raises(NotFoundError):
        await update_customer(database_url, "missing", CustomerIn(name="Nobody Here"))
    with pytest.raises(NotFoundError):
        await delete_customer(database_url, "missing")
