from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, List

import sqlalchemy as sa

from logistics_hub.common.date_utils import utcnow
from logistics_hub.common.db import session_scope
from logistics_hub.common.db_tables import customers, shipments
from logistics_hub.common.json_logger import JsonLogger, log_event
from logistics_hub.errors import NotFoundError, VendorError
from logistics_hub.integrations.lalamove import CourierClient, TrackingResult, normalize_tracking

from .eta import format_shipping_eta
from .schemas import ShipmentIn

DEFAULT_ETA = timedelta(days=7)
UNKNOWN_CUSTOMER = "Unknown Customer"

COURIER_STATUS_MAP: Dict[str, str] = {
    "ASSIGNING_DRIVER": "in-transit",
    "ON_GOING": "in-transit",
    "PICKED_UP": "in-transit",
    "COMPLETED": "delivered",
    "CANCELED": "failed",
    "REJECTED": "failed",
    "EXPIRED": "failed",
}


def map_courier_status(courier_status: str | None, current: str | None) -> str | None:
    if not courier_status:
        return current
    return COURIER_STATUS_MAP.get(courier_status.upper(), current)


def _listing_query() -> sa.Select:
    return (
        sa.select(
            shipments,
            customers.c.name.label("customer_name"),
        )
        .select_from(shipments.outerjoin(customers, shipments.c.customer_id == customers.c.id))
        .order_by(shipments.c.created_at.desc())
    )


def _format_row(row: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    record = dict(row)
    record["status"] = record.get("status") or "processing"
    record["customer_name"] = record.get("customer_name") or UNKNOWN_CUSTOMER
    record["eta_display"] = format_shipping_eta(record.get("eta"), now)
    return record


async def list_shipments(database_url: str, *, now: datetime | None = None) -> List[Dict[str, Any]]:
    now = now or utcnow()
    async with session_scope(database_url) as session:
        rows = (await session.execute(_listing_query())).mappings().all()
    return [_format_row(row, now) for row in rows]


async def get_shipment(database_url: str, shipment_id: str) -> Dict[str, Any]:
    async with session_scope(database_url) as session:
        row = (
            await session.execute(_listing_query().where(shipments.c.id == shipment_id))
        ).mappings().first()
    if row is None:
        raise NotFoundError("shipment", shipment_id)
    return _format_row(row, utcnow())


async def create_shipment(database_url: str, payload: ShipmentIn) -> Dict[str, Any]:
    values = payload.model_dump()
    if values.get("eta") is None:
        values["eta"] = utcnow() + DEFAULT_ETA
    async with session_scope(database_url) as session:
        known = (
            await session.execute(sa.select(customers.c.id).where(customers.c.id == payload.customer_id))
        ).scalar_one_or_none()
        if known is None:
            raise NotFoundError("customer", payload.customer_id)
        result = await session.execute(shipments.insert().values(**values))
        shipment_id = result.inserted_primary_key[0]
        await session.commit()
    return await get_shipment(database_url, shipment_id)


async def update_shipment(database_url: str, shipment_id: str, payload: ShipmentIn) -> Dict[str, Any]:
    values = payload.model_dump(exclude_none=True)
    async with session_scope(database_url) as session:
        result = await session.execute(
            shipments.update()
            .where(shipments.c.id == shipment_id)
            .values(**values, updated_at=utcnow())
        )
        if result.rowcount == 0:
            raise NotFoundError("shipment", shipment_id)
        await session.commit()
    return await get_shipment(database_url, shipment_id)


async def delete_shipment(database_url: str, shipment_id: str) -> None:
    async with session_scope(database_url) as session:
        result = await session.execute(shipments.delete().where(shipments.c.id == shipment_id))
        if result.rowcount == 0:
            raise NotFoundError("shipment", shipment_id)
        await session.commit()


async def track_shipment(
    database_url: str,
    tracking_id: str,
    courier: CourierClient,
    *,
    logger: JsonLogger | None = None,
) -> TrackingResult:
    """Pull the courier's view of a shipment and store it on the row."""

    async with session_scope(database_url) as session:
        row = (
            await session.execute(sa.select(shipments).where(shipments.c.tracking_id == tracking_id))
        ).mappings().first()
    if row is None:
        raise NotFoundError("shipment", tracking_id)

    order_id = row["courier_order_id"] or tracking_id
    order = await courier.get_order(order_id)
    if not order.ok:
        raise VendorError(f"courier order lookup failed with status {order.status_code}")

    driver_payload = None
    driver_id = order.data.get("driverId")
    if driver_id:
        driver = await courier.get_driver(order_id, str(driver_id))
        if driver.ok:
            driver_payload = driver.payload

    result = normalize_tracking(order.payload, driver_payload)
    new_status = map_courier_status(result.status, row["status"])
    values: Dict[str, Any] = {
        "courier_status": result.status,
        "status": new_status,
        "last_tracked_at": utcnow(),
        "updated_at": utcnow(),
    }
    if result.driver_info:
        values["driver_name"] = result.driver_info.get("name")
        values["driver_phone"] = result.driver_info.get("phone")
    if result.location:
        values["last_lat"] = result.location["lat"]
        values["last_lng"] = result.location["lng"]

    async with session_scope(database_url) as session:
        await session.execute(
            shipments.update().where(shipments.c.id == row["id"]).values(**values)
        )
        await session.commit()

    if logger is not None:
        log_event(
            logger=logger,
            phase="shipments.track",
            message="tracking updated",
            tracking_id=tracking_id,
            courier_status=result.status,
            shipment_status=new_status,
        )
    return result


async def dashboard_metrics(database_url: str) -> Dict[str, Any]:
    status = sa.func.coalesce(shipments.c.status, "processing")
    async with session_scope(database_url) as session:
        counts = {
            key: int(total)
            for key, total in (
                await session.execute(sa.select(status, sa.func.count()).group_by(status))
            ).all()
        }
        over_limit = (
            await session.execute(
                sa.select(sa.func.count())
                .select_from(customers)
                .where(customers.c.credit_used >= customers.c.credit_limit)
                .where(customers.c.credit_used > 0)
            )
        ).scalar_one()

    delivered = counts.get("delivered", 0)
    failed = counts.get("failed", 0)
    closed = delivered + failed
    performance = round(delivered / closed * 100, 1) if closed else None
    return {
        "active_shipments": counts.get("processing", 0) + counts.get("in-transit", 0),
        "processing": counts.get("processing", 0),
        "in_transit": counts.get("in-transit", 0),
        "delivered": delivered,
        "failed": failed,
        "delivery_performance": performance,
        "customers_over_limit": int(over_limit),
    }


async def map_features(database_url: str) -> Dict[str, Any]:
    """GeoJSON feed of shipments whose courier reported a location."""

    async with session_scope(database_url) as session:
        rows = (
            await session.execute(
                sa.select(
                    shipments.c.tracking_id,
                    shipments.c.status,
                    shipments.c.driver_name,
                    shipments.c.last_lat,
                    shipments.c.last_lng,
                    shipments.c.last_tracked_at,
                )
                .where(shipments.c.last_lat.is_not(None))
                .where(shipments.c.last_lng.is_not(None))
                .order_by(shipments.c.tracking_id)
            )
        ).mappings().all()

    features = [
        {
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [row["last_lng"], row["last_lat"]]},
            "properties": {
                "tracking_id": row["tracking_id"],
                "status": row["status"] or "processing",
                "driver_name": row["driver_name"],
                "last_tracked_at": row["last_tracked_at"].isoformat() if row["last_tracked_at"] else None,
            },
        }
        for row in rows
    ]
    return {"type": "FeatureCollection", "features": features}
