from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List

import sqlalchemy as sa

from logistics_hub.common.date_utils import utcnow
from logistics_hub.common.db import session_scope
from logistics_hub.common.db_tables import customers, shipments
from logistics_hub.errors import NotFoundError

from .schemas import CustomerIn

WARNING_THRESHOLD = 80
EXCEEDED_THRESHOLD = 100
CLOSED_SHIPMENT_STATUSES = ("delivered", "failed")


def credit_status(credit_used: Decimal | float | int | None, credit_limit: Decimal | float | int | None) -> str:
    """Classify a customer's credit usage as ``good``, ``warning`` or ``exceeded``."""

    used = Decimal(str(credit_used or 0))
    limit = Decimal(str(credit_limit or 0))
    if limit <= 0:
        return "exceeded" if used > 0 else "good"
    percentage = used / limit * 100
    if percentage >= EXCEEDED_THRESHOLD:
        return "exceeded"
    if percentage >= WARNING_THRESHOLD:
        return "warning"
    return "good"


def _location(row: Dict[str, Any]) -> str:
    return f"{row.get('city') or ''}, {row.get('state') or ''}"


def _active_shipments_query() -> sa.Select:
    return (
        sa.select(shipments.c.customer_id, sa.func.count().label("active"))
        .where(
            sa.or_(
                shipments.c.status.is_(None),
                shipments.c.status.notin_(CLOSED_SHIPMENT_STATUSES),
            )
        )
        .group_by(shipments.c.customer_id)
    )


async def list_customers(database_url: str) -> List[Dict[str, Any]]:
    async with session_scope(database_url) as session:
        rows = (await session.execute(sa.select(customers).order_by(customers.c.name))).mappings().all()
        counts = {
            customer_id: active
            for customer_id, active in (await session.execute(_active_shipments_query())).all()
        }

    enriched: List[Dict[str, Any]] = []
    for row in rows:
        record = dict(row)
        record["location"] = _location(record)
        record["active_shipments"] = int(counts.get(record["id"], 0))
        record["credit_status"] = credit_status(record["credit_used"], record["credit_limit"])
        enriched.append(record)
    return enriched


async def get_customer(database_url: str, customer_id: str) -> Dict[str, Any]:
    async with session_scope(database_url) as session:
        row = (
            await session.execute(sa.select(customers).where(customers.c.id == customer_id))
        ).mappings().first()
    if row is None:
        raise NotFoundError("customer", customer_id)
    return dict(row)


async def create_customer(database_url: str, payload: CustomerIn) -> Dict[str, Any]:
    async with session_scope(database_url) as session:
        result = await session.execute(
            customers.insert().values(**payload.to_row(), credit_used=Decimal("0"))
        )
        customer_id = result.inserted_primary_key[0]
        await session.commit()
    return await get_customer(database_url, customer_id)


async def update_customer(database_url: str, customer_id: str, payload: CustomerIn) -> Dict[str, Any]:
    async with session_scope(database_url) as session:
        result = await session.execute(
            customers.update()
            .where(customers.c.id == customer_id)
            .values(**payload.to_row(), updated_at=utcnow())
        )
        if result.rowcount == 0:
            raise NotFoundError("customer", customer_id)
        await session.commit()
    return await get_customer(database_url, customer_id)


async def delete_customer(database_url: str, customer_id: str) -> None:
    async with session_scope(database_url) as session:
        result = await session.execute(customers.delete().where(customers.c.id == customer_id))
        if result.rowcount == 0:
            raise NotFoundError("customer", customer_id)
        await session.commit()


async def list_customer_names(database_url: str) -> List[Dict[str, Any]]:
    async with session_scope(database_url) as session:
        rows = (
            await session.execute(sa.select(customers.c.id, customers.c.name).order_by(customers.c.name))
        ).mappings().all()
    return [dict(row) for row in rows]
