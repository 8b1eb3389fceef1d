from __future__ import annotations

import time
from pathlib import PurePath
from typing import Any, Callable, Dict, List

import sqlalchemy as sa

from logistics_hub.common.db import session_scope
from logistics_hub.common.db_tables import delivery_proofs, profiles

from .storage import BUCKET, LocalObjectStorage


def _extension(filename: str) -> str:
    suffix = PurePath(filename).suffix.lstrip(".")
    return suffix.lower() or "bin"


def object_name(tracking_id: str, filename: str, epoch_ms: int) -> str:
    return f"{tracking_id}-{epoch_ms}.{_extension(filename)}"


async def submit_proof(
    database_url: str,
    storage: LocalObjectStorage,
    *,
    tracking_id: str,
    filename: str,
    data: bytes,
    user_id: str | None,
    notes: str | None = None,
    clock: Callable[[], float] = time.time,
) -> Dict[str, Any]:
    tracking_id = (tracking_id or "").strip()
    if not tracking_id:
        raise ValueError("tracking id is required")
    if not data:
        raise ValueError("proof image is required")

    name = object_name(tracking_id, filename or "", int(clock() * 1000))
    storage.upload(BUCKET, name, data)
    image_url = storage.public_url(BUCKET, name)

    try:
        async with session_scope(database_url) as session:
            result = await session.execute(
                delivery_proofs.insert().values(
                    tracking_id=tracking_id,
                    image_url=image_url,
                    storage_path=f"{BUCKET}/{name}",
                    user_id=user_id,
                    notes=(notes or "").strip() or None,
                )
            )
            proof_id = result.inserted_primary_key[0]
            await session.commit()
            row = (
                await session.execute(sa.select(delivery_proofs).where(delivery_proofs.c.id == proof_id))
            ).mappings().one()
    except Exception:
        # No metadata row, no orphaned object.
        storage.remove(BUCKET, name)
        raise
    return dict(row)


async def list_proofs(database_url: str, *, search: str | None = None) -> List[Dict[str, Any]]:
    query = (
        sa.select(delivery_proofs, profiles.c.email.label("user_email"))
        .select_from(delivery_proofs.outerjoin(profiles, delivery_proofs.c.user_id == profiles.c.id))
        .order_by(delivery_proofs.c.created_at.desc())
    )
    term = (search or "").strip().lower()
    if term:
        pattern = f"%{term}%"
        query = query.where(
            sa.or_(
                sa.func.lower(delivery_proofs.c.tracking_id).like(pattern),
                sa.func.lower(sa.func.coalesce(profiles.c.email, "")).like(pattern),
            )
        )
    async with session_scope(database_url) as session:
        rows = (await session.execute(query)).mappings().all()
    return [dict(row) for row in rows]
