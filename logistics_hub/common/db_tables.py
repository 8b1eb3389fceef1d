from __future__ import annotations

import uuid

import sqlalchemy as sa

from logistics_hub.common.date_utils import utcnow

metadata = sa.MetaData()


def _uuid() -> str:
    return str(uuid.uuid4())


def _id_column() -> sa.Column:
    return sa.Column("id", sa.String(length=36), primary_key=True, default=_uuid)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, default=utcnow)


def _updated_at() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True)


BigIntId = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


profiles = sa.Table(
    "profiles",
    metadata,
    sa.Column("id", sa.String(length=36), primary_key=True),
    sa.Column("email", sa.Text()),
    _created_at(),
)


user_roles = sa.Table(
    "user_roles",
    metadata,
    _id_column(),
    sa.Column("user_id", sa.String(length=36), nullable=False, unique=True),
    sa.Column("role", sa.String(length=16), nullable=False),
)


customers = sa.Table(
    "customers",
    metadata,
    _id_column(),
    sa.Column("name", sa.Text(), nullable=False),
    sa.Column("email", sa.Text()),
    sa.Column("phone", sa.Text()),
    sa.Column("address", sa.Text()),
    sa.Column("city", sa.Text()),
    sa.Column("state", sa.Text()),
    sa.Column("country", sa.Text()),
    sa.Column("zip", sa.Text()),
    sa.Column("credit_limit", sa.Numeric(14, 2), nullable=False, default=0),
    sa.Column("credit_used", sa.Numeric(14, 2), nullable=False, default=0),
    _created_at(),
    _updated_at(),
)


shipments = sa.Table(
    "shipments",
    metadata,
    _id_column(),
    sa.Column("tracking_id", sa.String(length=64), nullable=False, unique=True),
    sa.Column(
        "customer_id",
        sa.String(length=36),
        sa.ForeignKey("customers.id", ondelete="SET NULL"),
        nullable=True,
    ),
    sa.Column("origin", sa.Text(), nullable=False),
    sa.Column("destination", sa.Text(), nullable=False),
    sa.Column("status", sa.String(length=16), nullable=True),
    sa.Column("eta", sa.DateTime(timezone=True), nullable=True),
    sa.Column("courier_order_id", sa.String(length=64)),
    sa.Column("courier_status", sa.String(length=32)),
    sa.Column("driver_name", sa.Text()),
    sa.Column("driver_phone", sa.Text()),
    sa.Column("last_lat", sa.Float()),
    sa.Column("last_lng", sa.Float()),
    sa.Column("last_tracked_at", sa.DateTime(timezone=True)),
    _created_at(),
    _updated_at(),
)


delivery_proofs = sa.Table(
    "delivery_proofs",
    metadata,
    _id_column(),
    sa.Column("tracking_id", sa.String(length=64), nullable=False),
    sa.Column("image_url", sa.Text(), nullable=False),
    sa.Column("storage_path", sa.Text(), nullable=False),
    sa.Column("user_id", sa.String(length=36), nullable=True),
    sa.Column("notes", sa.Text()),
    sa.Column("status", sa.String(length=16), nullable=False, default="submitted"),
    _created_at(),
)


payment_transactions = sa.Table(
    "payment_transactions",
    metadata,
    _id_column(),
    sa.Column(
        "customer_id",
        sa.String(length=36),
        sa.ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
    ),
    sa.Column("payment_intent_id", sa.String(length=64), nullable=False, unique=True),
    sa.Column("amount", sa.Numeric(14, 2), nullable=False),
    sa.Column("currency", sa.String(length=3), nullable=False, default="PHP"),
    sa.Column("status", sa.String(length=16), nullable=False, default="pending"),
    sa.Column("description", sa.Text()),
    sa.Column("payment_method_id", sa.String(length=64)),
    sa.Column("failure_reason", sa.Text()),
    sa.Column("credited_at", sa.DateTime(timezone=True)),
    _created_at(),
    _updated_at(),
)


documents = sa.Table(
    "documents",
    metadata,
    sa.Column("id", BigIntId, primary_key=True, autoincrement=True),
    sa.Column("doc_type", sa.String(length=50), nullable=False),
    sa.Column("doc_date", sa.Date()),
    sa.Column("file_name", sa.Text(), nullable=False),
    sa.Column("mime_type", sa.String(length=100)),
    sa.Column("file_size_bytes", sa.BigInteger()),
    sa.Column("file_path", sa.Text()),
    _created_at(),
    sa.Column("created_by", sa.String(length=64)),
)
