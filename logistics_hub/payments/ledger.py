"""
Payment reconciliation against ``customers.credit_used``.

A customer payment moves through ``pending`` → ``completed`` | ``failed``.
A failed attempt is not final: the intent returns to
``awaiting_payment_method`` and the customer may pay with another method,
so ``failed`` can still move to ``completed``.
Outcomes arrive from several places (the return-URL redirect, the vendor
webhook, an operator running ``reconcile``), often more than once and
sometimes concurrently. The ledger stays correct because:

- the ``payment_transactions`` row is keyed by the vendor intent id, and
- the status change is a compare-and-set on the source status
  (``pending`` for failures, ``pending`` or ``failed`` for completion)
  executed in the same database transaction as the credit adjustment.

Only the single caller whose update matched a row credits the customer;
everyone else observes ``already_reconciled``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Mapping

import sqlalchemy as sa

from logistics_hub.common.date_utils import utcnow
from logistics_hub.common.db import session_scope
from logistics_hub.common.db_tables import customers, payment_transactions
from logistics_hub.common.json_logger import JsonLogger, log_event
from logistics_hub.errors import NotFoundError, VendorError
from logistics_hub.integrations.base import VendorResponse
from logistics_hub.integrations.paymongo import CURRENCY, PaymentGatewayClient

PENDING = "pending"
COMPLETED = "completed"
FAILED = "failed"

CREDITED = "credited"
UPDATED = "updated"
STILL_PENDING = "pending"
ALREADY_RECONCILED = "already_reconciled"

OPEN_STATUSES = (PENDING, FAILED)


@dataclass(frozen=True)
class PaymentStart:
    payment_intent_id: str
    client_key: str | None
    status: str
    amount: Decimal
    customer_id: str
    return_url: str | None = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "payment_intent_id": self.payment_intent_id,
            "client_key": self.client_key,
            "status": self.status,
            "amount": str(self.amount),
            "customer_id": self.customer_id,
            "return_url": self.return_url,
        }


@dataclass(frozen=True)
class ReconcileResult:
    payment_intent_id: str
    outcome: str
    result: str
    customer_id: str | None = None
    amount: Decimal | None = None

    @property
    def credited(self) -> bool:
        return self.result == CREDITED

    def as_dict(self) -> Dict[str, Any]:
        return {
            "payment_intent_id": self.payment_intent_id,
            "outcome": self.outcome,
            "result": self.result,
            "customer_id": self.customer_id,
            "amount": str(self.amount) if self.amount is not None else None,
        }


def _intent_attributes(intent_payload: Mapping[str, Any]) -> Mapping[str, Any]:
    intent = intent_payload.get("data", intent_payload)
    if not isinstance(intent, Mapping):
        return {}
    attributes = intent.get("attributes", intent)
    return attributes if isinstance(attributes, Mapping) else {}


def intent_outcome(intent_payload: Mapping[str, Any]) -> str:
    attributes = _intent_attributes(intent_payload)
    status = attributes.get("status")
    if status == "succeeded":
        return COMPLETED
    if status == "awaiting_payment_method" and attributes.get("last_payment_error"):
        return FAILED
    return PENDING


def _failure_reason(intent_payload: Mapping[str, Any]) -> str | None:
    error = _intent_attributes(intent_payload).get("last_payment_error")
    if not error:
        return None
    if isinstance(error, Mapping):
        return str(error.get("failed_message") or error.get("failed_code") or error)
    return str(error)


def _vendor_error_detail(response: VendorResponse) -> str:
    errors = response.payload.get("errors")
    if isinstance(errors, list) and errors and isinstance(errors[0], Mapping):
        detail = errors[0].get("detail")
        if detail:
            return str(detail)
    return f"vendor returned status {response.status_code}"


async def record_pending_transaction(
    database_url: str,
    *,
    customer_id: str,
    intent_id: str,
    amount: Decimal,
    description: str | None,
) -> None:
    async with session_scope(database_url) as session:
        await session.execute(
            payment_transactions.insert().values(
                customer_id=customer_id,
                payment_intent_id=intent_id,
                amount=amount,
                currency=CURRENCY,
                status=PENDING,
                description=description,
            )
        )
        await session.commit()


async def customer_name(database_url: str, customer_id: str) -> str:
    async with session_scope(database_url) as session:
        name = (
            await session.execute(sa.select(customers.c.name).where(customers.c.id == customer_id))
        ).scalar_one_or_none()
    if name is None:
        raise NotFoundError("customer", customer_id)
    return name


async def start_customer_payment(
    database_url: str,
    client: PaymentGatewayClient,
    *,
    customer_id: str,
    amount: Decimal,
    return_url: str | None = None,
    logger: JsonLogger | None = None,
) -> PaymentStart:
    name = await customer_name(database_url, customer_id)
    description = f"Payment from {name}"
    response = await client.create_payment_intent(
        amount=amount, description=description, metadata={"customer_id": customer_id}
    )
    if not response.ok:
        raise VendorError(_vendor_error_detail(response))

    intent = response.data
    intent_id = intent.get("id")
    if not intent_id:
        raise VendorError("payment intent response carried no id")
    attributes = intent.get("attributes") or {}

    await record_pending_transaction(
        database_url,
        customer_id=customer_id,
        intent_id=intent_id,
        amount=amount,
        description=description,
    )

    if logger is not None:
        log_event(
            logger=logger,
            phase="payments.start",
            message="payment intent created",
            customer_id=customer_id,
            payment_intent_id=intent_id,
            amount=str(amount),
        )
    return PaymentStart(
        payment_intent_id=intent_id,
        client_key=attributes.get("client_key"),
        status=str(attributes.get("status") or "awaiting_payment_method"),
        amount=amount,
        customer_id=customer_id,
        return_url=return_url,
    )


async def record_payment_method(database_url: str, intent_id: str, payment_method_id: str) -> None:
    async with session_scope(database_url) as session:
        await session.execute(
            payment_transactions.update()
            .where(payment_transactions.c.payment_intent_id == intent_id)
            .values(payment_method_id=payment_method_id, updated_at=utcnow())
        )
        await session.commit()


async def apply_intent(
    database_url: str,
    intent_id: str,
    intent_payload: Mapping[str, Any],
    *,
    logger: JsonLogger | None = None,
) -> ReconcileResult:
    """Move an open transaction to the outcome carried by ``intent_payload``."""

    outcome = intent_outcome(intent_payload)

    async with session_scope(database_url) as session:
        async with session.begin():
            tx = (
                await session.execute(
                    sa.select(
                        payment_transactions.c.customer_id,
                        payment_transactions.c.amount,
                        payment_transactions.c.status,
                    ).where(payment_transactions.c.payment_intent_id == intent_id)
                )
            ).mappings().first()
            if tx is None:
                raise NotFoundError("payment transaction", intent_id)

            customer_id = tx["customer_id"]
            amount = Decimal(str(tx["amount"]))

            if outcome == PENDING:
                result = STILL_PENDING if tx["status"] in OPEN_STATUSES else ALREADY_RECONCILED
            else:
                now = utcnow()
                values: Dict[str, Any] = {"status": outcome, "updated_at": now}
                if outcome == FAILED:
                    values["failure_reason"] = _failure_reason(intent_payload)
                    source_statuses: tuple[str, ...] = (PENDING,)
                else:
                    values["failure_reason"] = None
                    values["credited_at"] = now
                    source_statuses = OPEN_STATUSES
                transition = await session.execute(
                    payment_transactions.update()
                    .where(payment_transactions.c.payment_intent_id == intent_id)
                    .where(payment_transactions.c.status.in_(source_statuses))
                    .values(**values)
                )
                if transition.rowcount != 1:
                    result = ALREADY_RECONCILED
                elif outcome == COMPLETED:
                    remaining = customers.c.credit_used - amount
                    await session.execute(
                        customers.update()
                        .where(customers.c.id == customer_id)
                        .values(
                            credit_used=sa.case((remaining < 0, 0), else_=remaining),
                            updated_at=now,
                        )
                    )
                    result = CREDITED
                else:
                    result = UPDATED

    if logger is not None:
        log_event(
            logger=logger,
            phase="payments.reconcile",
            status="warn" if outcome == FAILED else "ok",
            message="payment reconciled",
            payment_intent_id=intent_id,
            outcome=outcome,
            result=result,
            customer_id=customer_id,
            amount=str(amount),
        )
    return ReconcileResult(
        payment_intent_id=intent_id,
        outcome=outcome,
        result=result,
        customer_id=customer_id,
        amount=amount,
    )


async def reconcile_payment(
    database_url: str,
    client: PaymentGatewayClient,
    intent_id: str,
    *,
    logger: JsonLogger | None = None,
) -> ReconcileResult:
    """Fetch the intent from the vendor and apply its outcome exactly once."""

    async with session_scope(database_url) as session:
        current = (
            await session.execute(
                sa.select(
                    payment_transactions.c.status,
                    payment_transactions.c.customer_id,
                    payment_transactions.c.amount,
                ).where(payment_transactions.c.payment_intent_id == intent_id)
            )
        ).mappings().first()
    if current is None:
        raise NotFoundError("payment transaction", intent_id)
    if current["status"] == COMPLETED:
        return ReconcileResult(
            payment_intent_id=intent_id,
            outcome=current["status"],
            result=ALREADY_RECONCILED,
            customer_id=current["customer_id"],
            amount=Decimal(str(current["amount"])),
        )

    response = await client.retrieve_payment_intent(intent_id)
    if not response.ok:
        raise VendorError(_vendor_error_detail(response))
    return await apply_intent(database_url, intent_id, response.payload, logger=logger)


async def settle_if_tracked(
    database_url: str,
    intent_id: str,
    intent_payload: Mapping[str, Any],
    *,
    logger: JsonLogger | None = None,
) -> ReconcileResult | None:
    """Apply an intent seen by the proxy; intents created elsewhere are skipped."""

    try:
        return await apply_intent(database_url, intent_id, intent_payload, logger=logger)
    except NotFoundError:
        if logger is not None:
            log_event(
                logger=logger,
                phase="payments.reconcile",
                status="warn",
                message="intent has no local transaction; skipped",
                payment_intent_id=intent_id,
            )
        return None
