"""Edge-function compatible vendor proxies under ``/functions/v1``.

Each function accepts ``{"action": ..., "<kind>Data": {...}}`` and answers
with the vendor's status code and JSON body unchanged. Missing secrets and
unexpected failures become ``500 {"error": ...}``; an unknown ``customerId``
on ``create-payment-intent`` answers 404 before the vendor is called.
Browser preflights carrying ``Origin`` are answered by ``CORSMiddleware``
(body ``OK``); bare ``OPTIONS`` requests reach the ``"ok"`` route.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Mapping

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from logistics_hub.auth.tokens import AuthenticatedUser
from logistics_hub.cache import vendor_payment_pages
from logistics_hub.common.date_utils import utcnow
from logistics_hub.common.db import session_scope
from logistics_hub.common.db_tables import shipments
from logistics_hub.common.json_logger import JsonLogger, log_event
from logistics_hub.config import Config
from logistics_hub.errors import NotFoundError
from logistics_hub.integrations.base import VendorResponse
from logistics_hub.integrations.lalamove import CourierClient
from logistics_hub.integrations.map_token import get_map_token
from logistics_hub.integrations.paymongo import DEFAULT_PAGE_LIMIT, PaymentGatewayClient
from logistics_hub.payments.ledger import (
    customer_name,
    record_payment_method,
    record_pending_transaction,
    settle_if_tracked,
)

from .deps import courier_client, current_user, get_app_config, get_request_logger, payment_client

router = APIRouter(prefix="/functions/v1", tags=["functions"])

INVALID_ACTION = "Invalid action"

PaymentAction = Callable[[PaymentGatewayClient, Dict[str, Any], Config, JsonLogger], Awaitable[VendorResponse]]
ShippingAction = Callable[[CourierClient, Dict[str, Any], Config, JsonLogger], Awaitable[VendorResponse]]


def _json(payload: Any, status_code: int = 200) -> Response:
    if status_code == 204:
        return Response(status_code=204)
    return JSONResponse(content=payload, status_code=status_code)


def _error(phase: str, logger: JsonLogger, exc: Exception) -> JSONResponse:
    logger.error(phase=phase, message="edge function failed", error=str(exc), error_type=type(exc).__name__)
    return _json({"error": str(exc)}, 500)


def _required(data: Mapping[str, Any], key: str) -> Any:
    value = data.get(key)
    if value in (None, ""):
        raise ValueError(f"{key} is required")
    return value


async def _read_body(request: Request) -> Dict[str, Any]:
    body = await request.json()
    if not isinstance(body, dict):
        raise ValueError("request body must be a JSON object")
    return body


@router.options("/{function_name}")
async def preflight(function_name: str) -> PlainTextResponse:
    return PlainTextResponse("ok")


@router.api_route("/map-token", methods=["GET", "POST"])
async def map_token(
    config: Config = Depends(get_app_config),
    logger: JsonLogger = Depends(get_request_logger),
    user: AuthenticatedUser = Depends(current_user),
) -> JSONResponse:
    try:
        token = get_map_token(config)
    except Exception as exc:
        return _error("functions.map_token", logger, exc)
    log_event(logger=logger, phase="functions.map_token", message="map token served", user_id=user.id)
    return _json({"token": token})


async def _create_payment_intent(
    client: PaymentGatewayClient, data: Dict[str, Any], config: Config, logger: JsonLogger
) -> VendorResponse:
    amount = Decimal(str(_required(data, "amount")))
    customer_id = data.get("customerId")
    if customer_id:
        await customer_name(config.database_url, str(customer_id))
    response = await client.create_payment_intent(
        amount=amount,
        description=data.get("description"),
        metadata={"customer_id": str(customer_id)} if customer_id else None,
    )
    intent_id = response.data.get("id")
    if response.ok and customer_id and intent_id:
        await record_pending_transaction(
            config.database_url,
            customer_id=str(customer_id),
            intent_id=intent_id,
            amount=amount,
            description=data.get("description"),
        )
    return response


async def _confirm_payment(
    client: PaymentGatewayClient, data: Dict[str, Any], config: Config, logger: JsonLogger
) -> VendorResponse:
    intent_id = str(_required(data, "paymentIntentId"))
    payment_method_id = str(_required(data, "paymentMethodId"))
    response = await client.attach_payment_method(
        intent_id, payment_method_id=payment_method_id, return_url=data.get("returnUrl")
    )
    if response.ok:
        await record_payment_method(config.database_url, intent_id, payment_method_id)
        await settle_if_tracked(config.database_url, intent_id, response.payload, logger=logger)
    return response


async def _retrieve_payment_intent(
    client: PaymentGatewayClient, data: Dict[str, Any], config: Config, logger: JsonLogger
) -> VendorResponse:
    intent_id = str(_required(data, "paymentIntentId"))
    response = await client.retrieve_payment_intent(intent_id)
    if response.ok:
        await settle_if_tracked(config.database_url, intent_id, response.payload, logger=logger)
    return response


async def _list_payments(
    client: PaymentGatewayClient, data: Dict[str, Any], config: Config, logger: JsonLogger
) -> VendorResponse:
    limit = int(data.get("limit") or DEFAULT_PAGE_LIMIT)
    after = data.get("after") or data.get("starting_after")
    key = (limit, after)
    cached = vendor_payment_pages.get(key)
    if cached is not None:
        return cached
    response = await client.list_payments(limit=limit, after=after)
    if response.ok:
        vendor_payment_pages.set(key, response)
    return response


PAYMENT_ACTIONS: Dict[str, PaymentAction] = {
    "create-payment-intent": _create_payment_intent,
    "confirm-payment": _confirm_payment,
    "retrieve-payment-intent": _retrieve_payment_intent,
    "list-payments": _list_payments,
}


@router.post("/payment-gateway")
async def payment_gateway(
    request: Request,
    config: Config = Depends(get_app_config),
    logger: JsonLogger = Depends(get_request_logger),
    user: AuthenticatedUser = Depends(current_user),
) -> Response:
    try:
        body = await _read_body(request)
        client = payment_client(request)
        action = body.get("action")
        handler = PAYMENT_ACTIONS.get(action)
        if handler is None:
            return _json({"error": INVALID_ACTION}, 400)
        response = await handler(client, dict(body.get("paymentData") or {}), config, logger)
    except NotFoundError as exc:
        logger.warn(phase="functions.payment_gateway", message=str(exc), user_id=user.id)
        return _json({"error": str(exc)}, 404)
    except Exception as exc:
        return _error("functions.payment_gateway", logger, exc)

    log_event(
        logger=logger,
        phase="functions.payment_gateway",
        status="ok" if response.ok else "warn",
        message="payment action proxied",
        action=action,
        status_code=response.status_code,
        user_id=user.id,
    )
    return _json(response.payload, response.status_code)


async def _link_courier_order(database_url: str, tracking_id: str, order_id: str) -> None:
    async with session_scope(database_url) as session:
        await session.execute(
            shipments.update()
            .where(shipments.c.tracking_id == tracking_id)
            .values(courier_order_id=order_id, updated_at=utcnow())
        )
        await session.commit()


def _order_id(data: Mapping[str, Any]) -> str:
    return str(data.get("orderId") or _required(data, "trackingId"))


def _vendor_body(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if key != "trackingId"}


async def _get_quotation(
    client: CourierClient, data: Dict[str, Any], config: Config, logger: JsonLogger
) -> VendorResponse:
    return await client.get_quotation(_vendor_body(data))


async def _create_shipment(
    client: CourierClient, data: Dict[str, Any], config: Config, logger: JsonLogger
) -> VendorResponse:
    response = await client.place_order(_vendor_body(data))
    order_id = response.data.get("orderId")
    tracking_id = data.get("trackingId")
    if response.ok and order_id and tracking_id:
        await _link_courier_order(config.database_url, str(tracking_id), str(order_id))
    return response


async def _track_shipment(
    client: CourierClient, data: Dict[str, Any], config: Config, logger: JsonLogger
) -> VendorResponse:
    return await client.get_order(_order_id(data))


async def _cancel_shipment(
    client: CourierClient, data: Dict[str, Any], config: Config, logger: JsonLogger
) -> VendorResponse:
    return await client.cancel_order(_order_id(data))


SHIPPING_ACTIONS: Dict[str, ShippingAction] = {
    "get-quotation": _get_quotation,
    "create-shipment": _create_shipment,
    "track-shipment": _track_shipment,
    "cancel-shipment": _cancel_shipment,
}


@router.post("/shipping")
async def shipping(
    request: Request,
    config: Config = Depends(get_app_config),
    logger: JsonLogger = Depends(get_request_logger),
    user: AuthenticatedUser = Depends(current_user),
) -> Response:
    try:
        body = await _read_body(request)
        client = courier_client(request)
        action = body.get("action")
        handler = SHIPPING_ACTIONS.get(action)
        if handler is None:
            return _json({"error": INVALID_ACTION}, 400)
        response = await handler(client, dict(body.get("shippingData") or {}), config, logger)
    except Exception as exc:
        return _error("functions.shipping", logger, exc)

    log_event(
        logger=logger,
        phase="functions.shipping",
        status="ok" if response.ok else "warn",
        message="shipping action proxied",
        action=action,
        status_code=response.status_code,
        user_id=user.id,
    )
    return _json(response.payload, response.status_code)
