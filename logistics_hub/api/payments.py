from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Mapping

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse
from jinja2 import Environment, FileSystemLoader, select_autoescape

from logistics_hub.common.json_logger import JsonLogger, log_event
from logistics_hub.config import Config
from logistics_hub.errors import NotFoundError
from logistics_hub.integrations.paymongo import verify_webhook_signature
from logistics_hub.payments.ledger import COMPLETED, FAILED, ReconcileResult, reconcile_payment

from .deps import get_app_config, get_request_logger, payment_client

router = APIRouter(prefix="/payments", tags=["payments"])

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
TEMPLATE_NAME = "payment_result.html"
SIGNATURE_HEADER = "Paymongo-Signature"

_environment = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)


def _page_context(result: ReconcileResult | None, intent_id: str | None) -> Dict[str, Any]:
    if result is None:
        return {
            "state": "unknown",
            "title": "Payment not found",
            "message": "We could not find a payment for this link.",
            "intent_id": intent_id,
        }
    if result.outcome == COMPLETED:
        return {
            "state": "completed",
            "title": "Payment received",
            "message": f"Thank you. {result.amount} has been credited to the customer account.",
            "intent_id": intent_id,
        }
    if result.outcome == FAILED:
        return {
            "state": "failed",
            "title": "Payment failed",
            "message": "The payment could not be completed. Please try another payment method.",
            "intent_id": intent_id,
        }
    return {
        "state": "pending",
        "title": "Payment processing",
        "message": "Your payment is still being processed. This page can be refreshed safely.",
        "intent_id": intent_id,
    }


def render_result_page(context: Mapping[str, Any]) -> str:
    return _environment.get_template(TEMPLATE_NAME).render(**context, back_url="/customers")


@router.get("/return", response_class=HTMLResponse)
async def payment_return(
    request: Request,
    payment_intent_id: str | None = Query(default=None),
    config: Config = Depends(get_app_config),
    logger: JsonLogger = Depends(get_request_logger),
) -> HTMLResponse:
    if not payment_intent_id:
        return HTMLResponse(render_result_page(_page_context(None, None)), status_code=400)
    try:
        result = await reconcile_payment(
            config.database_url, payment_client(request), payment_intent_id, logger=logger
        )
    except NotFoundError:
        return HTMLResponse(render_result_page(_page_context(None, payment_intent_id)), status_code=404)
    return HTMLResponse(render_result_page(_page_context(result, payment_intent_id)))


def _intent_id_from_event(event: Mapping[str, Any]) -> str | None:
    resource = ((event.get("data") or {}).get("attributes") or {}).get("data") or {}
    if not isinstance(resource, Mapping):
        return None
    if str(resource.get("id", "")).startswith("pi_"):
        return str(resource["id"])
    attributes = resource.get("attributes") or {}
    intent_id = attributes.get("payment_intent_id")
    return str(intent_id) if intent_id else None


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    config: Config = Depends(get_app_config),
    logger: JsonLogger = Depends(get_request_logger),
) -> JSONResponse:
    raw_body = await request.body()
    if not verify_webhook_signature(
        request.headers.get(SIGNATURE_HEADER), raw_body, config.paymongo_webhook_secret
    ):
        logger.warn(phase="payments.webhook", message="rejected webhook with bad signature")
        return JSONResponse({"error": "Invalid signature"}, status_code=401)

    event = json.loads(raw_body or b"{}")
    intent_id = _intent_id_from_event(event)
    if not intent_id:
        log_event(logger=logger, phase="payments.webhook", status="warn", message="webhook without payment intent")
        return JSONResponse({"received": True, "result": "ignored"})

    try:
        result = await reconcile_payment(
            config.database_url, payment_client(request), intent_id, logger=logger
        )
    except NotFoundError:
        log_event(
            logger=logger,
            phase="payments.webhook",
            status="warn",
            message="webhook for untracked payment intent",
            payment_intent_id=intent_id,
        )
        return JSONResponse({"received": True, "result": "ignored"})
    return JSONResponse({"received": True, **result.as_dict()})
