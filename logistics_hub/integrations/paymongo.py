"""
PayMongo payment-intent client.

Wraps the handful of REST calls the back office needs:

- create a payment intent for a customer payment
- attach a payment method to an intent (the "confirm" step)
- retrieve an intent to learn its outcome
- list captured payments for the transactions table

Vendor 4xx/5xx replies are returned as :class:`VendorResponse` so the edge
function can pass the status code and body through unchanged. Only
transport failures raise (:class:`VendorError`).
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Mapping

import httpx

from logistics_hub.common.json_logger import JsonLogger
from logistics_hub.config import Config
from logistics_hub.errors import IntegrationNotConfigured

from .base import VendorResponse, send_request

NOT_CONFIGURED_MESSAGE = "PayMongo API key not configured"

CURRENCY = "PHP"
PAYMENT_METHODS_ALLOWED = ["card", "gcash", "grabpay"]
DEFAULT_PAGE_LIMIT = 10


def to_centavos(amount: Decimal | int | float | str) -> int:
    """Convert a peso amount to the smallest currency unit."""

    numeric = Decimal(str(amount))
    return int((numeric * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_centavos(value: int | None) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return (Decimal(value) / 100).quantize(Decimal("0.01"))


class PaymentGatewayClient:
    def __init__(
        self,
        secret_key: str,
        *,
        base_url: str = "https://api.paymongo.com/v1",
        timeout: float = 15,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: JsonLogger | None = None,
    ) -> None:
        if not secret_key:
            raise IntegrationNotConfigured(NOT_CONFIGURED_MESSAGE)
        self._secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.logger = logger

    @classmethod
    def from_config(
        cls,
        config: Config,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: JsonLogger | None = None,
    ) -> PaymentGatewayClient:
        return cls(
            config.paymongo_secret_key,
            base_url=config.paymongo_base_url,
            timeout=config.http_timeout_seconds,
            transport=transport,
            logger=logger,
        )

    def _headers(self) -> Dict[str, str]:
        token = base64.b64encode(f"{self._secret_key}:".encode("utf-8")).decode("ascii")
        return {
            "Authorization": f"Basic {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        body: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> VendorResponse:
        content = json.dumps(body).encode("utf-8") if body is not None else None
        return await send_request(
            vendor="paymongo",
            method=method,
            url=f"{self.base_url}{path}",
            headers=self._headers(),
            content=content,
            params=params,
            timeout=self.timeout,
            transport=self.transport,
            logger=self.logger,
        )

    async def create_payment_intent(
        self,
        *,
        amount: Decimal | int | float | str,
        description: str | None = None,
        metadata: Mapping[str, str] | None = None,
    ) -> VendorResponse:
        attributes: Dict[str, Any] = {
            "amount": to_centavos(amount),
            "payment_method_allowed": list(PAYMENT_METHODS_ALLOWED),
            "payment_method_options": {"card": {"request_three_d_secure": "automatic"}},
            "currency": CURRENCY,
            "description": description,
        }
        if metadata:
            attributes["metadata"] = dict(metadata)
        return await self._request("POST", "/payment_intents", body={"data": {"attributes": attributes}})

    async def attach_payment_method(
        self,
        intent_id: str,
        *,
        payment_method_id: str,
        return_url: str | None = None,
    ) -> VendorResponse:
        attributes: Dict[str, Any] = {"payment_method": payment_method_id}
        if return_url:
            attributes["return_url"] = return_url
        return await self._request(
            "POST",
            f"/payment_intents/{intent_id}/attach",
            body={"data": {"attributes": attributes}},
        )

    async def retrieve_payment_intent(self, intent_id: str) -> VendorResponse:
        return await self._request("GET", f"/payment_intents/{intent_id}")

    async def list_payments(
        self, *, limit: int = DEFAULT_PAGE_LIMIT, after: str | None = None
    ) -> VendorResponse:
        params: Dict[str, Any] = {"limit": limit}
        if after:
            params["after"] = after
        return await self._request("GET", "/payments", params=params)


def _parse_signature_header(header: str) -> Dict[str, str]:
    parts: Dict[str, str] = {}
    for chunk in header.split(","):
        key, sep, value = chunk.strip().partition("=")
        if sep:
            parts[key] = value
    return parts


def verify_webhook_signature(header: str | None, raw_body: bytes, secret: str) -> bool:
    """Check a ``Paymongo-Signature`` header against the raw request body.

    The header looks like ``t=<ts>,te=<test sig>,li=<live sig>``; whichever
    signature is present must equal HMAC-SHA256 of ``"<ts>.<body>"``.
    """

    if not header or not secret:
        return False
    parts = _parse_signature_header(header)
    timestamp = parts.get("t")
    if not timestamp:
        return False
    message = timestamp.encode("utf-8") + b"." + raw_body
    expected = hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()
    candidates = [parts.get("li"), parts.get("te")]
    return any(candidate and hmac.compare_digest(expected, candidate) for candidate in candidates)
