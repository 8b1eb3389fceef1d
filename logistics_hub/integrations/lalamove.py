"""
Lalamove v3 courier client.

Every request carries ``Authorization: hmac {key}:{ts}:{signature}`` where
the signature is HMAC-SHA256 over::

    {ts}\\r\\n{METHOD}\\r\\n{path}\\r\\n\\r\\n{body}

The body is serialised once and the same bytes are both signed and sent.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import httpx

from logistics_hub.common.json_logger import JsonLogger
from logistics_hub.config import Config
from logistics_hub.errors import IntegrationNotConfigured

from .base import VendorResponse, send_request

NOT_CONFIGURED_MESSAGE = "Lalamove API credentials not configured"


def sign_request(
    secret: str, *, timestamp: str, method: str, path: str, body: str = ""
) -> str:
    raw = f"{timestamp}\r\n{method.upper()}\r\n{path}\r\n\r\n{body}"
    return hmac.new(secret.encode("utf-8"), raw.encode("utf-8"), hashlib.sha256).hexdigest()


def _encode_body(payload: Mapping[str, Any] | None) -> str:
    if payload is None:
        return ""
    return json.dumps({"data": dict(payload)}, separators=(",", ":"), ensure_ascii=False)


@dataclass
class TrackingResult:
    status: str
    driver_info: Dict[str, Any] = field(default_factory=dict)
    location: Optional[Dict[str, Any]] = None
    estimated_delivery_time: str = ""
    description: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "driverInfo": self.driver_info,
            "location": self.location or {},
            "estimatedDeliveryTime": self.estimated_delivery_time,
            "description": self.description,
        }


def _coerce_float(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def normalize_tracking(
    order_payload: Mapping[str, Any], driver_payload: Mapping[str, Any] | None = None
) -> TrackingResult:
    """Flatten an order (and optional driver) reply into a :class:`TrackingResult`."""

    order = order_payload.get("data") if isinstance(order_payload.get("data"), Mapping) else order_payload
    driver: Mapping[str, Any] = {}
    if driver_payload:
        candidate = driver_payload.get("data", driver_payload)
        if isinstance(candidate, Mapping):
            driver = candidate

    driver_info = {
        key: driver.get(key) for key in ("name", "phone", "photo") if driver.get(key)
    }

    location = None
    raw_location = driver.get("location")
    if isinstance(raw_location, Mapping):
        lat = _coerce_float(raw_location.get("lat"))
        lng = _coerce_float(raw_location.get("lng"))
        if lat is not None and lng is not None:
            location = {"lat": lat, "lng": lng}
            if raw_location.get("address"):
                location["address"] = raw_location["address"]

    stops = order.get("stops") or []
    description = ""
    if stops and isinstance(stops[-1], Mapping):
        description = str(stops[-1].get("address") or "")

    return TrackingResult(
        status=str(order.get("status") or "unknown"),
        driver_info=driver_info,
        location=location,
        estimated_delivery_time=str(order.get("eta") or ""),
        description=description,
    )


class CourierClient:
    def __init__(
        self,
        api_key: str,
        api_secret: str,
        *,
        market: str = "PH",
        base_url: str = "https://rest.sandbox.lalamove.com",
        timeout: float = 15,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: JsonLogger | None = None,
        clock=time.time,
    ) -> None:
        if not api_key or not api_secret:
            raise IntegrationNotConfigured(NOT_CONFIGURED_MESSAGE)
        self._api_key = api_key
        self._api_secret = api_secret
        self.market = market
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.logger = logger
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        config: Config,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: JsonLogger | None = None,
    ) -> CourierClient:
        return cls(
            config.lalamove_api_key,
            config.lalamove_api_secret,
            market=config.lalamove_market,
            base_url=config.lalamove_base_url,
            timeout=config.http_timeout_seconds,
            transport=transport,
            logger=logger,
        )

    def _headers(self, method: str, path: str, body: str) -> Dict[str, str]:
        timestamp = str(int(self._clock() * 1000))
        signature = sign_request(
            self._api_secret, timestamp=timestamp, method=method, path=path, body=body
        )
        return {
            "Authorization": f"hmac {self._api_key}:{timestamp}:{signature}",
            "Market": self.market,
            "Request-ID": str(uuid.uuid4()),
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _request(
        self, method: str, path: str, payload: Mapping[str, Any] | None = None
    ) -> VendorResponse:
        body = _encode_body(payload)
        return await send_request(
            vendor="lalamove",
            method=method,
            url=f"{self.base_url}{path}",
            headers=self._headers(method, path, body),
            content=body.encode("utf-8") if body else None,
            timeout=self.timeout,
            transport=self.transport,
            logger=self.logger,
        )

    async def get_quotation(self, payload: Mapping[str, Any]) -> VendorResponse:
        return await self._request("POST", "/v3/quotations", payload)

    async def place_order(self, payload: Mapping[str, Any]) -> VendorResponse:
        return await self._request("POST", "/v3/orders", payload)

    async def get_order(self, order_id: str) -> VendorResponse:
        return await self._request("GET", f"/v3/orders/{order_id}")

    async def get_driver(self, order_id: str, driver_id: str) -> VendorResponse:
        return await self._request("GET", f"/v3/orders/{order_id}/drivers/{driver_id}")

    async def cancel_order(self, order_id: str) -> VendorResponse:
        return await self._request("DELETE", f"/v3/orders/{order_id}")
