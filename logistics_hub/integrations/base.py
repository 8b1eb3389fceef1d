from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

import httpx

from logistics_hub.common.json_logger import JsonLogger, log_event
from logistics_hub.errors import VendorError


@dataclass
class VendorResponse:
    """Vendor reply passed through to callers untouched."""

    status_code: int
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def data(self) -> Dict[str, Any]:
        data = self.payload.get("data")
        return data if isinstance(data, dict) else {}


def _decode(response: httpx.Response) -> Dict[str, Any]:
    if not response.content:
        return {}
    try:
        decoded = response.json()
    except ValueError:
        return {"raw": response.text}
    if isinstance(decoded, dict):
        return decoded
    return {"data": decoded}


async def send_request(
    *,
    vendor: str,
    method: str,
    url: str,
    headers: Mapping[str, str],
    content: bytes | None = None,
    params: Mapping[str, Any] | None = None,
    timeout: float,
    transport: httpx.AsyncBaseTransport | None = None,
    logger: JsonLogger | None = None,
) -> VendorResponse:
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.request(
                method, url, headers=dict(headers), content=content, params=params
            )
    except httpx.HTTPError as exc:
        if logger is not None:
            log_event(
                logger=logger,
                phase=f"vendor.{vendor}",
                status="error",
                message="vendor request failed",
                method=method,
                url=url,
                error=str(exc),
            )
        raise VendorError(f"{vendor} request failed: {exc}") from exc

    if logger is not None:
        log_event(
            logger=logger,
            phase=f"vendor.{vendor}",
            status="ok" if response.is_success else "warn",
            message="vendor request completed",
            method=method,
            url=url,
            status_code=response.status_code,
        )
    return VendorResponse(status_code=response.status_code, payload=_decode(response))
