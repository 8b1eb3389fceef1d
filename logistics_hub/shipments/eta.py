from __future__ import annotations

from datetime import datetime

from logistics_hub.common.date_utils import ensure_aware, utcnow

SECONDS_PER_DAY = 86400
SECONDS_PER_HOUR = 3600


def format_shipping_eta(eta: datetime | None, now: datetime | None = None) -> str:
    """Render an ETA as ``Pending``, ``Delivered``, ``"2d 5h"`` or ``"3h 12m"``."""

    if eta is None:
        return "Pending"
    eta = ensure_aware(eta)
    now = ensure_aware(now) if now is not None else utcnow()
    if eta < now:
        return "Delivered"

    remaining = int((eta - now).total_seconds())
    days, remainder = divmod(remaining, SECONDS_PER_DAY)
    hours, remainder = divmod(remainder, SECONDS_PER_HOUR)
    if days > 0:
        return f"{days}d {hours}h"
    return f"{hours}h {remainder // 60}m"
