from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ShipmentStatus = Literal["processing", "in-transit", "delivered", "failed"]
SHIPMENT_STATUSES: tuple[str, ...] = ("processing", "in-transit", "delivered", "failed")


class ShipmentIn(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    tracking_id: str = Field(min_length=3)
    customer_id: str = Field(min_length=1)
    origin: str = Field(min_length=3)
    destination: str = Field(min_length=3)
    status: ShipmentStatus = "processing"
    eta: Optional[datetime] = None
    courier_order_id: Optional[str] = None
