from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

OPTIONAL_TEXT_FIELDS = ("email", "phone", "address", "city", "state", "country", "zip")


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


def _coerce_amount(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    raw = str(value).strip()
    if not raw:
        return Decimal("0")
    try:
        amount = Decimal(raw)
    except InvalidOperation:
        return Decimal("0")
    if not amount.is_finite():
        return Decimal("0")
    return amount


class CustomerIn(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: str = Field(min_length=3)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    zip: Optional[str] = None
    credit_limit: Decimal = Decimal("0")

    @field_validator(*OPTIONAL_TEXT_FIELDS, mode="before")
    @classmethod
    def _empty_strings_are_null(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("credit_limit", mode="before")
    @classmethod
    def _parse_credit_limit(cls, value: Any) -> Decimal:
        return _coerce_amount(value)

    def to_row(self) -> dict[str, Any]:
        row = self.model_dump()
        if row.get("email") is not None:
            row["email"] = str(row["email"])
        return row


class PaymentRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    amount: Decimal = Field(gt=0)
    return_url: Optional[str] = None
