from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from pydantic import BaseModel, Field, field_validator

CENT = Decimal("0.01")


def to_minor_units(amount: Decimal) -> int:
    """Convert a decimal currency amount to integer cents."""
    return int((amount.quantize(CENT, rounding=ROUND_HALF_UP) * 100).to_integral_value())


def from_minor_units(value: int | None) -> Decimal:
    if not value:
        return Decimal("0.00")
    return (Decimal(value) / 100).quantize(CENT)


def _timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError):
        return None


class ConnectedAccount(BaseModel):
    id: str
    charges_enabled: bool = False
    payouts_enabled: bool = False
    details_submitted: bool = False
    country: str | None = None
    disabled_reason: str | None = None
    requirements_due: list[str] = Field(default_factory=list)
    metadata: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ConnectedAccount:
        requirements = data.get("requirements") or {}
        return cls(
            id=data.get("id", ""),
            charges_enabled=bool(data.get("charges_enabled", False)),
            payouts_enabled=bool(data.get("payouts_enabled", False)),
            details_submitted=bool(data.get("details_submitted", False)),
            country=data.get("country"),
            disabled_reason=requirements.get("disabled_reason"),
            requirements_due=list(requirements.get("currently_due") or []),
            metadata=data.get("metadata") or {},
        )


class AccountLink(BaseModel):
    url: str
    expires_at: datetime | None = None

    @field_validator("expires_at", mode="before")
    @classmethod
    def parse_expires_at(cls, v: Any) -> datetime | None:
        return _timestamp(v)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> AccountLink:
        return cls(url=data.get("url", ""), expires_at=data.get("expires_at"))


class CheckoutSession(BaseModel):
    id: str
    url: str | None = None
    status: str = "open"  # open | complete | expired
    payment_status: str = "unpaid"
    amount_total: Decimal = Decimal("0.00")
    currency: str = "usd"
    payment_intent: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @property
    def is_paid(self) -> bool:
        return self.status == "complete" and self.payment_status == "paid"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> CheckoutSession:
        return cls(
            id=data.get("id", ""),
            url=data.get("url"),
            status=data.get("status") or "open",
            payment_status=data.get("payment_status") or "unpaid",
            amount_total=from_minor_units(data.get("amount_total")),
            currency=data.get("currency") or "usd",
            payment_intent=data.get("payment_intent"),
            metadata=data.get("metadata") or {},
        )


class Transfer(BaseModel):
    id: str
    amount: Decimal = Decimal("0.00")
    currency: str = "usd"
    destination: str | None = None
    status: str = "pending"  # pending | paid | failed
    failure_reason: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Transfer:
        status = data.get("status") or "pending"
        if data.get("reversed"):
            status = "failed"
        return cls(
            id=data.get("id", ""),
            amount=from_minor_units(data.get("amount")),
            currency=data.get("currency") or "usd",
            destination=data.get("destination"),
            status=status,
            failure_reason=data.get("failure_message"),
            metadata=data.get("metadata") or {},
        )


class Refund(BaseModel):
    id: str
    amount: Decimal = Decimal("0.00")
    status: str = "pending"  # pending | succeeded | failed
    failure_reason: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Refund:
        return cls(
            id=data.get("id", ""),
            amount=from_minor_units(data.get("amount")),
            status=data.get("status") or "pending",
            failure_reason=data.get("failure_reason"),
            metadata=data.get("metadata") or {},
        )


class Balance(BaseModel):
    available: Decimal = Decimal("0.00")
    pending: Decimal = Decimal("0.00")
    currency: str = "usd"

    @classmethod
    def from_api(cls, data: dict[str, Any], currency: str = "usd") -> Balance:
        def total(entries: list[dict[str, Any]] | None) -> Decimal:
            cents = sum(
                entry.get("amount", 0)
                for entry in entries or []
                if entry.get("currency", currency) == currency
            )
            return from_minor_units(cents)

        return cls(
            available=total(data.get("available")),
            pending=total(data.get("pending")),
            currency=currency,
        )


class ProcessorEvent(BaseModel):
    """Normalized webhook event."""

    id: str
    type: str
    object_id: str | None = None
    status: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)
    created: datetime
    data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("created", mode="before")
    @classmethod
    def parse_created(cls, v: Any) -> datetime:
        return _timestamp(v) or datetime.now(timezone.utc)

    @property
    def amount(self) -> Decimal:
        """Object amount in currency units (checkout sessions use amount_total)."""
        cents = self.data.get("amount_total", self.data.get("amount"))
        return from_minor_units(cents)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> ProcessorEvent:
        obj = (payload.get("data") or {}).get("object") or {}
        return cls(
            id=payload.get("id", ""),
            type=payload.get("type", ""),
            object_id=obj.get("id"),
            status=obj.get("status"),
            metadata=obj.get("metadata") or {},
            created=payload.get("created"),
            data=obj,
        )
