"""Order and payment schemas."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class OrderCreateRequest(BaseModel):
    """Checkout of one or more paid PDFs, by id or seoSlug."""

    pdf_ids: list[str] = Field(..., min_length=1, max_length=20)
    receipt: str | None = Field(default=None, max_length=64)


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    kind: str
    ref_id: str
    title: str | None = None
    unit_price: int
    quantity: int


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    gateway_payment_id: str | None = None
    amount: int
    currency: str
    status: str
    method: str | None = None
    captured: bool
    refunded: bool
    refunded_at: datetime | None = None
    created_at: datetime


class OrderResponse(BaseModel):
    """Amounts are in the currency's smallest unit (paise for INR)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    status: str
    amount: int
    currency: str
    receipt: str | None = None
    gateway_order_id: str | None = None
    is_paid: bool
    notes: dict[str, Any] = Field(default_factory=dict)
    items: list[OrderItemResponse]
    payments: list[PaymentResponse] = Field(default_factory=list)
    created_at: datetime


class OrderListResponse(BaseModel):
    success: bool = True
    results: list[OrderResponse]
    total: int


class OrderCancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class PaymentResultRequest(BaseModel):
    """Gateway outcome for one payment attempt, reported by an admin or reconciliation job."""

    gateway_payment_id: str = Field(..., min_length=1, max_length=64)
    outcome: Literal["captured", "failed"]
    amount: int | None = Field(default=None, ge=0)
    method: str | None = Field(default=None, max_length=32)
    card: dict[str, Any] | None = None
    reason: str | None = Field(default=None, max_length=500)
    raw: dict[str, Any] | None = None


class RefundRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)
