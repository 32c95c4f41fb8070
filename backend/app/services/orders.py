"""Order service: create orders, apply gateway payment results, unlock content.

Paying an order grants one purchase entitlement per item, tagged with the
order id; refunding it revokes exactly those entitlements.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.models.entitlement import Entitlement, EntitlementKind, EntitlementSource
from app.models.order import Order, OrderItem, OrderStatus, Payment, PaymentStatus
from app.services import entitlements

logger = get_logger(__name__)

DEFAULT_CURRENCY = "INR"

ALLOWED_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.CREATED: {OrderStatus.PENDING, OrderStatus.PAID, OrderStatus.CANCELLED, OrderStatus.FAILED},
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.CANCELLED, OrderStatus.FAILED},
    # A failed attempt can be retried on the same order.
    OrderStatus.FAILED: {OrderStatus.PENDING, OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: set(),
    OrderStatus.REFUNDED: set(),
}


class OrderWorkflowError(Exception):
    """Raised for invalid orders and disallowed status changes."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


@dataclass
class OrderLine:
    """Requested item; prices are in the currency's smallest unit."""

    kind: EntitlementKind | str
    ref_id: str
    unit_price: int
    quantity: int = 1
    title: str | None = None


def _validate_lines(lines: list[OrderLine]) -> None:
    if not lines:
        raise OrderWorkflowError("An order needs at least one item")
    for line in lines:
        try:
            EntitlementKind(line.kind)
        except ValueError:
            raise OrderWorkflowError(f"Unsupported item kind: {line.kind}") from None
        if line.unit_price < 0:
            raise OrderWorkflowError("unit_price must be >= 0")
        if line.quantity < 1:
            raise OrderWorkflowError("quantity must be >= 1")


def _transition(order: Order, new_status: OrderStatus) -> None:
    current = OrderStatus(order.status)
    if new_status not in ALLOWED_TRANSITIONS[current]:
        raise OrderWorkflowError(
            f"Invalid status transition from {current.value} to {new_status.value}"
        )
    order.status = new_status.value


def _with_note(notes: dict[str, Any] | None, **values: Any) -> dict[str, Any]:
    # JSON columns only notice reassignment, not in-place mutation.
    return {**(notes or {}), **{k: v for k, v in values.items() if v is not None}}


def create_order(
    db: Session,
    user_id: UUID,
    lines: list[OrderLine],
    currency: str = DEFAULT_CURRENCY,
    receipt: str | None = None,
    expires_at: datetime | None = None,
    notes: dict[str, Any] | None = None,
) -> Order:
    """Create an order in status "created"; its amount is the sum of the line totals."""
    _validate_lines(lines)

    order = Order(
        user_id=user_id,
        status=OrderStatus.CREATED.value,
        currency=currency,
        receipt=receipt,
        expires_at=expires_at,
        notes=dict(notes or {}),
    )
    order.items = [
        OrderItem(
            position=position,
            kind=EntitlementKind(line.kind).value,
            ref_id=str(line.ref_id),
            title=line.title,
            unit_price=line.unit_price,
            quantity=line.quantity,
        )
        for position, line in enumerate(lines)
    ]
    order.amount = sum(item.line_total for item in order.items)

    db.add(order)
    db.commit()
    db.refresh(order)

    logger.info(
        "Order created",
        extra={
            "order_id": str(order.id),
            "user_id": str(user_id),
            "amount": order.amount,
            "currency": order.currency,
            "items": len(order.items),
        },
    )
    return order


def get_order(db: Session, order_id: UUID) -> Order | None:
    return db.get(Order, order_id)


def list_orders(db: Session, user_id: UUID) -> list[Order]:
    """Orders of `user_id`, newest first."""
    return (
        db.query(Order)
        .filter(Order.user_id == user_id)
        .order_by(Order.created_at.desc())
        .all()
    )


def mark_pending(db: Session, order: Order, gateway_order_id: str | None = None) -> Order:
    """Checkout started at the gateway."""
    _transition(order, OrderStatus.PENDING)
    if gateway_order_id:
        order.gateway_order_id = gateway_order_id
    db.commit()
    return order


def mark_paid(db: Session, order: Order, payment: Payment | None = None) -> list[Entitlement]:
    """Mark the order paid and grant a purchase entitlement for every item."""
    _transition(order, OrderStatus.PAID)
    if payment is not None:
        order.notes = _with_note(order.notes, payment_id=str(payment.id))
    db.commit()

    granted = [
        entitlements.grant(
            db,
            order.user_id,
            item.kind,
            item.ref_id,
            source=EntitlementSource.PURCHASE,
            order_ref=str(order.id),
        )
        for item in order.items
    ]

    logger.info(
        "Order paid",
        extra={"order_id": str(order.id), "user_id": str(order.user_id), "granted": len(granted)},
    )
    return granted


def mark_cancelled(db: Session, order: Order, reason: str | None = None) -> Order:
    _transition(order, OrderStatus.CANCELLED)
    order.notes = _with_note(order.notes, cancelled_reason=reason)
    db.commit()
    logger.info("Order cancelled", extra={"order_id": str(order.id), "reason": reason})
    return order


def mark_failed(db: Session, order: Order, reason: str | None = None) -> Order:
    _transition(order, OrderStatus.FAILED)
    order.notes = _with_note(order.notes, failed_reason=reason)
    db.commit()
    logger.info("Order failed", extra={"order_id": str(order.id), "reason": reason})
    return order


def get_payment_by_gateway_id(db: Session, gateway_payment_id: str) -> Payment | None:
    return db.query(Payment).filter(Payment.gateway_payment_id == gateway_payment_id).first()


def record_payment(
    db: Session,
    order: Order,
    gateway_payment_id: str,
    amount: int,
    method: str | None = None,
    card: dict[str, Any] | None = None,
    raw: dict[str, Any] | None = None,
) -> Payment:
    """
    Record a gateway payment attempt against `order`.

    Reporting the same gateway payment id again returns the existing record.
    """
    existing = get_payment_by_gateway_id(db, gateway_payment_id)
    if existing is not None:
        if existing.order_id != order.id:
            raise OrderWorkflowError("Payment is already recorded against another order")
        return existing

    payment = Payment(
        order_id=order.id,
        user_id=order.user_id,
        gateway_order_id=order.gateway_order_id,
        gateway_payment_id=gateway_payment_id,
        amount=amount,
        currency=order.currency,
        status=PaymentStatus.CREATED.value,
        method=method,
        card=card,
        raw=dict(raw or {}),
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)

    logger.info(
        "Payment recorded",
        extra={"order_id": str(order.id), "payment_id": str(payment.id), "amount": amount},
    )
    return payment


def capture_payment(db: Session, payment: Payment, raw: dict[str, Any] | None = None) -> list[Entitlement]:
    """Captured funds pay the order; returns the entitlements granted."""
    order = payment.order
    if payment.captured:
        raise OrderWorkflowError("Payment is already captured")
    if payment.amount != order.amount or payment.currency != order.currency:
        raise OrderWorkflowError("Captured amount does not match the order amount")

    payment.status = PaymentStatus.CAPTURED.value
    payment.captured = True
    payment.raw = _with_note(payment.raw, capture=raw or {})
    return mark_paid(db, order, payment)


def fail_payment(
    db: Session, payment: Payment, reason: str | None = None, raw: dict[str, Any] | None = None
) -> Payment:
    """Mark the attempt failed; an unpaid order is marked failed with it."""
    payment.status = PaymentStatus.FAILED.value
    payment.raw = _with_note(payment.raw, failure={"reason": reason, **(raw or {})})

    order = payment.order
    if OrderStatus.FAILED in ALLOWED_TRANSITIONS[OrderStatus(order.status)]:
        mark_failed(db, order, reason)
    else:
        db.commit()

    logger.info(
        "Payment failed",
        extra={"order_id": str(order.id), "payment_id": str(payment.id), "reason": reason},
    )
    return payment


def refund_payment(
    db: Session,
    payment: Payment,
    meta: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> Payment:
    """
    Refund a captured payment: the order becomes "refunded" and the
    entitlements it granted are revoked. Entitlements obtained some other
    way (admin grant, a different order) are left alone.
    """
    if not payment.captured:
        raise OrderWorkflowError("Only a captured payment can be refunded")
    if payment.refunded:
        raise OrderWorkflowError("Payment is already refunded")

    order = payment.order
    _transition(order, OrderStatus.REFUNDED)
    payment.status = PaymentStatus.REFUNDED.value
    payment.refunded = True
    payment.refunded_at = now or datetime.now(UTC)
    payment.raw = _with_note(payment.raw, refund=meta or {})
    db.commit()

    order_ref = str(order.id)
    revoked = 0
    for item in order.items:
        entitlement = entitlements.get_entitlement(db, order.user_id, item.kind, item.ref_id)
        if entitlement is not None and entitlement.order_ref == order_ref:
            revoked += int(entitlements.revoke(db, order.user_id, item.kind, item.ref_id))

    logger.info(
        "Payment refunded",
        extra={"order_id": order_ref, "payment_id": str(payment.id), "revoked": revoked},
    )
    return payment
