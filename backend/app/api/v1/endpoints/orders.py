"""Order endpoints: checkout of paid PDFs, payment results and refunds."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from pymongo.collection import Collection
from sqlalchemy.orm import Session

from app.catalog import repository
from app.core.app_exceptions import raise_bad_request, raise_conflict, raise_not_found
from app.core.dependencies import AdminUser, CurrentUser
from app.core.security_logging import log_security_event
from app.db.mongo import get_pdf_collection
from app.db.session import get_db
from app.models.entitlement import EntitlementKind
from app.models.order import Order
from app.models.user import User
from app.schemas.order import (
    OrderCancelRequest,
    OrderCreateRequest,
    OrderListResponse,
    OrderResponse,
    PaymentResultRequest,
    RefundRequest,
)
from app.services import entitlements, orders
from app.services.orders import OrderLine, OrderWorkflowError

router = APIRouter(tags=["Orders"])

ORDER_PROJECTION = {"_id": 1, "title_en": 1, "isPaid": 1, "price": 1}


def _to_minor_units(price: float) -> int:
    return int(round(price * 100))


def _owned_order(db: Session, order_id: UUID, user: User) -> Order:
    """The order, if `user` owns it or is an admin; 404 otherwise."""
    order = orders.get_order(db, order_id)
    if order is None or (order.user_id != user.id and not user.is_admin):
        raise_not_found("Order not found")
    return order


def _workflow_error(e: OrderWorkflowError) -> None:
    raise_bad_request("ORDER_STATE_INVALID", e.detail)


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create order",
    description="Price the requested paid PDFs from the catalog and open an order for them.",
)
async def create_order(
    body: OrderCreateRequest,
    current_user: CurrentUser,
    db: Session = Depends(get_db),
    collection: Collection = Depends(get_pdf_collection),
) -> OrderResponse:
    lines: list[OrderLine] = []
    seen: set[str] = set()
    for pdf_ref in body.pdf_ids:
        pdf = repository.find_pdf(collection, pdf_ref, ORDER_PROJECTION)
        if pdf is None:
            raise_not_found("PDF not found")

        pdf_id = str(pdf["_id"])
        if pdf_id in seen:
            continue
        seen.add(pdf_id)

        if not pdf.get("isPaid") or pdf.get("price") is None:
            raise_bad_request("PDF_NOT_FOR_SALE", "PDF is free", details={"pdf_id": pdf_id})
        if entitlements.has_access(db, current_user.id, EntitlementKind.PDF, pdf_id):
            raise_conflict("PDF is already unlocked", details={"pdf_id": pdf_id})

        lines.append(
            OrderLine(
                kind=EntitlementKind.PDF,
                ref_id=pdf_id,
                unit_price=_to_minor_units(pdf["price"]),
                title=pdf.get("title_en"),
            )
        )

    order = orders.create_order(db, current_user.id, lines, receipt=body.receipt)
    return OrderResponse.model_validate(order)


@router.get(
    "/me",
    response_model=OrderListResponse,
    summary="My orders",
)
async def my_orders(
    current_user: CurrentUser,
    db: Session = Depends(get_db),
) -> OrderListResponse:
    results = orders.list_orders(db, current_user.id)
    return OrderListResponse(
        results=[OrderResponse.model_validate(o) for o in results],
        total=len(results),
    )


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order",
    description="Visible to the order's owner and to admins.",
)
async def get_order(
    order_id: UUID,
    current_user: CurrentUser,
    db: Session = Depends(get_db),
) -> OrderResponse:
    return OrderResponse.model_validate(_owned_order(db, order_id, current_user))


@router.post(
    "/{order_id}/cancel",
    response_model=OrderResponse,
    summary="Cancel order",
)
async def cancel_order(
    order_id: UUID,
    body: OrderCancelRequest,
    current_user: CurrentUser,
    db: Session = Depends(get_db),
) -> OrderResponse:
    order = _owned_order(db, order_id, current_user)
    try:
        orders.mark_cancelled(db, order, body.reason)
    except OrderWorkflowError as e:
        _workflow_error(e)
    return OrderResponse.model_validate(order)


@router.post(
    "/{order_id}/payments",
    response_model=OrderResponse,
    summary="Record payment result",
    description=(
        "Apply a gateway payment outcome (admin only). A captured payment pays the "
        "order and unlocks every item; a failed one marks the order failed."
    ),
)
async def record_payment_result(
    order_id: UUID,
    body: PaymentResultRequest,
    request: Request,
    admin: AdminUser,
    db: Session = Depends(get_db),
) -> OrderResponse:
    order = orders.get_order(db, order_id)
    if order is None:
        raise_not_found("Order not found")

    try:
        payment = orders.record_payment(
            db,
            order,
            body.gateway_payment_id,
            amount=order.amount if body.amount is None else body.amount,
            method=body.method,
            card=body.card,
        )
        if body.outcome == "captured":
            orders.capture_payment(db, payment, raw=body.raw)
        else:
            orders.fail_payment(db, payment, reason=body.reason, raw=body.raw)
    except OrderWorkflowError as e:
        _workflow_error(e)

    log_security_event(
        request,
        event_type="order_payment_recorded",
        outcome="allow",
        user_id=str(admin.id),
        order_id=str(order.id),
        payment_outcome=body.outcome,
    )
    db.refresh(order)
    return OrderResponse.model_validate(order)


@router.post(
    "/{order_id}/refund",
    response_model=OrderResponse,
    summary="Refund order",
    description="Refund the captured payment of a paid order and revoke what it unlocked (admin only).",
)
async def refund_order(
    order_id: UUID,
    body: RefundRequest,
    request: Request,
    admin: AdminUser,
    db: Session = Depends(get_db),
) -> OrderResponse:
    order = orders.get_order(db, order_id)
    if order is None:
        raise_not_found("Order not found")

    captured = next((p for p in order.payments if p.captured and not p.refunded), None)
    if captured is None:
        raise_bad_request("ORDER_STATE_INVALID", "Order has no captured payment to refund")

    try:
        orders.refund_payment(db, captured, meta={"reason": body.reason} if body.reason else None)
    except OrderWorkflowError as e:
        _workflow_error(e)

    log_security_event(
        request,
        event_type="order_refunded",
        outcome="allow",
        user_id=str(admin.id),
        order_id=str(order.id),
    )
    db.refresh(order)
    return OrderResponse.model_validate(order)
