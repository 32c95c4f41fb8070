"""Database models."""

# Import all models here so Alembic can detect them
from app.models.auth import RefreshToken
from app.models.entitlement import Entitlement, EntitlementKind, EntitlementSource
from app.models.order import Order, OrderItem, OrderStatus, Payment, PaymentStatus
from app.models.user import User, UserRole

__all__ = [
    "User",
    "UserRole",
    "RefreshToken",
    "Entitlement",
    "EntitlementKind",
    "EntitlementSource",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Payment",
    "PaymentStatus",
]
