"""FastAPI dependencies for authentication and authorization."""

from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, Header, status
from sqlalchemy.orm import Session

from app.core.app_exceptions import raise_app_error, raise_forbidden, raise_unauthorized
from app.core.security import verify_access_token
from app.db.session import get_db
from app.models.user import User, UserRole


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
    db: Session = Depends(get_db),
) -> User:
    """Dependency to get the current authenticated user from the bearer token."""
    if not authorization:
        raise_unauthorized("Authorization header missing")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise_unauthorized("Invalid authorization header format. Expected: Bearer <token>")

    try:
        payload = verify_access_token(parts[1])
        user_id = UUID(payload["sub"])
    except (jwt.InvalidTokenError, ValueError, KeyError):
        raise_unauthorized("Invalid or expired token")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise_unauthorized("User not found")

    if not user.is_active:
        raise_app_error(
            status.HTTP_403_FORBIDDEN, code="ACCOUNT_INACTIVE", message="User account is inactive"
        )

    # Token role no longer matches the stored role: force a fresh login
    if user.role != payload.get("role"):
        raise_unauthorized("Token role mismatch. Please login again.")

    return user


def require_roles(*allowed_roles: UserRole):
    """Dependency factory to require specific roles."""

    def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if UserRole(current_user.role) not in allowed_roles:
            raise_forbidden("Access denied", details={"required_roles": [r.value for r in allowed_roles]})
        return current_user

    return role_checker


CurrentUser = Annotated[User, Depends(get_current_user)]
AdminUser = Annotated[User, Depends(require_roles(UserRole.ADMIN))]
