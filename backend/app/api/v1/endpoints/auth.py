"""Authentication endpoints."""

from datetime import UTC, datetime
from functools import lru_cache
from uuid import uuid4

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app.core.app_exceptions import raise_app_error, raise_conflict, raise_unauthorized
from app.core.config import settings
from app.core.dependencies import get_current_user
from app.core.rate_limit_deps import (
    require_rate_limit_login_ip,
    require_rate_limit_refresh,
    require_rate_limit_signup_ip,
)
from app.core.security import (
    create_access_token,
    create_refresh_token,
    hash_password,
    hash_token,
    refresh_token_expiry,
    verify_password,
)
from app.core.security_logging import get_client_ip, log_security_event
from app.db.session import get_db
from app.models.auth import RefreshToken
from app.models.user import User, UserRole
from app.schemas.auth import (
    AuthResponse,
    LoginRequest,
    LogoutRequest,
    MeResponse,
    RefreshRequest,
    RefreshResponse,
    SignupRequest,
    StatusResponse,
    TokensResponse,
    UserResponse,
)

router = APIRouter(tags=["Auth"])


@lru_cache(maxsize=1)
def _dummy_password_hash() -> str:
    # Verified against when the email is unknown, so both paths cost one hash.
    return hash_password(uuid4().hex)


def _issue_refresh_token(user: User, request: Request, db: Session) -> tuple[str, RefreshToken]:
    raw_token = create_refresh_token()
    record = RefreshToken(
        id=uuid4(),
        user_id=user.id,
        token_hash=hash_token(raw_token),
        expires_at=refresh_token_expiry(),
        user_agent=request.headers.get("User-Agent"),
        ip_address=get_client_ip(request),
    )
    db.add(record)
    return raw_token, record


def _tokens(user: User, refresh_token: str) -> TokensResponse:
    return TokensResponse(
        access_token=create_access_token(str(user.id), user.role),
        refresh_token=refresh_token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


def _find_active_refresh_token(db: Session, raw_token: str) -> RefreshToken | None:
    return (
        db.query(RefreshToken)
        .filter(
            RefreshToken.token_hash == hash_token(raw_token),
            RefreshToken.revoked_at.is_(None),
        )
        .first()
    )


@router.post(
    "/signup",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Sign up",
    description="Create a new user account. Returns user data and authentication tokens.",
)
async def signup(
    request_data: SignupRequest,
    request: Request,
    db: Session = Depends(get_db),
    _rate_limit: None = Depends(require_rate_limit_signup_ip),
) -> AuthResponse:
    """Sign up a new user."""
    existing_user = db.query(User).filter(User.email == request_data.email).first()
    if existing_user:
        log_security_event(request, event_type="auth_signup", outcome="deny", reason_code="CONFLICT")
        raise_conflict("Email already registered")

    user = User(
        full_name=request_data.name,
        email=request_data.email,
        password_hash=hash_password(request_data.password),
        role=UserRole.USER.value,
        is_active=True,
    )
    db.add(user)
    db.flush()

    refresh_token, _ = _issue_refresh_token(user, request, db)
    db.commit()
    db.refresh(user)

    log_security_event(request, event_type="auth_signup", outcome="allow", user_id=str(user.id))

    return AuthResponse(user=UserResponse.model_validate(user), tokens=_tokens(user, refresh_token))


@router.post(
    "/login",
    response_model=AuthResponse,
    status_code=status.HTTP_200_OK,
    summary="Log in",
    description="Authenticate with email and password. Returns user data and authentication tokens.",
)
async def login(
    request_data: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    _rate_limit_ip: None = Depends(require_rate_limit_login_ip),
) -> AuthResponse:
    """Log in a user."""
    user = db.query(User).filter(User.email == request_data.email).first()

    password_hash = user.password_hash if user else _dummy_password_hash()
    password_valid = verify_password(request_data.password, password_hash)

    # Same message whether or not the email exists
    if not user or not password_valid:
        log_security_event(
            request,
            event_type="auth_login_failed",
            outcome="deny",
            reason_code="UNAUTHORIZED",
        )
        raise_unauthorized("Invalid email or password")

    if not user.is_active:
        log_security_event(
            request,
            event_type="auth_login_failed",
            outcome="deny",
            reason_code="ACCOUNT_INACTIVE",
            user_id=str(user.id),
        )
        raise_app_error(
            status_code=status.HTTP_403_FORBIDDEN,
            code="ACCOUNT_INACTIVE",
            message="User account is inactive",
        )

    user.last_login_at = datetime.now(UTC)
    refresh_token, _ = _issue_refresh_token(user, request, db)
    db.commit()
    db.refresh(user)

    log_security_event(request, event_type="auth_login_success", outcome="allow", user_id=str(user.id))

    return AuthResponse(user=UserResponse.model_validate(user), tokens=_tokens(user, refresh_token))


@router.post(
    "/refresh",
    response_model=RefreshResponse,
    status_code=status.HTTP_200_OK,
    summary="Refresh tokens",
    description="Exchange a refresh token for a new token pair. The presented token is revoked.",
)
async def refresh(
    request_data: RefreshRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> RefreshResponse:
    """Rotate the refresh token and issue a new access token."""
    record = _find_active_refresh_token(db, request_data.refresh_token)

    if not record or not record.is_active():
        log_security_event(
            request,
            event_type="auth_refresh_failed",
            outcome="deny",
            reason_code="UNAUTHORIZED",
        )
        raise_unauthorized("Invalid or expired refresh token")

    user = record.user
    if not user or not user.is_active:
        log_security_event(
            request,
            event_type="auth_refresh_failed",
            outcome="deny",
            reason_code="UNAUTHORIZED",
        )
        raise_unauthorized("User not found or inactive")

    require_rate_limit_refresh(str(user.id), request)

    new_refresh_token, new_record = _issue_refresh_token(user, request, db)
    record.revoked_at = datetime.now(UTC)
    record.replaced_by_token = new_record
    db.commit()

    log_security_event(request, event_type="auth_refresh_success", outcome="allow", user_id=str(user.id))

    return RefreshResponse(tokens=_tokens(user, new_refresh_token))


@router.post(
    "/logout",
    response_model=StatusResponse,
    status_code=status.HTTP_200_OK,
    summary="Log out",
    description="Revoke a refresh token. Access tokens remain valid until expiry.",
)
async def logout(
    request_data: LogoutRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> StatusResponse:
    """Log out by revoking the refresh token (idempotent)."""
    record = _find_active_refresh_token(db, request_data.refresh_token)

    if record:
        record.revoked_at = datetime.now(UTC)
        db.commit()
        log_security_event(
            request,
            event_type="auth_logout",
            outcome="allow",
            user_id=str(record.user_id),
        )

    return StatusResponse(status="ok", message="Logged out")


@router.get(
    "/me",
    response_model=MeResponse,
    summary="Current user",
    description="Return the user the bearer token belongs to.",
)
async def me(current_user: User = Depends(get_current_user)) -> MeResponse:
    return MeResponse(user=UserResponse.model_validate(current_user))
