"""Health and readiness endpoints."""

from typing import Literal

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import get_request_id
from app.core.redis_client import is_redis_available
from app.db import mongo
from app.db.session import get_db

router = APIRouter(tags=["Health"])

CheckStatus = Literal["ok", "degraded", "down"]


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""

    status: CheckStatus
    message: str | None = None


class ReadinessResponse(BaseModel):
    status: CheckStatus
    checks: dict[str, ReadinessCheck]
    request_id: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
    description="Returns 200 while the process is up.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok")


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Checks the SQL database, the MongoDB catalog and Redis.",
)
async def readiness_check(
    request: Request,
    db: Session = Depends(get_db),
) -> ReadinessResponse:
    """
    Readiness: SQL and MongoDB are required (down when unreachable); Redis
    only degrades readiness unless REDIS_REQUIRED is set.
    """
    checks: dict[str, ReadinessCheck] = {}
    overall_status: CheckStatus = "ok"

    try:
        db.execute(text("SELECT 1"))
        checks["db"] = ReadinessCheck(status="ok")
    except SQLAlchemyError as e:
        checks["db"] = ReadinessCheck(status="down", message=str(e))
        overall_status = "down"

    if mongo.ping():
        checks["mongo"] = ReadinessCheck(status="ok")
    else:
        checks["mongo"] = ReadinessCheck(status="down", message="MongoDB unreachable")
        overall_status = "down"

    if not settings.REDIS_ENABLED:
        checks["redis"] = ReadinessCheck(status="ok", message="Not enabled")
    elif is_redis_available():
        checks["redis"] = ReadinessCheck(status="ok")
    elif settings.REDIS_REQUIRED:
        checks["redis"] = ReadinessCheck(status="down", message="Redis unavailable")
        overall_status = "down"
    else:
        checks["redis"] = ReadinessCheck(status="degraded", message="Redis unavailable")
        if overall_status == "ok":
            overall_status = "degraded"

    return ReadinessResponse(
        status=overall_status,
        checks=checks,
        request_id=get_request_id(request),
    )
