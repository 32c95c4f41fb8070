"""Presigned URLs for PDF files stored in Cloudflare R2 (S3-compatible)."""

import logging
from typing import TYPE_CHECKING

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import settings

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/pdf"

# R2 only accepts SigV4 and ignores the region, which must still be set.
_client_config = Config(
    signature_version="s3v4",
    retries={"max_attempts": 3, "mode": "standard"},
)

# Singleton client instance
_s3_client: "S3Client | None" = None


class StorageNotConfiguredError(RuntimeError):
    """R2 credentials or bucket are missing from the environment."""


def get_s3_client() -> "S3Client":
    """Get the boto3 S3 client pointed at the R2 account endpoint."""
    global _s3_client

    if _s3_client is not None:
        return _s3_client

    endpoint = settings.r2_endpoint
    if not (endpoint and settings.R2_ACCESS_KEY_ID and settings.R2_SECRET_ACCESS_KEY):
        raise StorageNotConfiguredError("R2 credentials are not configured")

    _s3_client = boto3.client(
        "s3",
        region_name="auto",
        endpoint_url=endpoint,
        aws_access_key_id=settings.R2_ACCESS_KEY_ID,
        aws_secret_access_key=settings.R2_SECRET_ACCESS_KEY,
        config=_client_config,
    )
    return _s3_client


def _bucket() -> str:
    if not settings.R2_BUCKET_NAME:
        raise StorageNotConfiguredError("R2_BUCKET_NAME is not configured")
    return settings.R2_BUCKET_NAME


def get_download_signed_url(r2_key: str, expires_in: int | None = None) -> str:
    """Presigned GET for `r2_key`, valid for `expires_in` seconds (default 300)."""
    expires_in = expires_in or settings.SIGNED_URL_EXPIRE_SECONDS
    try:
        return get_s3_client().generate_presigned_url(
            "get_object",
            Params={"Bucket": _bucket(), "Key": r2_key},
            ExpiresIn=expires_in,
        )
    except (BotoCoreError, ClientError) as e:
        logger.error(
            "Error generating R2 download signed URL",
            extra={"r2_key": r2_key, "error": str(e)},
        )
        raise


def get_upload_signed_url(
    r2_key: str,
    expires_in: int | None = None,
    content_type: str = DEFAULT_CONTENT_TYPE,
) -> str:
    """Presigned PUT for `r2_key`; the upload must send the same Content-Type."""
    expires_in = expires_in or settings.SIGNED_URL_EXPIRE_SECONDS
    try:
        return get_s3_client().generate_presigned_url(
            "put_object",
            Params={"Bucket": _bucket(), "Key": r2_key, "ContentType": content_type},
            ExpiresIn=expires_in,
        )
    except (BotoCoreError, ClientError) as e:
        logger.error(
            "Error generating R2 upload signed URL",
            extra={"r2_key": r2_key, "error": str(e)},
        )
        raise
