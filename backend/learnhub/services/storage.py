from __future__ import annotations

import boto3
from botocore.client import Config

from learnhub.core.config import settings


def get_s3_client(*, endpoint_url: str | None = None):
    ep = (endpoint_url or "").strip() or None
    # For AWS S3, endpoint_url must be None.
    # For S3-compatible providers (MinIO/R2/Supabase), endpoint_url is required.
    return boto3.client(
        "s3",
        endpoint_url=ep or (str(getattr(settings, "s3_endpoint_url", "") or "").strip() or None),
        aws_access_key_id=settings.s3_access_key_id,
        aws_secret_access_key=settings.s3_secret_access_key,
        region_name=settings.s3_region_name,
        config=Config(
            signature_version="s3v4",
            connect_timeout=float(getattr(settings, "s3_connect_timeout_seconds", 3.0)),
            read_timeout=float(getattr(settings, "s3_read_timeout_seconds", 30.0)),
            retries={
                "max_attempts": int(getattr(settings, "s3_max_attempts", 3)),
                "mode": "standard",
            },
            max_pool_connections=int(getattr(settings, "s3_max_pool_connections", 50)),
            s3={
                "addressing_style": str(getattr(settings, "s3_addressing_style", "path")),
            },
        ),
    )


def _get_presign_client():
    pub = (settings.s3_public_endpoint_url or "").strip()
    # Presign client does not contact S3; endpoint_url affects only the signed host.
    return get_s3_client(endpoint_url=pub or settings.s3_endpoint_url)


def presign_get(*, object_key: str, expires_seconds: int | None = None) -> str:
    ttl = int(expires_seconds or settings.s3_presign_download_expires_seconds or 60)
    if (getattr(settings, "app_env", "") or "").strip().lower() in {"prod", "production"}:
        ttl = max(30, min(ttl, 300))
    s3 = _get_presign_client()
    return s3.generate_presigned_url(
        "get_object",
        Params={"Bucket": settings.s3_bucket, "Key": object_key},
        ExpiresIn=ttl,
    )
