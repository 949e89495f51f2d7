"""
S3 / S3-compatible storage client factory.

Uses boto3 with the S3 API. Works against AWS S3 and any S3-compatible
store (MinIO, Cloudflare R2) when an endpoint URL is configured.

Why presigned URLs?
- Clients upload files directly to the bucket (no backend proxy)
- Backend never holds image bytes in memory
- Bucket stays private - only presigned URLs can write
"""
import logging

import boto3
from botocore.config import Config

from presigned_upload.config import Settings

logger = logging.getLogger(__name__)


def build_s3_client(settings: Settings):
    """
    Create the boto3 S3 client shared by all requests.

    boto3 clients are thread-safe, so one instance is created at startup
    and injected wherever storage is needed.

    Args:
        settings: Application settings

    Returns:
        boto3 S3 client
    """
    client_kwargs = {
        "region_name": settings.aws_region,
        "config": Config(
            signature_version="s3v4",
            connect_timeout=settings.storage_timeout_seconds,
            read_timeout=settings.storage_timeout_seconds,
            retries={"max_attempts": 2, "mode": "standard"},
        ),
    }

    # Explicit credentials are optional; boto3 falls back to its default
    # provider chain (env, shared config, instance role)
    if settings.aws_access_key_id and settings.aws_secret_access_key:
        client_kwargs["aws_access_key_id"] = settings.aws_access_key_id
        client_kwargs["aws_secret_access_key"] = settings.aws_secret_access_key
    else:
        logger.warning(
            "AWS credentials not set explicitly. "
            "Using the default boto3 credential chain."
        )

    if settings.s3_endpoint_url:
        client_kwargs["endpoint_url"] = settings.s3_endpoint_url

    client = boto3.client("s3", **client_kwargs)
    logger.info(f"S3 client initialized for bucket: {settings.s3_bucket_name}")
    return client
