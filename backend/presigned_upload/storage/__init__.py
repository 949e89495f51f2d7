"""
Storage module for S3-compatible object storage.

This module handles direct uploads from clients using presigned URLs.
The backend NEVER receives file bytes - files go directly to the bucket.
"""
from presigned_upload.storage.authorizer import UploadAuthorization, UploadAuthorizer
from presigned_upload.storage.keys import KeyAllocator
from presigned_upload.storage.s3_client import build_s3_client

__all__ = ["build_s3_client", "KeyAllocator", "UploadAuthorization", "UploadAuthorizer"]
