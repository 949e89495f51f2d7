"""
Construction and injection of the long-lived upload handles.

The storage client and the session factory are built once at startup and
passed explicitly into the services; routes fetch the service from
app.state through get_upload_service (overridable in tests).
"""
from datetime import timedelta

from fastapi import Request
from sqlalchemy.ext.asyncio import async_sessionmaker

from presigned_upload.config import Settings
from presigned_upload.repositories.upload_ledger import UploadLedger
from presigned_upload.services.reconciliation import ReconciliationService
from presigned_upload.services.upload_service import UploadService
from presigned_upload.storage.authorizer import UploadAuthorizer
from presigned_upload.storage.keys import KeyAllocator


def build_upload_service(settings: Settings, s3_client, session_factory: async_sessionmaker) -> UploadService:
    """Wire allocator, authorizer and ledger into an UploadService."""
    allocator = KeyAllocator(
        prefix=settings.upload_prefix,
        allowed_types=settings.allowed_upload_types
    )
    authorizer = UploadAuthorizer(
        s3_client,
        bucket=settings.s3_bucket_name,
        max_expiration=timedelta(seconds=settings.presign_max_expiration_seconds),
        timeout=settings.storage_timeout_seconds,
        list_timeout=settings.storage_list_timeout_seconds,
        allocator=allocator
    )
    ledger = UploadLedger(session_factory, timeout=settings.database_timeout_seconds)

    return UploadService(
        allocator=allocator,
        authorizer=authorizer,
        ledger=ledger,
        public_base_url=settings.cdn_base_url,
        presign_ttl=timedelta(seconds=settings.presign_expiration_seconds),
        verify_attempts=settings.verify_attempts,
        verify_backoff_seconds=settings.verify_backoff_seconds
    )


def build_reconciliation_service(upload_service: UploadService) -> ReconciliationService:
    """Reuse the upload service's handles for a reconciliation sweep."""
    return ReconciliationService(
        allocator=upload_service.allocator,
        authorizer=upload_service.authorizer,
        ledger=upload_service.ledger
    )


def get_upload_service(request: Request) -> UploadService:
    """
    Dependency for FastAPI routes to get the upload service.
    Usage: service: UploadService = Depends(get_upload_service)
    """
    return request.app.state.upload_service
