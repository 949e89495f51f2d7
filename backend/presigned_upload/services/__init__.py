"""
Business logic services.
"""
from presigned_upload.services.reconciliation import ReconciliationReport, ReconciliationService
from presigned_upload.services.upload_service import (
    ConfirmResult,
    UploadService,
    UploadState,
    build_public_url,
)

__all__ = [
    "ConfirmResult",
    "ReconciliationReport",
    "ReconciliationService",
    "UploadService",
    "UploadState",
    "build_public_url",
]
