"""
Pydantic schemas for request/response validation.
"""
from presigned_upload.schemas.upload import (
    PrepareUploadRequest,
    PrepareUploadResponse,
    UploadConfirmRequest,
    UploadConfirmResponse,
    UploadedImagesResponse,
)

__all__ = [
    "PrepareUploadRequest",
    "PrepareUploadResponse",
    "UploadConfirmRequest",
    "UploadConfirmResponse",
    "UploadedImagesResponse",
]
