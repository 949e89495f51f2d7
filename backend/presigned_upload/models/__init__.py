"""
Database models package.
"""
from presigned_upload.models.base import Base
from presigned_upload.models.uploaded_image import UploadedImage

__all__ = [
    "Base",
    "UploadedImage",
]
