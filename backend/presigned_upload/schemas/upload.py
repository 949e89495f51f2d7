"""
Pydantic schemas for upload endpoints.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class PrepareUploadRequest(BaseModel):
    """Request schema for presigned URL generation."""
    file_extension: str = Field(..., description="File extension including the dot, e.g. '.jpeg'")
    content_type: Optional[str] = Field(None, description="MIME type the client will upload with")

    model_config = {
        "json_schema_extra": {
            "example": {"file_extension": ".jpeg"}
        }
    }


class PrepareUploadResponse(BaseModel):
    """Response schema for presigned URL."""
    presigned_url: str = Field(..., description="Presigned PUT URL for direct upload")
    key: str = Field(..., description="Object key to send to /upload-confirm")
    expires_at: datetime = Field(..., description="When the presigned URL stops working")


class UploadConfirmRequest(BaseModel):
    """Request schema for upload confirmation."""
    key: str = Field(..., min_length=1, description="Object key from /prepare-upload")


class UploadConfirmResponse(BaseModel):
    """Response schema for upload confirmation."""
    success: bool
    url: str = Field(..., description="Public CDN URL of the image")
    status: str
    ledgered: bool = Field(..., description="Whether the upload is recorded in the ledger")


class UploadedImagesResponse(BaseModel):
    """Response schema for uploaded image listing."""
    success: bool
    images: List[str]
