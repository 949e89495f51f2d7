"""
UploadedImage model: the ledger of confirmed uploads.

A row exists only for keys that were verified present in object storage.
The image bytes live in the bucket, never in the database.

Lifecycle:
1. Client requests presigned URL -> nothing stored
2. Client uploads to storage directly
3. Client confirms, backend re-checks storage -> row inserted
"""
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func

from presigned_upload.models.base import Base


class UploadedImage(Base):
    """
    Confirmed upload record.

    Attributes:
        id: Surrogate primary key assigned by the database
        image_key: Object key in the bucket (unique, one row per key)
        created_at: When the upload was confirmed
    """
    __tablename__ = "uploaded_images"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Example: uploads/{uuid}.jpeg
    # Uniqueness makes concurrent confirms of the same key collapse to one row
    image_key = Column(String(1024), nullable=False, unique=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    def __repr__(self):
        return f"<UploadedImage(id={self.id}, image_key={self.image_key})>"
