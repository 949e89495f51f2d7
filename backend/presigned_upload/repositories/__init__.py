"""
Repository layer for database operations.
"""
from presigned_upload.repositories.upload_ledger import UploadLedger

__all__ = ["UploadLedger"]
