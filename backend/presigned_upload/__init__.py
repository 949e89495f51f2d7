"""
Presigned upload service.

Clients upload images straight to object storage with a presigned URL;
the backend verifies the object landed before recording it.
"""
__version__ = "0.1.0"
