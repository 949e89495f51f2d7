"""
Error taxonomy for the upload flow.

Each exception maps to one outcome of the prepare/confirm protocol:

- UploadValidationError: client-caused (bad extension, content type, key)
- AuthorizationFailedError: presigning the write URL failed
- VerificationIndeterminateError: the existence check could not complete
- ObjectNotFoundError: storage definitively reports the object as absent
- PersistenceFailedError: the ledger write or read failed
"""


class UploadError(Exception):
    """Base class for all upload flow errors."""


class UploadValidationError(UploadError):
    """Request rejected before touching storage or the ledger."""


class UnsupportedFileTypeError(UploadValidationError):
    """File extension is not in the allow-list."""

    def __init__(self, extension: str):
        self.extension = extension
        super().__init__(f"file extension '{extension}' is not supported for upload")


class AuthorizationFailedError(UploadError):
    """Storage backend could not sign a write authorization."""


class VerificationIndeterminateError(UploadError):
    """Existence check failed to complete. Not the same as 'absent'."""


class ObjectNotFoundError(UploadError):
    """Storage completed the check and the object is not there."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"object '{key}' not found in storage")


class PersistenceFailedError(UploadError):
    """Ledger could not be read or written."""
