"""
Object key allocation for direct uploads.

Pattern: {prefix}/{uuid4}{extension}

- prefix keeps uploads partitioned from other objects in the bucket
- uuid4 carries 122 random bits, so collisions are negligible
- extension is copied verbatim from the validated request

Allocation is pure: no storage or database access.
"""
import uuid
from typing import Dict, Optional

from presigned_upload.errors import UnsupportedFileTypeError

DEFAULT_UPLOAD_PREFIX = "uploads"

# Extension -> content type the presigned write is bound to
DEFAULT_ALLOWED_TYPES = {
    ".jpeg": "image/jpeg",
}


class KeyAllocator:
    """Mints unique storage keys for validated file extensions."""

    def __init__(
        self,
        prefix: str = DEFAULT_UPLOAD_PREFIX,
        allowed_types: Optional[Dict[str, str]] = None
    ):
        self.prefix = prefix.strip("/")
        self.allowed_types = dict(allowed_types or DEFAULT_ALLOWED_TYPES)

    def content_type_for(self, extension: str) -> str:
        """
        Get the content type bound to an allowed extension.

        Raises:
            UnsupportedFileTypeError: If the extension is not allowed
        """
        try:
            return self.allowed_types[extension]
        except KeyError:
            raise UnsupportedFileTypeError(extension) from None

    def allocate(self, extension: str) -> str:
        """
        Generate a new object key for an upload.

        Args:
            extension: File extension including the dot (e.g. ".jpeg")

        Returns:
            Object key string

        Raises:
            UnsupportedFileTypeError: If the extension is not allowed.
                Raised before any key is generated.
        """
        if extension not in self.allowed_types:
            raise UnsupportedFileTypeError(extension)

        return f"{self.prefix}/{uuid.uuid4()}{extension}"

    def extension_of(self, key: str) -> Optional[str]:
        """Return the allowed extension the key ends with, if any."""
        for extension in self.allowed_types:
            if key.endswith(extension):
                return extension
        return None

    def owns(self, key: str) -> bool:
        """
        Check that a key belongs to the upload area.

        The key must sit directly under the prefix, have a non-empty name
        and end with an allowed extension.
        """
        namespace = f"{self.prefix}/"
        if not key.startswith(namespace):
            return False

        name = key[len(namespace):]
        if not name or "/" in name:
            return False

        extension = self.extension_of(name)
        return extension is not None and len(name) > len(extension)
