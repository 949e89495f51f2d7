"""
Upload authorization and existence verification against object storage.

Wraps a boto3 S3 client:
- issue(): presigned PUT URL bound to one key, one content type, one expiry
- verify_exists(): HEAD request, the only trusted answer to
  "did the client really upload the object"
- list_keys(): paginated listing used by reconciliation

boto3 is blocking, so every call runs in a worker thread under a deadline.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from presigned_upload.errors import (
    AuthorizationFailedError,
    UploadValidationError,
    VerificationIndeterminateError,
)
from presigned_upload.storage.keys import KeyAllocator
from presigned_upload.utils.logging import log_storage_failure
from presigned_upload.utils.metrics import storage_errors_total

logger = logging.getLogger(__name__)

# Error codes boto3 reports for a missing object on HEAD
NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class UploadAuthorization:
    """Write capability handed back to the client. Never persisted."""
    key: str
    url: str
    content_type: str
    expires_at: datetime


class UploadAuthorizer:
    """
    Thin stateless facade over a storage client.

    Safe to share between concurrent requests: it holds no per-request
    state and boto3 clients are thread-safe.
    """

    def __init__(
        self,
        client,
        bucket: str,
        max_expiration: timedelta = timedelta(minutes=5),
        timeout: float = 10.0,
        list_timeout: Optional[float] = None,
        allocator: Optional[KeyAllocator] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self._client = client
        self.bucket = bucket
        self.max_expiration = max_expiration
        self.timeout = timeout
        # Listing walks every page of the bucket, so it gets its own deadline
        self.list_timeout = list_timeout if list_timeout is not None else timeout
        self._allocator = allocator
        self._clock = clock or _utcnow

    async def _run(self, func, *args, deadline: Optional[float] = None, **kwargs):
        return await asyncio.wait_for(
            asyncio.to_thread(func, *args, **kwargs),
            timeout=deadline if deadline is not None else self.timeout
        )

    async def issue(self, key: str, content_type: str, ttl: timedelta) -> UploadAuthorization:
        """
        Generate a presigned PUT authorization for one object.

        Args:
            key: Object key the write is bound to
            content_type: MIME type the client must send
            ttl: How long the URL stays valid

        Returns:
            UploadAuthorization with URL and expiry instant

        Raises:
            UploadValidationError: ttl out of range, not whole seconds, or
                content type does not match the key's extension
            AuthorizationFailedError: signing failed (credentials, config,
                network). Not retried here.

        Security:
            - Only allows PUT, not GET
            - Storage rejects the write after expires_at
            - Content-Type must match what was signed
        """
        if ttl < timedelta(seconds=1) or ttl > self.max_expiration:
            raise UploadValidationError(
                f"authorization lifetime must be within [1s, {int(self.max_expiration.total_seconds())}s]"
            )
        # Storage signs whole seconds; expires_at must be the instant the URL dies
        if ttl.microseconds:
            raise UploadValidationError("authorization lifetime must be a whole number of seconds")
        expires_in = int(ttl.total_seconds())

        if self._allocator is not None:
            extension = self._allocator.extension_of(key)
            expected = self._allocator.allowed_types.get(extension) if extension else None
            if expected != content_type:
                raise UploadValidationError(
                    f"content type '{content_type}' does not match key '{key}'"
                )

        issued_at = self._clock()
        try:
            url = await self._run(
                self._client.generate_presigned_url,
                ClientMethod="put_object",
                Params={
                    "Bucket": self.bucket,
                    "Key": key,
                    "ContentType": content_type,
                },
                ExpiresIn=expires_in
            )
        except (ClientError, BotoCoreError, asyncio.TimeoutError) as e:
            storage_errors_total.labels(operation="presign").inc()
            log_storage_failure(logger, operation="presign", image_key=key, error=repr(e))
            raise AuthorizationFailedError(f"failed to generate presigned URL for '{key}'") from e

        logger.debug(f"Generated presigned URL for {key}")
        return UploadAuthorization(
            key=key,
            url=url,
            content_type=content_type,
            expires_at=issued_at + timedelta(seconds=expires_in)
        )

    async def verify_exists(self, key: str) -> bool:
        """
        Check if an object exists in the bucket (metadata only).

        Returns:
            True if the object exists, False if storage says it does not

        Raises:
            VerificationIndeterminateError: the check itself failed
                (network, permissions, timeout)
        """
        try:
            await self._run(self._client.head_object, Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in NOT_FOUND_CODES:
                return False
            storage_errors_total.labels(operation="head").inc()
            log_storage_failure(logger, operation="head", image_key=key, error=repr(e))
            raise VerificationIndeterminateError(f"existence check failed for '{key}': {code}") from e
        except (BotoCoreError, asyncio.TimeoutError) as e:
            storage_errors_total.labels(operation="head").inc()
            log_storage_failure(logger, operation="head", image_key=key, error=repr(e))
            raise VerificationIndeterminateError(f"existence check failed for '{key}'") from e

    async def list_keys(self, prefix: str) -> List[str]:
        """
        List all object keys under a prefix using pagination.

        Raises:
            VerificationIndeterminateError: listing could not complete
        """
        def _list() -> List[str]:
            keys = []
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                keys.extend(obj["Key"] for obj in page.get("Contents", []))
            return keys

        try:
            return await self._run(_list, deadline=self.list_timeout)
        except (ClientError, BotoCoreError, asyncio.TimeoutError) as e:
            storage_errors_total.labels(operation="list").inc()
            log_storage_failure(logger, operation="list", image_key=prefix, error=repr(e))
            raise VerificationIndeterminateError(f"failed to list objects under '{prefix}'") from e
