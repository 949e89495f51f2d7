"""
Upload orchestration: begin / confirm / list.

Flow:
1. Client calls begin with a file extension
2. Backend allocates a unique key and a presigned PUT URL (nothing stored)
3. Client uploads directly to storage using the URL
4. Client calls confirm with the key
5. Backend re-checks storage with HEAD, never trusting the client
6. On success the key is recorded in the ledger

Storage presence and ledger presence are kept as separate facts: a ledger
failure after a successful HEAD does not fail the confirmation.
"""
import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional

from presigned_upload.errors import (
    ObjectNotFoundError,
    PersistenceFailedError,
    UploadValidationError,
    VerificationIndeterminateError,
)
from presigned_upload.repositories.upload_ledger import UploadLedger
from presigned_upload.storage.authorizer import UploadAuthorization, UploadAuthorizer
from presigned_upload.storage.keys import KeyAllocator
from presigned_upload.utils.logging import (
    log_ledger_write_failed,
    log_upload_confirmed,
    log_upload_prepared,
    log_upload_rejected,
)
from presigned_upload.utils.metrics import (
    ledger_write_failures_total,
    uploads_confirmed_total,
    uploads_prepared_total,
    uploads_rejected_total,
)

logger = logging.getLogger(__name__)


class UploadState(str, enum.Enum):
    """States of one logical upload attempt."""
    REQUESTED = "requested"
    AUTHORIZED = "authorized"
    CONFIRM_REQUESTED = "confirm_requested"
    VERIFIED = "verified"            # In storage, ledger write failed
    LEDGERED = "ledgered"            # In storage and in the ledger
    REJECTED = "rejected"            # Storage says the object is absent


@dataclass(frozen=True)
class ConfirmResult:
    """Outcome of a successful confirmation."""
    key: str
    url: str
    state: UploadState

    @property
    def ledgered(self) -> bool:
        return self.state == UploadState.LEDGERED


def build_public_url(base_url: str, key: str) -> str:
    """Join the public CDN base URL with an object key."""
    return f"{base_url.rstrip('/')}/{key.lstrip('/')}"


class UploadService:
    """Coordinates key allocation, authorization, verification and the ledger."""

    def __init__(
        self,
        allocator: KeyAllocator,
        authorizer: UploadAuthorizer,
        ledger: UploadLedger,
        public_base_url: str,
        presign_ttl: timedelta = timedelta(minutes=5),
        verify_attempts: int = 3,
        verify_backoff_seconds: float = 0.5
    ):
        self.allocator = allocator
        self.authorizer = authorizer
        self.ledger = ledger
        self.public_base_url = public_base_url
        self.presign_ttl = presign_ttl
        self.verify_attempts = max(1, verify_attempts)
        self.verify_backoff_seconds = verify_backoff_seconds

    async def begin(self, extension: str, content_type: Optional[str] = None) -> UploadAuthorization:
        """
        Start an upload: allocate a key and issue a presigned PUT URL.

        Args:
            extension: Requested file extension (e.g. ".jpeg")
            content_type: MIME type the client will send. Defaults to the
                type bound to the extension.

        Returns:
            UploadAuthorization for the new key

        Raises:
            UploadValidationError: Unsupported extension or mismatching
                content type. Storage is never called in that case.
            AuthorizationFailedError: Signing failed
        """
        start = time.monotonic()
        try:
            expected_type = self.allocator.content_type_for(extension)
            if content_type is not None and content_type != expected_type:
                raise UploadValidationError(
                    f"content type '{content_type}' is not allowed for '{extension}'"
                )
            key = self.allocator.allocate(extension)
        except UploadValidationError:
            uploads_rejected_total.labels(reason="invalid_request").inc()
            log_upload_rejected(logger, reason="invalid_request", extension=extension)
            raise

        authorization = await self.authorizer.issue(key, expected_type, self.presign_ttl)

        uploads_prepared_total.inc()
        log_upload_prepared(
            logger,
            image_key=key,
            duration_ms=(time.monotonic() - start) * 1000
        )
        return authorization

    async def _verify_with_retry(self, key: str) -> bool:
        """
        HEAD the object, retrying with exponential backoff.

        A missing object is retried too: eventually consistent stores can
        report a fresh write as absent for a short while.
        """
        last_error: Optional[VerificationIndeterminateError] = None

        for attempt in range(self.verify_attempts):
            if attempt:
                await asyncio.sleep(self.verify_backoff_seconds * (2 ** (attempt - 1)))
            try:
                if await self.authorizer.verify_exists(key):
                    return True
                last_error = None
            except VerificationIndeterminateError as e:
                last_error = e
                logger.warning(
                    f"Existence check attempt {attempt + 1}/{self.verify_attempts} "
                    f"failed for {key}: {e}"
                )

        if last_error is not None:
            raise last_error
        return False

    async def confirm(self, key: str) -> ConfirmResult:
        """
        Confirm an upload after the client reports completion.

        Args:
            key: Object key returned by begin

        Returns:
            ConfirmResult. state is LEDGERED when the ledger write succeeded,
            VERIFIED when the object is in storage but the ledger write failed.

        Raises:
            UploadValidationError: Key is outside the upload area
            ObjectNotFoundError: Storage says the object does not exist
            VerificationIndeterminateError: Storage check kept failing
        """
        start = time.monotonic()

        if not self.allocator.owns(key):
            uploads_rejected_total.labels(reason="invalid_key").inc()
            log_upload_rejected(logger, reason="invalid_key", image_key=key)
            raise UploadValidationError(f"key '{key}' is not an upload key")

        try:
            exists = await self._verify_with_retry(key)
        except VerificationIndeterminateError:
            uploads_rejected_total.labels(reason="verification_indeterminate").inc()
            raise

        if not exists:
            uploads_rejected_total.labels(reason="not_found").inc()
            log_upload_rejected(logger, reason="not_found", image_key=key)
            raise ObjectNotFoundError(key)

        url = build_public_url(self.public_base_url, key)

        try:
            await self.ledger.record(key)
            state = UploadState.LEDGERED
        except PersistenceFailedError as e:
            ledger_write_failures_total.inc()
            log_ledger_write_failed(logger, image_key=key, error=str(e))
            state = UploadState.VERIFIED

        result = ConfirmResult(key=key, url=url, state=state)
        uploads_confirmed_total.labels(ledgered=str(result.ledgered).lower()).inc()
        log_upload_confirmed(
            logger,
            image_key=key,
            ledgered=result.ledgered,
            duration_ms=(time.monotonic() - start) * 1000
        )
        return result

    async def list_image_urls(self) -> List[str]:
        """
        Get public URLs of all recorded uploads.

        Raises:
            PersistenceFailedError: Ledger read failed
        """
        keys = await self.ledger.list_all()
        return [build_public_url(self.public_base_url, key) for key in keys]
