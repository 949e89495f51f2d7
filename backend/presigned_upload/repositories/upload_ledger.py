"""
Ledger of confirmed uploads.

Records keys whose objects were verified present in storage and lists
them back. The unique constraint on image_key, not application locking,
keeps concurrent confirms of the same key down to one row.
"""
import asyncio
import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from presigned_upload.errors import PersistenceFailedError
from presigned_upload.models.uploaded_image import UploadedImage

logger = logging.getLogger(__name__)


class UploadLedger:
    """Repository for uploaded image records."""

    def __init__(self, session_factory: async_sessionmaker, timeout: float = 5.0):
        """
        Args:
            session_factory: Factory producing AsyncSession instances.
                Each call opens its own session, so one ledger can serve
                many concurrent requests.
            timeout: Deadline in seconds for each ledger operation
        """
        self._session_factory = session_factory
        self.timeout = timeout

    async def _with_deadline(self, coro, action: str):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise PersistenceFailedError(f"ledger {action} timed out after {self.timeout}s") from e
        except SQLAlchemyError as e:
            raise PersistenceFailedError(f"ledger {action} failed: {e}") from e

    @staticmethod
    async def _find(db: AsyncSession, key: str):
        result = await db.execute(
            select(UploadedImage).where(UploadedImage.image_key == key)
        )
        return result.scalar_one_or_none()

    async def _record(self, key: str) -> UploadedImage:
        async with self._session_factory() as db:
            existing = await self._find(db, key)
            if existing is not None:
                return existing  # Idempotent

            image = UploadedImage(image_key=key)
            db.add(image)
            try:
                await db.commit()
            except IntegrityError:
                # A concurrent confirm inserted the same key first
                await db.rollback()
                existing = await self._find(db, key)
                if existing is None:
                    raise
                logger.debug(f"Duplicate ledger insert for {key} resolved to existing row")
                return existing

            await db.refresh(image)
            logger.info(f"Recorded upload: id={image.id}, key={key}")
            return image

    async def record(self, key: str) -> UploadedImage:
        """
        Record a confirmed upload. Recording the same key twice returns
        the existing row instead of creating a duplicate.

        Precondition: the caller already verified the object exists.

        Args:
            key: Object key

        Returns:
            The UploadedImage row for the key

        Raises:
            PersistenceFailedError: On database errors or timeout
        """
        return await self._with_deadline(self._record(key), "write")

    async def _list_all(self) -> List[str]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(UploadedImage.image_key).order_by(UploadedImage.id)
            )
            return list(result.scalars().all())

    async def list_all(self) -> List[str]:
        """
        Get all recorded keys, oldest first.

        Raises:
            PersistenceFailedError: On database errors or timeout
        """
        return await self._with_deadline(self._list_all(), "read")

    async def _contains(self, key: str) -> bool:
        async with self._session_factory() as db:
            return await self._find(db, key) is not None

    async def contains(self, key: str) -> bool:
        """Check whether a key has been recorded."""
        return await self._with_deadline(self._contains(key), "read")
