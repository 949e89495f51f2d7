"""
Reconciliation sweep between storage and the ledger.

Confirmations whose ledger write failed leave an object in storage with no
ledger row. The sweep lists the upload area of the bucket and records every
owned key the ledger does not know about. Presence in the storage listing
is the independent verification, so the ledger invariant still holds.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import List

from presigned_upload.errors import PersistenceFailedError
from presigned_upload.repositories.upload_ledger import UploadLedger
from presigned_upload.storage.authorizer import UploadAuthorizer
from presigned_upload.storage.keys import KeyAllocator
from presigned_upload.utils.logging import log_reconciliation_completed
from presigned_upload.utils.metrics import reconciliation_recovered_total

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationReport:
    """Summary of one sweep."""
    scanned: int = 0
    already_recorded: int = 0
    recovered: int = 0
    failed: int = 0
    missing_keys: List[str] = field(default_factory=list)


class ReconciliationService:
    """Brings the ledger in line with what storage actually holds."""

    def __init__(self, allocator: KeyAllocator, authorizer: UploadAuthorizer, ledger: UploadLedger):
        self.allocator = allocator
        self.authorizer = authorizer
        self.ledger = ledger

    async def reconcile(self, dry_run: bool = False) -> ReconciliationReport:
        """
        Record uploads present in storage but missing from the ledger.

        Args:
            dry_run: Only report missing keys, do not write

        Returns:
            ReconciliationReport

        Raises:
            VerificationIndeterminateError: Storage listing failed
            PersistenceFailedError: Ledger listing failed
        """
        start = time.monotonic()
        report = ReconciliationReport()

        stored = [
            key for key in await self.authorizer.list_keys(f"{self.allocator.prefix}/")
            if self.allocator.owns(key)
        ]
        recorded = set(await self.ledger.list_all())

        report.scanned = len(stored)
        for key in stored:
            if key in recorded:
                report.already_recorded += 1
                continue

            report.missing_keys.append(key)
            if dry_run:
                continue

            try:
                await self.ledger.record(key)
            except PersistenceFailedError as e:
                report.failed += 1
                logger.error(f"Failed to recover ledger record for {key}: {e}")
                continue

            report.recovered += 1
            reconciliation_recovered_total.inc()

        log_reconciliation_completed(
            logger,
            scanned=report.scanned,
            recovered=report.recovered,
            failed=report.failed,
            missing=len(report.missing_keys),
            dry_run=dry_run,
            duration_ms=(time.monotonic() - start) * 1000
        )
        return report
