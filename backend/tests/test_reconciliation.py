"""
Tests for the storage / ledger reconciliation sweep.
"""
from unittest.mock import AsyncMock

import pytest

from presigned_upload.dependencies import build_reconciliation_service
from presigned_upload.errors import PersistenceFailedError, VerificationIndeterminateError
from presigned_upload.services.reconciliation import ReconciliationService


@pytest.fixture
def reconciler(upload_service) -> ReconciliationService:
    return build_reconciliation_service(upload_service)


class TestReconcile:
    """Tests for ReconciliationService.reconcile."""

    @pytest.mark.asyncio
    async def test_records_stored_uploads_missing_from_ledger(self, reconciler, ledger, fake_s3):
        for name in ["a", "b", "c"]:
            fake_s3.put_object(f"uploads/{name}.jpeg")
        await ledger.record("uploads/a.jpeg")

        report = await reconciler.reconcile()

        assert report.scanned == 3
        assert report.already_recorded == 1
        assert report.recovered == 2
        assert report.failed == 0
        assert report.missing_keys == ["uploads/b.jpeg", "uploads/c.jpeg"]
        assert await ledger.list_all() == ["uploads/a.jpeg", "uploads/b.jpeg", "uploads/c.jpeg"]

    @pytest.mark.asyncio
    async def test_ignores_objects_outside_upload_area(self, reconciler, ledger, fake_s3):
        fake_s3.put_object("uploads/good.jpeg")
        fake_s3.put_object("uploads/notes.txt")
        fake_s3.put_object("uploads/nested/deep.jpeg")
        fake_s3.put_object("avatars/someone.jpeg")

        report = await reconciler.reconcile()

        assert report.scanned == 1
        assert await ledger.list_all() == ["uploads/good.jpeg"]

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, reconciler, ledger, fake_s3):
        fake_s3.put_object("uploads/a.jpeg")

        report = await reconciler.reconcile(dry_run=True)

        assert report.missing_keys == ["uploads/a.jpeg"]
        assert report.recovered == 0
        assert await ledger.list_all() == []

    @pytest.mark.asyncio
    async def test_second_sweep_is_a_no_op(self, reconciler, ledger, fake_s3):
        fake_s3.put_object("uploads/a.jpeg")

        await reconciler.reconcile()
        report = await reconciler.reconcile()

        assert report.recovered == 0
        assert report.already_recorded == 1
        assert await ledger.list_all() == ["uploads/a.jpeg"]

    @pytest.mark.asyncio
    async def test_recovers_after_failed_confirm_write(self, upload_service, reconciler, ledger, fake_s3):
        key = "uploads/lost.jpeg"
        fake_s3.put_object(key)
        real_record = ledger.record
        ledger.record = AsyncMock(side_effect=PersistenceFailedError("db down"))

        result = await upload_service.confirm(key)
        assert not result.ledgered

        ledger.record = real_record
        report = await reconciler.reconcile()

        assert report.recovered == 1
        assert await ledger.list_all() == [key]

    @pytest.mark.asyncio
    async def test_per_key_failures_are_counted(self, reconciler, ledger, fake_s3):
        fake_s3.put_object("uploads/a.jpeg")
        fake_s3.put_object("uploads/b.jpeg")
        ledger.record = AsyncMock(side_effect=PersistenceFailedError("db down"))

        report = await reconciler.reconcile()

        assert report.failed == 2
        assert report.recovered == 0

    @pytest.mark.asyncio
    async def test_listing_failure_aborts(self, reconciler, fake_s3, server_error):
        def broken_paginator(operation_name):
            raise server_error("AccessDenied")

        fake_s3.get_paginator = broken_paginator

        with pytest.raises(VerificationIndeterminateError):
            await reconciler.reconcile()
