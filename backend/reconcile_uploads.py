#!/usr/bin/env python3
"""
Script to reconcile the upload ledger with the storage bucket.

Records every upload that exists in the bucket but is missing from the
ledger (e.g. a confirmation whose database write failed).

Usage:
    # From inside the container:
    docker exec -it upload-api python reconcile_uploads.py

    # Only report missing records:
    docker exec upload-api python reconcile_uploads.py --dry-run

    # Or locally with environment variables:
    S3_BUCKET_NAME=xxx AWS_REGION=xxx DATABASE_URL=xxx python reconcile_uploads.py
"""
import argparse
import asyncio
import sys

from presigned_upload.config import settings
from presigned_upload.database import AsyncSessionLocal, engine, init_db
from presigned_upload.dependencies import build_reconciliation_service, build_upload_service
from presigned_upload.errors import UploadError
from presigned_upload.storage.s3_client import build_s3_client
from presigned_upload.utils.logging import configure_logging


async def run(dry_run: bool) -> int:
    await init_db()
    try:
        upload_service = build_upload_service(settings, build_s3_client(settings), AsyncSessionLocal)
        reconciler = build_reconciliation_service(upload_service)

        try:
            report = await reconciler.reconcile(dry_run=dry_run)
        except UploadError as e:
            print(f"ERROR: reconciliation aborted: {e}")
            return 1
    finally:
        await engine.dispose()

    print(f"\n{'='*50}")
    print("SUMMARY:")
    print(f"  Bucket: {settings.s3_bucket_name}")
    print(f"  Uploads in storage: {report.scanned}")
    print(f"  Already recorded: {report.already_recorded}")
    print(f"  Missing from ledger: {len(report.missing_keys)}")
    for key in report.missing_keys[:5]:
        print(f"    - {key}")
    if len(report.missing_keys) > 5:
        print(f"    ... and {len(report.missing_keys) - 5} more")
    if not dry_run:
        print(f"  Recovered: {report.recovered}")
        print(f"  Failed: {report.failed}")
    print(f"{'='*50}")

    return 1 if report.failed else 0


def main():
    parser = argparse.ArgumentParser(description='Reconcile upload ledger with storage')
    parser.add_argument('--dry-run', action='store_true',
                        help='Report missing ledger records without writing them')
    args = parser.parse_args()

    configure_logging('upload-reconciler', settings.log_level)
    sys.exit(asyncio.run(run(args.dry_run)))


if __name__ == '__main__':
    main()
