"""
Test configuration and fixtures.
Uses in-memory SQLite (aiosqlite) for the ledger and a fake S3 client.
"""
import os

# Set test environment before any imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["S3_BUCKET_NAME"] = "test-bucket"
os.environ["CDN_BASE_URL"] = "https://cdn.test"
os.environ["VERIFY_BACKOFF_SECONDS"] = "0"

import time

import pytest
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Dict, List
from urllib.parse import parse_qs, urlencode, urlparse

from botocore.exceptions import ClientError
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from presigned_upload.models.base import Base
from presigned_upload.repositories.upload_ledger import UploadLedger
from presigned_upload.services.upload_service import UploadService
from presigned_upload.storage.authorizer import UploadAuthorizer
from presigned_upload.storage.keys import KeyAllocator


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_BUCKET = "test-bucket"
TEST_CDN = "https://cdn.test"
FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeS3Client:
    """
    In-memory stand-in for a boto3 S3 client.

    Presigned URLs encode their key, content type and expiry, and
    put_with_presigned_url enforces them the way the real store would.
    """

    def __init__(self, clock=lambda: FIXED_NOW):
        self.clock = clock
        self.objects: Dict[str, str] = {}
        self.hidden_heads: Dict[str, int] = {}
        self.calls: List[tuple] = []
        self.head_errors: List[Exception] = []
        self.presign_error = None
        self.head_delay = 0.0
        self.list_delay = 0.0
        self.page_size = 2

    # Signing

    def generate_presigned_url(self, ClientMethod, Params, ExpiresIn):
        self.calls.append(("generate_presigned_url", Params["Key"]))
        if self.presign_error is not None:
            raise self.presign_error
        expires = int(self.clock().timestamp()) + ExpiresIn
        query = urlencode({
            "method": ClientMethod,
            "content-type": Params["ContentType"],
            "expires": expires,
        })
        return f"https://{Params['Bucket']}.s3.test/{Params['Key']}?{query}"

    def put_with_presigned_url(self, url: str, content_type: str, at: datetime, visible_after: int = 0) -> bool:
        """Simulate the client PUT. Returns False when storage rejects it."""
        parsed = urlparse(url)
        query = parse_qs(parsed.query)
        if query["method"][0] != "put_object":
            return False
        if at.timestamp() > int(query["expires"][0]):
            return False
        if content_type != query["content-type"][0]:
            return False
        self.put_object(parsed.path.lstrip("/"), content_type, visible_after)
        return True

    def put_object(self, key: str, content_type: str = "image/jpeg", visible_after: int = 0):
        self.objects[key] = content_type
        self.hidden_heads[key] = visible_after

    # Reads

    def head_object(self, Bucket, Key):
        self.calls.append(("head_object", Key))
        if self.head_delay:
            time.sleep(self.head_delay)
        if self.head_errors:
            raise self.head_errors.pop(0)

        # Eventually consistent store: the first N HEADs after a write miss
        hidden = self.hidden_heads.get(Key, 0)
        if Key not in self.objects or hidden > 0:
            if hidden > 0:
                self.hidden_heads[Key] = hidden - 1
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")
        return {"ContentLength": 1024, "ContentType": self.objects[Key]}

    def get_paginator(self, operation_name):
        assert operation_name == "list_objects_v2"
        return _FakePaginator(self)

    def calls_to(self, operation: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == operation]


class _FakePaginator:
    def __init__(self, client: FakeS3Client):
        self.client = client

    def paginate(self, Bucket, Prefix=""):
        self.client.calls.append(("list_objects_v2", Prefix))
        if self.client.list_delay:
            time.sleep(self.client.list_delay)
        keys = sorted(k for k in self.client.objects if k.startswith(Prefix))
        size = self.client.page_size
        if not keys:
            yield {"KeyCount": 0}
            return
        for i in range(0, len(keys), size):
            yield {"Contents": [{"Key": k, "Size": 1024} for k in keys[i:i + size]]}


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def fake_s3() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def server_error():
    """Factory for non-404 storage errors."""
    def _make(code: str = "InternalError") -> ClientError:
        return ClientError({"Error": {"Code": code, "Message": "boom"}}, "HeadObject")
    return _make


@pytest.fixture
async def db_engine():
    """Create an in-memory database with the ledger table."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def allocator() -> KeyAllocator:
    return KeyAllocator()


@pytest.fixture
def authorizer(fake_s3: FakeS3Client, allocator: KeyAllocator) -> UploadAuthorizer:
    return UploadAuthorizer(
        fake_s3,
        bucket=TEST_BUCKET,
        max_expiration=timedelta(minutes=5),
        timeout=2.0,
        allocator=allocator,
        clock=lambda: FIXED_NOW
    )


@pytest.fixture
def ledger(session_factory) -> UploadLedger:
    return UploadLedger(session_factory, timeout=2.0)


@pytest.fixture
def upload_service(allocator, authorizer, ledger) -> UploadService:
    return UploadService(
        allocator=allocator,
        authorizer=authorizer,
        ledger=ledger,
        public_base_url=TEST_CDN,
        presign_ttl=timedelta(minutes=5),
        verify_attempts=3,
        verify_backoff_seconds=0
    )


def get_test_app(upload_service: UploadService, db_session: AsyncSession) -> FastAPI:
    """Create a test FastAPI app with overridden dependencies."""
    from presigned_upload.main import app
    from presigned_upload.database import get_db
    from presigned_upload.dependencies import get_upload_service

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_upload_service] = lambda: upload_service

    return app


@pytest.fixture
async def client(upload_service: UploadService, db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing."""
    app = get_test_app(upload_service, db_session)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    # Clean up overrides
    app.dependency_overrides.clear()
