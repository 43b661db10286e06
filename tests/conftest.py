# tests/conftest.py

import asyncio
import os
import tempfile
from datetime import datetime, timedelta, timezone

# Settings are read at import time, so the environment must be in place first.
TEST_ROOT = tempfile.mkdtemp(prefix="tender-registry-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(TEST_ROOT, 'app.db')}"
os.environ["S3_BUCKET_NAME"] = "tenders-test"
os.environ["S3_ACCESS_KEY"] = "test-access"
os.environ["S3_SECRET_KEY"] = "test-secret"
os.environ["S3_ENDPOINT_URL"] = "http://storage.test"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["UPLOAD_TMP_DIR"] = os.path.join(TEST_ROOT, "uploads")
os.environ["ALLOWED_MIME_TYPES"] = "application/pdf,application/msword"
os.environ["MAX_FILE_SIZE"] = "1024"

import jwt
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from starlette.testclient import TestClient

from app.api.deps import get_document_store
from app.core.errors import StorageFailure
from app.db.database import get_db
from app.main import app
from app.models.base import Base
from app.models import orphaned_files, tenders  # noqa: F401
from app.schemas.principal import Principal
from app.services.document_store import DocumentStore, RawFile, StoredDocument


def run_async(coro):
    return asyncio.run(coro)


class FakeDocumentStore(DocumentStore):
    """In-memory store that records every call and fails on demand."""

    def __init__(self):
        self.objects = {}
        self.store_calls = 0
        self.removed = []
        self.fail_on = set()        # 1-based store call numbers that fail
        self.fail_remove = set()    # refs whose removal fails
        self.fail_all_removes = False
        self.delay = 0

    async def store(self, upload: RawFile) -> StoredDocument:
        self.store_calls += 1
        call = self.store_calls
        ref = f"tenders/{call}/{upload.name}"
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if call in self.fail_on:
                raise StorageFailure(f"Failed to store {upload.name}", storage_ref=ref)
            self.objects[ref] = upload.read()
        finally:
            upload.discard()
        return StoredDocument(
            original_name=upload.name,
            storage_ref=ref,
            url=f"http://storage.test/tenders-test/{ref}",
            size=upload.size,
            mime_type=upload.mime_type,
        )

    async def remove(self, storage_ref: str) -> None:
        if self.fail_all_removes or storage_ref in self.fail_remove:
            raise StorageFailure(f"Failed to remove {storage_ref}", storage_ref=storage_ref)
        self.objects.pop(storage_ref, None)
        self.removed.append(storage_ref)


def pdf(name="doc.pdf", size=10, mime_type="application/pdf") -> RawFile:
    return RawFile(name=name, mime_type=mime_type, size=size, content=b"%" * size)


@pytest.fixture
def store():
    return FakeDocumentStore()


@pytest.fixture
def make_pdf():
    return pdf


@pytest.fixture
def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    async def create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    run_async(create_tables())
    yield engine
    run_async(engine.dispose())


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def owner():
    return Principal(id="user-1", role="user")


@pytest.fixture
def other_user():
    return Principal(id="user-2", role="user")


@pytest.fixture
def admin():
    return Principal(id="admin-1", role="admin")


def make_token(sub="user-1", role="user", expires_in=timedelta(hours=1), **claims) -> str:
    payload = {"sub": sub, "role": role, "exp": datetime.now(timezone.utc) + expires_in, **claims}
    return jwt.encode(payload, os.environ["JWT_SECRET"], algorithm="HS256")


@pytest.fixture
def auth_headers():
    def build(sub="user-1", role="user", **kwargs):
        return {"Authorization": f"Bearer {make_token(sub, role, **kwargs)}"}
    return build


@pytest.fixture
def client(session_factory, store):
    """
    TestClient backed by a temporary SQLite database and the fake store.
    """
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_document_store] = lambda: store

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
