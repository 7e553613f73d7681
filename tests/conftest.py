"""Shared fixtures: SQLite metadata store + local blob store under tmp_path."""
from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from secure_uploader.config import Settings
from secure_uploader.database import Database
from secure_uploader.main import create_app
from secure_uploader.repositories.file_records import FileRecordRepository
from secure_uploader.services.blob_store import LocalBlobStore
from secure_uploader.services.file_service import FileService, UploadPayload

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
PDF_BYTES = b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n1 0 obj\n<<>>\nendobj\n%%EOF\n"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        ENVIRONMENT="test",
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'metadata.db'}",
        BLOB_STORAGE_TYPE="local",
        FILE_STORAGE_PATH=str(tmp_path / "blobs"),
        STORE_OPERATION_TIMEOUT=5.0,
        MAX_FILE_SIZE=1024 * 1024,
        LOG_LEVEL="DEBUG",
    )


@pytest_asyncio.fixture
async def database(settings):
    db = Database(settings)
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def repository(database) -> FileRecordRepository:
    return FileRecordRepository(database)


@pytest.fixture
def blob_store(settings) -> LocalBlobStore:
    return LocalBlobStore(settings)


@pytest.fixture
def service(repository, blob_store, settings) -> FileService:
    return FileService(repository, blob_store, settings)


@pytest.fixture
def make_payload():
    def _make(
        filename: str = "passport.png",
        content_type: str = "image/png",
        data: bytes = PNG_BYTES,
        category: str | None = "passport",
        description: str | None = "Front page",
    ) -> UploadPayload:
        return UploadPayload(
            filename=filename,
            content_type=content_type,
            data=data,
            category=category,
            description=description,
        )

    return _make


@pytest_asyncio.fixture
async def app(settings):
    application = create_app(settings)
    await application.state.database.create_all()
    yield application
    await application.state.blob_store.close()
    await application.state.database.dispose()


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
