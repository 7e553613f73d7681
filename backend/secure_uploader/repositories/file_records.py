"""FileRecord repository - metadata CRUD on the SQL store."""
import asyncio
import logging
import uuid
from contextlib import contextmanager
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy import delete, desc, select, text
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from secure_uploader.database import Database
from secure_uploader.errors import NotFound, StoreUnavailable, ValidationError
from secure_uploader.models.file_record import (
    MAX_DESCRIPTION_LENGTH,
    MAX_NAME_LENGTH,
    FileCategory,
    FileRecord,
    utcnow,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def validate_record_fields(
    original_name: Optional[str],
    mime_type: Optional[str],
    size: Optional[int],
    description: Optional[str] = None,
) -> None:
    """Raise ValidationError naming every field that breaks the FileRecord rules."""
    errors: list[str] = []
    fields: list[str] = []

    name = (original_name or "").strip()
    if not name:
        fields.append("originalName")
        errors.append("File name is required")
    elif len(name) > MAX_NAME_LENGTH:
        fields.append("originalName")
        errors.append(f"File name cannot exceed {MAX_NAME_LENGTH} characters")

    if not (mime_type or "").strip():
        fields.append("mimeType")
        errors.append("MIME type is required")

    if size is None or isinstance(size, bool) or not isinstance(size, int) or size < 0:
        fields.append("size")
        errors.append("File size must be a non-negative integer")

    if description is not None and len(description.strip()) > MAX_DESCRIPTION_LENGTH:
        fields.append("description")
        errors.append(f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters")

    if fields:
        raise ValidationError("; ".join(errors), fields=fields)


def _parse_id(record_id) -> uuid.UUID:
    if isinstance(record_id, uuid.UUID):
        return record_id
    try:
        return uuid.UUID(str(record_id))
    except ValueError as e:
        raise NotFound("File not found") from e


@contextmanager
def _store_errors(action: str):
    try:
        yield
    except (OperationalError, InterfaceError, PoolTimeoutError, OSError) as e:
        logger.error("Metadata store error during %s: %s", action, e)
        raise StoreUnavailable(f"Metadata store unavailable: {e}") from e


class FileRecordRepository:
    def __init__(self, database: Database, timeout: Optional[float] = None):
        self.database = database
        self.timeout = timeout if timeout is not None else database.settings.STORE_OPERATION_TIMEOUT

    async def _run(self, action: str, fn: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async def _call() -> T:
            with _store_errors(action):
                async with self.database.session() as session:
                    return await fn(session)

        try:
            return await asyncio.wait_for(_call(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error("Metadata store %s timed out after %.1fs", action, self.timeout)
            raise StoreUnavailable(f"Metadata store timed out during {action}") from e

    async def create(
        self,
        original_name: str,
        mime_type: str,
        size: int,
        blob_id: str,
        category: "str | FileCategory | None" = None,
        description: Optional[str] = None,
    ) -> FileRecord:
        validate_record_fields(original_name, mime_type, size, description)
        if not blob_id:
            raise ValidationError("Blob reference is required", fields=["blobId"])

        record = FileRecord(
            original_name=original_name.strip(),
            mime_type=mime_type,
            size=size,
            category=FileCategory.parse(category).value,
            description=(description or "").strip(),
            blob_id=blob_id,
            id=uuid.uuid4(),
            upload_date=utcnow(),
        )

        async def _create(session: AsyncSession) -> FileRecord:
            session.add(record)
            await session.commit()
            return record

        return await self._run("create", _create)

    async def find_by_id(self, record_id) -> FileRecord:
        rid = _parse_id(record_id)

        async def _find(session: AsyncSession):
            return await session.get(FileRecord, rid)

        record = await self._run("find", _find)
        if record is None:
            raise NotFound("File not found")
        return record

    async def find_by_blob_id(self, blob_id: str) -> Optional[FileRecord]:
        """The record referencing a blob, or None. Used to settle uncertain writes."""
        query = select(FileRecord).where(FileRecord.blob_id == blob_id).limit(1)

        async def _find(session: AsyncSession):
            result = await session.execute(query)
            return result.scalar_one_or_none()

        return await self._run("find_by_blob", _find)

    async def find_all(self, category: "str | FileCategory | None" = None) -> list[FileRecord]:
        """All records, newest first, optionally restricted to one category."""
        query = select(FileRecord).order_by(desc(FileRecord.upload_date))
        if category is not None:
            value = category.value if isinstance(category, FileCategory) else category
            query = query.where(FileRecord.category == value)

        async def _list(session: AsyncSession) -> list[FileRecord]:
            result = await session.execute(query)
            return list(result.scalars().all())

        return await self._run("list", _list)

    async def delete_by_id(self, record_id) -> None:
        rid = _parse_id(record_id)

        async def _delete(session: AsyncSession) -> int:
            result = await session.execute(delete(FileRecord).where(FileRecord.id == rid))
            await session.commit()
            return result.rowcount

        if await self._run("delete", _delete) == 0:
            raise NotFound("File not found")

    async def ping(self) -> None:
        async def _ping(session: AsyncSession) -> None:
            await session.execute(text("SELECT 1"))

        await self._run("ping", _ping)
