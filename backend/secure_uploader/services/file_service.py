"""Upload / retrieve / delete across the metadata store and the blob store.

The two stores fail independently and there is no transaction spanning them.
Upload writes the blob first and the record second; delete removes the blob
first and the record second. The gaps this leaves are handled here:

- record creation fails after the blob was written: the blob is deleted
  again (best effort). If that also fails the blob is orphaned and logged
  as ``ORPHANED BLOB``.
- record creation times out: the commit may still have landed, so the
  record is looked up by blob id first. A found record is returned; the
  blob is only deleted on a confirmed miss. If the lookup fails too the
  blob is kept and logged as ``ORPHANED BLOB``.
- record deletion fails after the blob was removed: the error is surfaced
  to the caller and logged as ``DANGLING RECORD``.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from secure_uploader.config import Settings
from secure_uploader.errors import NotFound, StoreUnavailable, UploaderError, ValidationError
from secure_uploader.models.file_record import FileCategory, FileRecord
from secure_uploader.repositories.file_records import FileRecordRepository, validate_record_fields
from secure_uploader.services.blob_store import BlobStore

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = frozenset({
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/plain",
    "text/csv",
})


def is_allowed_content_type(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    # "text/plain; charset=utf-8" -> "text/plain"
    return content_type.split(";", 1)[0].strip().lower() in ALLOWED_CONTENT_TYPES


@dataclass
class UploadPayload:
    filename: str
    content_type: str
    data: bytes
    category: Optional[str] = None
    description: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class UploadFailure:
    filename: str
    error: str


@dataclass
class MultiUploadResult:
    files: list[FileRecord] = field(default_factory=list)
    errors: list[UploadFailure] = field(default_factory=list)


class FileService:
    def __init__(self, repository: FileRecordRepository, blob_store: BlobStore, settings: Settings):
        self.repository = repository
        self.blob_store = blob_store
        self.settings = settings

    def validate(self, payload: Optional[UploadPayload]) -> None:
        """Reject a payload before anything is written to either store."""
        if payload is None:
            raise ValidationError("No file uploaded", fields=["file"])
        if not is_allowed_content_type(payload.content_type):
            raise ValidationError(
                f"Invalid file type: {payload.content_type}. Allowed: images, PDF, Word, Excel, text files.",
                fields=["mimeType"],
            )
        if payload.size > self.settings.MAX_FILE_SIZE:
            max_mb = self.settings.MAX_FILE_SIZE // (1024 * 1024)
            raise ValidationError(f"File too large. Maximum size is {max_mb}MB", fields=["size"])
        validate_record_fields(payload.filename, payload.content_type, payload.size, payload.description)

    async def upload(self, payload: Optional[UploadPayload]) -> FileRecord:
        self.validate(payload)
        category = FileCategory.parse(payload.category)
        logger.info("Uploading: %s (%.2f MB)", payload.filename, payload.size / 1024 / 1024)

        blob_id = await self.blob_store.put(
            payload.data,
            payload.filename,
            payload.content_type,
            {"category": category.value, "description": payload.description or ""},
        )

        try:
            record = await self.repository.create(
                original_name=payload.filename,
                mime_type=payload.content_type,
                size=payload.size,
                blob_id=blob_id,
                category=category,
                description=payload.description,
            )
        except StoreUnavailable:
            # A timeout does not mean the row was not written.
            record = await self._settle_uncertain_create(blob_id, payload.filename)
            if record is None:
                raise
        except Exception:
            await self._discard_blob(blob_id, payload.filename)
            raise

        logger.info("File saved: %s (id=%s)", record.original_name, record.id)
        return record

    async def _settle_uncertain_create(self, blob_id: str, filename: str) -> Optional[FileRecord]:
        """Look up the record after a failed create; only a confirmed miss frees the blob."""
        try:
            record = await self.repository.find_by_blob_id(blob_id)
        except StoreUnavailable as e:
            logger.error("ORPHANED BLOB %s (%s): record write outcome unknown, blob kept: %s",
                         blob_id, filename, e.message)
            return None
        if record is not None:
            logger.warning("Record for %s was written despite the store error (id=%s)", filename, record.id)
            return record
        await self._discard_blob(blob_id, filename)
        return None

    async def _discard_blob(self, blob_id: str, filename: str) -> None:
        logger.warning("Metadata write failed for %s, removing blob %s", filename, blob_id)
        try:
            await self.blob_store.delete(blob_id)
        except NotFound:
            pass
        except Exception as e:
            logger.error("ORPHANED BLOB %s (%s): compensating delete failed: %s", blob_id, filename, e)

    async def upload_many(self, payloads: list[UploadPayload]) -> MultiUploadResult:
        """Upload each payload independently; failures are collected, not raised."""
        logger.info("Uploading %d files...", len(payloads))
        result = MultiUploadResult()
        for payload in payloads:
            try:
                result.files.append(await self.upload(payload))
            except UploaderError as e:
                logger.error("Failed: %s: %s", payload.filename, e.message)
                result.errors.append(UploadFailure(filename=payload.filename, error=e.message))
            except Exception as e:
                logger.exception("Failed: %s", payload.filename)
                result.errors.append(UploadFailure(filename=payload.filename, error=str(e)))
        return result

    async def get(self, record_id) -> FileRecord:
        return await self.repository.find_by_id(record_id)

    async def read(self, record_id) -> tuple[FileRecord, bytes]:
        """Record plus the full blob bytes, for download and inline view."""
        record = await self.repository.find_by_id(record_id)
        logger.info("Reading: %s (id=%s)", record.original_name, record.id)
        try:
            data = await self.blob_store.get(record.blob_id)
        except NotFound:
            logger.error("DANGLING RECORD %s: blob %s is missing", record.id, record.blob_id)
            raise NotFound("File content not found")
        return record, data

    async def list(self, category: "str | FileCategory | None" = None) -> list[FileRecord]:
        records = await self.repository.find_all(category)
        logger.info("Found %d files%s", len(records), f" in category {category}" if category else "")
        return records

    async def delete(self, record_id) -> FileRecord:
        record = await self.repository.find_by_id(record_id)
        logger.info("Deleting: %s (id=%s)", record.original_name, record.id)

        try:
            await self.blob_store.delete(record.blob_id)
        except NotFound:
            logger.warning("Blob %s for record %s was already gone", record.blob_id, record.id)

        try:
            await self.repository.delete_by_id(record.id)
        except Exception as e:
            logger.error("DANGLING RECORD %s: blob %s removed but record delete failed: %s",
                         record.id, record.blob_id, e)
            raise

        logger.info("Deleted: %s", record.original_name)
        return record
