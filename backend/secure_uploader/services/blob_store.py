"""Blob storage abstraction. MongoDB GridFS for deployments, local disk for dev."""
import asyncio
import json
import logging
import os
import re
import uuid
from pathlib import Path
from typing import Any, Optional

import aiofiles
import aiofiles.os
from bson import ObjectId
from bson.errors import InvalidId
from gridfs.errors import NoFile
from motor.motor_asyncio import AsyncIOMotorGridFSBucket
from pymongo.errors import PyMongoError

from secure_uploader.config import Settings
from secure_uploader.errors import NotFound, StoreUnavailable
from secure_uploader.mongo import MongoConnection

logger = logging.getLogger(__name__)


class BlobStore:
    """Put/get/delete opaque blobs by id.

    Subclasses implement the ``_put``/``_get``/``_delete``/``_exists`` hooks;
    the public methods bound each call with the configured operation timeout
    so a stalled store surfaces as StoreUnavailable instead of hanging.
    """

    kind = "abstract"

    def __init__(self, settings: Settings):
        self.settings = settings
        self.timeout = settings.STORE_OPERATION_TIMEOUT

    async def _bounded(self, coro, action: str):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error("Blob store %s timed out after %.1fs", action, self.timeout)
            raise StoreUnavailable(f"Blob store timed out during {action}") from e

    async def put(
        self,
        data: bytes,
        filename: str,
        content_type: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> str:
        """Store bytes as a new blob. Returns the new blob id.

        The id is generated before the write so a timed-out put can still be
        logged and cleaned up: the driver may keep writing after the await is
        cancelled.
        """
        blob_id = self._new_id()
        try:
            await asyncio.wait_for(self._put(blob_id, data, filename, content_type, metadata or {}), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error("ORPHANED BLOB %s (%s): put timed out after %.1fs", blob_id, filename, self.timeout)
            await self._discard_partial(blob_id)
            raise StoreUnavailable("Blob store timed out during put") from e
        logger.info("Blob stored: %s -> %s (%d bytes)", filename, blob_id, len(data))
        return blob_id

    async def _discard_partial(self, blob_id: str) -> None:
        try:
            await self._bounded(self._delete(blob_id), "cleanup")
        except NotFound:
            logger.info("No partial blob left for %s", blob_id)
        except StoreUnavailable as e:
            logger.error("ORPHANED BLOB %s: cleanup after timed-out put failed: %s", blob_id, e.message)
        else:
            logger.warning("Removed partial blob %s after timed-out put", blob_id)

    async def get(self, blob_id: str) -> bytes:
        return await self._bounded(self._get(blob_id), "get")

    async def delete(self, blob_id: str) -> None:
        await self._bounded(self._delete(blob_id), "delete")
        logger.info("Blob deleted: %s", blob_id)

    async def exists(self, blob_id: str) -> bool:
        return await self._bounded(self._exists(blob_id), "exists")

    def status(self) -> dict[str, Any]:
        return {"type": self.kind}

    async def ping(self) -> None:
        """Raise StoreUnavailable if the store can't be reached."""

    async def close(self) -> None:
        pass

    def _new_id(self) -> str:
        raise NotImplementedError

    async def _put(self, blob_id: str, data: bytes, filename: str, content_type: str, metadata: dict[str, Any]) -> None:
        raise NotImplementedError

    async def _get(self, blob_id: str) -> bytes:
        raise NotImplementedError

    async def _delete(self, blob_id: str) -> None:
        raise NotImplementedError

    async def _exists(self, blob_id: str) -> bool:
        raise NotImplementedError


class GridFSBlobStore(BlobStore):
    """Blobs in a GridFS bucket; the driver does the chunking."""

    kind = "gridfs"

    def __init__(self, settings: Settings, connection: MongoConnection):
        super().__init__(settings)
        self.connection = connection
        self._bucket: AsyncIOMotorGridFSBucket | None = None

    @property
    def bucket(self) -> AsyncIOMotorGridFSBucket:
        if self._bucket is None:
            self._bucket = AsyncIOMotorGridFSBucket(
                self.connection.database,
                bucket_name=self.settings.GRIDFS_BUCKET,
                chunk_size_bytes=self.settings.GRIDFS_CHUNK_SIZE,
            )
            logger.info("GridFS initialized with bucket: %s", self.settings.GRIDFS_BUCKET)
        return self._bucket

    @staticmethod
    def _object_id(blob_id: str) -> ObjectId:
        try:
            return ObjectId(blob_id)
        except (InvalidId, TypeError) as e:
            raise NotFound(f"Blob not found: {blob_id}") from e

    def _new_id(self) -> str:
        return str(ObjectId())

    async def _put(self, blob_id, data, filename, content_type, metadata):
        try:
            await self.bucket.upload_from_stream_with_id(
                ObjectId(blob_id),
                filename,
                data,
                metadata={"contentType": content_type or "application/octet-stream", **metadata},
            )
        except PyMongoError as e:
            logger.error("GridFS upload error: %s", e)
            raise StoreUnavailable(f"GridFS upload failed: {e}") from e

    async def _get(self, blob_id):
        oid = self._object_id(blob_id)
        try:
            grid_out = await self.bucket.open_download_stream(oid)
            return await grid_out.read()
        except NoFile as e:
            raise NotFound(f"Blob not found: {blob_id}") from e
        except PyMongoError as e:
            logger.error("GridFS download error for %s: %s", blob_id, e)
            raise StoreUnavailable(f"GridFS download failed: {e}") from e

    async def _delete(self, blob_id):
        oid = self._object_id(blob_id)
        try:
            await self.bucket.delete(oid)
        except NoFile as e:
            raise NotFound(f"Blob not found: {blob_id}") from e
        except PyMongoError as e:
            logger.error("GridFS delete error for %s: %s", blob_id, e)
            raise StoreUnavailable(f"GridFS delete failed: {e}") from e

    async def _exists(self, blob_id):
        try:
            oid = self._object_id(blob_id)
        except NotFound:
            return False
        try:
            cursor = self.bucket.find({"_id": oid}, limit=1)
            files = await cursor.to_list(length=1)
        except PyMongoError as e:
            raise StoreUnavailable(f"GridFS lookup failed: {e}") from e
        return len(files) > 0

    async def ping(self) -> None:
        await self._bounded(self.connection.ping(), "ping")

    def status(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "initialized": self._bucket is not None,
            "bucketName": self.settings.GRIDFS_BUCKET,
            "chunkSize": self.settings.GRIDFS_CHUNK_SIZE,
            "connection": self.connection.status(),
        }

    async def close(self) -> None:
        self._bucket = None
        self.connection.close()


_LOCAL_ID_RE = re.compile(r"^[0-9a-f]{32}$")


class LocalBlobStore(BlobStore):
    """Blobs as files under FILE_STORAGE_PATH, sidecar metadata in <id>.json."""

    kind = "local"

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.base_path = Path(settings.FILE_STORAGE_PATH)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _paths(self, blob_id: str) -> tuple[Path, Path]:
        if not isinstance(blob_id, str) or not _LOCAL_ID_RE.match(blob_id):
            raise NotFound(f"Blob not found: {blob_id}")
        return self.base_path / blob_id, self.base_path / f"{blob_id}.json"

    def _new_id(self) -> str:
        return uuid.uuid4().hex

    def _remove_files(self, *paths: Path) -> None:
        for path in paths:
            if path.exists():
                os.remove(path)

    async def _put(self, blob_id, data, filename, content_type, metadata):
        data_path, meta_path = self._paths(blob_id)
        sidecar = {"filename": filename, "contentType": content_type, "length": len(data), **metadata}
        try:
            async with aiofiles.open(data_path, "wb") as f:
                await f.write(data)
            async with aiofiles.open(meta_path, "w") as f:
                await f.write(json.dumps(sidecar))
        except OSError as e:
            self._remove_files(data_path, meta_path)
            raise StoreUnavailable(f"Local blob write failed: {e}") from e
        except BaseException:
            # Cancelled (timeout) or failed mid-write: leave nothing half-written behind.
            self._remove_files(data_path, meta_path)
            raise

    async def _get(self, blob_id):
        data_path, _ = self._paths(blob_id)
        try:
            async with aiofiles.open(data_path, "rb") as f:
                return await f.read()
        except FileNotFoundError as e:
            raise NotFound(f"Blob not found: {blob_id}") from e
        except OSError as e:
            raise StoreUnavailable(f"Local blob read failed: {e}") from e

    async def _delete(self, blob_id):
        data_path, meta_path = self._paths(blob_id)
        if await aiofiles.os.path.exists(meta_path):
            await aiofiles.os.remove(meta_path)
        try:
            await aiofiles.os.remove(data_path)
        except FileNotFoundError as e:
            raise NotFound(f"Blob not found: {blob_id}") from e
        except OSError as e:
            raise StoreUnavailable(f"Local blob delete failed: {e}") from e

    async def _exists(self, blob_id):
        try:
            data_path, _ = self._paths(blob_id)
        except NotFound:
            return False
        return await aiofiles.os.path.exists(data_path)

    async def ping(self) -> None:
        if not await aiofiles.os.path.isdir(self.base_path):
            raise StoreUnavailable(f"Storage directory missing: {self.base_path}")

    def status(self) -> dict[str, Any]:
        return {"type": self.kind, "initialized": True, "path": str(self.base_path)}


def create_blob_store(settings: Settings, connection: Optional[MongoConnection] = None) -> BlobStore:
    """Build the blob store selected by BLOB_STORAGE_TYPE."""
    if settings.BLOB_STORAGE_TYPE == "gridfs":
        return GridFSBlobStore(settings, connection or MongoConnection(settings))
    if settings.BLOB_STORAGE_TYPE == "local":
        return LocalBlobStore(settings)
    raise ValueError(f"Unknown storage type: {settings.BLOB_STORAGE_TYPE}")
