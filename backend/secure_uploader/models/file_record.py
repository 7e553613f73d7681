"""FileRecord model - file metadata (actual bytes live in the blob store)."""
import uuid
from datetime import datetime, timezone
from enum import Enum
from sqlalchemy import BigInteger, DateTime, String, Text, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

MAX_NAME_LENGTH = 500
MAX_DESCRIPTION_LENGTH = 1000


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


class FileCategory(str, Enum):
    """Document categories. Anything unrecognized falls back to OTHER."""

    ID_FRONT = "id_front"
    ID_BACK = "id_back"
    PASSPORT = "passport"
    DRIVERS_LICENSE = "drivers_license"
    UTILITY_BILL = "utility_bill"
    BANK_STATEMENT = "bank_statement"
    OTHER = "other"

    @classmethod
    def parse(cls, value: "str | FileCategory | None") -> "FileCategory":
        if isinstance(value, cls):
            return value
        if not value:
            return cls.OTHER
        try:
            return cls(value.strip())
        except ValueError:
            return cls.OTHER


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FileRecord(Base):
    __tablename__ = "files"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    original_name: Mapped[str] = mapped_column(String(MAX_NAME_LENGTH), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    category: Mapped[str] = mapped_column(String(32), default=FileCategory.OTHER.value, index=True)
    description: Mapped[str] = mapped_column(Text, default="")
    # Set once at upload; the blob store owns the bytes behind it.
    blob_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    upload_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
