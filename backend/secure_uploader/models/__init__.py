"""Import all models so SQLAlchemy metadata knows about them."""
from secure_uploader.models.file_record import Base, FileCategory, FileRecord

__all__ = ["Base", "FileCategory", "FileRecord"]
