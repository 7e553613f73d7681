"""SecureIDUploader: identity document upload service."""

__version__ = "2.0.0"
