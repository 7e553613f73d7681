"""Service error taxonomy, mapped to HTTP status codes in main.py."""


class UploaderError(Exception):
    """Base class for errors the service reports to clients."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(UploaderError):
    """Bad or missing fields, disallowed content type, oversized payload."""

    status_code = 400

    def __init__(self, message: str, fields: list[str] | None = None):
        super().__init__(message)
        self.fields = fields or []


class NotFound(UploaderError):
    """Unknown record or blob id."""

    status_code = 404


class StoreUnavailable(UploaderError):
    """Connectivity failure or timeout talking to either store."""

    status_code = 503
