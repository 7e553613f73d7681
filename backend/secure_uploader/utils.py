"""Small formatting helpers."""
from urllib.parse import quote

_SIZE_UNITS = ["Bytes", "KB", "MB", "GB"]
# Left unescaped, as encodeURIComponent does.
_FILENAME_SAFE = "!~*'()"


def format_file_size(size: int) -> str:
    """Human-readable size, 1024-based, two decimals at most: 1536 -> '1.5 KB'."""
    if size <= 0:
        return "0 Bytes"
    i = 0
    while i < len(_SIZE_UNITS) - 1 and size >= 1024 ** (i + 1):
        i += 1
    value = round(size / 1024 ** i, 2)
    return f"{value:g} {_SIZE_UNITS[i]}"


def content_disposition(disposition: str, filename: str) -> str:
    """`attachment; filename="..."` with the filename URL-encoded."""
    return f'{disposition}; filename="{quote(filename, safe=_FILENAME_SAFE)}"'
