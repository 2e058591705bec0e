class FiledanticError(Exception):
    """Base exception for filedantic errors."""


class StoreIOError(FiledanticError, OSError):
    """Raised when the backing file cannot be opened, read, truncated or written."""


class DecodeError(FiledanticError, ValueError):
    """Raised when stored text is malformed or does not match the record type."""


class EncodeError(FiledanticError, ValueError):
    """Raised when a record cannot be represented in the target text format."""


class UnknownFormatError(FiledanticError):
    """Raised when a requested serialization format is not supported."""
