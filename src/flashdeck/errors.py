"""
Exceptions raised by flashdeck components.
"""


class FlashdeckError(Exception):
    """Base exception for all flashdeck errors."""
    pass


class RecordDecodeError(FlashdeckError):
    """Raised when a persisted payload matches no known schema."""
    pass


class RecordEncodeError(FlashdeckError):
    """Raised when in-memory state cannot be serialized."""
    pass


class CsvImportError(FlashdeckError):
    """Raised when a CSV payload has no data rows at all."""
    pass


class PersistenceError(FlashdeckError):
    """Raised by a gateway when the backing store fails."""
    pass
