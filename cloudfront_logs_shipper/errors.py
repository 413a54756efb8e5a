"""
Exception hierarchy for the log shipping pipeline
"""

from typing import Optional


class ShipperError(Exception):
    """Base class for all shipper errors"""
    pass


class ConfigurationError(ShipperError):
    """Raised when process configuration is missing or invalid"""
    pass


class QueueClosedError(ShipperError):
    """Raised when putting to, or getting from a drained, closed work queue"""
    pass


class FileProcessingError(ShipperError):
    """
    File-fatal error: processing of the current object is aborted and the
    object is left in the bucket for a later run
    """

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class InvalidObjectKeyError(FileProcessingError):
    """Object key does not carry the <namespace>/<distribution>/ prefix"""
    pass


class FetchError(FileProcessingError):
    """Object body could not be downloaded"""
    pass


class DecodeError(FileProcessingError):
    """Object body could not be decoded into log records"""
    pass


class DecompressError(DecodeError):
    """Object body is not a valid gzip stream"""
    pass


class FieldCountMismatchError(DecodeError):
    """A data line does not have as many fields as the #Fields: header"""

    def __init__(self, expected: int, got: int, line_number: int = 0):
        super().__init__(
            f"field count mismatch on line {line_number}: expected {expected}, got {got}"
        )
        self.expected = expected
        self.got = got
        self.line_number = line_number


class SinkError(FileProcessingError):
    """Log lines could not be handed to the sink"""
    pass


class LokiPushError(SinkError):
    """Loki rejected a push request or could not be reached"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
