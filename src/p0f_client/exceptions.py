"""
Exception classes for the p0f client.

All exceptions inherit from P0fError and provide structured error
information with codes, messages, and optional details.
"""

from typing import Optional


class P0fError(Exception):
    """Base exception for all p0f client errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(P0fError):
    """Raised when a query address is not a valid IPv4 or IPv6 address."""

    pass


class ConfigError(P0fError):
    """Raised when configuration cannot be loaded or is malformed."""

    pass


class TransportError(P0fError):
    """Raised when reading from or writing to the daemon socket fails."""

    pass


class BadQueryError(P0fError):
    """Raised when the daemon rejects the query as malformed."""

    def __init__(self, details: Optional[dict] = None) -> None:
        super().__init__("bad_query", "bad query", details)


class ProtocolError(P0fError):
    """Raised when a daemon response cannot be decoded."""

    pass


class InvalidMagicError(ProtocolError):
    """Raised when the response magic does not match; the peer is not p0f."""

    def __init__(self, magic: int) -> None:
        super().__init__(
            "invalid_magic",
            f"invalid magic: 0x{magic:08x}",
            {"magic": magic},
        )


class MissingDataError(ProtocolError):
    """Raised when the response ends before a field could be read."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__("missing_data", f"missing data: {field}", {"field": field})


class InvalidDataError(ProtocolError):
    """Raised when a fixed-size field has the wrong width."""

    def __init__(self, field: str, expected: int, actual: int) -> None:
        self.field = field
        super().__init__(
            "invalid_data",
            f"invalid data: {field} (expected {expected} bytes, got {actual})",
            {"field": field, "expected": expected, "actual": actual},
        )


class TimestampOutOfRangeError(ProtocolError):
    """Raised when a timestamp field cannot be represented as a datetime."""

    def __init__(self, field: str, value: int) -> None:
        self.field = field
        super().__init__(
            "timestamp_out_of_range",
            f"timestamp out of range: {field}",
            {"field": field, "value": value},
        )


class UnknownCodeError(ProtocolError):
    """Raised when an enumerated field carries a code outside its closed set."""

    def __init__(self, field: str, value: int) -> None:
        self.field = field
        self.value = value
        super().__init__(
            "unknown_code",
            f"unknown {field} code: 0x{value:02x}",
            {"field": field, "value": value},
        )
