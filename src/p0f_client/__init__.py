"""
p0f client - query a running p0f daemon for passive fingerprints.

This package speaks the daemon's fixed-layout binary query protocol over its
Unix domain socket and decodes answers into FingerprintRecord objects.
"""

__version__ = "0.1.0"
__author__ = "p0f client contributors"

from p0f_client.exceptions import (
    P0fError,
    ValidationError,
    ConfigError,
    TransportError,
    BadQueryError,
    ProtocolError,
    InvalidMagicError,
    MissingDataError,
    InvalidDataError,
    TimestampOutOfRangeError,
    UnknownCodeError,
)
from p0f_client.enums import (
    ResponseStatus,
    AddressFamily,
    BadSoftware,
    MatchQuality,
    LogLevel,
)
from p0f_client.cursor import ByteCursor
from p0f_client.models import FingerprintRecord
from p0f_client.codec import (
    REQUEST_MAGIC,
    RESPONSE_MAGIC,
    REQUEST_SIZE,
    RESPONSE_SIZE,
    encode_request,
    decode_response,
)
from p0f_client.client import (
    P0fClient,
    AsyncP0fClient,
    parse_address,
)
from p0f_client.config import (
    ClientConfig,
    ForwardConfig,
    LoggingConfig,
    SystemConfig,
    load_config_from_env,
    load_config_from_file,
    save_config_to_file,
    validate_config,
)
from p0f_client.audit_logger import (
    AuditLogger,
    LogEntry,
)
from p0f_client.forwarder import WebhookForwarder
from p0f_client.cli import main as cli_main

__all__ = [
    # Exceptions
    "P0fError",
    "ValidationError",
    "ConfigError",
    "TransportError",
    "BadQueryError",
    "ProtocolError",
    "InvalidMagicError",
    "MissingDataError",
    "InvalidDataError",
    "TimestampOutOfRangeError",
    "UnknownCodeError",
    # Enums
    "ResponseStatus",
    "AddressFamily",
    "BadSoftware",
    "MatchQuality",
    "LogLevel",
    # Codec
    "ByteCursor",
    "FingerprintRecord",
    "REQUEST_MAGIC",
    "RESPONSE_MAGIC",
    "REQUEST_SIZE",
    "RESPONSE_SIZE",
    "encode_request",
    "decode_response",
    # Clients
    "P0fClient",
    "AsyncP0fClient",
    "parse_address",
    # Configuration
    "ClientConfig",
    "ForwardConfig",
    "LoggingConfig",
    "SystemConfig",
    "load_config_from_env",
    "load_config_from_file",
    "save_config_to_file",
    "validate_config",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    # Forwarding
    "WebhookForwarder",
    # CLI
    "cli_main",
]
