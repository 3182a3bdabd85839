"""
Enumeration types for the p0f client.

Wire codes are modelled as IntEnum so they compare against the raw integers
read off the socket. Record-facing classifications carry string values so
they serialize cleanly.
"""

from enum import Enum, IntEnum


class ResponseStatus(IntEnum):
    """Status word of a daemon response."""

    BAD_QUERY = 0x00
    OK = 0x10
    NO_MATCH = 0x20


class AddressFamily(IntEnum):
    """Address family tag of a query."""

    IPV4 = 0x04
    IPV6 = 0x06


class BadSoftware(Enum):
    """Mismatch between the OS signature and the software-level hints."""

    OS_DIFFERENCE = "os_difference"
    OUTRIGHT_MISMATCH = "outright_mismatch"


class MatchQuality(Enum):
    """How the daemon arrived at its OS match."""

    NORMAL = "normal"
    FUZZY = "fuzzy"
    GENERIC = "generic"
    FUZZY_GENERIC = "fuzzy_generic"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
