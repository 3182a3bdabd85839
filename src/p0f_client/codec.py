"""
Wire codec for the p0f query protocol.

Requests are a fixed 21-byte record, responses a fixed 232-byte record. Both
are raw C structs written in the daemon's native byte order, so every field
is packed and unpacked with struct's "=" prefix (native order, standard
sizes, no alignment padding).

Response layout:

    magic        u32
    status       u32
    first_seen   u32   seconds since epoch
    last_seen    u32
    total_conn   u32
    uptime_min   u32   0 = unknown
    up_mod_days  u32
    last_nat     u32   0 = never
    last_chg     u32   0 = never
    distance     i16   -1 = unknown
    bad_sw       u8
    os_match_q   u8
    os_name      char[32]
    os_flavor    char[32]
    http_name    char[32]
    http_flavor  char[32]
    link_type    char[32]
    language     char[32]
"""

import struct
from datetime import datetime, timedelta, timezone
from ipaddress import IPv4Address, IPv6Address
from typing import Optional, Union

from .cursor import ByteCursor
from .enums import AddressFamily, BadSoftware, MatchQuality, ResponseStatus
from .exceptions import (
    BadQueryError,
    InvalidDataError,
    InvalidMagicError,
    MissingDataError,
    TimestampOutOfRangeError,
    UnknownCodeError,
)
from .models import TEXT_FIELDS, FingerprintRecord

REQUEST_MAGIC = 0x50304601
RESPONSE_MAGIC = 0x50304602

REQUEST_SIZE = 21
RESPONSE_SIZE = 232

STR_MAX = 31
TEXT_SLOT_SIZE = STR_MAX + 1

ADDRESS_SIZE = 16

_REQUEST_FORMAT = f"=IB{ADDRESS_SIZE}s"
_U32 = "=I"
_I16 = "=h"
_U8 = "=B"

# Codes outside these tables are rejected, never defaulted
BAD_SW_CODES: dict[int, Optional[BadSoftware]] = {
    0x00: None,
    0x01: BadSoftware.OS_DIFFERENCE,
    0x02: BadSoftware.OUTRIGHT_MISMATCH,
}

MATCH_QUALITY_CODES: dict[int, MatchQuality] = {
    0x00: MatchQuality.NORMAL,
    0x01: MatchQuality.FUZZY,
    0x02: MatchQuality.GENERIC,
    0x03: MatchQuality.FUZZY_GENERIC,
}

IPAddress = Union[IPv4Address, IPv6Address]


def encode_request(address: IPAddress) -> bytes:
    """
    Build the 21-byte query record for an address.

    IPv4 addresses occupy the first four bytes of the 16-byte address field
    and are followed by twelve zero bytes.
    """
    if isinstance(address, IPv4Address):
        family = AddressFamily.IPV4
    else:
        family = AddressFamily.IPV6

    # "16s" right-pads shorter input with NUL bytes
    return struct.pack(_REQUEST_FORMAT, REQUEST_MAGIC, family, address.packed)


def timestamp_from_epoch(seconds: int, field: str) -> datetime:
    """
    Convert seconds since the epoch to an aware UTC datetime.

    Raises:
        TimestampOutOfRangeError: If the platform cannot represent the value
    """
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise TimestampOutOfRangeError(field, seconds) from e


def _read(cursor: ByteCursor, fmt: str, field: str) -> int:
    size = struct.calcsize(fmt)
    chunk = cursor.read_fixed(size)
    if chunk is None:
        raise MissingDataError(field)
    if len(chunk) != size:
        raise InvalidDataError(field, size, len(chunk))
    return struct.unpack(fmt, chunk)[0]


def _read_timestamp(cursor: ByteCursor, field: str) -> datetime:
    return timestamp_from_epoch(_read(cursor, _U32, field), field)


def _read_optional_timestamp(cursor: ByteCursor, field: str) -> Optional[datetime]:
    value = _read(cursor, _U32, field)
    if value == 0:
        return None
    return timestamp_from_epoch(value, field)


def _read_text(cursor: ByteCursor, field: str) -> Optional[str]:
    """
    Read one fixed-width text slot.

    The slot is always consumed, even when its leading NUL marks the field
    as absent.
    """
    tail = cursor.peek_remaining()
    if not tail:
        raise MissingDataError(field)
    absent = tail[0] == 0

    slot = cursor.read_fixed(TEXT_SLOT_SIZE)
    if slot is None:
        raise MissingDataError(field)
    if absent:
        return None

    return slot.decode("utf-8", errors="replace").rstrip("\x00")


def decode_response(data: bytes) -> Optional[FingerprintRecord]:
    """
    Decode a daemon response.

    Args:
        data: The raw response; bytes past RESPONSE_SIZE are ignored

    Returns:
        FingerprintRecord on a match, None when the daemon has no data for
        the address

    Raises:
        InvalidMagicError: The peer is not speaking this protocol
        BadQueryError: The daemon rejected the query
        MissingDataError: The response is truncated
        UnknownCodeError: An enumerated field holds an unknown code
        TimestampOutOfRangeError: A timestamp cannot be represented
    """
    cursor = ByteCursor(data)

    magic = _read(cursor, _U32, "magic")
    if magic != RESPONSE_MAGIC:
        raise InvalidMagicError(magic)

    status = _read(cursor, _U32, "status")
    if status == ResponseStatus.BAD_QUERY:
        raise BadQueryError()
    if status == ResponseStatus.NO_MATCH:
        return None
    if status != ResponseStatus.OK:
        raise UnknownCodeError("status", status)

    first_seen = _read_timestamp(cursor, "first_seen")
    last_seen = _read_timestamp(cursor, "last_seen")
    total_conn = _read(cursor, _U32, "total_conn")

    uptime = _read(cursor, _U32, "uptime_min")
    uptime_min = timedelta(minutes=uptime) if uptime else None
    up_mod_days = timedelta(days=_read(cursor, _U32, "up_mod_days"))

    last_nat = _read_optional_timestamp(cursor, "last_nat")
    last_chg = _read_optional_timestamp(cursor, "last_chg")

    distance: Optional[int] = _read(cursor, _I16, "distance")
    if distance == -1:
        distance = None

    bad_sw_code = _read(cursor, _U8, "bad_sw")
    if bad_sw_code not in BAD_SW_CODES:
        raise UnknownCodeError("bad_sw", bad_sw_code)

    match_code = _read(cursor, _U8, "os_match_q")
    if match_code not in MATCH_QUALITY_CODES:
        raise UnknownCodeError("os_match_q", match_code)

    texts = {name: _read_text(cursor, name) for name in TEXT_FIELDS}

    return FingerprintRecord(
        first_seen=first_seen,
        last_seen=last_seen,
        total_conn=total_conn,
        uptime_min=uptime_min,
        up_mod_days=up_mod_days,
        last_nat=last_nat,
        last_chg=last_chg,
        distance=distance,
        bad_sw=BAD_SW_CODES[bad_sw_code],
        os_match_q=MATCH_QUALITY_CODES[match_code],
        **texts,
    )
