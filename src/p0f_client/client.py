"""
Query clients for the p0f daemon.

Each query is exactly one write of the request record followed by one read
of the full response record. Only one query may be in flight per
connection; callers sharing a client between threads or tasks must
serialize access themselves.

A connection that failed mid-exchange, or whose peer answered with the
wrong magic, is left in an unknown state. The client refuses further
queries on it and a fresh connection has to be opened.
"""

import asyncio
import socket
from ipaddress import IPv4Address, IPv6Address, ip_address
from typing import Optional, Union

from .audit_logger import AuditLogger
from .codec import RESPONSE_SIZE, IPAddress, decode_response, encode_request
from .enums import LogLevel
from .exceptions import InvalidMagicError, P0fError, TransportError, ValidationError
from .models import FingerprintRecord

AddressLike = Union[str, IPv4Address, IPv6Address]


def parse_address(address: AddressLike) -> IPAddress:
    """
    Normalize a query address.

    Raises:
        ValidationError: If the value is not an IPv4 or IPv6 address
    """
    if isinstance(address, (IPv4Address, IPv6Address)):
        return address

    try:
        return ip_address(str(address).strip())
    except ValueError as e:
        raise ValidationError(
            "invalid_address",
            f"Not an IP address: {address!r}",
            {"address": str(address)},
        ) from e


def _unusable() -> TransportError:
    return TransportError(
        "connection_unusable",
        "connection is no longer usable; open a new one",
    )


class P0fClient:
    """
    Blocking client over a connected Unix domain socket.

    Use connect() to open the daemon socket, or pass an already connected
    socket to the constructor.
    """

    def __init__(
        self,
        sock: socket.socket,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._sock = sock
        self._logger = logger
        self._broken = False
        self._closed = False

    @classmethod
    def connect(
        cls,
        path: str,
        timeout: Optional[float] = None,
        logger: Optional[AuditLogger] = None,
    ) -> "P0fClient":
        """
        Connect to the daemon's query socket.

        Args:
            path: Filesystem path of the socket (p0f -s)
            timeout: Optional socket timeout in seconds for every operation
            logger: Optional audit logger

        Raises:
            TransportError: If the socket cannot be opened
        """
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.settimeout(timeout)
            sock.connect(path)
        except OSError as e:
            sock.close()
            if logger:
                logger.log_error("client", "Connect failed", error=e, additional_data={"path": path})
            raise TransportError(
                "connect_failed",
                f"Could not connect to {path}: {e}",
                {"path": path},
            ) from e

        if logger:
            logger.log(LogLevel.DEBUG, "client", "Connected", {"path": path})
        return cls(sock, logger=logger)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def usable(self) -> bool:
        """False once the connection is closed or left in an unknown state."""
        return not (self._closed or self._broken)

    def query(self, address: AddressLike) -> Optional[FingerprintRecord]:
        """
        Ask the daemon what it knows about an address.

        Returns:
            FingerprintRecord on a match, None if the daemon has no data

        Raises:
            ValidationError: The address is not an IP address
            TransportError: Writing or reading the socket failed
            BadQueryError: The daemon rejected the query
            ProtocolError: The response could not be decoded
        """
        ip = parse_address(address)
        if not self.usable:
            raise _unusable()

        request = encode_request(ip)
        # Stays set if anything, including KeyboardInterrupt, aborts the exchange.
        self._broken = True
        try:
            self._sock.sendall(request)
            response = self._recv_exact(RESPONSE_SIZE)
        except OSError as e:
            self._log_failure("Query I/O failed", e, ip)
            raise TransportError("io_error", f"io error: {e}", {"address": str(ip)}) from e
        except TransportError as e:
            self._log_failure("Short response", e, ip)
            raise
        self._broken = False

        try:
            record = decode_response(response)
        except InvalidMagicError as e:
            self._broken = True
            self._log_failure("Peer is not a p0f daemon", e, ip)
            raise
        except P0fError as e:
            self._log_failure("Could not decode response", e, ip)
            raise

        if self._logger:
            self._logger.log(
                LogLevel.INFO,
                "client",
                "Query answered" if record else "No match",
                {"address": str(ip), "matched": record is not None},
            )
        return record

    def _recv_exact(self, size: int) -> bytes:
        parts: list[bytes] = []
        received = 0
        while received < size:
            chunk = self._sock.recv(size - received)
            if not chunk:
                raise TransportError(
                    "short_read",
                    f"io error: connection closed after {received} of {size} bytes",
                    {"received": received, "expected": size},
                )
            parts.append(chunk)
            received += len(chunk)
        return b"".join(parts)

    def _log_failure(self, message: str, error: Exception, ip: IPAddress) -> None:
        if self._logger:
            self._logger.log_error("client", message, error=error, address=str(ip))

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._sock.close()

    def __enter__(self) -> "P0fClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class AsyncP0fClient:
    """
    asyncio client with the same one-request-one-response contract.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        timeout: Optional[float] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._timeout = timeout
        self._logger = logger
        self._broken = False
        self._closed = False

    @classmethod
    async def connect(
        cls,
        path: Optional[str] = None,
        timeout: Optional[float] = None,
        logger: Optional[AuditLogger] = None,
        sock: Optional[socket.socket] = None,
    ) -> "AsyncP0fClient":
        """
        Connect to the daemon socket at `path`, or wrap a connected `sock`.

        Raises:
            TransportError: If the socket cannot be opened
        """
        try:
            if sock is not None:
                reader, writer = await asyncio.open_unix_connection(sock=sock)
            else:
                reader, writer = await asyncio.wait_for(
                    asyncio.open_unix_connection(path),
                    timeout=timeout,
                )
        except (OSError, asyncio.TimeoutError) as e:
            if logger:
                logger.log_error("async_client", "Connect failed", error=e, additional_data={"path": path})
            raise TransportError(
                "connect_failed",
                f"Could not connect to {path}: {e}",
                {"path": path},
            ) from e

        return cls(reader, writer, timeout=timeout, logger=logger)

    @property
    def usable(self) -> bool:
        return not (self._closed or self._broken)

    async def query(self, address: AddressLike) -> Optional[FingerprintRecord]:
        """Async counterpart of P0fClient.query()."""
        ip = parse_address(address)
        if not self.usable:
            raise _unusable()

        # Stays set if the exchange fails or the calling task is cancelled.
        self._broken = True
        try:
            response = await asyncio.wait_for(
                self._exchange(encode_request(ip)),
                timeout=self._timeout,
            )
        except asyncio.IncompleteReadError as e:
            self._log_failure("Short response", e, ip)
            raise TransportError(
                "short_read",
                f"io error: connection closed after {len(e.partial)} of {RESPONSE_SIZE} bytes",
                {"received": len(e.partial), "expected": RESPONSE_SIZE},
            ) from e
        except (OSError, asyncio.TimeoutError) as e:
            self._log_failure("Query I/O failed", e, ip)
            raise TransportError("io_error", f"io error: {e!r}", {"address": str(ip)}) from e
        self._broken = False

        try:
            record = decode_response(response)
        except InvalidMagicError as e:
            self._broken = True
            self._log_failure("Peer is not a p0f daemon", e, ip)
            raise
        except P0fError as e:
            self._log_failure("Could not decode response", e, ip)
            raise

        if self._logger:
            self._logger.log(
                LogLevel.INFO,
                "async_client",
                "Query answered" if record else "No match",
                {"address": str(ip), "matched": record is not None},
            )
        return record

    async def _exchange(self, request: bytes) -> bytes:
        self._writer.write(request)
        await self._writer.drain()
        return await self._reader.readexactly(RESPONSE_SIZE)

    def _log_failure(self, message: str, error: Exception, ip: IPAddress) -> None:
        if self._logger:
            self._logger.log_error("async_client", message, error=error, address=str(ip))

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._writer.close()
            await self._writer.wait_closed()

    async def __aenter__(self) -> "AsyncP0fClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
