"""
Audit Logger module for the p0f client.

Writes structured entries as JSON lines, human-readable text, or both.
With a signing key every entry carries an HMAC-SHA256 signature over its
content. Values under sensitive keys (webhook auth headers, signing keys)
are masked before an entry is built, so they never reach the stream.
"""

import hashlib
import hmac
import json
import sys
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

from .enums import LogLevel

SENSITIVE_KEYS = frozenset({
    'token', 'secret', 'password', 'api_key', 'auth', 'credential',
    'private_key', 'signing_key', 'cookie',
})

MASK_VALUE = "***MASKED***"

OUTPUT_FORMATS = ("json", "text", "both")

_LEVELS = list(LogLevel)


def mask_sensitive_data(value: Any) -> Any:
    """Return a copy of `value` with sensitive dict entries masked, at any depth."""
    if isinstance(value, dict):
        return {
            key: MASK_VALUE
            if any(s in str(key).lower() for s in SENSITIVE_KEYS)
            else mask_sensitive_data(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [mask_sensitive_data(item) for item in value]
    return value


@dataclass
class LogEntry:
    """A single log entry."""

    timestamp: str
    level: LogLevel
    component: str  # client, async_client, forwarder, cli
    message: str
    data: dict = field(default_factory=dict)
    signature: Optional[str] = None

    def payload(self) -> dict:
        """The signed content of the entry."""
        return {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "component": self.component,
            "message": self.message,
            "data": self.data,
        }


class AuditLogger:
    """
    Structured logger for query and forwarding events.

    Entries below `min_level` are dropped. The last `history` entries are
    kept in memory for inspection; by default nothing is retained.
    """

    def __init__(
        self,
        output_format: str = "text",
        output_stream: Optional[TextIO] = None,
        min_level: LogLevel = LogLevel.DEBUG,
        signing_key: Optional[str] = None,
        history: int = 0,
    ):
        if output_format not in OUTPUT_FORMATS:
            raise ValueError(f"Invalid output_format: {output_format}")
        if signing_key is not None and not signing_key:
            raise ValueError("Signing key cannot be empty")
        if history < 0:
            raise ValueError("history must not be negative")

        self._output_format = output_format
        self._output_stream = output_stream or sys.stderr
        self._min_level = min_level
        self._signing_key = signing_key.encode("utf-8") if signing_key else None
        self._history: deque[LogEntry] = deque(maxlen=history)

    @property
    def audit_mode(self) -> bool:
        return self._signing_key is not None

    @property
    def entries(self) -> list[LogEntry]:
        """Retained entries, oldest first."""
        return list(self._history)

    def log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Write an entry.

        Returns:
            The LogEntry, or None if `level` is below the minimum
        """
        if _LEVELS.index(level) < _LEVELS.index(self._min_level):
            return None

        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            component=component,
            message=message,
            data=mask_sensitive_data(data or {}),
        )
        if self._signing_key:
            entry.signature = self._sign(entry)

        self._history.append(entry)
        self._write(entry)
        return entry

    def log_error(
        self,
        component: str,
        message: str,
        error: Optional[BaseException] = None,
        address: Optional[str] = None,
        additional_data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Log an ERROR entry describing `error`.

        The entry data gets error_message and error_type, plus error_code for
        exceptions that carry one (P0fError), and the queried address.
        """
        data = dict(additional_data or {})
        if error is not None:
            data["error_message"] = str(error)
            data["error_type"] = type(error).__name__
            code = getattr(error, "code", None)
            if code is not None:
                data["error_code"] = code
        if address is not None:
            data["address"] = address

        return self.log(LogLevel.ERROR, component, message, data)

    def _sign(self, entry: LogEntry) -> str:
        content = json.dumps(entry.payload(), sort_keys=True, ensure_ascii=False, default=str)
        return hmac.new(self._signing_key, content.encode("utf-8"), hashlib.sha256).hexdigest()

    def verify_signature(self, entry: LogEntry) -> bool:
        """Check an entry's signature against this logger's key."""
        if not entry.signature or not self._signing_key:
            return False
        return hmac.compare_digest(entry.signature, self._sign(entry))

    def _write(self, entry: LogEntry) -> None:
        if self._output_format != "text":
            self._output_stream.write(format_json(entry) + "\n")
        if self._output_format != "json":
            self._output_stream.write(format_text(entry) + "\n")
        self._output_stream.flush()


def format_json(entry: LogEntry) -> str:
    obj = entry.payload()
    if entry.signature:
        obj["signature"] = entry.signature
    return json.dumps(obj, ensure_ascii=False, default=str)


def format_text(entry: LogEntry) -> str:
    # [TIMESTAMP] LEVEL [COMPONENT] MESSAGE {data} [sig:...]
    text = f"[{entry.timestamp}] {entry.level.value.upper()} [{entry.component}] {entry.message}"
    if entry.data:
        text += " " + json.dumps(entry.data, ensure_ascii=False, default=str)
    if entry.signature:
        text += f" [sig:{entry.signature[:16]}...]"
    return text
