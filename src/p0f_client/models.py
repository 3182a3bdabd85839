"""
Data models for the p0f client.

A FingerprintRecord is what the daemon knows about one host. It is built
fresh for every successful query and shares no state with the connection
that produced it.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from .enums import BadSoftware, MatchQuality

TEXT_FIELDS = (
    "os_name",
    "os_flavor",
    "http_name",
    "http_flavor",
    "link_type",
    "language",
)


def _datetime_to_str(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _datetime_from_str(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value is not None else None


@dataclass
class FingerprintRecord:
    """Decoded daemon answer for a single address."""

    first_seen: datetime  # First packet from this host
    last_seen: datetime  # Most recent packet
    total_conn: int  # Connections observed
    uptime_min: Optional[timedelta]  # Estimated uptime, None if unknown
    up_mod_days: timedelta  # Uptime counter wrap-around period
    last_nat: Optional[datetime]  # Last NAT/load balancer detection
    last_chg: Optional[datetime]  # Last OS signature change
    distance: Optional[int]  # Network hops, None if unknown
    bad_sw: Optional[BadSoftware]
    os_match_q: MatchQuality
    os_name: Optional[str] = None
    os_flavor: Optional[str] = None
    http_name: Optional[str] = None
    http_flavor: Optional[str] = None
    link_type: Optional[str] = None
    language: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the record to a JSON-safe dictionary.

        Timestamps become ISO 8601 strings, durations whole seconds and
        enums their string values.
        """
        data: dict[str, Any] = {
            "first_seen": _datetime_to_str(self.first_seen),
            "last_seen": _datetime_to_str(self.last_seen),
            "total_conn": self.total_conn,
            "uptime_min": (
                int(self.uptime_min.total_seconds())
                if self.uptime_min is not None
                else None
            ),
            "up_mod_days": int(self.up_mod_days.total_seconds()),
            "last_nat": _datetime_to_str(self.last_nat),
            "last_chg": _datetime_to_str(self.last_chg),
            "distance": self.distance,
            "bad_sw": self.bad_sw.value if self.bad_sw is not None else None,
            "os_match_q": self.os_match_q.value,
        }
        for name in TEXT_FIELDS:
            data[name] = getattr(self, name)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FingerprintRecord":
        """Rebuild a record from the output of to_dict()."""
        uptime = data.get("uptime_min")
        bad_sw = data.get("bad_sw")

        return cls(
            first_seen=datetime.fromisoformat(data["first_seen"]),
            last_seen=datetime.fromisoformat(data["last_seen"]),
            total_conn=data["total_conn"],
            uptime_min=timedelta(seconds=uptime) if uptime is not None else None,
            up_mod_days=timedelta(seconds=data["up_mod_days"]),
            last_nat=_datetime_from_str(data.get("last_nat")),
            last_chg=_datetime_from_str(data.get("last_chg")),
            distance=data.get("distance"),
            bad_sw=BadSoftware(bad_sw) if bad_sw is not None else None,
            os_match_q=MatchQuality(data["os_match_q"]),
            **{name: data.get(name) for name in TEXT_FIELDS},
        )
