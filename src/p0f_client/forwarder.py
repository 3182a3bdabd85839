"""
Forwarding of fingerprint records to a downstream HTTP endpoint.

Records are posted as JSON using FingerprintRecord.to_dict(). Delivery is
best effort: a failed POST is logged and reported to the caller, never
retried.
"""

from datetime import datetime, timezone
from typing import Optional

import httpx

from .audit_logger import AuditLogger
from .config import ForwardConfig
from .enums import LogLevel
from .models import FingerprintRecord


class WebhookForwarder:
    """Posts decoded records to a webhook via HTTP POST."""

    def __init__(
        self,
        config: ForwardConfig,
        logger: Optional[AuditLogger] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        """
        Initialize the forwarder.

        Args:
            config: Webhook URL, extra headers and timeout
            logger: Optional audit logger
            transport: Optional httpx transport, e.g. httpx.MockTransport
        """
        self._url = config.url
        self._headers = config.headers.copy()
        self._timeout = config.timeout
        self._logger = logger
        self._transport = transport

    @staticmethod
    def build_payload(address: str, record: FingerprintRecord) -> dict:
        return {
            "address": address,
            "forwarded_at": datetime.now(timezone.utc).isoformat(),
            "record": record.to_dict(),
        }

    def forward(self, address: str, record: FingerprintRecord) -> bool:
        """
        Send one record downstream.

        Returns:
            True if the endpoint answered with a 2xx status
        """
        headers = {"Content-Type": "application/json"}
        headers.update(self._headers)

        with httpx.Client(transport=self._transport, timeout=self._timeout) as client:
            try:
                response = client.post(
                    self._url,
                    json=self.build_payload(address, record),
                    headers=headers,
                )
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                if self._logger:
                    self._logger.log_error(
                        "forwarder",
                        "Forwarding failed",
                        error=e,
                        address=address,
                        additional_data={"url": self._url, "headers": self._headers},
                    )
                return False

        ok = 200 <= response.status_code < 300
        if self._logger:
            self._logger.log(
                LogLevel.INFO if ok else LogLevel.WARN,
                "forwarder",
                "Record forwarded" if ok else "Forwarding rejected",
                {"address": address, "url": self._url, "status_code": response.status_code},
            )
        return ok
