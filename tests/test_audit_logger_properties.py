"""
Property-based tests for Audit Logger module.

Uses Hypothesis to check output formats, masking, level filtering and
audit signatures.
"""

import json
from io import StringIO

from hypothesis import given, settings, assume
from hypothesis import strategies as st

from p0f_client.audit_logger import (
    MASK_VALUE,
    SENSITIVE_KEYS,
    AuditLogger,
    mask_sensitive_data,
)
from p0f_client.enums import LogLevel
from p0f_client.exceptions import UnknownCodeError


@st.composite
def message_strategy(draw) -> str:
    """Generate single-line log messages."""
    return draw(st.text(
        alphabet=st.characters(
            whitelist_categories=('L', 'N', 'P', 'S', 'Z'),
            blacklist_characters='\x00\n\r',
        ),
        min_size=1,
        max_size=200,
    ))


@st.composite
def non_sensitive_key_strategy(draw) -> str:
    """Generate keys that are NOT sensitive."""
    key = draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz_"),
        min_size=1,
        max_size=20,
    ))
    for pattern in SENSITIVE_KEYS:
        assume(pattern not in key)
    return key


class TestOutputFormats:
    """Tests for JSON and text output."""

    @given(
        level=st.sampled_from(list(LogLevel)),
        message=message_strategy(),
        address=st.ip_addresses().map(str),
    )
    @settings(max_examples=100)
    def test_json_lines_parse_back(self, level: LogLevel, message: str, address: str) -> None:
        """Property: every JSON line parses back to the logged fields."""
        stream = StringIO()
        logger = AuditLogger(output_format="json", output_stream=stream)
        logger.log(level, "client", message, {"address": address})

        obj = json.loads(stream.getvalue().strip())
        assert obj["level"] == level.value
        assert obj["component"] == "client"
        assert obj["message"] == message
        assert obj["data"] == {"address": address}

    def test_both_formats_write_two_lines(self) -> None:
        stream = StringIO()
        logger = AuditLogger(output_format="both", output_stream=stream)
        logger.log(LogLevel.INFO, "client", "Query answered", {"matched": True})

        lines = stream.getvalue().splitlines()
        assert len(lines) == 2
        assert json.loads(lines[0])["message"] == "Query answered"
        assert "INFO [client] Query answered" in lines[1]

    def test_invalid_format_rejected(self) -> None:
        try:
            AuditLogger(output_format="xml")
            assert False, "Should have raised ValueError"
        except ValueError:
            pass


class TestLevelFiltering:
    """Tests for the minimum level."""

    @given(
        min_level=st.sampled_from(list(LogLevel)),
        level=st.sampled_from(list(LogLevel)),
    )
    @settings(max_examples=50)
    def test_entries_below_minimum_are_dropped(self, min_level: LogLevel, level: LogLevel) -> None:
        order = list(LogLevel)
        stream = StringIO()
        logger = AuditLogger(output_stream=stream, min_level=min_level)
        entry = logger.log(level, "client", "message")

        if order.index(level) < order.index(min_level):
            assert entry is None
            assert stream.getvalue() == ""
        else:
            assert entry is not None
            assert stream.getvalue() != ""


class TestMasking:
    """Tests for sensitive data masking."""

    @given(key=non_sensitive_key_strategy(), value=st.text(max_size=30))
    @settings(max_examples=100)
    def test_non_sensitive_values_pass_through(self, key: str, value: str) -> None:
        assert mask_sensitive_data({key: value}) == {key: value}

    def test_auth_headers_are_masked(self) -> None:
        masked = mask_sensitive_data({
            "url": "https://collector.example/ingest",
            "headers": {"Authorization": "Bearer abc", "X-Source": "edge-1"},
            "targets": [{"api_key": "k1"}, "plain"],
        })

        assert masked["url"] == "https://collector.example/ingest"
        assert masked["headers"]["Authorization"] == MASK_VALUE
        assert masked["headers"]["X-Source"] == "edge-1"
        assert masked["targets"] == [{"api_key": MASK_VALUE}, "plain"]

    def test_masked_values_never_reach_the_stream(self) -> None:
        stream = StringIO()
        logger = AuditLogger(output_format="both", output_stream=stream)
        logger.log(LogLevel.INFO, "forwarder", "sent", {"headers": {"Authorization": "Bearer abc"}})
        assert "Bearer abc" not in stream.getvalue()


class TestAuditMode:
    """Tests for HMAC-signed entries."""

    @given(message=message_strategy(), key=st.text(min_size=1, max_size=40))
    @settings(max_examples=50)
    def test_signed_entries_verify(self, message: str, key: str) -> None:
        logger = AuditLogger(output_stream=StringIO(), signing_key=key)
        entry = logger.log(LogLevel.INFO, "client", message)

        assert logger.audit_mode
        assert entry.signature is not None
        assert logger.verify_signature(entry)

        entry.message = entry.message + "!"
        assert not logger.verify_signature(entry)

    def test_empty_key_rejected(self) -> None:
        try:
            AuditLogger(output_stream=StringIO(), signing_key="")
            assert False, "Should have raised ValueError"
        except ValueError:
            pass

    def test_unsigned_entry_does_not_verify(self) -> None:
        entry = AuditLogger(output_stream=StringIO()).log(LogLevel.INFO, "client", "plain")
        signer = AuditLogger(output_stream=StringIO(), signing_key="key")
        assert entry.signature is None
        assert not signer.verify_signature(entry)

    def test_signature_is_written(self) -> None:
        stream = StringIO()
        logger = AuditLogger(output_format="json", output_stream=stream, signing_key="key")
        entry = logger.log(LogLevel.WARN, "forwarder", "Forwarding rejected")
        assert json.loads(stream.getvalue())["signature"] == entry.signature


class TestHistory:
    """Tests for in-memory entry retention."""

    def test_nothing_retained_by_default(self) -> None:
        logger = AuditLogger(output_stream=StringIO())
        for i in range(10):
            logger.log(LogLevel.INFO, "client", f"query {i}")
        assert logger.entries == []

    @given(history=st.integers(min_value=1, max_value=20), count=st.integers(min_value=0, max_value=60))
    @settings(max_examples=50)
    def test_history_keeps_most_recent(self, history: int, count: int) -> None:
        logger = AuditLogger(output_stream=StringIO(), history=history)
        for i in range(count):
            logger.log(LogLevel.INFO, "client", f"query {i}")

        messages = [entry.message for entry in logger.entries]
        assert messages == [f"query {i}" for i in range(max(0, count - history), count)]

    def test_negative_history_rejected(self) -> None:
        try:
            AuditLogger(output_stream=StringIO(), history=-1)
            assert False, "Should have raised ValueError"
        except ValueError:
            pass


class TestErrorLogging:
    """Tests for log_error()."""

    def test_protocol_error_context(self) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())
        entry = logger.log_error(
            "client",
            "Could not decode response",
            error=UnknownCodeError("bad_sw", 7),
            address="192.0.2.1",
        )

        assert entry.level == LogLevel.ERROR
        assert entry.data["error_type"] == "UnknownCodeError"
        assert entry.data["error_code"] == "unknown_code"
        assert entry.data["error_message"] == "unknown bad_sw code: 0x07"
        assert entry.data["address"] == "192.0.2.1"

    def test_plain_exception_has_no_code(self) -> None:
        logger = AuditLogger(output_stream=StringIO())
        entry = logger.log_error("client", "failed", error=OSError("broken pipe"))
        assert "error_code" not in entry.data
        assert entry.data["error_type"] == "OSError"
