"""
Property-based tests for configuration module.

Covers environment and .env loading, JSON file persistence and validation.
"""

import json
import tempfile
from pathlib import Path

from hypothesis import given, settings
from hypothesis import strategies as st

from p0f_client.config import (
    DEFAULT_SOCKET_PATH,
    ClientConfig,
    ForwardConfig,
    LoggingConfig,
    SystemConfig,
    load_config_from_env,
    load_config_from_file,
    save_config_to_file,
    validate_config,
)
from p0f_client.exceptions import ConfigError


@st.composite
def system_config_strategy(draw) -> SystemConfig:
    """Generate valid SystemConfig objects."""
    socket_path = draw(st.text(
        alphabet="abcdefghijklmnopqrstuvwxyz0123456789_-.",
        min_size=1,
        max_size=30,
    ).map(lambda s: f"/run/{s}.sock"))

    forward = None
    if draw(st.booleans()):
        forward = ForwardConfig(
            url=draw(st.sampled_from(["http://127.0.0.1:8080/p0f", "https://collector.example/ingest"])),
            headers=draw(st.dictionaries(
                st.sampled_from(["X-Source", "Authorization", "X-Tenant"]),
                st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789", min_size=1, max_size=20),
                max_size=3,
            )),
            timeout=draw(st.floats(min_value=0.5, max_value=120.0)),
        )

    audit_mode = draw(st.booleans())
    return SystemConfig(
        client=ClientConfig(
            socket_path=socket_path,
            timeout=draw(st.one_of(st.none(), st.floats(min_value=0.1, max_value=60.0))),
        ),
        forward=forward,
        logging=LoggingConfig(
            level=draw(st.sampled_from(["debug", "info", "warn", "error"])),
            audit_mode=audit_mode,
            audit_signing_key="signing-key" if audit_mode else None,
            output_format=draw(st.sampled_from(["json", "text", "both"])),
        ),
    )


class TestConfigFilePersistence:
    """Tests for JSON configuration files."""

    @given(config=system_config_strategy())
    @settings(max_examples=50)
    def test_save_and_load_round_trip(self, config: SystemConfig) -> None:
        """Property: a saved configuration loads back unchanged."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "nested" / "config.json"
            save_config_to_file(config, path)
            assert load_config_from_file(path) == config

    @given(config=system_config_strategy())
    @settings(max_examples=50)
    def test_generated_configs_are_valid(self, config: SystemConfig) -> None:
        assert validate_config(config) == []

    def test_missing_file_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            try:
                load_config_from_file(Path(tmpdir) / "absent.json")
                assert False, "Should have raised ConfigError"
            except ConfigError as e:
                assert e.code == "not_found"

    def test_malformed_json_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.json"
            path.write_text("{not json", encoding="utf-8")
            try:
                load_config_from_file(path)
                assert False, "Should have raised ConfigError"
            except ConfigError as e:
                assert e.code == "unreadable"

    def test_wrong_shape_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.json"
            path.write_text(json.dumps({"client": ["not", "a", "dict"]}), encoding="utf-8")
            try:
                load_config_from_file(path)
                assert False, "Should have raised ConfigError"
            except ConfigError as e:
                assert e.code == "malformed"

    def test_empty_file_uses_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.json"
            path.write_text("{}", encoding="utf-8")
            config = load_config_from_file(path)

        assert config.client.socket_path == DEFAULT_SOCKET_PATH
        assert config.forward is None
        assert config.logging.level == "info"


class TestEnvironmentConfig:
    """Tests for environment and .env loading."""

    def test_environment_values(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            config = load_config_from_env(
                environ={
                    "P0F_SOCKET": "/tmp/p0f.sock",
                    "P0F_TIMEOUT": "2.5",
                    "P0F_FORWARD_URL": "http://127.0.0.1:9000/hook",
                    "P0F_LOG_LEVEL": "DEBUG",
                    "P0F_LOG_FORMAT": "json",
                    "P0F_AUDIT_KEY": "k",
                },
                dotenv_path=Path(tmpdir) / ".env",
            )

        assert config.client.socket_path == "/tmp/p0f.sock"
        assert config.client.timeout == 2.5
        assert config.forward.url == "http://127.0.0.1:9000/hook"
        assert config.logging.level == "debug"
        assert config.logging.output_format == "json"
        assert config.logging.audit_mode
        assert config.logging.audit_signing_key == "k"

    def test_defaults_without_environment(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            config = load_config_from_env(environ={}, dotenv_path=Path(tmpdir) / ".env")

        assert config == SystemConfig()
        assert config.client.timeout is None

    def test_dotenv_fills_gaps_and_environment_wins(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            dotenv_path = Path(tmpdir) / ".env"
            dotenv_path.write_text(
                "P0F_SOCKET=/from/dotenv.sock\nP0F_TIMEOUT=4\n",
                encoding="utf-8",
            )
            config = load_config_from_env(
                environ={"P0F_TIMEOUT": "1"},
                dotenv_path=dotenv_path,
            )

        assert config.client.socket_path == "/from/dotenv.sock"
        assert config.client.timeout == 1.0

    def test_invalid_timeout_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            try:
                load_config_from_env(
                    environ={"P0F_TIMEOUT": "soon"},
                    dotenv_path=Path(tmpdir) / ".env",
                )
                assert False, "Should have raised ConfigError"
            except ConfigError as e:
                assert e.code == "invalid_value"
                assert e.details["name"] == "P0F_TIMEOUT"


class TestValidation:
    """Tests for validate_config()."""

    def test_problems_are_reported(self) -> None:
        config = SystemConfig(
            client=ClientConfig(socket_path="", timeout=0),
            forward=ForwardConfig(url="ftp://example", timeout=-1),
            logging=LoggingConfig(level="loud", output_format="xml", audit_mode=True),
        )
        errors = validate_config(config)

        assert len(errors) == 7
        assert any("socket_path" in e for e in errors)
        assert any("audit_signing_key" in e for e in errors)

    def test_unparseable_forward_url_is_reported(self) -> None:
        for url in ["https://collector.example/\x01", "http://", "collector.example/ingest"]:
            config = SystemConfig(forward=ForwardConfig(url=url))
            assert validate_config(config) == ["forward.url must be an http(s) URL"], url


class TestFileValueTypes:
    """Tests for JSON value type checks in load_config_from_file()."""

    MISTYPED = [
        ({"client": {"timeout": "5"}}, "client.timeout"),
        ({"client": {"timeout": True}}, "client.timeout"),
        ({"client": {"socket_path": 7}}, "client.socket_path"),
        ({"forward": {"url": 42}}, "forward.url"),
        ({"forward": {"url": "https://collector.example", "timeout": "30"}}, "forward.timeout"),
        ({"forward": {"url": "https://collector.example", "headers": {"X-Id": 1}}}, "forward.headers"),
        ({"logging": {"level": 3}}, "logging.level"),
        ({"logging": {"audit_mode": "yes"}}, "logging.audit_mode"),
        ({"logging": "debug"}, "logging"),
        (["client"], "top level"),
    ]

    def test_mistyped_values_raise(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.json"
            for data, name in self.MISTYPED:
                path.write_text(json.dumps(data), encoding="utf-8")
                try:
                    load_config_from_file(path)
                    assert False, f"Should have raised ConfigError for {data!r}"
                except ConfigError as e:
                    assert e.code == "malformed"
                    assert name in e.message

    def test_nulls_fall_back_to_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.json"
            path.write_text(json.dumps({
                "client": {"timeout": None},
                "forward": {"url": "https://collector.example", "timeout": None},
                "logging": None,
            }), encoding="utf-8")
            config = load_config_from_file(path)

        assert config.client.timeout is None
        assert config.forward.timeout == 30.0
        assert config.logging.level == "info"
        assert validate_config(config) == []

    @given(timeout=st.integers(min_value=1, max_value=600))
    @settings(max_examples=20)
    def test_integer_timeouts_accepted(self, timeout: int) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.json"
            path.write_text(json.dumps({"client": {"timeout": timeout}}), encoding="utf-8")
            assert load_config_from_file(path).client.timeout == timeout
