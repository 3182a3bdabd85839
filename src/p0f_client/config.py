"""
Configuration for the p0f client.

Configuration comes from a JSON file or from environment variables (with
optional .env support). Both sources produce the same SystemConfig.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

import httpx
from dotenv import dotenv_values

from .exceptions import ConfigError

DEFAULT_SOCKET_PATH = "/var/run/p0f.sock"
DEFAULT_CONFIG_PATH = Path.home() / ".p0f_client" / "config.json"

LOG_LEVELS = ("debug", "info", "warn", "error")
LOG_FORMATS = ("json", "text", "both")


@dataclass
class ClientConfig:
    """Daemon connection settings."""

    socket_path: str = DEFAULT_SOCKET_PATH
    timeout: Optional[float] = None  # Socket timeout in seconds, None blocks


@dataclass
class ForwardConfig:
    """Downstream webhook that receives decoded records."""

    url: str
    headers: dict[str, str] = field(default_factory=dict)
    timeout: float = 30.0


@dataclass
class LoggingConfig:
    """Logging and audit configuration."""

    level: str = "info"
    audit_mode: bool = False
    audit_signing_key: Optional[str] = None
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class SystemConfig:
    """Main configuration combining all sub-configurations."""

    client: ClientConfig = field(default_factory=ClientConfig)
    forward: Optional[ForwardConfig] = None
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def validate_config(config: SystemConfig) -> list[str]:
    """
    Return a list of problems with a configuration, empty if it is valid.
    """
    errors = []

    if not config.client.socket_path:
        errors.append("client.socket_path must not be empty")
    if config.client.timeout is not None and config.client.timeout <= 0:
        errors.append("client.timeout must be positive")

    if config.forward is not None:
        try:
            url = httpx.URL(config.forward.url)
        except httpx.InvalidURL:
            url = None
        if url is None or url.scheme not in ("http", "https") or not url.host:
            errors.append("forward.url must be an http(s) URL")
        if config.forward.timeout <= 0:
            errors.append("forward.timeout must be positive")

    if config.logging.level not in LOG_LEVELS:
        errors.append(f"logging.level must be one of {', '.join(LOG_LEVELS)}")
    if config.logging.output_format not in LOG_FORMATS:
        errors.append(f"logging.output_format must be one of {', '.join(LOG_FORMATS)}")
    if config.logging.audit_mode and not config.logging.audit_signing_key:
        errors.append("logging.audit_signing_key is required when audit_mode is on")

    return errors


def _parse_timeout(value: Optional[str], name: str) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError as e:
        raise ConfigError(
            "invalid_value",
            f"{name} must be a number, got {value!r}",
            {"name": name, "value": value},
        ) from e


def load_config_from_env(
    environ: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[Path] = None,
) -> SystemConfig:
    """
    Build a configuration from environment variables.

    Values from a .env file are used where the environment does not set
    them. Recognized variables: P0F_SOCKET, P0F_TIMEOUT, P0F_FORWARD_URL,
    P0F_FORWARD_TIMEOUT, P0F_LOG_LEVEL, P0F_LOG_FORMAT, P0F_AUDIT_KEY.

    Args:
        environ: Environment mapping (defaults to os.environ)
        dotenv_path: Path to a .env file (defaults to ./.env if present)
    """
    if dotenv_path is None:
        dotenv_path = Path.cwd() / ".env"

    values: dict[str, Optional[str]] = {}
    if dotenv_path.is_file():
        values.update(dotenv_values(dotenv_path))
    values.update(os.environ if environ is None else environ)

    forward = None
    forward_url = values.get("P0F_FORWARD_URL")
    if forward_url:
        forward_timeout = _parse_timeout(values.get("P0F_FORWARD_TIMEOUT"), "P0F_FORWARD_TIMEOUT")
        forward = ForwardConfig(
            url=forward_url,
            timeout=forward_timeout if forward_timeout is not None else 30.0,
        )

    audit_key = values.get("P0F_AUDIT_KEY") or None

    return SystemConfig(
        client=ClientConfig(
            socket_path=values.get("P0F_SOCKET") or DEFAULT_SOCKET_PATH,
            timeout=_parse_timeout(values.get("P0F_TIMEOUT"), "P0F_TIMEOUT"),
        ),
        forward=forward,
        logging=LoggingConfig(
            level=(values.get("P0F_LOG_LEVEL") or "info").lower(),
            audit_mode=audit_key is not None,
            audit_signing_key=audit_key,
            output_format=(values.get("P0F_LOG_FORMAT") or "text").lower(),
        ),
    )


_NUMBER = (int, float)


def _malformed(config_path: Path, message: str) -> ConfigError:
    return ConfigError(
        "malformed",
        f"Malformed configuration in {config_path}: {message}",
        {"path": str(config_path)},
    )


def _section(data: dict, name: str, config_path: Path) -> dict:
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise _malformed(config_path, f"{name} must be an object")
    return section


def _field(section: dict, name: str, expected, default, config_path: Path):
    """Read `name` (dotted, for messages) from a section and check its JSON type."""
    value = section.get(name.rpartition(".")[2], default)
    if value is None:
        return default
    # bool is an int subclass; true/false is never a valid number here
    if isinstance(value, bool) and expected is not bool:
        raise _malformed(config_path, f"{name} has the wrong type: bool")
    if not isinstance(value, expected):
        raise _malformed(config_path, f"{name} has the wrong type: {type(value).__name__}")
    return value


def load_config_from_file(config_path: Path) -> SystemConfig:
    """
    Load configuration from a JSON file.

    Raises:
        ConfigError: If the file is missing or malformed
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(
            "not_found",
            f"Configuration file not found: {config_path}",
            {"path": str(config_path)},
        ) from e
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(
            "unreadable",
            f"Could not read configuration from {config_path}: {e}",
            {"path": str(config_path)},
        ) from e

    if not isinstance(data, dict):
        raise _malformed(config_path, "top level must be an object")

    client_data = _section(data, "client", config_path)
    client = ClientConfig(
        socket_path=_field(client_data, "client.socket_path", str, DEFAULT_SOCKET_PATH, config_path),
        timeout=_field(client_data, "client.timeout", _NUMBER, None, config_path),
    )

    forward = None
    forward_data = _section(data, "forward", config_path)
    if forward_data.get("url"):
        headers = _field(forward_data, "forward.headers", dict, {}, config_path)
        if not all(isinstance(k, str) and isinstance(v, str) for k, v in headers.items()):
            raise _malformed(config_path, "forward.headers must map strings to strings")
        forward = ForwardConfig(
            url=_field(forward_data, "forward.url", str, None, config_path),
            headers=headers,
            timeout=_field(forward_data, "forward.timeout", _NUMBER, 30.0, config_path),
        )

    logging_data = _section(data, "logging", config_path)
    logging_config = LoggingConfig(
        level=_field(logging_data, "logging.level", str, "info", config_path),
        audit_mode=_field(logging_data, "logging.audit_mode", bool, False, config_path),
        audit_signing_key=_field(logging_data, "logging.audit_signing_key", str, None, config_path),
        output_format=_field(logging_data, "logging.output_format", str, "text", config_path),
    )

    return SystemConfig(client=client, forward=forward, logging=logging_config)


def save_config_to_file(config: SystemConfig, config_path: Path) -> None:
    """
    Save configuration to a JSON file, creating parent directories.

    Raises:
        ConfigError: If the file cannot be written
    """
    data = {
        "client": {
            "socket_path": config.client.socket_path,
            "timeout": config.client.timeout,
        },
        "forward": {
            "url": config.forward.url,
            "headers": config.forward.headers,
            "timeout": config.forward.timeout,
        } if config.forward else None,
        "logging": {
            "level": config.logging.level,
            "audit_mode": config.logging.audit_mode,
            "audit_signing_key": config.logging.audit_signing_key,
            "output_format": config.logging.output_format,
        },
    }

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
    except OSError as e:
        raise ConfigError(
            "unwritable",
            f"Could not write configuration to {config_path}: {e}",
            {"path": str(config_path)},
        ) from e
