"""
Command-line interface for the p0f client.

This module provides the main CLI entry point with commands for:
- query: Look up a single address
- listen: Accept one TCP connection and look up the connecting peer
- dial: Open a TCP connection to a host and look up that host
- config: Configuration management
"""

import argparse
import json
import socket
import sys
import time
from pathlib import Path
from typing import Optional

from . import __version__
from .audit_logger import AuditLogger
from .client import P0fClient
from .config import (
    DEFAULT_CONFIG_PATH,
    ClientConfig,
    ForwardConfig,
    SystemConfig,
    load_config_from_env,
    load_config_from_file,
    save_config_to_file,
    validate_config,
)
from .enums import LogLevel
from .exceptions import ConfigError, P0fError, ValidationError
from .forwarder import WebhookForwarder
from .models import TEXT_FIELDS, FingerprintRecord

EXIT_MATCH = 0
EXIT_NO_MATCH = 1
EXIT_ERROR = 2

DEFAULT_LISTEN_ADDRESS = "127.0.0.1:6666"
# tcpbin.com echo service
DEFAULT_DIAL_ADDRESS = "45.79.112.203:4242"


def parse_endpoint(value: str) -> tuple[str, int]:
    """
    Split 'host:port' or '[v6-host]:port' into its parts.

    Raises:
        ValidationError: If the value has no valid port
    """
    host, sep, port = value.rpartition(":")
    if not sep or not host:
        raise ValidationError(
            "invalid_endpoint",
            f"Expected host:port, got {value!r}",
            {"endpoint": value},
        )

    host = host.strip("[]")
    try:
        port_number = int(port)
    except ValueError as e:
        raise ValidationError(
            "invalid_endpoint",
            f"Invalid port in {value!r}",
            {"endpoint": value},
        ) from e

    if not 0 < port_number < 65536:
        raise ValidationError(
            "invalid_endpoint",
            f"Port out of range in {value!r}",
            {"endpoint": value},
        )
    return host, port_number


def format_record(address: str, record: FingerprintRecord) -> str:
    """Render a record as aligned 'key: value' lines."""
    rows = [
        ("address", address),
        ("first_seen", record.first_seen.isoformat()),
        ("last_seen", record.last_seen.isoformat()),
        ("total_conn", str(record.total_conn)),
        ("uptime", str(record.uptime_min) if record.uptime_min is not None else "unknown"),
        ("up_mod_days", str(record.up_mod_days.days)),
        ("last_nat", record.last_nat.isoformat() if record.last_nat else "never"),
        ("last_chg", record.last_chg.isoformat() if record.last_chg else "never"),
        ("distance", str(record.distance) if record.distance is not None else "unknown"),
        ("bad_sw", record.bad_sw.value if record.bad_sw else "none"),
        ("os_match_q", record.os_match_q.value),
    ]
    for name in TEXT_FIELDS:
        value = getattr(record, name)
        rows.append((name, value if value is not None else "-"))

    width = max(len(key) for key, _ in rows)
    return "\n".join(f"{key.ljust(width)} : {value}" for key, value in rows)


def create_logger(config: SystemConfig, verbose: bool = False) -> AuditLogger:
    """Create the audit logger described by the logging configuration."""
    errors = validate_config(config)
    if errors:
        raise ConfigError("invalid_config", "; ".join(errors), {"errors": errors})

    level = LogLevel.DEBUG if verbose else LogLevel(config.logging.level)
    return AuditLogger(
        output_format=config.logging.output_format,
        min_level=level,
        signing_key=config.logging.audit_signing_key if config.logging.audit_mode else None,
    )


def resolve_config(args: argparse.Namespace) -> SystemConfig:
    """
    Load configuration from --config or the environment, then apply
    command-line overrides.
    """
    if getattr(args, "config", None):
        config = load_config_from_file(Path(args.config))
    else:
        config = load_config_from_env()

    socket_path = getattr(args, "socket", None)
    timeout = getattr(args, "timeout", None)
    if socket_path or timeout is not None:
        config.client = ClientConfig(
            socket_path=socket_path or config.client.socket_path,
            timeout=timeout if timeout is not None else config.client.timeout,
        )

    forward_url = getattr(args, "forward", None)
    if forward_url:
        headers = config.forward.headers if config.forward else {}
        config.forward = ForwardConfig(url=forward_url, headers=headers)

    return config


def run_query(
    client: P0fClient,
    address: str,
    config: SystemConfig,
    logger: AuditLogger,
    as_json: bool = False,
) -> int:
    """
    Query one address, print the result and forward it if configured.

    Returns:
        Exit code
    """
    record = client.query(address)

    if record is None:
        if as_json:
            print(json.dumps({"address": address, "record": None}))
        else:
            print(f"No fingerprint known for {address}")
        return EXIT_NO_MATCH

    if as_json:
        print(json.dumps({"address": address, "record": record.to_dict()}, indent=2))
    else:
        print(format_record(address, record))

    if config.forward is not None:
        forwarder = WebhookForwarder(config.forward, logger=logger)
        if not forwarder.forward(address, record):
            print(f"Warning: could not forward record to {config.forward.url}", file=sys.stderr)

    return EXIT_MATCH


def cmd_query(args: argparse.Namespace) -> int:
    """Handle the 'query' command."""
    config = resolve_config(args)
    logger = create_logger(config, args.verbose)

    with P0fClient.connect(
        config.client.socket_path,
        timeout=config.client.timeout,
        logger=logger,
    ) as client:
        return run_query(client, args.address, config, logger, as_json=args.json)


def cmd_listen(args: argparse.Namespace) -> int:
    """Handle the 'listen' command."""
    config = resolve_config(args)
    logger = create_logger(config, args.verbose)
    host, port = parse_endpoint(args.address)

    with P0fClient.connect(
        config.client.socket_path,
        timeout=config.client.timeout,
        logger=logger,
    ) as client:
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        with socket.create_server((host, port), family=family) as server:
            print(f"Waiting for connection on {host}:{server.getsockname()[1]}")
            conn, peer = server.accept()
            with conn:
                print(f"Connection from {peer[0]}:{peer[1]}")
                # Give the daemon time to see the handshake
                time.sleep(args.delay)
                return run_query(client, peer[0], config, logger, as_json=args.json)


def cmd_dial(args: argparse.Namespace) -> int:
    """Handle the 'dial' command."""
    config = resolve_config(args)
    logger = create_logger(config, args.verbose)
    host, port = parse_endpoint(args.address)

    with P0fClient.connect(
        config.client.socket_path,
        timeout=config.client.timeout,
        logger=logger,
    ) as client:
        with socket.create_connection((host, port), timeout=10.0) as conn:
            peer_ip = conn.getpeername()[0]
            print(f"Connected to {peer_ip}:{port}")
            time.sleep(args.delay)
            return run_query(client, peer_ip, config, logger, as_json=args.json)


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.path) if args.path else DEFAULT_CONFIG_PATH

    if args.action == "show":
        config = load_config_from_file(config_path)
        print(f"Configuration from: {config_path}")
        print(f"  Socket: {config.client.socket_path}")
        print(f"  Timeout: {config.client.timeout}")
        print(f"  Forward URL: {config.forward.url if config.forward else '-'}")
        print(f"  Log level: {config.logging.level}")
        print(f"  Log format: {config.logging.output_format}")
        print(f"  Audit mode: {config.logging.audit_mode}")
        return 0

    elif args.action == "init":
        if config_path.exists() and not args.force:
            print(f"Configuration already exists at: {config_path}", file=sys.stderr)
            print("Use --force to overwrite.", file=sys.stderr)
            return EXIT_ERROR

        save_config_to_file(load_config_from_env(), config_path)
        print(f"Configuration created at: {config_path}")
        return 0

    elif args.action == "validate":
        errors = validate_config(load_config_from_file(config_path))
        if errors:
            for error in errors:
                print(f"  - {error}", file=sys.stderr)
            return EXIT_ERROR

        print(f"Configuration at {config_path} is valid.")
        return 0

    return EXIT_ERROR


def _add_connection_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--socket", "-s",
        help="Path to the p0f query socket (default: $P0F_SOCKET or /var/run/p0f.sock)",
    )
    parser.add_argument(
        "--timeout", "-t",
        type=float,
        help="Socket timeout in seconds",
    )
    parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    parser.add_argument(
        "--forward",
        help="POST matched records as JSON to this URL",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the record as JSON",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="p0f-query",
        description="Query a running p0f daemon for passive fingerprints",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'query' command
    query_parser = subparsers.add_parser(
        "query",
        help="Look up a single IPv4 or IPv6 address",
    )
    query_parser.add_argument(
        "address",
        help="Address to look up (e.g., 192.0.2.1)",
    )
    _add_connection_arguments(query_parser)
    query_parser.set_defaults(func=cmd_query)

    # 'listen' command
    listen_parser = subparsers.add_parser(
        "listen",
        help="Accept one TCP connection and look up the peer",
    )
    listen_parser.add_argument(
        "--address", "-a",
        default=DEFAULT_LISTEN_ADDRESS,
        help=f"host:port to listen on (default: {DEFAULT_LISTEN_ADDRESS})",
    )
    listen_parser.add_argument(
        "--delay",
        type=float,
        default=1.0,
        help="Seconds to wait before querying (default: 1)",
    )
    _add_connection_arguments(listen_parser)
    listen_parser.set_defaults(func=cmd_listen)

    # 'dial' command
    dial_parser = subparsers.add_parser(
        "dial",
        help="Connect to a TCP host and look it up",
    )
    dial_parser.add_argument(
        "--address", "-a",
        default=DEFAULT_DIAL_ADDRESS,
        help=f"host:port to connect to (default: {DEFAULT_DIAL_ADDRESS})",
    )
    dial_parser.add_argument(
        "--delay",
        type=float,
        default=1.0,
        help="Seconds to wait before querying (default: 1)",
    )
    _add_connection_arguments(dial_parser)
    dial_parser.set_defaults(func=cmd_dial)

    # 'config' command
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
    )
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--path", "-p",
        help="Path to configuration file",
    )
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except P0fError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_ERROR
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
