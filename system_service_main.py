#!/usr/bin/env python3
"""Privileged execution service entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from core.audit import setup_audit_logger
from core.catalog import CommandCatalog
from core.system_executor import CommandExecutor
from core.system_service import SystemServiceServer
from utils.constants import (
    DEFAULT_DAEMON_CONFIG,
    DEFAULT_MAX_REQUEST_BYTES,
    DEFAULT_MAX_RESPONSE_BYTES,
    DEFAULT_SERVICE_REQUEST_TIMEOUT,
    DEFAULT_SHUTDOWN_GRACE_SECONDS,
    DEFAULT_SOCKET_PATH,
    DEFAULT_SOCKET_PERMISSIONS,
    LOG_LEVELS,
)
from utils.helpers import load_config, positive_int


def parse_cli_args(argv=None):
    parser = argparse.ArgumentParser(description="Allow-listed command execution service")
    parser.add_argument(
        "--config",
        default=DEFAULT_DAEMON_CONFIG,
        help=f"Path to config YAML file (default: {DEFAULT_DAEMON_CONFIG})",
    )
    parser.add_argument(
        "--socket",
        default=None,
        help="Override Unix socket path",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default=None,
        help="Log level override",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Write logs to this file instead of stdout",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        help="Validate config and print resolved service settings, then exit",
    )
    return parser.parse_args(argv)


def setup_logging(config: dict, args) -> None:
    log_conf = config.get("logging", {})
    log_level = str(args.log_level or log_conf.get("level", "INFO")).upper()
    level = getattr(logging, log_level, logging.INFO)
    log_file = args.log_file or log_conf.get("file")
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_file)
    else:
        handler = logging.StreamHandler(sys.stdout)
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
        handlers=[handler],
    )


def build_server(config: dict, args) -> SystemServiceServer:
    catalog = CommandCatalog.from_config(config.get("commands"), require_non_empty=True)
    executor = CommandExecutor(config)
    audit = setup_audit_logger(config, mode="daemon")
    socket_path = str(args.socket or config.get("socket_path") or DEFAULT_SOCKET_PATH)
    # Unquoted 0660 in YAML already arrives as the octal int; quoted arrives as text.
    socket_mode = config.get("socket_permissions")
    if socket_mode is None or socket_mode == "":
        socket_mode = DEFAULT_SOCKET_PERMISSIONS
    return SystemServiceServer(
        socket_path=socket_path,
        catalog=catalog,
        executor=executor,
        audit=audit,
        request_timeout_seconds=float(config.get("request_timeout_seconds", DEFAULT_SERVICE_REQUEST_TIMEOUT)),
        max_request_bytes=positive_int(config.get("max_request_bytes"), DEFAULT_MAX_REQUEST_BYTES),
        max_response_bytes=positive_int(config.get("max_response_bytes"), DEFAULT_MAX_RESPONSE_BYTES),
        shutdown_grace_seconds=float(config.get("shutdown_grace_seconds", DEFAULT_SHUTDOWN_GRACE_SECONDS)),
        socket_mode=socket_mode,
        socket_uid=config.get("socket_uid"),
        socket_gid=config.get("socket_gid"),
    )


async def main(argv=None):
    args = parse_cli_args(argv)
    config = load_config(args.config)
    setup_logging(config, args)
    logger = logging.getLogger(__name__)

    server = build_server(config, args)
    if args.validate_only:
        print("✅ execution service config validation passed")
        print(f"config: {args.config}")
        print(f"socket: {server.socket_path}")
        print(f"socket_mode: {oct(server.socket_mode) if server.socket_mode is not None else None}")
        print(f"max_execution_time: {server.executor.max_execution_time}")
        print(f"default_timeout: {server.executor.default_timeout}")
        print(f"max_request_bytes: {server.max_request_bytes}")
        print(f"max_response_bytes: {server.max_response_bytes}")
        print(f"commands: {', '.join(server.catalog.names)}")
        return

    await server.start()
    logger.info("Execution service listening on %s", server.socket_path)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _on_signal(signum):
        logger.info("Received signal %s, stopping execution service...", signum)
        stop_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, _on_signal, signum)

    await stop_event.wait()
    await server.stop()
    logger.info("Execution service stopped")


def cli():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    cli()
