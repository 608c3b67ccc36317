#!/usr/bin/env python3
"""
Command gateway - HTTP entry point
"""
import argparse
import asyncio
import logging
import os
import signal
import sys

from aiohttp import web

from core.audit import setup_audit_logger
from core.catalog import CommandCatalog
from core.gateway import GatewayApp
from core.system_client import SystemServiceClient
from utils.constants import (
    DEFAULT_API_CONFIG,
    DEFAULT_EXEC_TIMEOUT,
    DEFAULT_GATEWAY_MAX_TIMEOUT,
    DEFAULT_LISTEN_ADDRESS,
    DEFAULT_MAX_BODY_SIZE,
    DEFAULT_MAX_RESPONSE_BYTES,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RPC_GRACE_SECONDS,
    DEFAULT_SOCKET_PATH,
    LOG_LEVELS,
)
from utils.helpers import load_config, parse_listen_address, positive_int


def parse_cli_args(argv=None):
    """Parse runtime CLI arguments."""
    parser = argparse.ArgumentParser(description="Allow-listed command HTTP gateway")
    parser.add_argument(
        "--config",
        default=DEFAULT_API_CONFIG,
        help=f"Path to config YAML file (default: {DEFAULT_API_CONFIG}; optional)",
    )
    parser.add_argument(
        "--socket",
        default=None,
        help="Unix socket of the execution service (overrides config)",
    )
    parser.add_argument(
        "--listen",
        default=None,
        help="HTTP listen address, e.g. :8080 (overrides config)",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default=None,
        help="Log level override",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        help="Validate and print resolved gateway config, then exit",
    )
    return parser.parse_args(argv)


def load_gateway_config(path: str) -> dict:
    """The gateway can run on flags alone; a missing config file means defaults."""
    if not os.path.exists(path):
        logging.getLogger(__name__).warning("Configuration file not found: %s, using defaults", path)
        return {}
    return load_config(path)


def setup_logging(config: dict, args):
    """Setup logging based on configuration"""
    log_config = config.get('logging', {})
    level_name = str(args.log_level or log_config.get('level', 'INFO')).upper()
    level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        level=level,
        format='[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    # Reduce noise from libraries
    logging.getLogger('aiohttp.access').setLevel(logging.WARNING)


def load_catalog_projection(config: dict) -> CommandCatalog:
    """Listing-only view of the catalog: inline ``commands`` or the daemon's file."""
    if config.get("commands") is not None:
        return CommandCatalog.from_config(config.get("commands"))
    catalog_file = config.get("catalog_file")
    if catalog_file:
        return CommandCatalog.from_config(load_config(str(catalog_file)).get("commands"))
    return CommandCatalog()


def build_gateway(config: dict, args) -> GatewayApp:
    socket_path = str(args.socket or config.get("socket_path") or DEFAULT_SOCKET_PATH)
    request_timeout = positive_int(config.get("request_timeout"), DEFAULT_REQUEST_TIMEOUT)
    client = SystemServiceClient(
        socket_path=socket_path,
        connect_timeout_seconds=min(float(request_timeout), 5.0),
        max_response_bytes=positive_int(config.get("max_response_bytes"), DEFAULT_MAX_RESPONSE_BYTES),
    )
    return GatewayApp(
        client,
        catalog=load_catalog_projection(config),
        default_timeout=positive_int(config.get("default_timeout"), DEFAULT_EXEC_TIMEOUT),
        max_timeout=positive_int(config.get("max_timeout"), DEFAULT_GATEWAY_MAX_TIMEOUT),
        rpc_grace_seconds=float(config.get("rpc_grace_seconds", DEFAULT_RPC_GRACE_SECONDS)),
        max_body_size=positive_int(config.get("max_body_size"), DEFAULT_MAX_BODY_SIZE),
        audit=setup_audit_logger(config, mode="api"),
    )


async def main(argv=None):
    """Main application entry point"""
    args = parse_cli_args(argv)
    try:
        config = load_gateway_config(args.config)
    except Exception as e:
        print(f"❌ Failed to load configuration: {e}")
        sys.exit(1)

    setup_logging(config, args)
    logger = logging.getLogger(__name__)

    listen = str(args.listen or config.get("listen_address") or DEFAULT_LISTEN_ADDRESS)
    host, port = parse_listen_address(listen)
    gateway = build_gateway(config, args)

    if args.validate_only:
        print("✅ Config validation passed")
        print(f"config: {args.config}")
        print(f"listen: {host}:{port}")
        print(f"socket: {gateway.client.socket_path}")
        print(f"default_timeout: {gateway.default_timeout}")
        print(f"max_timeout: {gateway.max_timeout}")
        print(f"max_body_size: {gateway.max_body_size}")
        print(f"commands: {len(gateway.catalog)}")
        return

    # Not fatal: requests fail with 503 until the service shows up.
    if await gateway.client.probe(timeout_seconds=2.0):
        logger.info("✅ Connected to execution service at %s", gateway.client.socket_path)
    else:
        logger.warning(
            "Cannot reach execution service at %s; requests will fail until it is available",
            gateway.client.socket_path,
        )

    runner = web.AppRunner(gateway.build())
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info("✅ Gateway listening on %s:%d", host, port)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _on_signal(signum):
        logger.info("Received signal %s, shutting down gateway...", signum)
        stop_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, _on_signal, signum)

    await stop_event.wait()
    await runner.cleanup()
    logger.info("Gateway shutdown complete")


def cli():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    cli()
