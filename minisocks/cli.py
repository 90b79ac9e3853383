"""Command-line entry points for the local proxy and the server."""

from __future__ import annotations

import argparse
import asyncio
import logging

from .ciphers import CipherError
from .config import DEFAULT_CONFIG_PATH, load_config
from .local import LocalProxy
from .securesocket import Address
from .server import ProxyServer

VERSION = "dev"

logger = logging.getLogger(__name__)


def parse_address(address: str) -> Address:
    """Split ``host:port`` (``[v6]:port`` for IPv6) into a host and a port."""
    host, sep, port_text = address.rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ValueError(f"too many colons in address {address!r}")
    if not (port_text.isascii() and port_text.isdigit()):
        raise ValueError(f"invalid port in address {address!r}")
    port = int(port_text)
    if port > 65535:
        raise ValueError(f"port out of range in address {address!r}")
    return host, port


def _parse_args(prog: str, description: str, argv: list[str] | None):
    parser = argparse.ArgumentParser(prog=prog, description=description)
    parser.add_argument(
        "-c", "--config", default=DEFAULT_CONFIG_PATH, help="configuration file"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="log debugging output"
    )
    return parser.parse_args(argv)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _run(service) -> int:
    try:
        asyncio.run(service.listen())
    except KeyboardInterrupt:
        return 0
    except OSError as err:
        logger.critical("service failed: %s", err)
        return 1
    return 0


def local_main(argv: list[str] | None = None) -> int:
    """Start the local proxy; return the exit status."""
    args = _parse_args("minisocks-local", "Run the local end of the proxy.", argv)
    _setup_logging(args.verbose)
    logger.info("starting minisocks client, version %s", VERSION)

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as err:
        logger.critical("loading config failed: %s", err)
        return 1
    try:
        local_addr = parse_address(config.listen_addr)
    except ValueError as err:
        logger.critical("invalid listen address %r: %s", config.listen_addr, err)
        return 1
    try:
        server_addr = parse_address(config.remote_addr)
    except ValueError as err:
        logger.critical("invalid remote address %r: %s", config.remote_addr, err)
        return 1

    def announce(listen_addr: Address) -> None:
        logger.info(
            "client started, listening on %s, remote %s", listen_addr, config.remote_addr
        )

    try:
        proxy = LocalProxy(config.password, local_addr, server_addr, announce)
    except CipherError as err:
        logger.critical("invalid password: %s", err)
        return 1
    return _run(proxy)


def server_main(argv: list[str] | None = None) -> int:
    """Start the proxy server; return the exit status."""
    args = _parse_args("minisocks-server", "Run the server end of the proxy.", argv)
    _setup_logging(args.verbose)
    logger.info("starting minisocks server, version %s", VERSION)

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as err:
        logger.critical("loading config failed: %s", err)
        return 1
    try:
        local_addr = parse_address(config.listen_addr)
    except ValueError as err:
        logger.critical("invalid listen address %r: %s", config.listen_addr, err)
        return 1

    def announce(listen_addr: Address) -> None:
        logger.info(
            "server started, listening on %s, password %s", listen_addr, config.password
        )

    try:
        server = ProxyServer(config.password, local_addr, announce)
    except CipherError as err:
        logger.critical("invalid password: %s", err)
        return 1
    return _run(server)