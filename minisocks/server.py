"""Remote end of the proxy: speaks SOCKS5 over the encrypted tunnel."""

from __future__ import annotations

import asyncio
import contextlib
import ipaddress
import logging
import uuid
from typing import Callable

from .ciphers import CipherError, SimpleCipher
from .securesocket import TIMEOUT, Address, SecureSocket

SOCKS_VERSION = 0x05
HANDSHAKE_REPLY = b"\x05\x00"
CONNECT_REPLY = b"\x05\x00\x00\x01\x00\x00\x00\x00\x00\x00"
READ_SIZE = 256

ATYP_IPV4 = 0x01
ATYP_DOMAIN = 0x03
ATYP_IPV6 = 0x04

logger = logging.getLogger(__name__)


class ProtocolError(Exception):
    """Raised when a peer sends a SOCKS5 message that cannot be served."""


def check_handshake(data: bytes) -> bytes:
    """Validate a SOCKS5 greeting and return the reply to send."""
    if len(data) < 2 or data[0] != SOCKS_VERSION:
        raise ProtocolError("unsupported protocol version, only SOCKS5 is supported")
    if data[1] != 0x01:
        raise ProtocolError(
            f"unsupported request type 0x{data[1]:x}, only CONNECT(0x01) is supported"
        )
    return HANDSHAKE_REPLY


def parse_request(data: bytes) -> tuple[str, int]:
    """Return the target host and port named by a SOCKS5 request."""
    if len(data) < 7:
        raise ProtocolError(
            f"request too short: expected at least 7 bytes, got {len(data)}"
        )
    atyp = data[3]
    if atyp == ATYP_IPV4:
        raw = data[4:8]
        if len(raw) != 4:
            raise ProtocolError("truncated IPv4 address")
        host = str(ipaddress.IPv4Address(bytes(raw)))
    elif atyp == ATYP_DOMAIN:
        raw = data[5:-2]
        if not raw:
            raise ProtocolError("empty domain name")
        try:
            host = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as err:
            raise ProtocolError("domain name is not valid text") from err
    elif atyp == ATYP_IPV6:
        raw = data[4:20]
        if len(raw) != 16:
            raise ProtocolError("truncated IPv6 address")
        host = str(ipaddress.IPv6Address(bytes(raw)))
    else:
        raise ProtocolError(f"unsupported address type 0x{atyp:x}")
    port = int.from_bytes(data[-2:], "big")
    return host, port


async def _close_writer(writer: asyncio.StreamWriter) -> None:
    writer.close()
    with contextlib.suppress(OSError):
        await writer.wait_closed()


class ProxyServer(SecureSocket):
    """Accepts tunnelled SOCKS5 requests and relays them to their targets."""

    def __init__(
        self,
        secret: str,
        local_addr: Address,
        after_listen: Callable[[Address], None] | None = None,
    ) -> None:
        super().__init__(SimpleCipher(secret), local_addr, None)
        self.after_listen = after_listen
        self.timeout = TIMEOUT
        self._running = False
        self._stopped: asyncio.Event | None = None
        logger.debug("created server on %s", local_addr)

    async def listen(self) -> None:
        """Accept connections until :meth:`close` is called."""
        host, port = self.local_addr
        self._stopped = asyncio.Event()
        logger.info("listening on %s:%s", host, port)
        try:
            server = await asyncio.start_server(self._handle_conn, host or None, port)
        except OSError as err:
            logger.error("listening failed: %s", err)
            raise
        try:
            address = tuple(server.sockets[0].getsockname()[:2])
            logger.info("listening on %s", address)
            self._running = True
            if self.after_listen is not None:
                self.after_listen(address)
            await self._stopped.wait()
        finally:
            self._running = False
            server.close()

    def close(self) -> None:
        """Stop accepting connections."""
        logger.info("closing server")
        self._running = False
        if self._stopped is not None:
            self._stopped.set()

    async def _read_message(self, reader: asyncio.StreamReader, what: str) -> bytes:
        data = await reader.read(READ_SIZE)
        if not data:
            raise ConnectionError(f"connection closed before {what}")
        return self.cipher.decrypt(data)

    async def _send(self, writer: asyncio.StreamWriter, message: bytes) -> None:
        writer.write(self.cipher.encrypt(message))
        await writer.drain()

    async def _handshake(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        data = await self._read_message(reader, "handshake")
        await self._send(writer, check_handshake(data))

    async def _request(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        data = await self._read_message(reader, "request")
        host, port = parse_request(data)
        logger.debug("connecting to target %s:%s", host, port)
        try:
            dst_reader, dst_writer = await asyncio.open_connection(host, port)
        except OSError as err:
            raise ConnectionError(
                f"connecting to target {host}:{port} failed: {err}"
            ) from err
        try:
            await self._send(writer, CONNECT_REPLY)
        except OSError:
            await _close_writer(dst_writer)
            raise
        return dst_reader, dst_writer

    async def _handle_conn(
        self, local_reader: asyncio.StreamReader, local_writer: asyncio.StreamWriter
    ) -> None:
        conn_id = str(uuid.uuid4())
        peer = local_writer.get_extra_info("peername")
        logger.debug("[%s] handling connection from %s", conn_id, peer)
        try:
            try:
                await self._handshake(local_reader, local_writer)
            except (ProtocolError, CipherError, OSError) as err:
                logger.error("[%s] handshake failed: %s", conn_id, err)
                return
            try:
                dst_reader, dst_writer = await self._request(local_reader, local_writer)
            except (ProtocolError, CipherError, OSError) as err:
                logger.error("[%s] request failed: %s", conn_id, err)
                return
            try:
                await asyncio.wait_for(
                    self._forward(
                        conn_id, local_reader, local_writer, dst_reader, dst_writer
                    ),
                    self.timeout,
                )
            except asyncio.TimeoutError:
                logger.debug("[%s] connection timed out", conn_id)
            finally:
                await _close_writer(dst_writer)
        finally:
            await _close_writer(local_writer)
            logger.debug("[%s] connection finished", conn_id)

    async def _forward(
        self,
        conn_id: str,
        local_reader: asyncio.StreamReader,
        local_writer: asyncio.StreamWriter,
        dst_reader: asyncio.StreamReader,
        dst_writer: asyncio.StreamWriter,
    ) -> None:
        upstream = asyncio.create_task(self.decode_copy(dst_writer, local_reader))
        try:
            await self.encode_copy(local_writer, dst_reader)
        except (OSError, CipherError) as err:
            logger.debug("[%s] encrypting relay ended: %s", conn_id, err)
        finally:
            upstream.cancel()
            await asyncio.gather(upstream, return_exceptions=True)
        logger.debug("[%s] relaying finished", conn_id)