"""Encrypted relaying between two stream connections."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from .ciphers import Cipher

BUF_SIZE = 1024
TIMEOUT = 30.0

Address = tuple[str, int]

logger = logging.getLogger(__name__)


class SecureSocket:
    """Relays data between connections, encrypting or decrypting each chunk."""

    def __init__(
        self,
        cipher: Cipher,
        local_addr: Address | None,
        server_addr: Address | None,
    ) -> None:
        self.cipher = cipher
        self.local_addr = local_addr
        self.server_addr = server_addr

    async def _pump(
        self,
        dst: asyncio.StreamWriter,
        src: asyncio.StreamReader,
        transform: Callable[[bytes], bytes],
        action: str,
    ) -> int:
        total = 0
        while True:
            try:
                chunk = await src.read(BUF_SIZE)
            except OSError:
                logger.error("reading data to %s failed", action)
                raise
            if not chunk:
                logger.debug("end of data to %s", action)
                return total
            logger.debug("read %d bytes to %s", len(chunk), action)
            data = transform(chunk)
            try:
                dst.write(data)
                await dst.drain()
            except OSError:
                logger.error("writing %sed data failed", action)
                raise
            total += len(chunk)

    async def encode_copy(
        self, dst: asyncio.StreamWriter, src: asyncio.StreamReader
    ) -> int:
        """Encrypt everything read from ``src`` into ``dst``; return bytes read."""
        return await self._pump(dst, src, self.cipher.encrypt, "encrypt")

    async def decode_copy(
        self, dst: asyncio.StreamWriter, src: asyncio.StreamReader
    ) -> int:
        """Decrypt everything read from ``src`` into ``dst``; return bytes read."""
        return await self._pump(dst, src, self.cipher.decrypt, "decrypt")

    async def dial_server(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        """Open a connection to the remote server."""
        if self.server_addr is None:
            raise ValueError("no server address configured")
        host, port = self.server_addr
        logger.info("connecting to remote server %s:%s", host, port)
        try:
            streams = await asyncio.open_connection(host, port)
        except OSError as err:
            logger.error("connecting to remote server failed: %s", err)
            raise ConnectionError(f"connecting to {host}:{port} failed: {err}") from err
        logger.info("connected to remote server")
        return streams