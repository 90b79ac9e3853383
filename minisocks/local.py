"""Local end of the proxy: accepts browser connections and tunnels them to the server."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from typing import Callable

from .ciphers import CipherError, SimpleCipher
from .securesocket import TIMEOUT, Address, SecureSocket

logger = logging.getLogger(__name__)


async def _close_writer(writer: asyncio.StreamWriter) -> None:
    writer.close()
    with contextlib.suppress(OSError):
        await writer.wait_closed()


class LocalProxy(SecureSocket):
    """Listens locally and relays every connection, encrypted, to the remote server."""

    def __init__(
        self,
        secret: str,
        local_addr: Address,
        server_addr: Address,
        after_listen: Callable[[Address], None] | None = None,
    ) -> None:
        super().__init__(SimpleCipher(secret), local_addr, server_addr)
        self.after_listen = after_listen
        self.timeout = TIMEOUT
        self._running = False
        self._stopped: asyncio.Event | None = None
        logger.debug("created local proxy %s -> %s", local_addr, server_addr)

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
        logger.info("closing local proxy")
        self._running = False
        if self._stopped is not None:
            self._stopped.set()

    async def _handle_conn(
        self, user_reader: asyncio.StreamReader, user_writer: asyncio.StreamWriter
    ) -> None:
        conn_id = str(uuid.uuid4())
        peer = user_writer.get_extra_info("peername")
        logger.debug("[%s] handling connection from %s", conn_id, peer)
        try:
            try:
                server_reader, server_writer = await self.dial_server()
            except (OSError, ValueError) as err:
                logger.error("[%s] connecting to server failed: %s", conn_id, err)
                return
            try:
                await asyncio.wait_for(
                    self._forward(
                        conn_id, user_reader, user_writer, server_reader, server_writer
                    ),
                    self.timeout,
                )
            except asyncio.TimeoutError:
                logger.debug("[%s] connection timed out", conn_id)
            finally:
                await _close_writer(server_writer)
        finally:
            await _close_writer(user_writer)
            logger.debug("[%s] connection finished", conn_id)

    async def _forward(
        self,
        conn_id: str,
        user_reader: asyncio.StreamReader,
        user_writer: asyncio.StreamWriter,
        server_reader: asyncio.StreamReader,
        server_writer: asyncio.StreamWriter,
    ) -> None:
        upstream = asyncio.create_task(self.encode_copy(server_writer, user_reader))
        try:
            await self.decode_copy(user_writer, server_reader)
        except (OSError, CipherError) as err:
            logger.debug("[%s] decrypting relay ended: %s", conn_id, err)
        finally:
            upstream.cancel()
            await asyncio.gather(upstream, return_exceptions=True)
        logger.debug("[%s] relaying finished", conn_id)