import asyncio
import socket

import pytest

from minisocks.ciphers import CipherError, generate_cipher_table
from minisocks.local import LocalProxy
from minisocks.server import ProxyServer


async def _echo(reader, writer):
    while data := await reader.read(1024):
        writer.write(data)
        await writer.drain()
    writer.close()


async def _start(cls, *args):
    loop = asyncio.get_running_loop()
    ready = loop.create_future()
    service = cls(*args, ready.set_result)
    task = asyncio.create_task(service.listen())
    address = await asyncio.wait_for(ready, 5)
    return service, task, address


async def _stop(service, task):
    service.close()
    await asyncio.wait_for(task, 5)


def _free_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_bad_secret_is_rejected():
    with pytest.raises(CipherError):
        LocalProxy("zz", ("127.0.0.1", 0), ("127.0.0.1", 1))


@pytest.mark.asyncio
async def test_end_to_end_socks_relay():
    table = generate_cipher_table()
    echo = await asyncio.start_server(_echo, "127.0.0.1", 0)
    echo_port = echo.sockets[0].getsockname()[1]
    server, server_task, server_addr = await _start(
        ProxyServer, table, ("127.0.0.1", 0)
    )
    local, local_task, local_addr = await _start(
        LocalProxy, table, ("127.0.0.1", 0), server_addr
    )
    try:
        reader, writer = await asyncio.open_connection(*local_addr)
        writer.write(b"\x05\x01\x00")
        await writer.drain()
        assert await asyncio.wait_for(reader.readexactly(2), 5) == b"\x05\x00"

        request = b"\x05\x01\x00\x01" + bytes([127, 0, 0, 1]) + echo_port.to_bytes(2, "big")
        writer.write(request)
        await writer.drain()
        reply = await asyncio.wait_for(reader.readexactly(10), 5)
        assert reply == b"\x05\x00\x00\x01\x00\x00\x00\x00\x00\x00"

        payload = bytes(range(256)) * 8
        writer.write(payload)
        await writer.drain()
        echoed = await asyncio.wait_for(reader.readexactly(len(payload)), 5)
        assert echoed == payload
        writer.close()
    finally:
        await _stop(local, local_task)
        await _stop(server, server_task)
        echo.close()


@pytest.mark.asyncio
async def test_connection_closed_when_server_unreachable():
    table = generate_cipher_table()
    local, task, address = await _start(
        LocalProxy, table, ("127.0.0.1", 0), ("127.0.0.1", _free_port())
    )
    try:
        reader, writer = await asyncio.open_connection(*address)
        writer.write(b"\x05\x01\x00")
        await writer.drain()
        data = await asyncio.wait_for(reader.read(), 5)
        assert data == b""
        writer.close()
    finally:
        await _stop(local, task)


@pytest.mark.asyncio
async def test_close_stops_listening():
    table = generate_cipher_table()
    local, task, address = await _start(
        LocalProxy, table, ("127.0.0.1", 0), ("127.0.0.1", 1)
    )
    assert address[0] == "127.0.0.1"
    await _stop(local, task)
    assert task.done()
    with pytest.raises(OSError):
        await asyncio.open_connection(*address)