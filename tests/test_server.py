import asyncio
import socket

import pytest

from minisocks.ciphers import SimpleCipher, generate_cipher_table
from minisocks.server import (
    CONNECT_REPLY,
    HANDSHAKE_REPLY,
    ProtocolError,
    ProxyServer,
    check_handshake,
    parse_request,
)


def _free_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def _echo(reader, writer):
    while data := await reader.read(1024):
        writer.write(data)
        await writer.drain()
    writer.close()


async def _start_server(table):
    loop = asyncio.get_running_loop()
    ready = loop.create_future()
    server = ProxyServer(table, ("127.0.0.1", 0), ready.set_result)
    task = asyncio.create_task(server.listen())
    address = await asyncio.wait_for(ready, 5)
    return server, task, address


async def _stop(server, task):
    server.close()
    await asyncio.wait_for(task, 5)


def test_handshake_reply():
    assert check_handshake(b"\x05\x01\x00") == b"\x05\x00"
    assert HANDSHAKE_REPLY == check_handshake(b"\x05\x01\x02")


@pytest.mark.parametrize("data", [b"\x04\x01\x00", b"\x05", b"", b"\x05\x02\x00\x02"])
def test_handshake_rejected(data):
    with pytest.raises(ProtocolError):
        check_handshake(data)


def test_parse_ipv4_request():
    port = 8080
    data = b"\x05\x01\x00\x01" + bytes([10, 1, 2, 3]) + port.to_bytes(2, "big")
    assert parse_request(data) == ("10.1.2.3", port)


def test_parse_domain_request():
    port = 443
    name = b"example.com"
    data = b"\x05\x01\x00\x03" + bytes([len(name)]) + name + port.to_bytes(2, "big")
    assert parse_request(data) == ("example.com", port)


def test_parse_ipv6_request():
    port = 22
    data = b"\x05\x01\x00\x04" + bytes(15) + b"\x01" + port.to_bytes(2, "big")
    assert parse_request(data) == ("::1", port)


@pytest.mark.parametrize(
    "data",
    [
        b"\x05\x01\x00\x01\x7f\x00",
        b"\x05\x01\x00\x02\x7f\x00\x00\x01\x00\x50",
        b"\x05\x01\x00\x04\x00\x00\x00\x00\x00\x50",
        b"\x05\x01\x00\x03\x00\x00\x50",
    ],
)
def test_parse_request_rejected(data):
    with pytest.raises(ProtocolError):
        parse_request(data)


@pytest.mark.asyncio
async def test_tunnel_to_target():
    table = generate_cipher_table()
    cipher = SimpleCipher(table)
    echo = await asyncio.start_server(_echo, "127.0.0.1", 0)
    echo_port = echo.sockets[0].getsockname()[1]
    server, task, address = await _start_server(table)
    try:
        reader, writer = await asyncio.open_connection(*address)
        writer.write(cipher.encrypt(b"\x05\x01\x00"))
        await writer.drain()
        reply = cipher.decrypt(await asyncio.wait_for(reader.readexactly(2), 5))
        assert reply == HANDSHAKE_REPLY

        request = b"\x05\x01\x00\x01" + bytes([127, 0, 0, 1]) + echo_port.to_bytes(2, "big")
        writer.write(cipher.encrypt(request))
        await writer.drain()
        reply = cipher.decrypt(await asyncio.wait_for(reader.readexactly(10), 5))
        assert reply == CONNECT_REPLY

        writer.write(cipher.encrypt(b"ping"))
        await writer.drain()
        raw = await asyncio.wait_for(reader.readexactly(4), 5)
        assert cipher.decrypt(raw) == b"ping"
        writer.close()
    finally:
        await _stop(server, task)
        echo.close()


@pytest.mark.asyncio
async def test_bad_version_closes_connection():
    table = generate_cipher_table()
    cipher = SimpleCipher(table)
    server, task, address = await _start_server(table)
    try:
        reader, writer = await asyncio.open_connection(*address)
        writer.write(cipher.encrypt(b"\x04\x01\x00"))
        await writer.drain()
        assert await asyncio.wait_for(reader.read(), 5) == b""
        writer.close()
    finally:
        await _stop(server, task)


@pytest.mark.asyncio
async def test_unreachable_target_closes_connection():
    table = generate_cipher_table()
    cipher = SimpleCipher(table)
    server, task, address = await _start_server(table)
    try:
        reader, writer = await asyncio.open_connection(*address)
        writer.write(cipher.encrypt(b"\x05\x01\x00"))
        await writer.drain()
        reply = cipher.decrypt(await asyncio.wait_for(reader.readexactly(2), 5))
        assert reply == HANDSHAKE_REPLY
        port = _free_port()
        request = b"\x05\x01\x00\x01" + bytes([127, 0, 0, 1]) + port.to_bytes(2, "big")
        writer.write(cipher.encrypt(request))
        await writer.drain()
        assert await asyncio.wait_for(reader.read(), 5) == b""
        writer.close()
    finally:
        await _stop(server, task)


@pytest.mark.asyncio
async def test_close_stops_listening():
    server, task, address = await _start_server(generate_cipher_table())
    await _stop(server, task)
    assert task.done()
    with pytest.raises(OSError):
        await asyncio.open_connection(*address)