# minisocks

minisocks is a small encrypted proxy in two parts, built on `asyncio`:

- **`ls-local`** runs on your own machine. It accepts connections from your
  browser or other SOCKS5 clients and forwards every byte, encrypted, to the
  remote server. It does not interpret the SOCKS5 protocol itself.
- **`ls-server`** runs on a machine with open internet access. It decrypts
  the traffic, answers the SOCKS5 greeting with "no authentication",
  reads the request (IPv4 address, domain name or IPv6 address), connects to
  the requested destination, and relays data in both directions, encrypting
  what goes back to `ls-local`.

Traffic between the two halves is obscured with a byte-substitution table
that both sides share.

## Installation

```
pip install .
```

## Configuration

Both commands read `minisocks.json` from the current working directory, or
the file given with `-c/--config`. If the file does not exist, it is created
with default values and a freshly generated substitution table, then used as
is.

| Field      | Meaning                                                        | Default   |
|------------|----------------------------------------------------------------|-----------|
| `listen`   | Address to listen on, `host:port` (empty host = all addresses) | `:7448`   |
| `remote`   | Address of the server, used by `ls-local` only                 | `ip:7448` |
| `password` | Shared substitution table: 256 bytes written as 512 hex digits | generated |

Every field is optional in the file; a missing field keeps its default, and a
field that is present must be a string. IPv6 hosts are written in brackets,
e.g. `[::1]:7448`.

The `password` value must be identical on both machines. The usual way to
set up a pair is:

1. Run `ls-server` once on the server; it writes `minisocks.json` with a new
   table and logs the table when it starts listening.
2. Copy that file to the client machine and change `remote` to the server's
   address, e.g. `203.0.113.10:7448`.
3. Run `ls-local` on the client and point your browser's SOCKS5 proxy at the
   client's `listen` address.

## Running

On the server:

```
ls-server
```

On the client:

```
ls-local
```

Both accept:

- `-c FILE`, `--config FILE` — configuration file (default `./minisocks.json`)
- `-v`, `--verbose` — log debugging output

Both run in the foreground and log to the terminal until interrupted. They
exit with status 1 if the configuration cannot be loaded, an address cannot
be parsed, the password is not a valid table, or listening fails.

## Limitations

- Each relayed connection is closed after 30 seconds, whether or not it is
  still active.
- `ls-server` offers no authentication and serves every request as a
  CONNECT; there is no BIND or UDP support.
- The proxy halves always use the substitution table; `AESCipher` is only
  available as a library class.

## Using the library

The ciphers are usable on their own:

```python
from minisocks.ciphers import AESCipher, SimpleCipher, generate_cipher_table, generate_random_key

table = generate_cipher_table()          # 512 hex digits
simple = SimpleCipher(table)
scrambled = simple.encrypt(b"hello world")
assert simple.decrypt(scrambled) == b"hello world"

aes = AESCipher(generate_random_key(32))  # AES-256-GCM, random nonce per message
sealed = aes.encrypt(b"hello world")
assert aes.decrypt(sealed) == b"hello world"
```

`AESCipher` accepts 16, 24 or 32 byte keys; an empty key selects a built-in
default key. A bad key size, a malformed table, or a message that fails
authentication raises `CipherError`.

Configuration is handled with `minisocks.config.Config` (fields
`listen_addr`, `remote_addr`, `password`; methods `to_json()` and
`save(path)`) and `minisocks.config.load_config(path)`.

The proxy halves are `minisocks.local.LocalProxy` and
`minisocks.server.ProxyServer`. Their `listen()` coroutine serves until
`close()` is called; an optional `after_listen` callback receives the
`(host, port)` actually bound:

```python
import asyncio
from minisocks.ciphers import generate_cipher_table
from minisocks.server import ProxyServer

server = ProxyServer(generate_cipher_table(), ("127.0.0.1", 0), print)
asyncio.run(server.listen())
```

`minisocks.server` also exposes `check_handshake(data)` and
`parse_request(data)`, which validate decrypted SOCKS5 messages and raise
`ProtocolError` on anything they cannot serve, and `minisocks.cli` exposes
`parse_address("host:port")`.

## Development

```
pip install -e ".[test]"
pytest
```