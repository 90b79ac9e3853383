"""Encrypted SOCKS5 proxy: a local relay and a remote server sharing a cipher."""

__version__ = "0.1.0"