"""Stream ciphers used to obscure traffic between the local proxy and the server."""

from __future__ import annotations

import abc
import hashlib
import random
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

VALID_KEY_SIZES = (16, 24, 32)
NONCE_SIZE = 12

# Key used when an AES cipher is created without one.
AES_DEFAULT_KEY = hashlib.sha256(b"placeholder").digest()


class CipherError(Exception):
    """Raised when a cipher cannot be built or data cannot be processed."""


class Cipher(abc.ABC):
    """Something that turns plaintext into ciphertext and back."""

    @abc.abstractmethod
    def encrypt(self, plaintext: bytes) -> bytes:
        """Return the encrypted form of ``plaintext``."""

    @abc.abstractmethod
    def decrypt(self, ciphertext: bytes) -> bytes:
        """Return the plaintext hidden in ``ciphertext``."""


class AESCipher(Cipher):
    """AES-GCM cipher; every message carries its own random nonce as a prefix."""

    def __init__(self, key: bytes | None = None) -> None:
        if not key:
            key = AES_DEFAULT_KEY
        if len(key) not in VALID_KEY_SIZES:
            raise CipherError("invalid key size, must be 16, 24 or 32 bytes")
        self._key = bytes(key)
        self._gcm = AESGCM(self._key)

    def encrypt(self, plaintext: bytes) -> bytes:
        nonce = secrets.token_bytes(NONCE_SIZE)
        return nonce + self._gcm.encrypt(nonce, bytes(plaintext), None)

    def decrypt(self, ciphertext: bytes) -> bytes:
        if len(ciphertext) < NONCE_SIZE:
            raise CipherError("ciphertext too short")
        nonce, body = bytes(ciphertext[:NONCE_SIZE]), bytes(ciphertext[NONCE_SIZE:])
        try:
            return self._gcm.decrypt(nonce, body, None)
        except InvalidTag as err:
            raise CipherError("message authentication failed") from err


class SimpleCipher(Cipher):
    """Byte substitution cipher driven by a 256-entry table given as hex."""

    def __init__(self, table: str) -> None:
        try:
            forward = bytes.fromhex(table)
        except ValueError as err:
            raise CipherError("cipher table is not valid hex") from err
        if len(forward) != 256:
            raise CipherError(f"cipher table must hold 256 bytes, got {len(forward)}")
        backward = bytearray(256)
        for index, value in enumerate(forward):
            backward[value] = index
        self._forward = forward
        self._backward = bytes(backward)

    def encrypt(self, plaintext: bytes) -> bytes:
        return bytes(plaintext).translate(self._forward)

    def decrypt(self, ciphertext: bytes) -> bytes:
        return bytes(ciphertext).translate(self._backward)


def generate_random_key(size: int) -> bytes:
    """Return ``size`` random bytes suitable as an AES key."""
    if size not in VALID_KEY_SIZES:
        raise CipherError("key size must be 16, 24 or 32 bytes")
    return secrets.token_bytes(size)


def generate_cipher_table() -> str:
    """Return a random permutation of all byte values, hex encoded."""
    return bytes(random.SystemRandom().sample(range(256), 256)).hex()