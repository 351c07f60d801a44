"""AEAD cipher suites.

Two variants are supported and identified in the container header by a
single byte:

* ``0``: AES-256-GCM (12-byte nonce), from ``cryptography``.
* ``1``: ChaCha20-Poly1305 with a 24-byte nonce (the XChaCha20 construction),
  from libsodium through ``PyNaCl``.

Both produce a 16-byte tag. :meth:`open` only returns plaintext after the tag
has been verified.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from nacl.bindings import (
    crypto_aead_xchacha20poly1305_ietf_decrypt,
    crypto_aead_xchacha20poly1305_ietf_encrypt,
)
from nacl.exceptions import CryptoError

from secure_vault.errors import AuthenticationFailure, UnsupportedAlgorithm

KEY_LEN = 32
TAG_LEN = 16


class Algorithm(IntEnum):
    AES_256_GCM = 0
    CHACHA20_POLY1305 = 1


class BoundCipher:
    """A cipher suite keyed once for the length of one operation.

    ``seal``/``open`` run per chunk without re-copying the key.
    """

    def __init__(self, suite: CipherSuite, key: bytes | bytearray) -> None:
        suite._check_key(key)
        self.suite = suite
        self._primitive = suite._primitive(key)

    def seal(self, nonce: bytes, associated_data: bytes, plaintext: bytes) -> tuple[bytes, bytes]:
        self.suite._check_nonce(nonce)
        sealed = self.suite._seal(self._primitive, nonce, associated_data, plaintext)
        return sealed[:-TAG_LEN], sealed[-TAG_LEN:]

    def open(self, nonce: bytes, associated_data: bytes, ciphertext: bytes, tag: bytes) -> bytes:
        self.suite._check_nonce(nonce)
        try:
            return self.suite._open(self._primitive, nonce, associated_data, bytes(ciphertext) + bytes(tag))
        except self.suite._auth_errors as exc:
            raise AuthenticationFailure("Authentication tag mismatch") from exc


class _CipherBase:
    algorithm: Algorithm
    name: str
    nonce_len: int
    tag_len = TAG_LEN
    _auth_errors: tuple[type[Exception], ...] = ()

    def _check_key(self, key: bytes | bytearray) -> None:
        if len(key) != KEY_LEN:
            raise ValueError(f"{self.name} key must be {KEY_LEN} bytes, got {len(key)}")

    def _check_nonce(self, nonce: bytes) -> None:
        if len(nonce) != self.nonce_len:
            raise ValueError(f"{self.name} nonce must be {self.nonce_len} bytes, got {len(nonce)}")

    def bind(self, key: bytes | bytearray) -> BoundCipher:
        return BoundCipher(self, key)

    def seal(
        self, key: bytes | bytearray, nonce: bytes, associated_data: bytes, plaintext: bytes
    ) -> tuple[bytes, bytes]:
        return self.bind(key).seal(nonce, associated_data, plaintext)

    def open(
        self,
        key: bytes | bytearray,
        nonce: bytes,
        associated_data: bytes,
        ciphertext: bytes,
        tag: bytes,
    ) -> bytes:
        return self.bind(key).open(nonce, associated_data, ciphertext, tag)


class AesGcm256(_CipherBase):
    algorithm = Algorithm.AES_256_GCM
    name = "AES-256-GCM"
    nonce_len = 12
    _auth_errors = (InvalidTag,)

    @staticmethod
    def _primitive(key: bytes | bytearray) -> AESGCM:
        # AESGCM takes any bytes-like key, so the caller's buffer is not copied here.
        return AESGCM(key)

    @staticmethod
    def _seal(aead: AESGCM, nonce: bytes, associated_data: bytes, plaintext: bytes) -> bytes:
        return aead.encrypt(nonce, plaintext, associated_data)

    @staticmethod
    def _open(aead: AESGCM, nonce: bytes, associated_data: bytes, sealed: bytes) -> bytes:
        return aead.decrypt(nonce, sealed, associated_data)


class ChaCha20Poly1305(_CipherBase):
    algorithm = Algorithm.CHACHA20_POLY1305
    name = "ChaCha20-Poly1305"
    nonce_len = 24
    _auth_errors = (CryptoError,)

    @staticmethod
    def _primitive(key: bytes | bytearray) -> bytes:
        # libsodium bindings only accept bytes: one copy per operation.
        return bytes(key)

    @staticmethod
    def _seal(key: bytes, nonce: bytes, associated_data: bytes, plaintext: bytes) -> bytes:
        return crypto_aead_xchacha20poly1305_ietf_encrypt(bytes(plaintext), associated_data, nonce, key)

    @staticmethod
    def _open(key: bytes, nonce: bytes, associated_data: bytes, sealed: bytes) -> bytes:
        return crypto_aead_xchacha20poly1305_ietf_decrypt(sealed, associated_data, nonce, key)


CipherSuite = Union[AesGcm256, ChaCha20Poly1305]

_SUITES: dict[int, CipherSuite] = {
    Algorithm.AES_256_GCM: AesGcm256(),
    Algorithm.CHACHA20_POLY1305: ChaCha20Poly1305(),
}


def cipher_for(algorithm_id: int) -> CipherSuite:
    """Return the cipher suite for a header algorithm byte."""

    try:
        return _SUITES[algorithm_id]
    except KeyError:
        raise UnsupportedAlgorithm(algorithm_id) from None


def parse_algorithm(name: str) -> Algorithm:
    """Map a user-facing algorithm name (``aes256gcm``, ``chacha20``) to an id."""

    normalized = name.lower().replace("-", "").replace("_", "")
    if normalized in ("aes256gcm", "aes", "aesgcm"):
        return Algorithm.AES_256_GCM
    if normalized in ("chacha20", "chacha20poly1305", "xchacha20poly1305", "chacha"):
        return Algorithm.CHACHA20_POLY1305
    raise ValueError(f"Unknown algorithm: {name}")
