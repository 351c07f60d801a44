"""Tests for the AEAD cipher suites."""
from __future__ import annotations

import os

import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from secure_vault.crypto.aead import (
    KEY_LEN,
    TAG_LEN,
    AesGcm256,
    Algorithm,
    ChaCha20Poly1305,
    cipher_for,
    parse_algorithm,
)
from secure_vault.errors import AuthenticationFailure, UnsupportedAlgorithm

SUITES = [AesGcm256(), ChaCha20Poly1305()]


@pytest.mark.parametrize("suite", SUITES, ids=lambda s: s.name)
def test_seal_open_roundtrip(suite) -> None:
    key = bytearray(os.urandom(KEY_LEN))
    nonce = os.urandom(suite.nonce_len)
    plaintext = b"attack at dawn" * 10

    ciphertext, tag = suite.seal(key, nonce, b"context", plaintext)

    assert len(ciphertext) == len(plaintext)
    assert len(tag) == TAG_LEN
    assert suite.open(key, nonce, b"context", ciphertext, tag) == plaintext


@pytest.mark.parametrize("suite", SUITES, ids=lambda s: s.name)
def test_empty_plaintext_produces_bare_tag(suite) -> None:
    key = os.urandom(KEY_LEN)
    nonce = os.urandom(suite.nonce_len)

    ciphertext, tag = suite.seal(key, nonce, b"", b"")

    assert ciphertext == b""
    assert len(tag) == TAG_LEN
    assert suite.open(key, nonce, b"", ciphertext, tag) == b""


@pytest.mark.parametrize("suite", SUITES, ids=lambda s: s.name)
def test_open_rejects_tampering(suite) -> None:
    key = os.urandom(KEY_LEN)
    nonce = os.urandom(suite.nonce_len)
    ciphertext, tag = suite.seal(key, nonce, b"ad", b"payload")

    bad_tag = bytes([tag[0] ^ 0x01]) + tag[1:]
    bad_ct = bytes([ciphertext[0] ^ 0x80]) + ciphertext[1:]

    with pytest.raises(AuthenticationFailure):
        suite.open(key, nonce, b"ad", ciphertext, bad_tag)
    with pytest.raises(AuthenticationFailure):
        suite.open(key, nonce, b"ad", bad_ct, tag)
    with pytest.raises(AuthenticationFailure):
        suite.open(key, nonce, b"other", ciphertext, tag)
    with pytest.raises(AuthenticationFailure):
        suite.open(os.urandom(KEY_LEN), nonce, b"ad", ciphertext, tag)


@pytest.mark.parametrize("suite", SUITES, ids=lambda s: s.name)
def test_rejects_bad_key_and_nonce_lengths(suite) -> None:
    with pytest.raises(ValueError):
        suite.seal(b"k" * 16, os.urandom(suite.nonce_len), b"", b"x")
    with pytest.raises(ValueError):
        suite.seal(os.urandom(KEY_LEN), os.urandom(suite.nonce_len + 1), b"", b"x")


@pytest.mark.parametrize("suite", SUITES, ids=lambda s: s.name)
def test_bound_cipher_reused_across_chunks(suite) -> None:
    key = bytearray(os.urandom(KEY_LEN))
    cipher = suite.bind(key)
    assert cipher.suite is suite

    sealed = []
    for index in range(3):
        nonce = os.urandom(suite.nonce_len)
        chunk = bytes([index]) * 40
        sealed.append((nonce, chunk, *cipher.seal(nonce, b"ad", chunk)))

    for nonce, chunk, ciphertext, tag in sealed:
        assert cipher.open(nonce, b"ad", ciphertext, tag) == chunk
        assert suite.open(key, nonce, b"ad", ciphertext, tag) == chunk

    nonce, _chunk, ciphertext, tag = sealed[0]
    with pytest.raises(AuthenticationFailure):
        cipher.open(nonce, b"ad", ciphertext, bytes([tag[0] ^ 0x01]) + tag[1:])


@pytest.mark.parametrize("suite", SUITES, ids=lambda s: s.name)
def test_bind_rejects_bad_key_length(suite) -> None:
    with pytest.raises(ValueError):
        suite.bind(bytearray(KEY_LEN - 1))


def test_aes_gcm_matches_cryptography() -> None:
    key = os.urandom(KEY_LEN)
    nonce = os.urandom(12)
    ciphertext, tag = AesGcm256().seal(key, nonce, b"ad", b"hello")
    assert ciphertext + tag == AESGCM(key).encrypt(nonce, b"hello", b"ad")


def test_nonce_lengths() -> None:
    assert cipher_for(Algorithm.AES_256_GCM).nonce_len == 12
    assert cipher_for(Algorithm.CHACHA20_POLY1305).nonce_len == 24


def test_cipher_for_unknown_id() -> None:
    with pytest.raises(UnsupportedAlgorithm) as excinfo:
        cipher_for(7)
    assert excinfo.value.algorithm_id == 7


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("aes256gcm", Algorithm.AES_256_GCM),
        ("AES-256-GCM", Algorithm.AES_256_GCM),
        ("chacha20", Algorithm.CHACHA20_POLY1305),
        ("ChaCha20-Poly1305", Algorithm.CHACHA20_POLY1305),
    ],
)
def test_parse_algorithm(name: str, expected: Algorithm) -> None:
    assert parse_algorithm(name) is expected


def test_parse_algorithm_unknown() -> None:
    with pytest.raises(ValueError):
        parse_algorithm("rot13")
