"""Chunk framing: nonce derivation, associated data and block reads."""

from __future__ import annotations

from struct import Struct
from typing import IO

from secure_vault.errors import NonceLimitExceeded

CHUNK_SIZE = 64 * 1024
COUNTER_LEN = 8
MAX_CHUNK_COUNT = 2**64 - 1

FLAG_INTERMEDIATE = 0x00
FLAG_FINAL = 0x01

_CHUNK_CONTEXT_STRUCT = Struct(">QB")


def next_nonce(base_nonce: bytes, chunk_index: int) -> bytes:
    """Return the nonce for ``chunk_index``.

    The big-endian 64-bit counter is XORed into the trailing eight bytes of
    the base nonce, so every index maps to a distinct nonce for one file.
    """

    if not 0 <= chunk_index < MAX_CHUNK_COUNT:
        raise NonceLimitExceeded(f"Chunk index {chunk_index} exceeds the nonce counter range")
    if len(base_nonce) < COUNTER_LEN:
        raise ValueError("Base nonce is shorter than the chunk counter")

    prefix_len = len(base_nonce) - COUNTER_LEN
    low = int.from_bytes(base_nonce[prefix_len:], "big") ^ chunk_index
    return base_nonce[:prefix_len] + low.to_bytes(COUNTER_LEN, "big")


def associated_data(chunk_index: int, is_final: bool, header: bytes = b"") -> bytes:
    """Authenticated context for one chunk: header, position and final flag."""

    flag = FLAG_FINAL if is_final else FLAG_INTERMEDIATE
    return header + _CHUNK_CONTEXT_STRUCT.pack(chunk_index, flag)


def frame_len(chunk_size: int, tag_len: int) -> int:
    """Size on disk of one full (non-final) chunk."""
    return chunk_size + tag_len


def read_block(source: IO[bytes], size: int) -> bytes:
    """Read ``size`` bytes, or fewer only when the stream ends."""

    parts: list[bytes] = []
    remaining = size
    while remaining > 0:
        data = source.read(remaining)
        if not data:
            break
        parts.append(data)
        remaining -= len(data)
    return b"".join(parts)


__all__ = [
    "CHUNK_SIZE",
    "COUNTER_LEN",
    "FLAG_FINAL",
    "FLAG_INTERMEDIATE",
    "MAX_CHUNK_COUNT",
    "associated_data",
    "frame_len",
    "next_nonce",
    "read_block",
]
