"""Container header format helpers."""

from __future__ import annotations

from dataclasses import dataclass
from struct import Struct
from typing import IO

from secure_vault.container.framing import read_block
from secure_vault.crypto.aead import Algorithm, CipherSuite, cipher_for
from secure_vault.crypto.kdf import SALT_LEN, KdfParams
from secure_vault.errors import ContainerFormatError, TruncatedFile, UnsupportedVersion

FORMAT_VERSION = 1

_PREFIX_STRUCT = Struct(">BB")
_KDF_STRUCT = Struct(">IIB")


def header_len(algorithm_id: int) -> int:
    """Total header size for the given algorithm."""
    suite = cipher_for(algorithm_id)
    return _PREFIX_STRUCT.size + SALT_LEN + suite.nonce_len + _KDF_STRUCT.size


@dataclass(frozen=True)
class ContainerHeader:
    version: int
    algorithm: Algorithm
    salt: bytes
    base_nonce: bytes
    kdf_params: KdfParams

    @property
    def suite(self) -> CipherSuite:
        return cipher_for(self.algorithm)

    def to_bytes(self) -> bytes:
        suite = self.suite
        if len(self.salt) != SALT_LEN:
            raise ContainerFormatError(f"Salt must be {SALT_LEN} bytes")
        if len(self.base_nonce) != suite.nonce_len:
            raise ContainerFormatError(f"{suite.name} base nonce must be {suite.nonce_len} bytes")
        if not 0 < self.kdf_params.parallelism <= 0xFF:
            raise ContainerFormatError("Argon2 parallelism does not fit the header")
        return b"".join(
            [
                _PREFIX_STRUCT.pack(self.version, int(self.algorithm)),
                self.salt,
                self.base_nonce,
                _KDF_STRUCT.pack(
                    self.kdf_params.mem_cost_kib,
                    self.kdf_params.time_cost,
                    self.kdf_params.parallelism,
                ),
            ]
        )


def build_header(
    *,
    algorithm: Algorithm,
    salt: bytes,
    base_nonce: bytes,
    kdf_params: KdfParams,
) -> ContainerHeader:
    return ContainerHeader(
        version=FORMAT_VERSION,
        algorithm=Algorithm(algorithm),
        salt=salt,
        base_nonce=base_nonce,
        kdf_params=kdf_params,
    )


def _check_prefix(prefix: bytes) -> CipherSuite:
    if len(prefix) < _PREFIX_STRUCT.size:
        raise TruncatedFile("Container too small for header")
    version, algorithm_id = _PREFIX_STRUCT.unpack(prefix[: _PREFIX_STRUCT.size])
    if version != FORMAT_VERSION:
        raise UnsupportedVersion(version)
    return cipher_for(algorithm_id)


def parse_header(data: bytes) -> ContainerHeader:
    """Parse a complete header from ``data``."""

    suite = _check_prefix(data)
    expected = header_len(suite.algorithm)
    if len(data) < expected:
        raise TruncatedFile("Container missing header bytes")

    offset = _PREFIX_STRUCT.size
    salt = data[offset : offset + SALT_LEN]
    offset += SALT_LEN
    base_nonce = data[offset : offset + suite.nonce_len]
    offset += suite.nonce_len
    mem_cost, time_cost, parallelism = _KDF_STRUCT.unpack(data[offset : offset + _KDF_STRUCT.size])

    return ContainerHeader(
        version=data[0],
        algorithm=suite.algorithm,
        salt=bytes(salt),
        base_nonce=bytes(base_nonce),
        kdf_params=KdfParams(mem_cost_kib=mem_cost, time_cost=time_cost, parallelism=parallelism),
    )


def read_header_from_stream(file_obj: IO[bytes]) -> tuple[ContainerHeader, bytes]:
    """Read and parse a container header from a binary stream.

    Returns the parsed header and its raw bytes, which are bound into every
    chunk's associated data.
    """

    prefix = read_block(file_obj, _PREFIX_STRUCT.size)
    suite = _check_prefix(prefix)
    rest = read_block(file_obj, header_len(suite.algorithm) - len(prefix))
    header_bytes = prefix + rest
    return parse_header(header_bytes), header_bytes


__all__ = [
    "FORMAT_VERSION",
    "ContainerHeader",
    "build_header",
    "header_len",
    "parse_header",
    "read_header_from_stream",
]
