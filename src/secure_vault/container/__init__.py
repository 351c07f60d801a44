"""Public container API re-exported for external users.

The objects listed in ``__all__`` form the supported public surface for
Python consumers. Everything else in :mod:`secure_vault.container` is
considered internal and may change without notice.
"""
from __future__ import annotations

from secure_vault.container.api import (
    CONTAINER_SUFFIX,
    ContainerInfo,
    decrypt_file,
    encrypt_file,
    inspect_container,
)
from secure_vault.container.engine import ChunkProgress, EngineState, StreamCipherEngine
from secure_vault.container.format import FORMAT_VERSION, ContainerHeader, read_header_from_stream
from secure_vault.container.framing import CHUNK_SIZE, associated_data, next_nonce
from secure_vault.crypto.aead import Algorithm
from secure_vault.crypto.kdf import KdfParams, resolve_kdf_params

__all__ = [
    "Algorithm",
    "CHUNK_SIZE",
    "CONTAINER_SUFFIX",
    "ChunkProgress",
    "ContainerHeader",
    "ContainerInfo",
    "EngineState",
    "FORMAT_VERSION",
    "KdfParams",
    "StreamCipherEngine",
    "associated_data",
    "decrypt_file",
    "encrypt_file",
    "inspect_container",
    "next_nonce",
    "read_header_from_stream",
    "resolve_kdf_params",
]
