"""High-level API for encrypting and decrypting files."""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Callable

from secure_vault.container.engine import Password, ProgressCallback, StreamCipherEngine
from secure_vault.container.format import ContainerHeader, header_len, read_header_from_stream
from secure_vault.container.framing import CHUNK_SIZE
from secure_vault.crypto.aead import Algorithm
from secure_vault.crypto.kdf import KdfParams

logger = logging.getLogger(__name__)

CONTAINER_SUFFIX = ".vault"


@dataclass(frozen=True)
class ContainerInfo:
    header: ContainerHeader
    header_len: int
    file_size: int

    @property
    def payload_len(self) -> int:
        return self.file_size - self.header_len


def _ensure_output(path: Path, overwrite: bool) -> None:
    if path.exists():
        if not overwrite:
            raise FileExistsError(f"Refusing to overwrite existing file: {path}")
        if path.is_dir():
            raise IsADirectoryError(f"Output path is a directory: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)


def _check_input(path: Path) -> None:
    if not path.exists():
        raise FileNotFoundError(path)
    if not path.is_file():
        raise IsADirectoryError(f"Input path is not a regular file: {path}")


def _write_atomically(out_path: Path, overwrite: bool, run: Callable[[IO[bytes]], int]) -> int:
    """Run ``run(sink)`` against a temp file and move it over ``out_path`` on success."""

    _ensure_output(out_path, overwrite)
    temp_file = tempfile.NamedTemporaryFile(
        dir=out_path.parent, prefix=f".{out_path.name}.", suffix=".part", delete=False
    )
    temp_path = Path(temp_file.name)
    try:
        with temp_file:
            written = run(temp_file)
            temp_file.flush()
            os.fsync(temp_file.fileno())
        _ensure_output(out_path, overwrite)
        temp_path.replace(out_path)
    finally:
        temp_path.unlink(missing_ok=True)
    return written


def encrypt_file(
    in_path: Path,
    out_path: Path,
    password: Password,
    *,
    algorithm: Algorithm = Algorithm.AES_256_GCM,
    kdf_params: KdfParams | None = None,
    overwrite: bool = False,
    chunk_size: int = CHUNK_SIZE,
    progress: ProgressCallback | None = None,
) -> int:
    """Encrypt ``in_path`` into a container at ``out_path``.

    Returns the size of the container in bytes.
    """
    in_path = Path(in_path)
    out_path = Path(out_path)
    _check_input(in_path)

    engine = StreamCipherEngine(chunk_size=chunk_size, progress=progress)
    total = in_path.stat().st_size
    logger.debug("Encrypting %s -> %s", in_path, out_path)

    with in_path.open("rb") as source:
        return _write_atomically(
            out_path,
            overwrite,
            lambda sink: engine.encrypt(
                password,
                source,
                sink,
                algorithm=algorithm,
                kdf_params=kdf_params,
                total_bytes=total,
            ),
        )


def decrypt_file(
    container_path: Path,
    out_path: Path,
    password: Password,
    *,
    overwrite: bool = False,
    chunk_size: int = CHUNK_SIZE,
    progress: ProgressCallback | None = None,
) -> int:
    """Decrypt a container to ``out_path``.

    Nothing is left at ``out_path`` when decryption fails. Returns the number
    of plaintext bytes written.
    """
    container_path = Path(container_path)
    out_path = Path(out_path)
    _check_input(container_path)

    engine = StreamCipherEngine(chunk_size=chunk_size, progress=progress)
    total = container_path.stat().st_size
    logger.debug("Decrypting %s -> %s", container_path, out_path)

    with container_path.open("rb") as source:
        return _write_atomically(
            out_path,
            overwrite,
            lambda sink: engine.decrypt(password, source, sink, total_bytes=total),
        )


def inspect_container(container_path: Path) -> ContainerInfo:
    """Read the header of a container without the password."""
    container_path = Path(container_path)
    _check_input(container_path)
    with container_path.open("rb") as f:
        header, _header_bytes = read_header_from_stream(f)
    return ContainerInfo(
        header=header,
        header_len=header_len(header.algorithm),
        file_size=container_path.stat().st_size,
    )


def default_encrypt_output(in_path: Path) -> Path:
    return in_path.with_name(in_path.name + CONTAINER_SUFFIX)


def default_decrypt_output(container_path: Path) -> Path:
    if container_path.suffix == CONTAINER_SUFFIX:
        return container_path.with_suffix("")
    return container_path.with_name(container_path.name + ".out")


__all__ = [
    "CONTAINER_SUFFIX",
    "ContainerInfo",
    "decrypt_file",
    "default_decrypt_output",
    "default_encrypt_output",
    "encrypt_file",
    "inspect_container",
]
