"""Streaming authenticated encryption of a byte stream into a container.

A container is a header followed by one ``ciphertext || tag`` frame per
chunk. Every chunk except the last holds exactly ``chunk_size`` plaintext
bytes; the last one is shorter (possibly empty) and is sealed with the final
flag in its associated data, so a file cut after any full chunk is detected
as truncated.
"""
from __future__ import annotations

import logging
import os
from contextlib import closing
from dataclasses import dataclass
from enum import Enum
from typing import IO, Callable, Generator, Iterator, Optional, Union, cast

from secure_vault.container.format import ContainerHeader, build_header, read_header_from_stream
from secure_vault.container.framing import (
    CHUNK_SIZE,
    associated_data,
    frame_len,
    next_nonce,
    read_block,
)
from secure_vault.crypto.aead import Algorithm, BoundCipher, cipher_for
from secure_vault.crypto.kdf import (
    DERIVED_KEY_LEN,
    SALT_LEN,
    KdfParams,
    derive_key,
    resolve_kdf_params,
    validate_stored_kdf_params,
)
from secure_vault.crypto.secure_memory import SecureBuffer, secure_zeroize
from secure_vault.errors import (
    AuthenticationFailure,
    DecryptionFailed,
    RngFailure,
    TruncatedFile,
    VaultIOError,
)

logger = logging.getLogger(__name__)

Password = Union[str, bytes, bytearray]
ProgressCallback = Callable[[int, Optional[int]], None]
_Events = Generator[Optional["ChunkProgress"], None, None]


class EngineState(Enum):
    IDLE = "idle"
    HEADER_WRITTEN = "header-written"
    HEADER_PARSED = "header-parsed"
    STREAMING = "streaming"
    FINALIZED = "finalized"
    FAILED = "failed"


@dataclass(frozen=True)
class ChunkProgress:
    """Emitted after each chunk has been fully written to the sink."""

    index: int
    bytes_processed: int
    bytes_written: int
    is_final: bool


def _primed(events: _Events) -> Iterator[ChunkProgress]:
    # Runs the generator up to its first yield, so setup errors surface
    # immediately and closing it later always reaches its cleanup.
    next(events)
    return cast(Iterator[ChunkProgress], events)


def _password_buffer(password: Password) -> bytearray:
    # A caller-owned bytearray is used directly so that it gets wiped in place.
    if isinstance(password, bytearray):
        return password
    if isinstance(password, str):
        return bytearray(password.encode("utf-8"))
    return bytearray(password)


def _random_bytes(length: int) -> bytes:
    try:
        return os.urandom(length)
    except (NotImplementedError, OSError) as exc:
        raise RngFailure("Secure random source is unavailable") from exc


def _read(source: IO[bytes], size: int) -> bytes:
    try:
        return read_block(source, size)
    except OSError as exc:
        raise VaultIOError(f"Failed to read input: {exc}") from exc


def _write(sink: IO[bytes], data: bytes) -> int:
    try:
        sink.write(data)
    except OSError as exc:
        raise VaultIOError(f"Failed to write output: {exc}") from exc
    return len(data)


def _flush(sink: IO[bytes]) -> None:
    flush = getattr(sink, "flush", None)
    if flush is None:
        return
    try:
        flush()
    except OSError as exc:
        raise VaultIOError(f"Failed to flush output: {exc}") from exc


class StreamCipherEngine:
    """Encrypt and decrypt streams into self-describing AEAD containers.

    One engine runs one operation at a time. ``chunk_size`` must match
    between the encrypting and decrypting side; it is a configuration
    constant, not stored in the container.
    """

    def __init__(self, *, chunk_size: int = CHUNK_SIZE, progress: ProgressCallback | None = None) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.chunk_size = chunk_size
        self.progress = progress
        self.state = EngineState.IDLE
        self._active = False

    def _begin(self) -> None:
        if self._active:
            raise RuntimeError("Engine is already processing a stream")
        self._active = True
        self.state = EngineState.IDLE

    def _run(self, events: Iterator[ChunkProgress], total_bytes: int | None) -> int:
        written = 0
        # Closed on every exit so the generator wipes its key and records FAILED.
        with closing(events):
            for event in events:
                written = event.bytes_written
                if self.progress is not None:
                    self.progress(event.bytes_processed, total_bytes)
        return written

    def encrypt(
        self,
        password: Password,
        source: IO[bytes],
        sink: IO[bytes],
        *,
        algorithm: Algorithm = Algorithm.AES_256_GCM,
        kdf_params: KdfParams | None = None,
        total_bytes: int | None = None,
    ) -> int:
        """Encrypt ``source`` into ``sink``; return the number of bytes written."""
        return self._run(
            self.iter_encrypt(password, source, sink, algorithm=algorithm, kdf_params=kdf_params),
            total_bytes,
        )

    def decrypt(
        self,
        password: Password,
        source: IO[bytes],
        sink: IO[bytes],
        *,
        total_bytes: int | None = None,
    ) -> int:
        """Decrypt the container in ``source``; return plaintext bytes written."""
        return self._run(self.iter_decrypt(password, source, sink), total_bytes)

    def iter_encrypt(
        self,
        password: Password,
        source: IO[bytes],
        sink: IO[bytes],
        *,
        algorithm: Algorithm = Algorithm.AES_256_GCM,
        kdf_params: KdfParams | None = None,
    ) -> Iterator[ChunkProgress]:
        """Encrypt chunk by chunk, yielding after each chunk is written.

        The engine claims the operation and takes ownership of ``password``
        before this returns. Closing the iterator early cancels the
        operation; the password and key are still wiped and the engine ends
        in ``FAILED``.
        """
        return _primed(self._encrypt_events(password, source, sink, algorithm, kdf_params))

    def _encrypt_events(
        self,
        password: Password,
        source: IO[bytes],
        sink: IO[bytes],
        algorithm: Algorithm,
        kdf_params: KdfParams | None,
    ) -> _Events:
        password_buf: bytearray | None = None
        started = False
        try:
            password_buf = _password_buffer(password)
            self._begin()
            started = True
            yield None

            suite = cipher_for(algorithm)
            params = resolve_kdf_params(base=kdf_params)
            salt = _random_bytes(SALT_LEN)
            base_nonce = _random_bytes(suite.nonce_len)
            header_bytes = build_header(
                algorithm=suite.algorithm,
                salt=salt,
                base_nonce=base_nonce,
                kdf_params=params,
            ).to_bytes()
            logger.debug(
                "Encrypting with %s, chunk size %d, Argon2id m=%d t=%d p=%d",
                suite.name,
                self.chunk_size,
                params.mem_cost_kib,
                params.time_cost,
                params.parallelism,
            )

            key_buffer = SecureBuffer(DERIVED_KEY_LEN)
            with key_buffer:
                cipher = suite.bind(key_buffer.load(derive_key(password_buf, salt, params)))
                written = _write(sink, header_bytes)
                self.state = EngineState.HEADER_WRITTEN
                processed = 0
                index = 0
                while True:
                    self.state = EngineState.STREAMING
                    chunk = _read(source, self.chunk_size)
                    is_final = len(chunk) < self.chunk_size
                    nonce = next_nonce(base_nonce, index)
                    ciphertext, tag = cipher.seal(nonce, associated_data(index, is_final, header_bytes), chunk)
                    written += _write(sink, ciphertext + tag)
                    processed += len(chunk)
                    event = ChunkProgress(index, processed, written, is_final)
                    if is_final:
                        break
                    yield event
                    index += 1

            _flush(sink)
            self.state = EngineState.FINALIZED
            logger.debug("Encrypted %d bytes in %d chunks", processed, index + 1)
            yield event
        except BaseException:
            if started and self.state is not EngineState.FINALIZED:
                self.state = EngineState.FAILED
            raise
        finally:
            secure_zeroize(password_buf)
            if started:
                self._active = False

    def iter_decrypt(
        self,
        password: Password,
        source: IO[bytes],
        sink: IO[bytes],
    ) -> Iterator[ChunkProgress]:
        """Decrypt chunk by chunk, yielding after each verified chunk is written.

        Plaintext of a chunk reaches ``sink`` only after that chunk's tag has
        been verified. The first failure stops the stream.
        """
        return _primed(self._decrypt_events(password, source, sink))

    def _decrypt_events(self, password: Password, source: IO[bytes], sink: IO[bytes]) -> _Events:
        password_buf: bytearray | None = None
        started = False
        try:
            password_buf = _password_buffer(password)
            self._begin()
            started = True
            yield None

            try:
                header, header_bytes = read_header_from_stream(source)
            except OSError as exc:
                raise VaultIOError(f"Failed to read input: {exc}") from exc
            self.state = EngineState.HEADER_PARSED

            suite = header.suite
            params = validate_stored_kdf_params(header.kdf_params)
            logger.debug(
                "Decrypting %s container, Argon2id m=%d t=%d p=%d",
                suite.name,
                params.mem_cost_kib,
                params.time_cost,
                params.parallelism,
            )

            key_buffer = SecureBuffer(DERIVED_KEY_LEN)
            with key_buffer:
                cipher = suite.bind(key_buffer.load(derive_key(password_buf, header.salt, params)))
                self.state = EngineState.STREAMING

                full_frame = frame_len(self.chunk_size, suite.tag_len)
                processed = len(header_bytes)
                written = 0
                index = 0
                while True:
                    frame = _read(source, full_frame)
                    processed += len(frame)
                    is_final = len(frame) < full_frame
                    if len(frame) < suite.tag_len:
                        raise TruncatedFile("Container ended before its final chunk")

                    plaintext = self._open_chunk(cipher, header, header_bytes, index, is_final, frame)
                    if is_final and _read(source, 1):
                        raise TruncatedFile("Container has data after its final chunk")

                    written += _write(sink, plaintext)
                    event = ChunkProgress(index, processed, written, is_final)
                    if is_final:
                        break
                    yield event
                    index += 1

            _flush(sink)
            self.state = EngineState.FINALIZED
            logger.debug("Decrypted %d bytes in %d chunks", written, index + 1)
            yield event
        except BaseException:
            if started and self.state is not EngineState.FINALIZED:
                self.state = EngineState.FAILED
            raise
        finally:
            secure_zeroize(password_buf)
            if started:
                self._active = False

    @staticmethod
    def _open_chunk(
        cipher: BoundCipher,
        header: ContainerHeader,
        header_bytes: bytes,
        index: int,
        is_final: bool,
        frame: bytes,
    ) -> bytes:
        tag_len = cipher.suite.tag_len
        nonce = next_nonce(header.base_nonce, index)
        try:
            return cipher.open(
                nonce,
                associated_data(index, is_final, header_bytes),
                frame[:-tag_len],
                frame[-tag_len:],
            )
        except AuthenticationFailure as exc:
            logger.warning("Decryption stopped at chunk %d", index)
            raise DecryptionFailed() from exc


__all__ = [
    "ChunkProgress",
    "EngineState",
    "Password",
    "ProgressCallback",
    "StreamCipherEngine",
]
