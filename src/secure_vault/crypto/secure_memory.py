"""Best-effort handling of secret buffers.

Derived keys live in a :class:`SecureBuffer` for the length of one
encrypt/decrypt call. The buffer is locked into RAM with ``mlock`` where the
platform allows it and is overwritten with zeros when the call ends.
"""
from __future__ import annotations

import ctypes
import ctypes.util
import logging
import platform

logger = logging.getLogger(__name__)

_libc: ctypes.CDLL | None = None

if platform.system() != "Windows":
    try:
        _libc_name = ctypes.util.find_library("c")
        if _libc_name:
            _libc = ctypes.CDLL(_libc_name, use_errno=True)
    except OSError:
        _libc = None


def mlock_available() -> bool:
    """Return True if libc mlock/munlock can be called on this platform."""
    return _libc is not None


def secure_zeroize(data: bytearray | None) -> None:
    """Overwrite a bytearray with zeros in place."""
    if data is None:
        return
    for i in range(len(data)):
        data[i] = 0


class SecureBuffer:
    """Fixed-size secret buffer that is zeroed (and unlocked) on close.

    Usage::

        with SecureBuffer(32) as key:
            key[:] = derived
            seal(bytes(key), ...)
    """

    def __init__(self, size: int) -> None:
        self._buffer = bytearray(size)
        self._locked = False
        if size and _libc is not None:
            self._locked = self._call_libc("mlock")

    def _call_libc(self, name: str) -> bool:
        assert _libc is not None
        try:
            view = (ctypes.c_char * len(self._buffer)).from_buffer(self._buffer)
            result = getattr(_libc, name)(ctypes.addressof(view), len(self._buffer))
        except (AttributeError, ValueError, TypeError):
            logger.debug("%s unavailable, proceeding without it", name)
            return False
        if result != 0:
            logger.debug("%s failed (errno=%d)", name, ctypes.get_errno())
            return False
        return True

    def __enter__(self) -> bytearray:
        return self._buffer

    def __exit__(self, *args: object) -> None:
        self.close()

    def load(self, data: bytearray) -> bytearray:
        """Copy ``data`` into the buffer and wipe the source."""
        if len(data) != len(self._buffer):
            raise ValueError(f"Expected {len(self._buffer)} bytes, got {len(data)}")
        self._buffer[:] = data
        secure_zeroize(data)
        return self._buffer

    def close(self) -> None:
        """Zero the buffer and release the memory lock."""
        secure_zeroize(self._buffer)
        if self._locked:
            self._call_libc("munlock")
            self._locked = False

    @property
    def buffer(self) -> bytearray:
        return self._buffer

    @property
    def locked(self) -> bool:
        return self._locked
