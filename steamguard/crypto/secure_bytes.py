"""Zeroable container for passwords, passphrases and derived keys."""

import ctypes
import ctypes.util
import hmac
import platform
from collections.abc import Callable
from typing import Self

_mlock: Callable[[int, int], int] | None = None
_munlock: Callable[[int, int], int] | None = None

if platform.system() in ("Linux", "Darwin"):
    try:
        _libc = ctypes.CDLL(ctypes.util.find_library("c"), use_errno=True)
        _libc.mlock.argtypes = [ctypes.c_void_p, ctypes.c_size_t]
        _libc.mlock.restype = ctypes.c_int
        _libc.munlock.argtypes = [ctypes.c_void_p, ctypes.c_size_t]
        _libc.munlock.restype = ctypes.c_int
        _mlock = _libc.mlock
        _munlock = _libc.munlock
    except (OSError, AttributeError, TypeError):
        _mlock = None
        _munlock = None


def _address(data: bytearray) -> int:
    return ctypes.addressof((ctypes.c_char * len(data)).from_buffer(data))


def _zero(data: bytearray) -> None:
    if len(data) == 0:
        return
    ctypes.memset(_address(data), 0, len(data))


class SecureBytes:
    """
    Bytes that are wiped from memory when cleared or garbage collected.

    Use as context manager for guaranteed cleanup.
    """

    __slots__ = ("_data", "_cleared", "_locked")

    def __init__(self, data: bytes | bytearray, *, lock: bool = False) -> None:
        self._data = bytearray(data)
        self._cleared = False
        self._locked = bool(lock and _mlock is not None and len(self._data) > 0)
        if self._locked:
            self._locked = _mlock(_address(self._data), len(self._data)) == 0

    def __del__(self) -> None:
        self.clear()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *_: object) -> None:
        self.clear()

    def clear(self) -> None:
        """Zero memory. Idempotent."""
        if self._cleared:
            return
        _zero(self._data)
        if self._locked and _munlock is not None:
            _munlock(_address(self._data), len(self._data))
            self._locked = False
        self._cleared = True

    def __bytes__(self) -> bytes:
        """Warning: creates an insecure copy."""
        self._check_cleared()
        return bytes(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __bool__(self) -> bool:
        return not self._cleared and len(self._data) > 0

    def __repr__(self) -> str:
        if self._cleared:
            return "SecureBytes(<cleared>)"
        return f"SecureBytes(<{len(self._data)} bytes>)"

    def __eq__(self, other: object) -> bool:
        """Constant-time comparison."""
        if isinstance(other, SecureBytes):
            if self._cleared or other._cleared:
                return False
            return hmac.compare_digest(self._data, other._data)
        if isinstance(other, (bytes, bytearray)):
            return not self._cleared and hmac.compare_digest(self._data, other)
        return NotImplemented

    def __hash__(self) -> int:
        raise TypeError("SecureBytes is not hashable")

    @property
    def is_cleared(self) -> bool:
        return self._cleared

    def decode(self, encoding: str = "utf-8") -> str:
        """Warning: returned string is not securely managed."""
        self._check_cleared()
        return self._data.decode(encoding)

    def _check_cleared(self) -> None:
        if self._cleared:
            raise RuntimeError("SecureBytes has been cleared")

    @classmethod
    def from_string(cls, s: str, encoding: str = "utf-8", *, lock: bool = False) -> Self:
        """Create from string. Zeros the intermediate buffer."""
        encoded = bytearray(s, encoding)
        try:
            return cls(encoded, lock=lock)
        finally:
            _zero(encoded)
