"""SHA-1 message digest (RFC 3174) and HMAC-SHA1 (RFC 2104)."""

from __future__ import annotations

import struct

__all__ = ["Sha1", "sha1", "hmac_sha1"]

_INITIAL_STATE = (0x67452301, 0xEFCDAB89, 0x98BADCFE, 0x10325476, 0xC3D2E1F0)
_MASK = 0xFFFFFFFF
_BLOCK_SIZE = 64
_DIGEST_SIZE = 20

_K_00_19 = 0x5A827999
_K_20_39 = 0x6ED9EBA1
_K_40_59 = 0x8F1BBCDC
_K_60_79 = 0xCA62C1D6


def _rotl(value: int, count: int) -> int:
    return ((value << count) | (value >> (32 - count))) & _MASK


def _compress(state: tuple[int, ...], block: bytes) -> tuple[int, ...]:
    """Run the SHA-1 compression function over one 64-byte block."""
    w = list(struct.unpack(">16I", block))
    for i in range(16, 80):
        w.append(_rotl(w[i - 3] ^ w[i - 8] ^ w[i - 14] ^ w[i - 16], 1))

    a, b, c, d, e = state
    for i, word in enumerate(w):
        if i < 20:
            f = ((c ^ d) & b) ^ d
            k = _K_00_19
        elif i < 40:
            f = b ^ c ^ d
            k = _K_20_39
        elif i < 60:
            f = (b & c) | ((b | c) & d)
            k = _K_40_59
        else:
            f = b ^ c ^ d
            k = _K_60_79
        temp = (_rotl(a, 5) + f + e + k + word) & _MASK
        a, b, c, d, e = temp, a, _rotl(b, 30), c, d

    return tuple((x + y) & _MASK for x, y in zip(state, (a, b, c, d, e)))


class Sha1:
    """Incremental SHA-1 hash object."""

    block_size = _BLOCK_SIZE
    digest_size = _DIGEST_SIZE
    name = "sha1"

    def __init__(self, data: bytes = b"") -> None:
        self._state: tuple[int, ...] = _INITIAL_STATE
        self._buffer = b""
        self._length = 0
        if data:
            self.update(data)

    def update(self, data: bytes) -> None:
        """Feed more bytes into the hash."""
        chunk = bytes(memoryview(data))
        self._length += len(chunk)
        pending = self._buffer + chunk
        full = len(pending) - len(pending) % _BLOCK_SIZE
        for start in range(0, full, _BLOCK_SIZE):
            self._state = _compress(self._state, pending[start:start + _BLOCK_SIZE])
        self._buffer = pending[full:]

    def digest(self) -> bytes:
        """Return the 20-byte digest of everything fed so far."""
        bit_length = (self._length * 8) & 0xFFFFFFFFFFFFFFFF
        padding_len = (55 - self._length) % _BLOCK_SIZE
        tail = self._buffer + b"\x80" + b"\x00" * padding_len + struct.pack(">Q", bit_length)
        state = self._state
        for start in range(0, len(tail), _BLOCK_SIZE):
            state = _compress(state, tail[start:start + _BLOCK_SIZE])
        return struct.pack(">5I", *state)

    def hexdigest(self) -> str:
        """Return the digest as a lower-case hexadecimal string."""
        return self.digest().hex()

    def copy(self) -> "Sha1":
        """Return an independent copy of this hash object."""
        clone = Sha1()
        clone._state = self._state
        clone._buffer = self._buffer
        clone._length = self._length
        return clone


def sha1(data: bytes) -> bytes:
    """Return the SHA-1 digest of ``data``."""
    return Sha1(data).digest()


def hmac_sha1(text: bytes, key: bytes) -> bytes:
    """Return the 20-byte HMAC-SHA1 of ``text`` under ``key``."""
    key = bytes(memoryview(key))
    if len(key) > _BLOCK_SIZE:
        key = sha1(key)
    key = key.ljust(_BLOCK_SIZE, b"\x00")
    inner_pad = bytes(b ^ 0x36 for b in key)
    outer_pad = bytes(b ^ 0x5C for b in key)

    inner = Sha1(inner_pad)
    inner.update(text)
    outer = Sha1(outer_pad)
    outer.update(inner.digest())
    return outer.digest()