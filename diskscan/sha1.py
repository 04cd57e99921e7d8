"""SHA-1 message digest (FIPS PUB 180-1)."""

from __future__ import annotations

import struct

_MASK = 0xFFFFFFFF
_COUNT_MASK = (1 << 64) - 1
_INITIAL_STATE = (0x67452301, 0xEFCDAB89, 0x98BADCFE, 0x10325476, 0xC3D2E1F0)


def _rol(value: int, bits: int) -> int:
    return ((value << bits) | (value >> (32 - bits))) & _MASK


def _compress(state: tuple[int, ...], block: bytes) -> tuple[int, ...]:
    """Hash a single 64-byte block into the running state."""
    words = list(struct.unpack(">16I", block))
    for t in range(16, 80):
        words.append(_rol(words[t - 3] ^ words[t - 8] ^ words[t - 14] ^ words[t - 16], 1))

    a, b, c, d, e = state
    for t, word in enumerate(words):
        if t < 20:
            f = d ^ (b & (c ^ d))
            k = 0x5A827999
        elif t < 40:
            f = b ^ c ^ d
            k = 0x6ED9EBA1
        elif t < 60:
            f = (b & c) | (b & d) | (c & d)
            k = 0x8F1BBCDC
        else:
            f = b ^ c ^ d
            k = 0xCA62C1D6
        temp = (_rol(a, 5) + f + e + k + word) & _MASK
        a, b, c, d, e = temp, a, _rol(b, 30), c, d

    return tuple((x + y) & _MASK for x, y in zip(state, (a, b, c, d, e)))


class Sha1:
    """Incremental SHA-1 hasher."""

    digest_size = 20
    block_size = 64

    def __init__(self, data: bytes = b"") -> None:
        self._state: tuple[int, ...] = _INITIAL_STATE
        self._buffer = b""
        self._length = 0
        if data:
            self.update(data)

    def update(self, data: bytes) -> None:
        """Feed more bytes into the hash."""
        chunk = bytes(data)
        self._length += len(chunk)
        pending = self._buffer + chunk
        whole = len(pending) - len(pending) % self.block_size
        view = memoryview(pending)
        state = self._state
        for offset in range(0, whole, self.block_size):
            state = _compress(state, bytes(view[offset:offset + self.block_size]))
        self._state = state
        self._buffer = pending[whole:]

    def copy(self) -> "Sha1":
        """Return an independent hasher with the same state."""
        other = Sha1()
        other._state = self._state
        other._buffer = self._buffer
        other._length = self._length
        return other

    def digest(self) -> bytes:
        """Return the 20-byte digest of everything fed so far."""
        bit_count = (self._length * 8) & _COUNT_MASK
        padding = b"\x80" + b"\x00" * ((55 - len(self._buffer)) % 64)
        tail = self._buffer + padding + bit_count.to_bytes(8, "big")
        state = self._state
        for offset in range(0, len(tail), self.block_size):
            state = _compress(state, tail[offset:offset + self.block_size])
        return struct.pack(">5I", *state)

    def hexdigest(self) -> str:
        """Return the digest as upper-case hexadecimal."""
        return self.digest().hex().upper()


def sha1_hex(data: bytes) -> str:
    """Return the upper-case hexadecimal SHA-1 digest of ``data``."""
    return Sha1(data).hexdigest()