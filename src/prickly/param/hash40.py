"""Identifier hashing for struct keys and hash params."""

from __future__ import annotations

import zlib

from .errors import NameTooLong

MAX_NAME_LENGTH = 0xFF


class Hash40(int):
    """A 40-bit Identifier: CRC-32 of a name plus its byte length in bits 32..39.

    The value is stored in a 64-bit slot in param files. Instances compare and
    sort as plain integers.
    """

    __slots__ = ()

    @staticmethod
    def from_hex_str(text: str) -> "Hash40":
        """Parse ``0x``-prefixed hex. Raises :class:`ValueError` when malformed."""

        stripped = text.strip()
        if not stripped.lower().startswith("0x"):
            raise ValueError(f"Hash literal must start with 0x: {text!r}")
        value = int(stripped[2:], 16)
        if value < 0 or value > 0xFFFF_FFFF_FFFF_FFFF:
            raise ValueError(f"Hash literal out of range: {text!r}")
        return Hash40(value)

    @property
    def crc(self) -> int:
        return self & 0xFFFF_FFFF

    @property
    def length(self) -> int:
        return (self >> 32) & 0xFF

    def __str__(self) -> str:
        return f"0x{int(self):010x}"

    def __repr__(self) -> str:
        return f"Hash40({self})"


def hash40(name: str | bytes) -> Hash40:
    """Compute the Identifier for *name*.

    >>> hex(hash40("123456789"))
    '0x9cbf43926'
    """

    data = name.encode("utf-8") if isinstance(name, str) else bytes(name)
    if len(data) > MAX_NAME_LENGTH:
        raise NameTooLong(
            f"Name is {len(data)} bytes long; identifiers hold at most {MAX_NAME_LENGTH}"
        )
    return Hash40(zlib.crc32(data) | (len(data) << 32))


__all__ = ["Hash40", "MAX_NAME_LENGTH", "hash40"]
