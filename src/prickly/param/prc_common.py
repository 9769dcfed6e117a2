"""Wire-level constants shared by the param decoder and encoder."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Dict

from .errors import BadMagic, TruncatedInput, UnsupportedVersion
from .nodes import ParamKind

MAGIC = b"paracob"
FORMAT_VERSION = b"n"
SUPPORTED_VERSIONS = (FORMAT_VERSION,)
WORD_SIZE = 4
MAX_DEPTH = 256

U32 = struct.Struct("<I")
U64 = struct.Struct("<Q")
# (hash index, field offset relative to the struct's tag byte)
SHAPE_PAIR = struct.Struct("<II")
# tag, count, shape offset
STRUCT_HEADER = struct.Struct("<BII")
# tag, count
LIST_HEADER = struct.Struct("<BI")

SCALAR_STRUCTS: Dict[ParamKind, struct.Struct] = {
    ParamKind.BOOL: struct.Struct("<BB"),
    ParamKind.I8: struct.Struct("<Bb"),
    ParamKind.U8: struct.Struct("<BB"),
    ParamKind.I16: struct.Struct("<Bh"),
    ParamKind.U16: struct.Struct("<BH"),
    ParamKind.I32: struct.Struct("<Bi"),
    ParamKind.U32: struct.Struct("<BI"),
    ParamKind.FLOAT: struct.Struct("<Bf"),
    # pool references: hash table index / ref table offset
    ParamKind.HASH: struct.Struct("<BI"),
    ParamKind.STRING: struct.Struct("<BI"),
}


@dataclass(frozen=True)
class FileHeader:
    """The fixed 16 byte prefix of every param file."""

    hash_table_size: int
    ref_table_size: int
    version: bytes = FORMAT_VERSION

    _STRUCT = struct.Struct("<7s c I I")

    @classmethod
    def size(cls) -> int:
        return cls._STRUCT.size

    def to_bytes(self) -> bytes:
        return self._STRUCT.pack(MAGIC, self.version, self.hash_table_size, self.ref_table_size)

    @classmethod
    def from_bytes(cls, payload: bytes) -> "FileHeader":
        if len(payload) < cls._STRUCT.size:
            raise TruncatedInput(
                f"Param file is {len(payload)} bytes; the header alone needs {cls._STRUCT.size}"
            )
        magic, version, hash_size, ref_size = cls._STRUCT.unpack_from(payload, 0)
        if magic != MAGIC:
            raise BadMagic(f"Not a param file (magic {magic!r})")
        if version not in SUPPORTED_VERSIONS:
            raise UnsupportedVersion(f"Unsupported param format revision {version!r}")
        return cls(hash_table_size=hash_size, ref_table_size=ref_size, version=version)


def padding_for(length: int, word: int = WORD_SIZE) -> int:
    return (-length) % word


__all__ = [
    "FORMAT_VERSION",
    "FileHeader",
    "LIST_HEADER",
    "MAGIC",
    "MAX_DEPTH",
    "SCALAR_STRUCTS",
    "SHAPE_PAIR",
    "STRUCT_HEADER",
    "SUPPORTED_VERSIONS",
    "U32",
    "U64",
    "WORD_SIZE",
    "padding_for",
]
