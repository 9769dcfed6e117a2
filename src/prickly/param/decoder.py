"""Decode param files into :mod:`prickly.param.nodes` trees."""

from __future__ import annotations

import logging
import struct
from typing import List, Sequence, Set

from .errors import DanglingReference, MalformedInput, TruncatedInput, UnknownType
from .hash40 import Hash40
from .nodes import Param, ParamKind, ParamList, ParamStruct, ParamValue
from .prc_common import (
    LIST_HEADER,
    MAX_DEPTH,
    SCALAR_STRUCTS,
    SHAPE_PAIR,
    STRUCT_HEADER,
    U32,
    U64,
    FileHeader,
)

logger = logging.getLogger(__name__)


class _Decoder:
    def __init__(self, data: bytes) -> None:
        self.raw = data
        self.data = memoryview(data)
        header = FileHeader.from_bytes(data)
        if header.hash_table_size % U64.size:
            raise MalformedInput(
                f"Hash table size {header.hash_table_size} is not a multiple of {U64.size}"
            )
        self.hash_start = FileHeader.size()
        self.ref_start = self.hash_start + header.hash_table_size
        self.ref_size = header.ref_table_size
        self.body_start = self.ref_start + header.ref_table_size
        if self.body_start > len(data):
            raise TruncatedInput(
                f"Tables end at {self.body_start:#x} but the file is only {len(data):#x} bytes"
            )
        count = header.hash_table_size // U64.size
        self.hashes: Sequence[Hash40] = [
            Hash40(value) for value in struct.unpack_from(f"<{count}Q", self.data, self.hash_start)
        ]
        self.seen: Set[int] = set()

    # ------------------------------------------------------------------ reads
    def _unpack(self, layout: struct.Struct, offset: int) -> tuple:
        if offset < 0 or offset + layout.size > len(self.data):
            raise TruncatedInput(
                f"Reading {layout.size} bytes at {offset:#x} runs past the end of the file"
            )
        return layout.unpack_from(self.data, offset)

    def _tag(self, offset: int) -> ParamKind:
        if offset >= len(self.data):
            raise TruncatedInput(f"Expected a type tag at {offset:#x} past the end of the file")
        tag = self.data[offset]
        try:
            return ParamKind(tag)
        except ValueError:
            raise UnknownType(f"Unknown type tag {tag:#04x} at {offset:#x}") from None

    def _hash(self, index: int, offset: int) -> Hash40:
        if index >= len(self.hashes):
            raise DanglingReference(
                f"Hash index {index} at {offset:#x} exceeds table of {len(self.hashes)} entries"
            )
        return self.hashes[index]

    def _string(self, ref_offset: int, offset: int) -> str:
        if ref_offset >= self.ref_size:
            raise DanglingReference(
                f"String offset {ref_offset:#x} at {offset:#x} is outside the ref table"
            )
        start = self.ref_start + ref_offset
        end = self.raw.find(b"\0", start, self.ref_start + self.ref_size)
        if end < 0:
            raise DanglingReference(f"String at ref offset {ref_offset:#x} is not terminated")
        return self.raw[start:end].decode("utf-8", "surrogateescape")

    # ------------------------------------------------------------------ nodes
    def read(self, offset: int, depth: int = 0) -> Param:
        if depth > MAX_DEPTH:
            raise MalformedInput(f"Params nest deeper than {MAX_DEPTH} levels")
        if offset in self.seen:
            raise MalformedInput(f"Param at {offset:#x} is referenced more than once")
        self.seen.add(offset)
        kind = self._tag(offset)
        if kind is ParamKind.STRUCT:
            return self._read_struct(offset, depth)
        if kind is ParamKind.LIST:
            return self._read_list(offset, depth)
        _, raw = self._unpack(SCALAR_STRUCTS[kind], offset)
        if kind is ParamKind.BOOL:
            return ParamValue(kind, raw != 0)
        if kind is ParamKind.HASH:
            return ParamValue(kind, self._hash(raw, offset))
        if kind is ParamKind.STRING:
            return ParamValue(kind, self._string(raw, offset))
        return ParamValue(kind, raw)

    def _read_list(self, offset: int, depth: int) -> ParamList:
        _, count = self._unpack(LIST_HEADER, offset)
        table_end = LIST_HEADER.size + count * U32.size
        if offset + table_end > len(self.data):
            raise TruncatedInput(f"List at {offset:#x} declares {count} entries past the end of the file")
        items: List[Param] = []
        for index in range(count):
            (relative,) = self._unpack(U32, offset + LIST_HEADER.size + index * U32.size)
            if relative < table_end:
                raise MalformedInput(
                    f"List at {offset:#x} entry {index} points into its own header ({relative:#x})"
                )
            items.append(self.read(offset + relative, depth + 1))
        return ParamList.of(items)

    def _read_struct(self, offset: int, depth: int) -> ParamStruct:
        _, count, shape_offset = self._unpack(STRUCT_HEADER, offset)
        if shape_offset + count * SHAPE_PAIR.size > self.ref_size:
            raise DanglingReference(
                f"Struct at {offset:#x} references shape {shape_offset:#x} outside the ref table"
            )
        fields = []
        previous = None
        for index in range(count):
            hash_index, relative = SHAPE_PAIR.unpack_from(
                self.data, self.ref_start + shape_offset + index * SHAPE_PAIR.size
            )
            key = self._hash(hash_index, offset)
            if previous is not None and key <= previous:
                raise MalformedInput(
                    f"Struct at {offset:#x} keys are not strictly ascending ({previous} then {key})"
                )
            if relative < STRUCT_HEADER.size:
                raise MalformedInput(
                    f"Struct at {offset:#x} field {key} points into its own header ({relative:#x})"
                )
            fields.append((key, self.read(offset + relative, depth + 1)))
            previous = key
        return ParamStruct(fields)

    def decode(self) -> ParamStruct:
        root = self.read(self.body_start)
        if not isinstance(root, ParamStruct):
            raise MalformedInput(f"Root param must be a struct, found {root.kind.type_name}")
        logger.debug(
            "Decoded param file: %d hashes, %d ref bytes, %d root fields",
            len(self.hashes),
            self.ref_size,
            len(root),
        )
        return root


def decode(data: bytes) -> ParamStruct:
    """Decode a complete param file.

    Raises
    ------
    DecodeError
        One of :class:`~prickly.param.errors.BadMagic`,
        :class:`~prickly.param.errors.UnsupportedVersion`,
        :class:`~prickly.param.errors.TruncatedInput`,
        :class:`~prickly.param.errors.UnknownType`,
        :class:`~prickly.param.errors.DanglingReference` or
        :class:`~prickly.param.errors.MalformedInput`.
    """

    return _Decoder(bytes(data)).decode()


__all__ = ["decode"]
