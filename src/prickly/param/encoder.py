"""Encode :mod:`prickly.param.nodes` trees into param file bytes.

The output is a pure function of the tree. Pool ordering follows first
appearance in a depth-first walk (struct fields in ascending key order, each
key before its value), shapes are laid out in pre-order with identical shapes
collapsed onto the first one, and the ref table is zero padded to a word. An
unmodified decoded tree therefore re-encodes to the bytes it came from.
"""

from __future__ import annotations

import logging
import struct
from typing import Dict, List, Tuple

from .errors import InvalidValue, InvariantViolation, TypeMismatch
from .hash40 import Hash40
from .nodes import Param, ParamKind, ParamList, ParamStruct, ParamValue, coerce_scalar
from .prc_common import (
    LIST_HEADER,
    MAX_DEPTH,
    SCALAR_STRUCTS,
    SHAPE_PAIR,
    STRUCT_HEADER,
    U32,
    FileHeader,
    padding_for,
)

logger = logging.getLogger(__name__)

Shape = Tuple[Tuple[int, int], ...]


class _Encoder:
    def __init__(self) -> None:
        self.hashes: List[int] = [0]
        self.hash_index: Dict[int, int] = {0: 0}
        # one slot per struct, in pre-order
        self.shapes: List[Shape] = []
        self.struct_fixups: List[Tuple[int, int]] = []
        self.strings: List[bytes] = []
        self.string_index: Dict[bytes, int] = {}
        self.string_fixups: List[Tuple[int, int]] = []
        self.body = bytearray()

    # ---------------------------------------------------------------- hashes
    def _add_hash(self, value: int) -> None:
        if value not in self.hash_index:
            self.hash_index[value] = len(self.hashes)
            self.hashes.append(value)

    def collect_hashes(self, node: Param, depth: int = 0) -> None:
        if depth > MAX_DEPTH:
            raise InvariantViolation(f"Params nest deeper than {MAX_DEPTH} levels")
        if isinstance(node, ParamStruct):
            previous = None
            for key, value in node.fields:
                if not isinstance(key, int) or not 0 <= key <= 0xFFFF_FFFF_FFFF_FFFF:
                    raise InvariantViolation(f"Struct key {key!r} is not a 64-bit identifier")
                if previous is not None and key <= previous:
                    problem = "duplicate" if key == previous else "unsorted"
                    raise InvariantViolation(f"Struct has {problem} key {Hash40(key)}")
                self._add_hash(key)
                self.collect_hashes(value, depth + 1)
                previous = key
        elif isinstance(node, ParamList):
            declared = node.element_kind
            for index, item in enumerate(node.items):
                if declared is not None and item.kind is not declared:
                    raise InvariantViolation(
                        f"List declared as {declared.type_name} holds a "
                        f"{item.kind.type_name} at index {index}"
                    )
                self.collect_hashes(item, depth + 1)
        elif isinstance(node, ParamValue):
            try:
                coerce_scalar(node.kind, node.value)
            except (InvalidValue, TypeMismatch) as exc:
                raise InvariantViolation(f"Invalid {node.kind.type_name} param: {exc}") from exc
            if node.kind is ParamKind.HASH:
                self._add_hash(node.value)
        else:
            raise InvariantViolation(f"Unexpected object in param tree: {node!r}")

    # ------------------------------------------------------------------ body
    def _string_slot(self, value: str) -> int:
        payload = value.encode("utf-8", "surrogateescape")
        index = self.string_index.get(payload)
        if index is None:
            index = self.string_index[payload] = len(self.strings)
            self.strings.append(payload)
        return index

    def write(self, node: Param) -> None:
        start = len(self.body)
        if isinstance(node, ParamStruct):
            slot = len(self.shapes)
            self.shapes.append(())
            self.body += STRUCT_HEADER.pack(ParamKind.STRUCT, len(node.fields), 0)
            self.struct_fixups.append((start + STRUCT_HEADER.size - U32.size, slot))
            pairs = []
            for key, value in node.fields:
                pairs.append((self.hash_index[key], len(self.body) - start))
                self.write(value)
            self.shapes[slot] = tuple(pairs)
        elif isinstance(node, ParamList):
            count = len(node.items)
            self.body += LIST_HEADER.pack(ParamKind.LIST, count)
            table = len(self.body)
            self.body += bytes(count * U32.size)
            for index, item in enumerate(node.items):
                U32.pack_into(self.body, table + index * U32.size, len(self.body) - start)
                self.write(item)
        elif node.kind is ParamKind.HASH:
            self.body += SCALAR_STRUCTS[node.kind].pack(node.kind, self.hash_index[node.value])
        elif node.kind is ParamKind.STRING:
            self.string_fixups.append((start + 1, self._string_slot(node.value)))
            self.body += SCALAR_STRUCTS[node.kind].pack(node.kind, 0)
        elif node.kind is ParamKind.BOOL:
            self.body += SCALAR_STRUCTS[node.kind].pack(node.kind, 1 if node.value else 0)
        else:
            self.body += SCALAR_STRUCTS[node.kind].pack(node.kind, node.value)

    # -------------------------------------------------------------- assembly
    def _ref_table(self) -> Tuple[bytes, List[int], List[int]]:
        ref = bytearray()
        shape_offsets: Dict[Shape, int] = {}
        slot_offsets: List[int] = []
        for shape in self.shapes:
            offset = shape_offsets.get(shape)
            if offset is None:
                offset = shape_offsets[shape] = len(ref)
                for pair in shape:
                    ref += SHAPE_PAIR.pack(*pair)
            slot_offsets.append(offset)
        string_offsets: List[int] = []
        for payload in self.strings:
            string_offsets.append(len(ref))
            ref += payload + b"\0"
        ref += bytes(padding_for(len(ref)))
        logger.debug(
            "Ref table: %d struct slots, %d distinct shapes, %d strings, %d bytes",
            len(self.shapes),
            len(shape_offsets),
            len(self.strings),
            len(ref),
        )
        return bytes(ref), slot_offsets, string_offsets

    def encode(self, root: ParamStruct) -> bytes:
        if not isinstance(root, ParamStruct):
            raise InvariantViolation("The root param must be a struct")
        self.collect_hashes(root)
        self.write(root)
        ref, slot_offsets, string_offsets = self._ref_table()
        for position, slot in self.struct_fixups:
            U32.pack_into(self.body, position, slot_offsets[slot])
        for position, index in self.string_fixups:
            U32.pack_into(self.body, position, string_offsets[index])
        hash_table = struct.pack(f"<{len(self.hashes)}Q", *self.hashes)
        header = FileHeader(hash_table_size=len(hash_table), ref_table_size=len(ref))
        return header.to_bytes() + hash_table + ref + bytes(self.body)


def encode(root: ParamStruct) -> bytes:
    """Encode *root* to a complete param file.

    Raises :class:`~prickly.param.errors.InvariantViolation` when the tree
    holds unsorted or duplicate struct keys, a list element that disagrees with
    the list's declared kind, or a scalar outside its kind's range.
    """

    return _Encoder().encode(root)


__all__ = ["encode"]
