"""In-memory tree model for decoded param files.

A tree is made of three node classes:

* :class:`ParamValue` for every scalar kind (bool, the six integer widths,
  f32, hash and string);
* :class:`ParamList` for order-significant sequences;
* :class:`ParamStruct` for mappings from :class:`~prickly.param.hash40.Hash40`
  to child nodes, kept sorted by key at all times.

Consumers dispatch on :attr:`kind`, which is a :class:`ParamKind` member and
doubles as the on-disk type tag.
"""

from __future__ import annotations

import struct
from bisect import bisect_left
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Iterator, List, Optional, Tuple, Union

from .errors import IndexOutOfBounds, InvalidValue, NotFound, TypeMismatch
from .hash40 import Hash40, hash40

_F32 = struct.Struct("<f")


class ParamKind(IntEnum):
    BOOL = 1
    I8 = 2
    U8 = 3
    I16 = 4
    U16 = 5
    I32 = 6
    U32 = 7
    FLOAT = 8
    HASH = 9
    STRING = 10
    LIST = 11
    STRUCT = 12

    @property
    def type_name(self) -> str:
        return _TYPE_NAMES[self]

    @property
    def is_scalar(self) -> bool:
        return self not in (ParamKind.LIST, ParamKind.STRUCT)

    @property
    def is_integer(self) -> bool:
        return self in INTEGER_BOUNDS

    @property
    def is_incremental(self) -> bool:
        return self is ParamKind.BOOL or self is ParamKind.FLOAT or self.is_integer

    @classmethod
    def from_name(cls, name: str) -> "ParamKind":
        try:
            return _KINDS_BY_NAME[name.strip().lower()]
        except KeyError:
            raise ValueError(f"Unknown param type {name!r}") from None


_TYPE_NAMES: Dict[ParamKind, str] = {
    ParamKind.BOOL: "bool",
    ParamKind.I8: "i8",
    ParamKind.U8: "u8",
    ParamKind.I16: "i16",
    ParamKind.U16: "u16",
    ParamKind.I32: "i32",
    ParamKind.U32: "u32",
    ParamKind.FLOAT: "f32",
    ParamKind.HASH: "hash",
    ParamKind.STRING: "string",
    ParamKind.LIST: "list",
    ParamKind.STRUCT: "struct",
}
_KINDS_BY_NAME: Dict[str, ParamKind] = {name: kind for kind, name in _TYPE_NAMES.items()}
_KINDS_BY_NAME.update({"float": ParamKind.FLOAT, "str": ParamKind.STRING, "hash40": ParamKind.HASH})

INTEGER_BOUNDS: Dict[ParamKind, Tuple[int, int]] = {
    ParamKind.I8: (-0x80, 0x7F),
    ParamKind.U8: (0, 0xFF),
    ParamKind.I16: (-0x8000, 0x7FFF),
    ParamKind.U16: (0, 0xFFFF),
    ParamKind.I32: (-0x8000_0000, 0x7FFF_FFFF),
    ParamKind.U32: (0, 0xFFFF_FFFF),
}


def round_f32(value: float) -> float:
    """Round *value* to the nearest f32. Raises :class:`OverflowError` for finite
    values beyond the f32 range."""

    return _F32.unpack(_F32.pack(value))[0]


def coerce_scalar(kind: ParamKind, value: object) -> object:
    """Validate *value* for *kind* and return it in canonical model form."""

    if kind is ParamKind.BOOL:
        if not isinstance(value, bool):
            raise InvalidValue(f"bool param expects True or False, got {value!r}")
        return value
    if kind.is_integer:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidValue(f"{kind.type_name} param expects an integer, got {value!r}")
        low, high = INTEGER_BOUNDS[kind]
        if not low <= value <= high:
            raise InvalidValue(f"{value} does not fit in {kind.type_name} [{low}, {high}]")
        return int(value)
    if kind is ParamKind.FLOAT:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidValue(f"f32 param expects a number, got {value!r}")
        try:
            return round_f32(float(value))
        except OverflowError:
            raise InvalidValue(f"{value!r} is out of f32 range") from None
    if kind is ParamKind.HASH:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidValue(f"hash param expects an integer identifier, got {value!r}")
        if not 0 <= value <= 0xFFFF_FFFF_FFFF_FFFF:
            raise InvalidValue(f"hash {value!r} does not fit in 64 bits")
        return Hash40(value)
    if kind is ParamKind.STRING:
        if not isinstance(value, str):
            raise InvalidValue(f"string param expects str, got {value!r}")
        if "\0" in value:
            raise InvalidValue("string params cannot contain NUL characters")
        try:
            value.encode("utf-8", "surrogateescape")
        except UnicodeEncodeError as exc:
            raise InvalidValue(f"string is not encodable: {exc}") from None
        return value
    raise TypeMismatch(f"{kind.type_name} is not a scalar kind")


@dataclass
class ParamValue:
    """A scalar leaf. ``value`` is always in the canonical form of ``kind``."""

    kind: ParamKind
    value: object

    @classmethod
    def of(cls, kind: ParamKind, value: object) -> "ParamValue":
        kind = ParamKind(kind)
        return cls(kind, coerce_scalar(kind, value))

    def copy(self) -> "ParamValue":
        return ParamValue(self.kind, self.value)


@dataclass
class ParamList:
    """An ordered sequence of nodes.

    ``element_kind`` is the declared element kind. ``None`` means undeclared;
    the first insert into an empty undeclared list declares it.
    """

    items: List["Param"] = field(default_factory=list)
    element_kind: Optional[ParamKind] = field(default=None, compare=False)

    @property
    def kind(self) -> ParamKind:
        return ParamKind.LIST

    @classmethod
    def of(cls, items: List["Param"]) -> "ParamList":
        """Build a list and infer its element kind from *items*."""

        items = list(items)
        kinds = {item.kind for item in items}
        return cls(items, kinds.pop() if len(kinds) == 1 else None)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator["Param"]:
        return iter(self.items)

    def __getitem__(self, index: int) -> "Param":
        return self.items[index]

    def check_index(self, index: int, *, allow_end: bool = False) -> None:
        limit = len(self.items) if allow_end else len(self.items) - 1
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index <= limit:
            raise IndexOutOfBounds(f"Index {index!r} is outside list of length {len(self.items)}")


@dataclass
class ParamStruct:
    """A mapping from Identifier to node, sorted by ascending Identifier."""

    fields: List[Tuple[Hash40, "Param"]] = field(default_factory=list)

    @property
    def kind(self) -> ParamKind:
        return ParamKind.STRUCT

    @classmethod
    def of(cls, pairs) -> "ParamStruct":
        """Build a struct from ``(key, node)`` pairs in any order.

        Keys may be names or identifiers. Duplicates raise :class:`ValueError`.
        """

        resolved = []
        for key, node in pairs:
            resolved.append((Hash40(key) if isinstance(key, int) else hash40(key), node))
        resolved.sort(key=lambda pair: pair[0])
        for (left, _), (right, _) in zip(resolved, resolved[1:]):
            if left == right:
                raise ValueError(f"Duplicate struct key {left}")
        return cls(resolved)

    def __len__(self) -> int:
        return len(self.fields)

    def __iter__(self) -> Iterator[Tuple[Hash40, "Param"]]:
        return iter(self.fields)

    def keys(self) -> List[Hash40]:
        return [key for key, _ in self.fields]

    def locate(self, key: int) -> Tuple[int, bool]:
        """Return ``(position, present)`` for *key* using binary search."""

        position = bisect_left(self.fields, key, key=lambda pair: pair[0])
        present = position < len(self.fields) and self.fields[position][0] == key
        return position, present

    def get(self, key: int) -> Optional["Param"]:
        position, present = self.locate(key)
        return self.fields[position][1] if present else None

    def __contains__(self, key: object) -> bool:
        return isinstance(key, int) and self.locate(key)[1]

    def __getitem__(self, key: int) -> "Param":
        node = self.get(key)
        if node is None:
            raise NotFound(f"Struct has no field {Hash40(key)}")
        return node


Param = Union[ParamValue, ParamList, ParamStruct]
PathKey = Union[Hash40, int]
NodePath = Tuple[PathKey, ...]


def children(node: Param) -> List[Tuple[PathKey, Param]]:
    """Return ``(key, child)`` pairs of a struct or list in display order."""

    if isinstance(node, ParamStruct):
        return list(node.fields)
    if isinstance(node, ParamList):
        return list(enumerate(node.items))
    return []


def child(node: Param, key: PathKey) -> Param:
    if isinstance(node, ParamStruct):
        return node[key]
    if isinstance(node, ParamList):
        node.check_index(key)
        return node.items[key]
    raise TypeMismatch(f"{node.kind.type_name} params have no children")


def get_node(root: Param, path: NodePath) -> Param:
    """Follow *path* from *root*. Raises an :class:`EditError` when it is invalid."""

    node = root
    for key in path:
        node = child(node, key)
    return node


def is_parent(node: Param) -> bool:
    return isinstance(node, (ParamStruct, ParamList))


__all__ = [
    "INTEGER_BOUNDS",
    "NodePath",
    "Param",
    "ParamKind",
    "ParamList",
    "ParamStruct",
    "ParamValue",
    "PathKey",
    "child",
    "children",
    "coerce_scalar",
    "get_node",
    "is_parent",
    "round_f32",
]
