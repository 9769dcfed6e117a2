"""Param file codec, tree model and editing primitives."""

from .decoder import decode
from .editor import (
    ParamEditor,
    ParamSearch,
    convert_scalar,
    decrement,
    find,
    increment,
    insert_field,
    insert_list_element,
    move_list_element,
    name_matches,
    remove_field,
    remove_list_element,
    replace_node,
    set_scalar,
    value_matches,
)
from .encoder import encode
from .errors import (
    BadMagic,
    DanglingReference,
    DecodeError,
    DuplicateKey,
    EditError,
    EncodeError,
    IncompatibleTypes,
    IndexOutOfBounds,
    InvalidValue,
    InvariantViolation,
    MalformedInput,
    NameTooLong,
    NotFound,
    ParamError,
    SnapshotFormatError,
    TruncatedInput,
    TypeMismatch,
    UnknownType,
    UnsupportedVersion,
)
from .files import open_param, save_param
from .hash40 import Hash40, hash40
from .labels import HashStatus, LabelMap, load_labels, parse_hash
from .nodes import NodePath, Param, ParamKind, ParamList, ParamStruct, ParamValue, get_node

__all__ = [
    "BadMagic",
    "DanglingReference",
    "DecodeError",
    "DuplicateKey",
    "EditError",
    "EncodeError",
    "Hash40",
    "HashStatus",
    "IncompatibleTypes",
    "IndexOutOfBounds",
    "InvalidValue",
    "InvariantViolation",
    "LabelMap",
    "MalformedInput",
    "NameTooLong",
    "NodePath",
    "NotFound",
    "Param",
    "ParamEditor",
    "ParamError",
    "ParamKind",
    "ParamList",
    "ParamSearch",
    "ParamStruct",
    "ParamValue",
    "SnapshotFormatError",
    "TruncatedInput",
    "TypeMismatch",
    "UnknownType",
    "UnsupportedVersion",
    "convert_scalar",
    "decode",
    "decrement",
    "encode",
    "find",
    "get_node",
    "hash40",
    "increment",
    "insert_field",
    "insert_list_element",
    "load_labels",
    "move_list_element",
    "name_matches",
    "open_param",
    "parse_hash",
    "remove_field",
    "remove_list_element",
    "replace_node",
    "save_param",
    "set_scalar",
    "value_matches",
]
