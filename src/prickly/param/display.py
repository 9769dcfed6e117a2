"""Text rendering and parsing of param values for interactive surfaces."""

from __future__ import annotations

import math
from typing import Optional

from .errors import InvalidValue, TypeMismatch
from .hash40 import Hash40
from .labels import LabelMap, format_hash, parse_hash
from .nodes import NodePath, Param, ParamKind, ParamList, ParamStruct, ParamValue, PathKey, round_f32

_TRUE_WORDS = {"true", "1", "yes", "on"}
_FALSE_WORDS = {"false", "0", "no", "off"}


def format_float(value: float) -> str:
    """Shortest decimal text that reads back to the same f32."""

    if math.isnan(value) or math.isinf(value):
        return repr(value)
    for digits in range(1, 10):
        text = f"{value:.{digits}g}"
        candidate = float(text)
        try:
            if round_f32(candidate) == value:
                return repr(candidate)
        except OverflowError:
            continue
    return repr(value)  # pragma: no cover - nine digits always round-trip an f32


def format_key(key: PathKey, labels: Optional[LabelMap] = None) -> str:
    """Struct keys render as labels or hex, list positions as plain indices."""

    if isinstance(key, Hash40):
        return format_hash(key, labels)
    return str(key)


def format_path(path: NodePath, labels: Optional[LabelMap] = None) -> str:
    return " > ".join(format_key(key, labels) for key in path)


def format_value(node: Param, labels: Optional[LabelMap] = None) -> str:
    if isinstance(node, (ParamStruct, ParamList)):
        return f"({len(node)} children)"
    kind = node.kind
    if kind is ParamKind.BOOL:
        return "true" if node.value else "false"
    if kind is ParamKind.FLOAT:
        return format_float(node.value)
    if kind is ParamKind.HASH:
        return format_hash(node.value, labels)
    return str(node.value)


def parse_scalar(kind: ParamKind, text: str, labels: Optional[LabelMap] = None) -> ParamValue:
    """Parse user input for a scalar of *kind*.

    Raises :class:`~prickly.param.errors.InvalidValue` when the text does not
    describe a value of that kind.
    """

    kind = ParamKind(kind)
    if not kind.is_scalar:
        raise TypeMismatch(f"{kind.type_name} params cannot be entered as text")
    if kind is ParamKind.STRING:
        return ParamValue.of(kind, text)
    stripped = text.strip()
    if kind is ParamKind.BOOL:
        word = stripped.lower()
        if word in _TRUE_WORDS:
            return ParamValue(kind, True)
        if word in _FALSE_WORDS:
            return ParamValue(kind, False)
        raise InvalidValue(f"{text!r} is not a bool (expected true or false)")
    if kind is ParamKind.HASH:
        value, _ = parse_hash(stripped, labels)
        return ParamValue(kind, value)
    if kind is ParamKind.FLOAT:
        try:
            number = float(stripped)
        except ValueError:
            raise InvalidValue(f"{text!r} is not a number") from None
        return ParamValue.of(kind, number)
    try:
        number = int(stripped, 0)
    except ValueError:
        try:
            number = int(stripped)
        except ValueError:
            raise InvalidValue(f"{text!r} is not an integer") from None
    return ParamValue.of(kind, number)


__all__ = ["format_float", "format_key", "format_path", "format_value", "parse_scalar"]
