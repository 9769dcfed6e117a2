"""Structural edits on a live param tree.

Every operation validates before it mutates, so a raised
:class:`~prickly.param.errors.EditError` always leaves the tree untouched.
Operations that displace data return it, which is what :class:`ParamEditor`
uses to build its undo log of inverse operations.

Values handed to the module-level functions become owned by the tree; pass a
copy if the caller keeps using the object. :class:`ParamEditor` copies for you.
"""

from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Union

from .display import format_key, format_path, format_value, parse_scalar
from .errors import (
    DuplicateKey,
    IncompatibleTypes,
    InvalidValue,
    NotFound,
    TypeMismatch,
)
from .files import open_param, save_param
from .hash40 import Hash40, hash40
from .labels import LabelMap
from .nodes import (
    INTEGER_BOUNDS,
    NodePath,
    Param,
    ParamKind,
    ParamList,
    ParamStruct,
    ParamValue,
    PathKey,
    coerce_scalar,
    get_node,
    round_f32,
)

logger = logging.getLogger(__name__)

Predicate = Callable[[PathKey, Param], bool]


# ---------------------------------------------------------------------------
# Validation helpers


def _validate_subtree(node: object) -> None:
    if isinstance(node, ParamValue):
        coerce_scalar(node.kind, node.value)
    elif isinstance(node, ParamStruct):
        previous = None
        for key, value in node.fields:
            if not isinstance(key, Hash40):
                raise InvalidValue(f"Struct keys must be Hash40 identifiers, got {key!r}")
            if previous is not None and key <= previous:
                raise InvalidValue(f"Struct keys must be strictly ascending ({previous} then {key})")
            _validate_subtree(value)
            previous = key
    elif isinstance(node, ParamList):
        for item in node.items:
            if node.element_kind is not None and item.kind is not node.element_kind:
                raise InvalidValue(
                    f"List declared as {node.element_kind.type_name} holds a {item.kind.type_name}"
                )
            _validate_subtree(item)
    else:
        raise InvalidValue(f"{node!r} is not a param node")


def _require_struct(node: Param) -> ParamStruct:
    if not isinstance(node, ParamStruct):
        raise TypeMismatch(f"Expected a struct, found {node.kind.type_name}")
    return node


def _require_list(node: Param) -> ParamList:
    if not isinstance(node, ParamList):
        raise TypeMismatch(f"Expected a list, found {node.kind.type_name}")
    return node


def _require_scalar(node: Param) -> ParamValue:
    if not isinstance(node, ParamValue):
        raise TypeMismatch(f"Expected a scalar, found {node.kind.type_name}")
    return node


def _key_for(name: Union[str, int]) -> Hash40:
    if isinstance(name, bool):
        raise InvalidValue(f"{name!r} is not a field name")
    if isinstance(name, int):
        return Hash40(coerce_scalar(ParamKind.HASH, name))
    return hash40(name)


# ---------------------------------------------------------------------------
# Struct edits


def insert_field(struct: ParamStruct, name: Union[str, int], value: Param) -> Hash40:
    """Insert *value* under *name* (hashed) or an explicit Identifier."""

    struct = _require_struct(struct)
    key = _key_for(name)
    position, present = struct.locate(key)
    if present:
        raise DuplicateKey(f"Struct already has a field {key}")
    _validate_subtree(value)
    struct.fields.insert(position, (key, value))
    return key


def remove_field(struct: ParamStruct, key: Union[str, int]) -> Param:
    struct = _require_struct(struct)
    key = _key_for(key)
    position, present = struct.locate(key)
    if not present:
        raise NotFound(f"Struct has no field {key}")
    _, removed = struct.fields.pop(position)
    return removed


def replace_node(parent: Param, key: PathKey, value: Param) -> Param:
    """Swap the child at *key* for *value* and return the displaced subtree."""

    _validate_subtree(value)
    if isinstance(parent, ParamStruct):
        position, present = parent.locate(key)
        if not present:
            raise NotFound(f"Struct has no field {Hash40(key)}")
        old_key, old = parent.fields[position]
        parent.fields[position] = (old_key, value)
        return old
    if isinstance(parent, ParamList):
        parent.check_index(key)
        if (
            parent.element_kind is not None
            and len(parent.items) > 1
            and value.kind is not parent.element_kind
        ):
            raise TypeMismatch(
                f"List holds {parent.element_kind.type_name} params, not {value.kind.type_name}"
            )
        old = parent.items[key]
        parent.items[key] = value
        if parent.element_kind is not None:
            parent.element_kind = value.kind
        return old
    raise TypeMismatch(f"{parent.kind.type_name} params have no children")


# ---------------------------------------------------------------------------
# Scalar edits


def _raw_matches(kind: ParamKind, value: object) -> bool:
    if kind is ParamKind.BOOL:
        return isinstance(value, bool)
    if isinstance(value, bool):
        return False
    if kind.is_integer or kind is ParamKind.HASH:
        return isinstance(value, int)
    if kind is ParamKind.FLOAT:
        return isinstance(value, (int, float))
    return isinstance(value, str)


def set_scalar(node: ParamValue, value: Union[ParamValue, bool, int, float, str]) -> ParamValue:
    """Overwrite a scalar without changing its kind; returns the prior value."""

    node = _require_scalar(node)
    if isinstance(value, ParamValue):
        if value.kind is not node.kind:
            raise TypeMismatch(
                f"Cannot store a {value.kind.type_name} in a {node.kind.type_name} param"
            )
        raw = value.value
    else:
        if not _raw_matches(node.kind, value):
            raise TypeMismatch(f"Cannot store {value!r} in a {node.kind.type_name} param")
        raw = value
    canonical = coerce_scalar(node.kind, raw)
    previous = node.copy()
    node.value = canonical
    return previous


_CONVERTIBLE = frozenset([ParamKind.BOOL, *INTEGER_BOUNDS])


def convert_scalar(node: ParamValue, kind: ParamKind, *, parent: Optional[Param]) -> bool:
    """Change a scalar's kind in place. Returns ``True`` when the value was clamped.

    *parent* is the container holding *node*, or ``None`` for a detached node.
    A list parent's declared element kind is checked and updated.

    Only bool and the integer kinds convert into one another: bool maps to 0/1,
    integers map to bool by ``!= 0`` and narrow by saturating. A node inside a
    declared list may only change kind when it is the list's sole element.
    """

    node = _require_scalar(node)
    target = ParamKind(kind)
    source = node.kind
    if source is target:
        return False
    if source not in _CONVERTIBLE or target not in _CONVERTIBLE:
        raise IncompatibleTypes(f"Cannot convert {source.type_name} to {target.type_name}")
    if isinstance(parent, ParamList) and parent.element_kind is not None and len(parent.items) > 1:
        raise TypeMismatch(
            f"List holds {parent.element_kind.type_name} params; converting one element would mix kinds"
        )
    value = node.value
    if target is ParamKind.BOOL:
        converted, lossy = value != 0, value not in (0, 1)
    elif source is ParamKind.BOOL:
        converted, lossy = int(value), False
    else:
        low, high = INTEGER_BOUNDS[target]
        converted = min(max(value, low), high)
        lossy = converted != value
    node.kind, node.value = target, converted
    if isinstance(parent, ParamList) and parent.element_kind is not None:
        parent.element_kind = target
    if lossy:
        logger.debug("Lossy conversion %s(%r) -> %s(%r)", source.type_name, value, target.type_name, converted)
    return lossy


def adjust(node: ParamValue, step: int) -> ParamValue:
    """Add *step* to a numeric scalar (saturating) or toggle a bool.

    Returns the prior value.
    """

    node = _require_scalar(node)
    kind = node.kind
    previous = node.copy()
    if kind is ParamKind.BOOL:
        node.value = not node.value
    elif kind.is_integer:
        low, high = INTEGER_BOUNDS[kind]
        node.value = min(max(node.value + step, low), high)
    elif kind is ParamKind.FLOAT:
        node.value = round_f32(node.value + float(step))
    else:
        raise IncompatibleTypes(f"{kind.type_name} params cannot be incremented")
    return previous


def increment(node: ParamValue) -> ParamValue:
    return adjust(node, 1)


def decrement(node: ParamValue) -> ParamValue:
    return adjust(node, -1)


# ---------------------------------------------------------------------------
# List edits


def _check_element_kind(lst: ParamList, value: Param) -> None:
    if lst.element_kind is not None and value.kind is not lst.element_kind:
        raise TypeMismatch(
            f"List holds {lst.element_kind.type_name} params, not {value.kind.type_name}"
        )


def insert_list_element(lst: ParamList, index: int, value: Param) -> None:
    lst = _require_list(lst)
    lst.check_index(index, allow_end=True)
    _check_element_kind(lst, value)
    _validate_subtree(value)
    lst.items.insert(index, value)
    if lst.element_kind is None and len(lst.items) == 1:
        lst.element_kind = value.kind


def remove_list_element(lst: ParamList, index: int) -> Param:
    lst = _require_list(lst)
    lst.check_index(index)
    return lst.items.pop(index)


def move_list_element(lst: ParamList, source: int, target: int) -> None:
    """Move the element at *source* so that it ends up at index *target*."""

    lst = _require_list(lst)
    lst.check_index(source)
    lst.check_index(target)
    lst.items.insert(target, lst.items.pop(source))


# ---------------------------------------------------------------------------
# Search


class ParamSearch:
    """Restartable depth-first search yielding paths of matching nodes."""

    def __init__(self, root: Param, predicate: Predicate) -> None:
        self.root = root
        self.predicate = predicate

    def __iter__(self) -> Iterator[NodePath]:
        stack: List[tuple] = [((), self.root)]
        while stack:
            path, node = stack.pop()
            if path and self.predicate(path[-1], node):
                yield path
            if isinstance(node, ParamStruct):
                pairs = node.fields
            elif isinstance(node, ParamList):
                pairs = list(enumerate(node.items))
            else:
                continue
            for key, item in reversed(pairs):
                stack.append((path + (key,), item))


def find(root: Param, predicate: Predicate) -> ParamSearch:
    return ParamSearch(root, predicate)


def name_matches(pattern: str, labels: Optional[LabelMap] = None) -> Predicate:
    """Match struct keys by label or hex text, list entries by index."""

    regex = re.compile(pattern)

    def predicate(key: PathKey, node: Param) -> bool:
        if regex.search(format_key(key, labels)):
            return True
        return isinstance(key, Hash40) and regex.search(str(key)) is not None

    return predicate


def value_matches(pattern: str, labels: Optional[LabelMap] = None) -> Predicate:
    regex = re.compile(pattern)

    def predicate(key: PathKey, node: Param) -> bool:
        return isinstance(node, ParamValue) and regex.search(format_value(node, labels)) is not None

    return predicate


# ---------------------------------------------------------------------------
# Editing session


@dataclass
class _Edit:
    description: str
    undo: Callable[[], None]
    redo: Callable[[], None]


# Saved state that fell off the bottom of the undo log; never on top of it.
_UNREACHABLE = _Edit("unreachable saved state", lambda: None, lambda: None)


class ParamEditor:
    """Owns the live tree and an undo log of inverse operations.

    All operations are addressed by :data:`~prickly.param.nodes.NodePath`.
    """

    def __init__(
        self,
        root: ParamStruct,
        *,
        labels: Optional[LabelMap] = None,
        source_path: Optional[Path] = None,
        history_limit: int = 1000,
    ) -> None:
        self.root = root
        self.labels = labels
        self.source_path = source_path
        self.history_limit = history_limit
        self._undo: List[_Edit] = []
        self._redo: List[_Edit] = []
        self._saved_marker: Optional[_Edit] = None

    @classmethod
    def open(cls, path: Path, *, labels: Optional[LabelMap] = None) -> "ParamEditor":
        return cls(open_param(path), labels=labels, source_path=Path(path))

    # --------------------------------------------------------------- history
    @property
    def edited(self) -> bool:
        top = self._undo[-1] if self._undo else None
        return top is not self._saved_marker

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def mark_saved(self) -> None:
        self._saved_marker = self._undo[-1] if self._undo else None

    def _record(self, description: str, undo: Callable[[], None], redo: Callable[[], None]) -> None:
        self._undo.append(_Edit(description, undo, redo))
        if len(self._undo) > self.history_limit:
            dropped = self._undo.pop(0)
            if self._saved_marker is dropped:
                self._saved_marker = None
            elif self._saved_marker is None:
                self._saved_marker = _UNREACHABLE
        self._redo.clear()
        logger.debug("edit: %s", description)

    def undo(self) -> Optional[str]:
        if not self._undo:
            return None
        edit = self._undo.pop()
        edit.undo()
        self._redo.append(edit)
        return edit.description

    def redo(self) -> Optional[str]:
        if not self._redo:
            return None
        edit = self._redo.pop()
        edit.redo()
        self._undo.append(edit)
        return edit.description

    def save(self, path: Optional[Path] = None) -> Path:
        target = Path(path) if path is not None else self.source_path
        if target is None:
            raise ValueError("No target path to save to")
        save_param(target, self.root)
        self.source_path = target
        self.mark_saved()
        return target

    # ------------------------------------------------------------ navigation
    def node(self, path: NodePath = ()) -> Param:
        return get_node(self.root, path)

    def _describe(self, path: NodePath) -> str:
        return format_path(path, self.labels) or "<root>"

    def find(self, predicate: Predicate) -> ParamSearch:
        return find(self.root, predicate)

    # ----------------------------------------------------------------- edits
    def insert_field(self, path: NodePath, name: Union[str, int], value: Param) -> Hash40:
        struct = self.node(path)
        key = insert_field(struct, name, copy.deepcopy(value))
        inserted = struct.get(key)

        def _undo() -> None:
            remove_field(struct, key)

        def _redo() -> None:
            insert_field(struct, key, inserted)

        self._record(f"insert {self._describe(path + (key,))}", _undo, _redo)
        return key

    def remove_field(self, path: NodePath, key: Union[str, int]) -> Param:
        struct = self.node(path)
        removed = remove_field(struct, key)
        resolved = _key_for(key)

        def _undo() -> None:
            insert_field(struct, resolved, removed)

        def _redo() -> None:
            remove_field(struct, resolved)

        self._record(f"remove {self._describe(path + (resolved,))}", _undo, _redo)
        return copy.deepcopy(removed)

    def replace(self, path: NodePath, value: Param) -> Param:
        if not path:
            raise TypeMismatch("The root struct cannot be replaced")
        parent = self.node(path[:-1])
        key = path[-1]
        new = copy.deepcopy(value)
        previous_kind = parent.element_kind if isinstance(parent, ParamList) else None
        old = replace_node(parent, key, new)

        def _undo() -> None:
            replace_node(parent, key, old)
            if isinstance(parent, ParamList):
                parent.element_kind = previous_kind

        def _redo() -> None:
            replace_node(parent, key, new)

        self._record(f"replace {self._describe(path)}", _undo, _redo)
        return copy.deepcopy(old)

    def set_scalar(self, path: NodePath, value: Union[ParamValue, bool, int, float, str]) -> ParamValue:
        node = self.node(path)
        previous = set_scalar(node, value)
        current = node.copy()

        def _undo() -> None:
            set_scalar(node, previous)

        def _redo() -> None:
            set_scalar(node, current)

        self._record(
            f"set {self._describe(path)} = {format_value(current, self.labels)}", _undo, _redo
        )
        return previous

    def set_text(self, path: NodePath, text: str) -> ParamValue:
        """Parse *text* for the node's kind and store it."""

        node = _require_scalar(self.node(path))
        return self.set_scalar(path, parse_scalar(node.kind, text, self.labels))

    def convert_scalar(self, path: NodePath, kind: ParamKind) -> bool:
        node = self.node(path)
        parent = self.node(path[:-1]) if path else None
        previous = node.copy() if isinstance(node, ParamValue) else None
        previous_kind = parent.element_kind if isinstance(parent, ParamList) else None
        lossy = convert_scalar(node, kind, parent=parent)
        current = node.copy()

        def _undo() -> None:
            node.kind, node.value = previous.kind, previous.value
            if isinstance(parent, ParamList):
                parent.element_kind = previous_kind

        def _redo() -> None:
            convert_scalar(node, current.kind, parent=parent)

        self._record(f"convert {self._describe(path)} to {current.kind.type_name}", _undo, _redo)
        return lossy

    def _adjust(self, path: NodePath, step: int) -> ParamValue:
        node = self.node(path)
        previous = adjust(node, step)
        current = node.copy()

        def _undo() -> None:
            set_scalar(node, previous)

        def _redo() -> None:
            set_scalar(node, current)

        verb = "increment" if step > 0 else "decrement"
        self._record(f"{verb} {self._describe(path)}", _undo, _redo)
        return previous

    def increment(self, path: NodePath) -> ParamValue:
        return self._adjust(path, 1)

    def decrement(self, path: NodePath) -> ParamValue:
        return self._adjust(path, -1)

    def insert_list_element(self, path: NodePath, index: int, value: Param) -> None:
        lst = self.node(path)
        previous_kind = lst.element_kind if isinstance(lst, ParamList) else None
        inserted = copy.deepcopy(value)
        insert_list_element(lst, index, inserted)

        def _undo() -> None:
            remove_list_element(lst, index)
            lst.element_kind = previous_kind

        def _redo() -> None:
            insert_list_element(lst, index, inserted)

        self._record(f"insert {self._describe(path + (index,))}", _undo, _redo)

    def remove_list_element(self, path: NodePath, index: int) -> Param:
        lst = self.node(path)
        removed = remove_list_element(lst, index)

        def _undo() -> None:
            lst.items.insert(index, removed)

        def _redo() -> None:
            remove_list_element(lst, index)

        self._record(f"remove {self._describe(path + (index,))}", _undo, _redo)
        return copy.deepcopy(removed)

    def move_list_element(self, path: NodePath, source: int, target: int) -> None:
        lst = self.node(path)
        move_list_element(lst, source, target)

        def _undo() -> None:
            move_list_element(lst, target, source)

        def _redo() -> None:
            move_list_element(lst, source, target)

        self._record(f"move {self._describe(path)} {source} -> {target}", _undo, _redo)


__all__ = [
    "ParamEditor",
    "ParamSearch",
    "adjust",
    "convert_scalar",
    "decrement",
    "find",
    "increment",
    "insert_field",
    "insert_list_element",
    "move_list_element",
    "name_matches",
    "remove_field",
    "remove_list_element",
    "replace_node",
    "set_scalar",
    "value_matches",
]
