"""JSON and msgpack snapshots of param trees.

A snapshot is a plain nested document that survives hand editing::

    {"format": "prickly-snapshot", "version": 1,
     "root": {"type": "struct", "fields": [
         {"key": "0x0144fd5d6c", "label": "enabled",
          "value": {"type": "bool", "value": true}}]}}

Struct keys and hash values are written as ``0x`` literals with the resolved
label alongside. On import a key may also be a label or a bare name, which is
resolved the same way the editor resolves typed hash input.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import msgpack

from .errors import EditError, NameTooLong, SnapshotFormatError
from .hash40 import Hash40
from .labels import LabelMap, parse_hash
from .nodes import Param, ParamKind, ParamList, ParamStruct, ParamValue

logger = logging.getLogger(__name__)

SNAPSHOT_FORMAT = "prickly-snapshot"
SNAPSHOT_VERSION = 1
JSON_SUFFIXES = frozenset({".json"})
MSGPACK_SUFFIXES = frozenset({".msgpack", ".mpk"})


# ---------------------------------------------------------------------------
# Tree -> document


def _hash_blob(value: int, labels: Optional[LabelMap]) -> Dict[str, Any]:
    blob: Dict[str, Any] = {"value": str(Hash40(value))}
    label = labels.resolve(value) if labels is not None else None
    if label is not None:
        blob["label"] = label
    return blob


def _node_to_blob(node: Param, labels: Optional[LabelMap]) -> Dict[str, Any]:
    kind = node.kind
    if isinstance(node, ParamStruct):
        fields = []
        for key, value in node.fields:
            entry = _hash_blob(key, labels)
            entry["key"] = entry.pop("value")
            entry["value"] = _node_to_blob(value, labels)
            fields.append(entry)
        return {"type": kind.type_name, "fields": fields}
    if isinstance(node, ParamList):
        element = node.element_kind.type_name if node.element_kind is not None else None
        return {
            "type": kind.type_name,
            "element_type": element,
            "items": [_node_to_blob(item, labels) for item in node.items],
        }
    if kind is ParamKind.HASH:
        return {"type": kind.type_name, **_hash_blob(node.value, labels)}
    if kind is ParamKind.STRING:
        try:
            node.value.encode("utf-8")
        except UnicodeEncodeError:
            raw = node.value.encode("utf-8", "surrogateescape")
            return {"type": kind.type_name, "bytes": raw.hex()}
    return {"type": kind.type_name, "value": node.value}


def to_blob(root: ParamStruct, labels: Optional[LabelMap] = None) -> Dict[str, Any]:
    return {
        "format": SNAPSHOT_FORMAT,
        "version": SNAPSHOT_VERSION,
        "root": _node_to_blob(root, labels),
    }


# ---------------------------------------------------------------------------
# Document -> tree


def _require(blob: Mapping[str, Any], name: str, where: str) -> Any:
    if name not in blob:
        raise SnapshotFormatError(f"{where}: missing {name!r}")
    return blob[name]


def _parse_identifier(text: Any, labels: Optional[LabelMap], where: str) -> Hash40:
    if not isinstance(text, str):
        raise SnapshotFormatError(f"{where}: identifiers must be strings, got {text!r}")
    try:
        value, _ = parse_hash(text, labels)
    except (EditError, NameTooLong) as exc:
        raise SnapshotFormatError(f"{where}: {exc}") from exc
    return value


def _blob_to_node(blob: Any, labels: Optional[LabelMap], where: str) -> Param:
    if not isinstance(blob, Mapping):
        raise SnapshotFormatError(f"{where}: expected an object, got {type(blob).__name__}")
    try:
        kind = ParamKind.from_name(str(_require(blob, "type", where)))
    except ValueError as exc:
        raise SnapshotFormatError(f"{where}: {exc}") from exc

    if kind is ParamKind.STRUCT:
        pairs = []
        for index, entry in enumerate(_require(blob, "fields", where)):
            if not isinstance(entry, Mapping):
                raise SnapshotFormatError(f"{where}.fields[{index}]: expected an object")
            key = _parse_identifier(_require(entry, "key", where), labels, f"{where}.fields[{index}]")
            pairs.append((key, _blob_to_node(_require(entry, "value", where), labels, f"{where}/{key}")))
        try:
            return ParamStruct.of(pairs)
        except ValueError as exc:
            raise SnapshotFormatError(f"{where}: {exc}") from exc

    if kind is ParamKind.LIST:
        items: List[Param] = [
            _blob_to_node(item, labels, f"{where}[{index}]")
            for index, item in enumerate(_require(blob, "items", where))
        ]
        declared = blob.get("element_type")
        if declared is None:
            return ParamList.of(items)
        try:
            element_kind = ParamKind.from_name(str(declared))
        except ValueError as exc:
            raise SnapshotFormatError(f"{where}: {exc}") from exc
        for index, item in enumerate(items):
            if item.kind is not element_kind:
                raise SnapshotFormatError(
                    f"{where}[{index}]: list of {element_kind.type_name} holds a {item.kind.type_name}"
                )
        return ParamList(items, element_kind)

    if kind is ParamKind.HASH:
        return ParamValue(kind, _parse_identifier(_require(blob, "value", where), labels, where))
    if kind is ParamKind.STRING and "bytes" in blob:
        try:
            raw = bytes.fromhex(blob["bytes"])
        except (TypeError, ValueError) as exc:
            raise SnapshotFormatError(f"{where}: bad string bytes: {exc}") from exc
        value: Any = raw.decode("utf-8", "surrogateescape")
    else:
        value = _require(blob, "value", where)
    try:
        return ParamValue.of(kind, value)
    except EditError as exc:
        raise SnapshotFormatError(f"{where}: {exc}") from exc


def from_blob(blob: Any, labels: Optional[LabelMap] = None) -> ParamStruct:
    if not isinstance(blob, Mapping) or blob.get("format") != SNAPSHOT_FORMAT:
        raise SnapshotFormatError("Not a prickly snapshot document")
    version = blob.get("version")
    if version != SNAPSHOT_VERSION:
        raise SnapshotFormatError(f"Unsupported snapshot version {version!r}")
    root = _blob_to_node(_require(blob, "root", "snapshot"), labels, "root")
    if not isinstance(root, ParamStruct):
        raise SnapshotFormatError(f"Snapshot root must be a struct, found {root.kind.type_name}")
    return root


# ---------------------------------------------------------------------------
# Files


def _suffix(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix not in JSON_SUFFIXES | MSGPACK_SUFFIXES:
        raise SnapshotFormatError(f"Unsupported snapshot format: {path}")
    return suffix


def write_snapshot(path: Path, root: ParamStruct, labels: Optional[LabelMap] = None) -> Path:
    path = Path(path)
    suffix = _suffix(path)
    blob = to_blob(root, labels)
    if suffix in JSON_SUFFIXES:
        with path.open("w", encoding="utf-8") as fh:
            json.dump(blob, fh, indent=2)
            fh.write("\n")
    else:
        with path.open("wb") as fh:
            msgpack.pack(blob, fh, use_bin_type=True)
    logger.info("Wrote snapshot %s", path)
    return path


def load_snapshot(path: Path, labels: Optional[LabelMap] = None) -> ParamStruct:
    path = Path(path)
    suffix = _suffix(path)
    try:
        if suffix in JSON_SUFFIXES:
            with path.open("r", encoding="utf-8") as fh:
                blob = json.load(fh)
        else:
            with path.open("rb") as fh:
                blob = msgpack.unpack(fh, raw=False)
    except ValueError as exc:
        raise SnapshotFormatError(f"Cannot parse snapshot {path}: {exc}") from exc
    return from_blob(blob, labels)


__all__ = [
    "JSON_SUFFIXES",
    "MSGPACK_SUFFIXES",
    "SNAPSHOT_FORMAT",
    "SNAPSHOT_VERSION",
    "from_blob",
    "load_snapshot",
    "to_blob",
    "write_snapshot",
]
