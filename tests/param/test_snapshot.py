from __future__ import annotations

import json
from pathlib import Path

import msgpack
import pytest

from prickly.param import ParamKind, ParamStruct, ParamValue, SnapshotFormatError, encode, hash40
from prickly.param.snapshot import SNAPSHOT_FORMAT, from_blob, load_snapshot, to_blob, write_snapshot


@pytest.mark.parametrize("suffix", [".json", ".msgpack", ".mpk"])
def test_snapshot_files_rebuild_the_same_bytes(
    tmp_path: Path, sample_root: ParamStruct, labels, suffix: str
) -> None:
    path = write_snapshot(tmp_path / f"snap{suffix}", sample_root, labels)

    rebuilt = load_snapshot(path)

    assert rebuilt == sample_root
    assert encode(rebuilt) == encode(sample_root)


def test_json_snapshot_is_readable(tmp_path: Path, sample_root: ParamStruct, labels) -> None:
    path = write_snapshot(tmp_path / "snap.json", sample_root, labels)

    blob = json.loads(path.read_text(encoding="utf-8"))

    assert blob["format"] == SNAPSHOT_FORMAT
    fields = {entry["label"]: entry for entry in blob["root"]["fields"]}
    assert fields["enabled"]["key"] == str(hash40("enabled"))
    assert fields["kind"]["value"] == {"type": "hash", "value": str(hash40("mario")), "label": "mario"}
    assert fields["weights"]["value"]["element_type"] == "i16"


def test_hand_written_snapshot_accepts_names() -> None:
    blob = {
        "format": SNAPSHOT_FORMAT,
        "version": 1,
        "root": {
            "type": "struct",
            "fields": [
                {"key": "walk_speed", "value": {"type": "float", "value": 1}},
                {"key": "0x0000000001", "value": {"type": "hash40", "value": "run"}},
            ],
        },
    }

    root = from_blob(blob)

    assert root[hash40("walk_speed")] == ParamValue(ParamKind.FLOAT, 1.0)
    assert root[1].value == hash40("run")


def test_undecodable_strings_survive_msgpack(tmp_path: Path) -> None:
    root = ParamStruct.of([("s", ParamValue(ParamKind.STRING, b"\xffok".decode("utf-8", "surrogateescape")))])

    blob = to_blob(root)
    assert blob["root"]["fields"][0]["value"] == {"type": "string", "bytes": "ff6f6b"}

    path = write_snapshot(tmp_path / "snap.msgpack", root)
    assert load_snapshot(path) == root


@pytest.mark.parametrize(
    "blob",
    [
        {"format": "other"},
        {"format": SNAPSHOT_FORMAT, "version": 2, "root": {}},
        {"format": SNAPSHOT_FORMAT, "version": 1, "root": {"type": "i32", "value": 1}},
        {"format": SNAPSHOT_FORMAT, "version": 1, "root": {"type": "struct"}},
        {
            "format": SNAPSHOT_FORMAT,
            "version": 1,
            "root": {"type": "struct", "fields": [{"key": "a", "value": {"type": "u8", "value": 300}}]},
        },
        {
            "format": SNAPSHOT_FORMAT,
            "version": 1,
            "root": {
                "type": "struct",
                "fields": [
                    {"key": "a", "value": {"type": "bool", "value": True}},
                    {"key": "a", "value": {"type": "bool", "value": False}},
                ],
            },
        },
        {
            "format": SNAPSHOT_FORMAT,
            "version": 1,
            "root": {
                "type": "struct",
                "fields": [
                    {
                        "key": "l",
                        "value": {
                            "type": "list",
                            "element_type": "u8",
                            "items": [{"type": "i8", "value": 1}],
                        },
                    }
                ],
            },
        },
        {
            "format": SNAPSHOT_FORMAT,
            "version": 1,
            "root": {"type": "struct", "fields": [{"key": "a", "value": {"type": "vector"}}]},
        },
    ],
    ids=["format", "version", "scalar-root", "no-fields", "range", "duplicate", "list-kind", "type"],
)
def test_invalid_documents(blob) -> None:
    with pytest.raises(SnapshotFormatError):
        from_blob(blob)


def test_unsupported_suffix(tmp_path: Path, sample_root: ParamStruct) -> None:
    with pytest.raises(SnapshotFormatError):
        write_snapshot(tmp_path / "snap.yaml", sample_root)
    with pytest.raises(SnapshotFormatError):
        load_snapshot(tmp_path / "snap.txt")


def test_corrupt_files(tmp_path: Path) -> None:
    bad_json = tmp_path / "bad.json"
    bad_json.write_text("{", encoding="utf-8")
    bad_msgpack = tmp_path / "bad.msgpack"
    bad_msgpack.write_bytes(msgpack.packb({"format": SNAPSHOT_FORMAT})[:-3])

    with pytest.raises(SnapshotFormatError):
        load_snapshot(bad_json)
    with pytest.raises(SnapshotFormatError):
        load_snapshot(bad_msgpack)
