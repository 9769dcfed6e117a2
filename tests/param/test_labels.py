from __future__ import annotations

import logging
from pathlib import Path

import pytest

from prickly.param import InvalidValue, hash40
from prickly.param.labels import (
    LABELS_FILENAME,
    HashStatus,
    LabelMap,
    format_hash,
    hash_status,
    label_search_paths,
    load_labels,
    parse_hash,
)


def test_read_custom_labels_skips_bad_rows(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / LABELS_FILENAME
    path.write_text(
        "\n".join(
            [
                f"{hash40('walk_speed')},walk_speed",
                "",
                "not-a-hash,broken",
                f"{hash40('lonely')}",
                f"{hash40('jump')},jump",
            ]
        ),
        encoding="utf-8",
    )

    with caplog.at_level(logging.DEBUG, logger="prickly.param.labels"):
        labels = LabelMap.read_custom_labels(path)

    assert len(labels) == 2
    assert labels.resolve(hash40("walk_speed")) == "walk_speed"
    assert labels.hash_of("jump") == hash40("jump")
    assert labels.resolve(hash40("lonely")) is None
    assert "skipping" in caplog.text


def test_label_map_is_two_way() -> None:
    labels = LabelMap({hash40("a"): "a", 0x1234: "custom"})

    assert labels.resolve(0x1234) == "custom"
    assert labels.hash_of("custom") == 0x1234
    assert hash40("a") in labels
    assert labels.sorted_labels() == ["a", "custom"]
    assert labels.resolve(hash40("zzz")) is None


def test_search_order(tmp_path: Path) -> None:
    explicit = tmp_path / "mine.csv"
    opened = tmp_path / "data" / "file.prc"
    program = tmp_path / "bin"

    paths = label_search_paths(open_file=opened, program_dir=program, explicit=explicit)

    assert paths == [
        explicit,
        (tmp_path / "data").resolve() / LABELS_FILENAME,
        program / LABELS_FILENAME,
    ]


def test_load_labels_prefers_table_beside_the_file(tmp_path: Path) -> None:
    beside = tmp_path / "data"
    program = tmp_path / "bin"
    beside.mkdir()
    program.mkdir()
    (beside / LABELS_FILENAME).write_text(f"{hash40('near')},near\n", encoding="utf-8")
    (program / LABELS_FILENAME).write_text(f"{hash40('far')},far\n", encoding="utf-8")

    labels = load_labels(open_file=beside / "x.prc", program_dir=program)
    assert labels.hash_of("near") is not None
    assert labels.hash_of("far") is None

    fallback = load_labels(open_file=tmp_path / "x.prc", program_dir=program)
    assert fallback.hash_of("far") is not None


def test_missing_tables_give_an_empty_map(tmp_path: Path) -> None:
    labels = load_labels(open_file=tmp_path / "x.prc", program_dir=tmp_path, explicit=tmp_path / "nope.csv")

    assert len(labels) == 0


def test_undecodable_table_gives_an_empty_map(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    table = tmp_path / LABELS_FILENAME
    table.write_bytes(b"0x0144fd5d6c,enabled\n0x0000000001,\xff\xfe\n")

    with caplog.at_level(logging.WARNING, logger="prickly.param.labels"):
        labels = load_labels(explicit=table, program_dir=tmp_path)

    assert len(labels) == 0
    assert "not UTF-8" in caplog.text


@pytest.mark.parametrize(
    "text, status",
    [
        ("0x0123456789", HashStatus.HASH),
        ("0xZZ", HashStatus.INVALID),
        ("enabled", HashStatus.LABEL_EXISTS),
        ("brand_new", HashStatus.LABEL_NOT_EXISTS),
        ("x" * 256, HashStatus.INVALID),
    ],
)
def test_hash_status(text: str, status: HashStatus, labels: LabelMap) -> None:
    assert hash_status(text, labels) is status


def test_parse_hash(labels: LabelMap) -> None:
    assert parse_hash("0x0123456789", labels) == (0x0123456789, HashStatus.HASH)
    assert parse_hash(" enabled ", labels) == (hash40("enabled"), HashStatus.LABEL_EXISTS)
    assert parse_hash("brand_new", labels) == (hash40("brand_new"), HashStatus.LABEL_NOT_EXISTS)
    with pytest.raises(InvalidValue):
        parse_hash("0xnope", labels)


def test_format_hash_falls_back_to_hex(labels: LabelMap) -> None:
    assert format_hash(hash40("enabled"), labels) == "enabled"
    assert format_hash(hash40("unknown"), labels) == str(hash40("unknown"))
    assert format_hash(0x10, None) == "0x0000000010"
