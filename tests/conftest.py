"""Shared fixtures: a small param tree exercising every node kind."""

from __future__ import annotations

from pathlib import Path

import pytest

from prickly.param import LabelMap, ParamKind, ParamList, ParamStruct, ParamValue, encode, hash40

LABEL_NAMES = ("enabled", "speed", "name", "kind", "stats", "weights", "limits", "mario")


@pytest.fixture()
def sample_root() -> ParamStruct:
    return ParamStruct.of(
        [
            ("enabled", ParamValue(ParamKind.BOOL, True)),
            ("speed", ParamValue.of(ParamKind.FLOAT, 1.5)),
            ("name", ParamValue(ParamKind.STRING, "mario")),
            ("kind", ParamValue(ParamKind.HASH, hash40("mario"))),
            (
                "stats",
                ParamStruct.of(
                    [
                        ("limits", ParamValue(ParamKind.U8, 200)),
                        ("enabled", ParamValue(ParamKind.BOOL, False)),
                    ]
                ),
            ),
            (
                "weights",
                ParamList.of(
                    [
                        ParamValue(ParamKind.I16, -3),
                        ParamValue(ParamKind.I16, 0),
                        ParamValue(ParamKind.I16, 9),
                    ]
                ),
            ),
        ]
    )


@pytest.fixture()
def labels() -> LabelMap:
    return LabelMap({hash40(name): name for name in LABEL_NAMES})


@pytest.fixture()
def labels_csv(tmp_path: Path) -> Path:
    path = tmp_path / "ParamLabels.csv"
    path.write_text(
        "".join(f"{hash40(name)},{name}\n" for name in LABEL_NAMES),
        encoding="utf-8",
    )
    return path


@pytest.fixture()
def sample_file(tmp_path: Path, sample_root: ParamStruct) -> Path:
    path = tmp_path / "sample.prc"
    path.write_bytes(encode(sample_root))
    return path
