from __future__ import annotations

import zlib

import pytest

from prickly.param.errors import NameTooLong
from prickly.param.hash40 import MAX_NAME_LENGTH, Hash40, hash40


@pytest.mark.parametrize(
    "name, expected",
    [
        ("", 0),
        ("123456789", 0x09CBF43926),
        (b"123456789", 0x09CBF43926),
    ],
)
def test_reference_vectors(name, expected: int) -> None:
    assert hash40(name) == expected


def test_length_lives_above_the_crc() -> None:
    value = hash40("é")  # two UTF-8 bytes

    assert value.length == 2
    assert value.crc == zlib.crc32("é".encode("utf-8"))
    assert value < 1 << 40


def test_name_length_limit() -> None:
    longest = "a" * MAX_NAME_LENGTH
    assert hash40(longest).length == MAX_NAME_LENGTH

    with pytest.raises(NameTooLong):
        hash40(longest + "a")


def test_text_form_round_trips() -> None:
    value = hash40("123456789")

    assert str(value) == "0x09cbf43926"
    assert repr(value) == "Hash40(0x09cbf43926)"
    assert Hash40.from_hex_str(" 0x09CBF43926 ") == value


@pytest.mark.parametrize("text", ["09cbf43926", "0x", "0xnothex", "0x1ffffffffffffffff"])
def test_from_hex_str_rejects_malformed_text(text: str) -> None:
    with pytest.raises(ValueError):
        Hash40.from_hex_str(text)


def test_identifiers_compare_as_integers() -> None:
    names = ["zeta", "alpha", "mid"]
    ordered = sorted(hash40(name) for name in names)

    assert ordered == sorted(int(hash40(name)) for name in names)
    assert hash40("alpha") == int(hash40("alpha"))
