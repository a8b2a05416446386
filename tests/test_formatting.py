"""Tests for response payload formatting."""

import struct

import pytest

from pyomron_fins import format_data
from pyomron_fins.address import parse_address
from pyomron_fins.types import DataFormat


def test_array_single_word() -> None:
    assert format_data(b"\x00\xc8") == [200]


def test_array_is_signed() -> None:
    assert format_data(b"\xff\xff\x00\x01", "array") == [-1, 1]


def test_unsigned() -> None:
    assert format_data(b"\xff\xff\x00\x01", "unsigned") == [65535, 1]


def test_int32() -> None:
    assert format_data(b"\x00\x00\x00\x01", DataFormat.INT32) == [1]
    assert format_data(b"\xff\xff\xff\xfe", DataFormat.INT32) == [-2]


def test_float32() -> None:
    assert format_data(struct.pack(">f", 1.5), "float32") == [1.5]


def test_int32_ignores_trailing_word() -> None:
    assert format_data(b"\x00\x00\x00\x02\x00\x07", "int32") == [2]


def test_hex() -> None:
    assert format_data(b"\x00\xc8\xab\xcd", "hex") == ["00C8", "ABCD"]


def test_binary() -> None:
    assert format_data(b"\x00\x05", "binary") == ["0000000000000101"]


def test_ascii_drops_nul_bytes() -> None:
    assert format_data(b"AB\x00\x00", "ascii") == "AB"


def test_buffer() -> None:
    assert format_data(b"\x01\x02", "buffer") == b"\x01\x02"


def test_bits_msb_first() -> None:
    bits = format_data(b"\x80\x01", "bits")
    assert len(bits) == 1
    assert bits[0][0] is True
    assert bits[0][15] is True
    assert bits[0][1:15] == [False] * 14


def test_unknown_format_falls_back_to_array() -> None:
    assert format_data(b"\x00\x07", "nonsense") == [7]


@pytest.mark.parametrize("payload", [None, b""])
def test_empty_payload_is_none(payload: bytes | None) -> None:
    assert format_data(payload, "hex") is None


def test_bit_address_single_bool() -> None:
    assert format_data(b"\x00\x08", "array", parse_address("100.03")) is True
    assert format_data(b"\x00\x08", "hex", parse_address("100.02")) is False


def test_bit_address_multiple_bits() -> None:
    result = format_data(b"\x00\x0c", "array", parse_address("100.02"), bit_count=3)
    assert result == [True, True, False]
