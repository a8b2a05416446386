"""Tests for word spans, bit extraction and bit read-modify-write."""

import pytest

from pyomron_fins.bits import coerce_bit, extract_bits, modify_bits, word_span, words_to_bytes


@pytest.mark.parametrize(
    ("bit_position", "bit_count", "expected"),
    [
        (0, 1, 1),
        (15, 1, 1),
        (0, 16, 1),
        (15, 2, 2),
        (3, 16, 2),
        (0, 17, 2),
        (8, 40, 3),
    ],
)
def test_word_span(bit_position: int, bit_count: int, expected: int) -> None:
    assert word_span(bit_position, bit_count) == expected


def test_word_span_rejects_zero_bits() -> None:
    with pytest.raises(ValueError):
        word_span(0, 0)


def test_set_bit_3_in_zero_word() -> None:
    assert modify_bits(b"\x00\x00", 3, [True]) == [0x0008]


def test_clear_bit_3_in_full_word() -> None:
    assert modify_bits(b"\xff\xff", 3, [False]) == [0xFFF7]


def test_modify_bits_across_word_boundary() -> None:
    payload = words_to_bytes([0x0000, 0x0000])
    assert modify_bits(payload, 15, [1, 1]) == [0x8000, 0x0001]


def test_modify_bits_keeps_other_bits() -> None:
    assert modify_bits(b"\x12\x34", 0, [False]) == [0x1234]
    assert modify_bits(b"\x12\x34", 0, [True]) == [0x1235]


@pytest.mark.parametrize(("value", "expected"), [(True, True), (1, True), ("1", True), (False, False), (0, False), ("true", False), (2, False)])
def test_coerce_bit(value: object, expected: bool) -> None:
    assert coerce_bit(value) is expected


def test_extract_bits() -> None:
    # 0x0005 -> bits 0 and 2 set
    assert extract_bits(b"\x00\x05", 0, 4) == [True, False, True, False]


def test_extract_bits_across_words() -> None:
    payload = words_to_bytes([0x8000, 0x0001])
    assert extract_bits(payload, 15, 2) == [True, True]


def test_extract_bits_stops_at_end_of_payload() -> None:
    assert extract_bits(b"\xff\xff", 14, 4) == [True, True]
