"""Bit helpers: word spans, bit extraction and the modify step of bit read-modify-write."""

import struct
from typing import Any, Iterable


def word_span(bit_position: int, bit_count: int) -> int:
    """Number of 16-bit words covering bits ``[bit_position, bit_position + bit_count - 1]``."""
    if bit_count < 1:
        raise ValueError(f"bit_count must be >= 1, got {bit_count}")
    end_bit = bit_position + bit_count - 1
    return end_bit // 16 - bit_position // 16 + 1


def bytes_to_words(payload: bytes) -> list[int]:
    """Unpack big-endian unsigned 16-bit words; a trailing odd byte is ignored."""
    n = len(payload) // 2
    return list(struct.unpack(f">{n}H", payload[: n * 2]))


def words_to_bytes(words: Iterable[int]) -> bytes:
    words = list(words)
    return struct.pack(f">{len(words)}H", *words)


def coerce_bit(value: Any) -> bool:
    """True, 1 and "1" set a bit; anything else clears it."""
    if isinstance(value, (bool, int, float)):
        return value == 1
    return value == "1"


def extract_bits(payload: bytes, start_bit: int, bit_count: int) -> list[bool]:
    """
    Return ``bit_count`` bits starting at ``start_bit`` across the word sequence.

    Bit 0 is the least-significant bit of each word. Bits beyond the end of
    the payload are not returned.
    """
    words = bytes_to_words(payload)
    bits: list[bool] = []
    for i in range(bit_count):
        absolute = start_bit + i
        index, bit = divmod(absolute, 16)
        if index < len(words):
            bits.append(bool((words[index] >> bit) & 1))
    return bits


def modify_bits(payload: bytes, start_bit: int, values: Iterable[Any]) -> list[int]:
    """
    Set or clear bits from ``start_bit`` onwards in the words read from the PLC.

    Returns the full modified word list; bits not targeted keep their value.
    """
    words = bytes_to_words(payload)
    for i, value in enumerate(values):
        index, bit = divmod(start_bit + i, 16)
        if index >= len(words):
            continue
        if coerce_bit(value):
            words[index] |= 1 << bit
        else:
            words[index] &= ~(1 << bit) & 0xFFFF
    return words
