"""Decode raw FINS word payloads into the requested representation."""

import struct
from typing import Any, Callable

from .bits import bytes_to_words, extract_bits
from .types import DataFormat, ParsedAddress


def _pairs(payload: bytes, fmt: str) -> list[Any]:
    n = len(payload) // 4
    return list(struct.unpack(f">{n}{fmt}", payload[: n * 4]))


def _signed(payload: bytes) -> list[int]:
    n = len(payload) // 2
    return list(struct.unpack(f">{n}h", payload[: n * 2]))


def _ascii(payload: bytes) -> str:
    data = payload[: len(payload) // 2 * 2]
    return "".join(chr(b) for b in data if b != 0)


def _bits(payload: bytes) -> list[list[bool]]:
    return [[bool(word & (1 << bit)) for bit in range(15, -1, -1)] for word in bytes_to_words(payload)]


_DECODERS: dict[DataFormat, Callable[[bytes], Any]] = {
    DataFormat.ARRAY: _signed,
    DataFormat.UNSIGNED: bytes_to_words,
    DataFormat.INT32: lambda p: _pairs(p, "i"),
    DataFormat.FLOAT32: lambda p: _pairs(p, "f"),
    DataFormat.BINARY: lambda p: [f"{w:016b}" for w in bytes_to_words(p)],
    DataFormat.HEX: lambda p: [f"{w:04X}" for w in bytes_to_words(p)],
    DataFormat.ASCII: _ascii,
    DataFormat.BUFFER: bytes,
    DataFormat.BITS: _bits,
}


def format_data(
    payload: bytes | None,
    data_format: DataFormat | str | None = DataFormat.ARRAY,
    address: ParsedAddress | None = None,
    bit_count: int = 1,
) -> Any:
    """
    Convert a response payload to the requested format.

    Bit-addressed reads ignore the format and return a single bool when
    ``bit_count`` is 1, otherwise a list of bools. An empty or missing
    payload returns None.
    """
    if not payload:
        return None

    if address is not None and address.is_bit_address:
        bits = extract_bits(payload, address.bit_position, bit_count or 1)
        if bit_count == 1:
            return bits[0] if bits else None
        return bits

    return _DECODERS[DataFormat.parse(data_format)](payload)
