"""Parse FINS word addresses with optional bit notation (``1000`` or ``1000.05``)."""

import re

from .errors import InvalidAddressFormatError, InvalidBitPositionError
from .types import ParsedAddress

_DIGITS = re.compile(r"^\d+$")


def parse_address(raw: str | int) -> ParsedAddress:
    """
    Parse an address string into a ParsedAddress.

    - ``"1000"``    -> word 1000, not bit-addressed.
    - ``"1000.05"`` -> word 1000, bit 5.

    Raises InvalidAddressFormatError for a malformed word part or part count,
    InvalidBitPositionError when the bit part is not an integer in 0..15.
    """
    text = str(raw).strip()
    parts = text.split(".")

    if len(parts) > 2:
        raise InvalidAddressFormatError(text)

    word_str = parts[0].strip()
    if not _DIGITS.match(word_str):
        raise InvalidAddressFormatError(text)
    word = int(word_str)
    if word > 0xFFFF:
        raise InvalidAddressFormatError(text, f"Word address out of range 0-65535: {word}")

    if len(parts) == 1:
        return ParsedAddress(word_address=word)

    bit_str = parts[1].strip()
    if not _DIGITS.match(bit_str) or int(bit_str) > 15:
        raise InvalidBitPositionError(text, parts[1])
    return ParsedAddress(word_address=word, bit_position=int(bit_str), is_bit_address=True)
