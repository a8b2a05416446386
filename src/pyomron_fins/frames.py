"""
FINS frame builder and parser for the UDP and TCP bindings.

FINS header (10 bytes)::

    +-----+-----+-----+-----+-----+-----+-----+-----+-----+-----+
    | ICF | RSV | GCT | DNA | DA1 | DA2 | SNA | SA1 | SA2 | SID |
    +-----+-----+-----+-----+-----+-----+-----+-----+-----+-----+

followed by a 2-byte command code (MRC/SRC) and its parameters. Responses
repeat the header and command code, then a 2-byte end-code and any data.

FINS/TCP wraps every frame in a 16-byte envelope::

    +--------+----------+----------+------------+---------------+
    | "FINS" |  length  | command  | error code | FINS frame... |
    | 4 bytes| 4 bytes  | 4 bytes  |  4 bytes   |               |
    +--------+----------+----------+------------+---------------+

where length counts every byte after the length field. All multi-byte
integers are big-endian.
"""

import struct
from typing import Any, Iterable

from .bits import word_span
from .end_codes import describe_end_code, describe_tcp_error
from .errors import HandshakeFailedError, HeaderError, InvalidModeError, InvalidPayloadError, ProtocolError
from .types import HandshakeResult, MemoryArea, ParsedAddress, RunMode

TCP_MAGIC = b"FINS"
TCP_ENVELOPE_SIZE = 16
TCP_CMD_NODE_ADDRESS = 0x00000000
TCP_CMD_SEND_FRAME = 0x00000002

FINS_HEADER_SIZE = 10
UDP_END_CODE_OFFSET = 12
UDP_DATA_OFFSET = 14
TCP_END_CODE_OFFSET = TCP_ENVELOPE_SIZE + UDP_END_CODE_OFFSET  # 28
TCP_DATA_OFFSET = TCP_ENVELOPE_SIZE + UDP_DATA_OFFSET  # 30
HANDSHAKE_RESPONSE_SIZE = 24
DEFAULT_DESTINATION_NODE = 0x01

CMD_MEMORY_AREA_READ = 0x0101
CMD_MEMORY_AREA_WRITE = 0x0102
CMD_RUN = 0x0401
CMD_STOP = 0x0402
CMD_ACCESS_RIGHT_FORCED_ACQUIRE = 0x0C01

PROGRAM_NUMBER_CURRENT = 0xFFFF
ACCESS_RIGHT_CLEAR_CODE = 0xFFFFFFFF

_MODE_BYTES: dict[RunMode, int] = {
    RunMode.RUN: 0x04,
    RunMode.MONITOR: 0x02,
}


# ---------------------------------------------------------------------------
# Headers and envelopes
# ---------------------------------------------------------------------------


def build_fins_header(dna: int, da1: int, sna: int, sa1: int, *, da2: int = 0, sa2: int = 0, sid: int = 0) -> bytes:
    """Build the 10-byte FINS command header (ICF=0x80 command, response required; GCT=0x02)."""
    return bytes([0x80, 0x00, 0x02, dna, da1, da2, sna, sa1, sa2, sid])


def build_tcp_envelope(command: int, payload: bytes = b"", error_code: int = 0) -> bytes:
    """Prefix ``payload`` with the 16-byte FINS/TCP envelope."""
    return TCP_MAGIC + struct.pack(">III", 8 + len(payload), command, error_code) + payload


def destination_node(da2: int) -> int:
    """Destination node byte; an unset (0) node addresses node 1."""
    return da2 or DEFAULT_DESTINATION_NODE


def encode_udp_frame(body: bytes, da1: int = 0, da2: int = 0, sa1: int = 0, sa2: int = 0) -> bytes:
    """FINS/UDP datagram: header + service body. DA1/DA2/SA1/SA2 are the configured node bytes."""
    return build_fins_header(dna=da1, da1=destination_node(da2), sna=sa1, sa1=sa2) + body


def encode_tcp_frame(body: bytes, client_node: int, da1: int = 0, da2: int = 0, sa1: int = 0) -> bytes:
    """FINS/TCP send-frame message; the handshake-assigned client node is the source node."""
    header = build_fins_header(dna=da1, da1=destination_node(da2), sna=sa1, sa1=client_node & 0xFF)
    return build_tcp_envelope(TCP_CMD_SEND_FRAME, header + body)


def build_handshake(client_node: int = 0) -> bytes:
    """FINS/TCP node address request; client node 0 asks the PLC to assign one."""
    return build_tcp_envelope(TCP_CMD_NODE_ADDRESS, struct.pack(">I", client_node))


# ---------------------------------------------------------------------------
# Service bodies
# ---------------------------------------------------------------------------


def _area_prefix(command: int, area: MemoryArea | str, address: ParsedAddress) -> bytes:
    # Bit offset is always 0; bit access is done on whole words.
    return struct.pack(">HBHB", command, MemoryArea.parse(area).code, address.word_address, 0x00)


def read_word_count(address: ParsedAddress, count: int) -> int:
    """Words to request: ``count`` words, or the span of ``count`` bits for a bit address."""
    if address.is_bit_address:
        return word_span(address.bit_position, count)
    return count


def build_read_body(area: MemoryArea | str, address: ParsedAddress, count: int = 1) -> bytes:
    """Memory area read (0101)."""
    words = read_word_count(address, count)
    if not 1 <= words <= 0xFFFF:
        raise InvalidPayloadError(f"Read count out of range: {count}")
    return _area_prefix(CMD_MEMORY_AREA_READ, area, address) + struct.pack(">H", words)


def encode_words(values: Any) -> list[int]:
    """Normalize a write payload (int or sequence of ints) to unsigned 16-bit words."""
    if values is None:
        raise InvalidPayloadError("Write payload is required")
    items: Iterable[Any] = values if isinstance(values, (list, tuple)) else [values]
    words: list[int] = []
    for value in items:
        if isinstance(value, bool):
            value = int(value)
        try:
            num = int(value)
        except (TypeError, ValueError):
            raise InvalidPayloadError(f"Cannot write non-integer value: {value!r}") from None
        if not -0x8000 <= num <= 0xFFFF:
            raise InvalidPayloadError(f"Value out of 16-bit range: {num}")
        words.append(num & 0xFFFF)
    if not words:
        raise InvalidPayloadError("Write payload is empty")
    return words


def build_write_body(area: MemoryArea | str, address: ParsedAddress, values: Any) -> bytes:
    """Memory area write (0102): item count followed by each value as a word."""
    words = encode_words(values)
    return (
        _area_prefix(CMD_MEMORY_AREA_WRITE, area, address)
        + struct.pack(">H", len(words))
        + struct.pack(f">{len(words)}H", *words)
    )


def parse_mode(mode: RunMode | str) -> RunMode:
    if isinstance(mode, RunMode):
        return mode
    try:
        return RunMode(str(mode).strip().upper())
    except ValueError:
        raise InvalidModeError(str(mode)) from None


def build_mode_body(mode: RunMode | str) -> bytes:
    """RUN/MONITOR (0401 + program number + mode byte) or STOP (0402)."""
    run_mode = parse_mode(mode)
    if run_mode == RunMode.STOP:
        return struct.pack(">H", CMD_STOP)
    return struct.pack(">HHB", CMD_RUN, PROGRAM_NUMBER_CURRENT, _MODE_BYTES[run_mode])


def build_access_right_body() -> bytes:
    """Access right forced acquire (0C01) with the all-ones clear code."""
    return struct.pack(">HI", CMD_ACCESS_RIGHT_FORCED_ACQUIRE, ACCESS_RIGHT_CLEAR_CODE)


def body_command_code(body: bytes) -> int:
    return struct.unpack_from(">H", body, 0)[0]


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


def _check_end_code(end_code: int) -> None:
    if end_code != 0:
        raise ProtocolError(
            f"FINS error code: 0x{end_code:04X} - {describe_end_code(end_code)}",
            end_code=end_code,
        )


def parse_handshake_response(data: bytes) -> HandshakeResult:
    """Validate the 24-byte node address response and return the assigned nodes."""
    if len(data) < HANDSHAKE_RESPONSE_SIZE:
        raise HandshakeFailedError(f"Handshake failed: invalid response length: {len(data)}")
    if data[:4] != TCP_MAGIC:
        raise HandshakeFailedError(f"Handshake failed: invalid header: {data[:4]!r}")
    (error_code,) = struct.unpack_from(">I", data, 12)
    if error_code != 0:
        raise HandshakeFailedError(
            f"Handshake failed: error code 0x{error_code:08X} - {describe_tcp_error(error_code)}"
        )
    client_node, server_node = struct.unpack_from(">II", data, 16)
    return HandshakeResult(client_node=client_node, server_node=server_node)


def check_tcp_envelope(data: bytes) -> tuple[int, int]:
    """Validate tag and error code of a FINS/TCP message; return (length, command)."""
    if len(data) < TCP_ENVELOPE_SIZE:
        raise HeaderError(f"Invalid response length (too short for header): {len(data)}")
    if data[:4] != TCP_MAGIC:
        raise HeaderError(f"Invalid FINS header: {data[:4]!r}")
    length, command, error_code = struct.unpack_from(">III", data, 4)
    if error_code != 0:
        raise HeaderError(
            f"FINS/TCP header error code: 0x{error_code:08X} - {describe_tcp_error(error_code)}",
            error_code=error_code,
        )
    return length, command


def parse_tcp_response(data: bytes) -> bytes | None:
    """
    Parse a FINS/TCP command response and return its data, or None.

    Any response long enough to carry an end-code has it checked. Shorter
    frames are acknowledgements without payload.
    """
    check_tcp_envelope(data)
    if len(data) < TCP_DATA_OFFSET:
        return None
    (end_code,) = struct.unpack_from(">H", data, TCP_END_CODE_OFFSET)
    _check_end_code(end_code)
    return data[TCP_DATA_OFFSET:] or None


def parse_udp_response(data: bytes) -> bytes | None:
    """Parse a FINS/UDP response datagram and return its data, or None."""
    if len(data) < UDP_DATA_OFFSET:
        raise ProtocolError(f"Invalid FINS response: too short ({len(data)} bytes)")
    (end_code,) = struct.unpack_from(">H", data, UDP_END_CODE_OFFSET)
    _check_end_code(end_code)
    return data[UDP_DATA_OFFSET:] or None


def response_command_code(frame: bytes) -> int | None:
    """MRC/SRC of a FINS response frame (no TCP envelope), or None if too short."""
    if len(frame) < FINS_HEADER_SIZE + 2:
        return None
    return struct.unpack_from(">H", frame, FINS_HEADER_SIZE)[0]
