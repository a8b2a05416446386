"""
Transport-independent operation interpreter shared by the TCP and UDP sessions.

An operation is a small command queue: the session sends ``CommandQueue.start()``,
passes each response payload to ``CommandQueue.on_response()`` and gets back
either the next ``Command`` to send or a ``Completed`` result. Bit writes
(read, modify, write back) and multi-address reads are both expressed as a
handler that enqueues a follow-up command.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .address import parse_address
from .bits import modify_bits, word_span
from .errors import FinsError, InvalidOperationError, InvalidPayloadError, ProtocolError
from .formatting import format_data
from .frames import build_access_right_body, build_mode_body, build_read_body, build_write_body, parse_mode
from .status import StatusLevel, StatusReporter
from .types import AddressItem, DataFormat, MemoryArea, Operation, ParsedAddress, Request, ResultRecord

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    CONNECTING = "connecting"
    HANDSHAKING = "handshaking"
    ACQUIRING_ACCESS_RIGHTS = "acquiring_access_rights"
    SENDING = "sending"
    AWAITING_RESPONSE = "awaiting_response"
    RETRYING = "retrying"
    AWAITING_BIT_WRITEBACK = "awaiting_bit_writeback"
    MULTI_READ_NEXT = "multi_read_next"
    COMPLETED = "completed"
    FAILED = "failed"


class CommandKind(str, Enum):
    READ = "read"
    WRITE = "write"
    BIT_READ = "bit_read"  # preliminary read of a bit write
    ACCESS_RIGHT = "access_right"
    MODE = "mode"


@dataclass(frozen=True)
class Command:
    """One FINS service body to send, with what its response means."""

    kind: CommandKind
    body: bytes
    label: str = ""


@dataclass(frozen=True)
class Completed:
    """Terminal result of an operation."""

    value: Any


@dataclass
class SessionState:
    """Per-operation mutable state; owned by exactly one session."""

    phase: Phase = Phase.CONNECTING
    handshake_complete: bool = False
    access_right_acquired: bool = False
    client_node: int | None = None
    index: int = 0
    results: list[ResultRecord] = field(default_factory=list)
    current_address: ParsedAddress | None = None
    current_bit_count: int = 1
    staged_bits: list[Any] | None = None
    retry_count: int = 0


def _item_values(request: Request, item: AddressItem) -> tuple[str, int, MemoryArea, DataFormat]:
    return (
        item.address,
        item.count if item.count else request.count,
        item.data_type or request.data_type,
        item.data_format or request.data_format,
    )


class CommandQueue:
    """Drives one Request through its command sequence."""

    def __init__(self, request: Request, state: SessionState, status: StatusReporter | None = None) -> None:
        self.request = request
        self.state = state
        self._status = status or StatusReporter()

    @property
    def address_label(self) -> str | None:
        if isinstance(self.request.address, tuple):
            items = self.request.address
            if self.state.index < len(items):
                return items[self.state.index].address
            return None
        return self.request.address or None

    # -- command construction ------------------------------------------------

    def start(self) -> Command:
        """First command of the operation (after any transport handshake)."""
        op = self.request.operation
        if op == Operation.MODE:
            parse_mode(self.request.mode or "")
            return Command(CommandKind.ACCESS_RIGHT, build_access_right_body(), "access right")
        if op == Operation.READ:
            if self.request.is_multi_read:
                if not self.request.address:
                    raise InvalidOperationError("Address list is empty", operation=op.value)
                return self._read_item(0)
            return self._read(self.request.address, self.request.count, self.request.data_type)
        if op == Operation.WRITE:
            return self._write_start()
        raise InvalidOperationError(f"Invalid operation: {op}", operation=str(op))

    def _read(self, address: str, count: int, area: MemoryArea) -> Command:
        parsed = parse_address(address)
        self.state.current_address = parsed
        self.state.current_bit_count = count
        return Command(CommandKind.READ, build_read_body(area, parsed, count), f"read {area.value}{address}")

    def _read_item(self, index: int) -> Command:
        self.state.index = index
        item = self.request.address[index]
        address, count, area, _fmt = _item_values(self.request, item)
        return self._read(address, count, area)

    def _write_start(self) -> Command:
        request = self.request
        if isinstance(request.address, tuple):
            raise InvalidOperationError("Write takes a single address", operation="write")
        parsed = parse_address(request.address)
        self.state.current_address = parsed
        if request.payload is None:
            raise InvalidPayloadError("Write payload is required", address=request.address, operation="write")

        if not parsed.is_bit_address:
            body = build_write_body(request.data_type, parsed, request.payload)
            return Command(CommandKind.WRITE, body, f"write {request.data_type.value}{request.address}")

        values = list(request.payload) if isinstance(request.payload, (list, tuple)) else [request.payload]
        if not values:
            raise InvalidPayloadError("Write payload is empty", address=request.address, operation="write")
        self.state.staged_bits = values
        self.state.current_bit_count = len(values)
        words = word_span(parsed.bit_position, len(values))
        # Read the span first; the real write follows in on_response.
        body = build_read_body(request.data_type, parsed, len(values))
        logger.debug("Bit write %s: reading %d word(s) first", request.address, words)
        return Command(CommandKind.BIT_READ, body, f"read {request.data_type.value}{request.address} for bit write")

    # -- response handling ---------------------------------------------------

    def on_response(self, command: Command, payload: bytes | None) -> Command | Completed:
        """Handle the response to ``command``; return the next command or the final result."""
        if command.kind == CommandKind.ACCESS_RIGHT:
            self.state.access_right_acquired = True
            self._status(StatusLevel.PROGRESS, "sending command")
            return Command(CommandKind.MODE, build_mode_body(self.request.mode or ""), f"mode {self.request.mode}")

        if command.kind == CommandKind.BIT_READ:
            return self._bit_writeback(payload)

        if command.kind in (CommandKind.MODE, CommandKind.WRITE):
            return Completed(format_data(payload, self.request.data_format, self.state.current_address))

        if self.request.is_multi_read:
            return self._multi_read_step(payload)

        return Completed(
            format_data(payload, self.request.data_format, self.state.current_address, self.state.current_bit_count)
        )

    def _bit_writeback(self, payload: bytes | None) -> Command:
        parsed = self.state.current_address
        values = self.state.staged_bits or []
        if not payload:
            raise ProtocolError(
                "Empty response to bit-write read", address=str(self.request.address), operation="write"
            )
        words = modify_bits(payload, parsed.bit_position, values)
        self.state.staged_bits = None
        self.state.phase = Phase.AWAITING_BIT_WRITEBACK
        logger.debug("Bit write %s: writing back %s", self.request.address, [f"0x{w:04X}" for w in words])
        body = build_write_body(self.request.data_type, parsed, words)
        return Command(CommandKind.WRITE, body, f"write {self.request.data_type.value}{self.request.address}")

    def _multi_read_step(self, payload: bytes | None) -> Command | Completed:
        items = self.request.address
        address, _count, area, fmt = _item_values(self.request, items[self.state.index])
        value = format_data(payload, fmt, self.state.current_address, self.state.current_bit_count)
        self.state.results.append(ResultRecord(address=address, data_type=area, value=value))

        next_index = self.state.index + 1
        if next_index < len(items):
            self.state.phase = Phase.MULTI_READ_NEXT
            self._status(StatusLevel.PROGRESS, f"reading {next_index + 1}/{len(items)}")
            return self._read_item(next_index)
        return Completed(list(self.state.results))

    def annotate(self, error: FinsError) -> FinsError:
        """Fill in address/operation context on an error raised during this operation."""
        if error.operation is None:
            error.operation = self.request.operation.value
        if error.address is None:
            error.address = self.address_label
        return error
