"""Tests for the transport-independent command queue and status reporter."""

import threading
from unittest.mock import MagicMock

import pytest

from pyomron_fins.errors import InvalidPayloadError, ProtocolError
from pyomron_fins.session import Command, CommandKind, CommandQueue, Completed, Phase, SessionState
from pyomron_fins.status import StatusLevel, StatusReporter
from pyomron_fins.types import AddressItem, MemoryArea, Operation, Request, RunMode


def queue_for(request: Request) -> CommandQueue:
    return CommandQueue(request, SessionState())


def test_single_read() -> None:
    queue = queue_for(Request(Operation.READ, "100", count=2))
    command = queue.start()
    assert command.kind == CommandKind.READ
    assert command.body == bytes.fromhex("0101 82 0064 00 0002")

    outcome = queue.on_response(command, b"\x00\x01\xff\xff")
    assert outcome == Completed([1, -1])


def test_mode_sequence() -> None:
    queue = queue_for(Request(Operation.MODE, mode=RunMode.RUN))
    first = queue.start()
    assert first.kind == CommandKind.ACCESS_RIGHT

    second = queue.on_response(first, None)
    assert isinstance(second, Command)
    assert second.kind == CommandKind.MODE
    assert second.body == bytes.fromhex("0401 FFFF 04")
    assert queue.state.access_right_acquired

    assert queue.on_response(second, None) == Completed(None)


def test_bit_write_sequence() -> None:
    queue = queue_for(Request(Operation.WRITE, "10.14", data_type=MemoryArea.WR, payload=[1, 1, 0]))
    first = queue.start()
    assert first.kind == CommandKind.BIT_READ
    # bits 14..16 span two words
    assert first.body == bytes.fromhex("0101 B1 000A 00 0002")

    second = queue.on_response(first, bytes.fromhex("0000 FFFF"))
    assert second.kind == CommandKind.WRITE
    assert second.body == bytes.fromhex("0102 B1 000A 00 0002 C000 FFFE")
    assert queue.state.phase == Phase.AWAITING_BIT_WRITEBACK
    assert queue.state.staged_bits is None


def test_bit_write_empty_read_fails() -> None:
    queue = queue_for(Request(Operation.WRITE, "10.01", payload=True))
    first = queue.start()
    with pytest.raises(ProtocolError):
        queue.on_response(first, None)


def test_write_without_payload() -> None:
    with pytest.raises(InvalidPayloadError):
        queue_for(Request(Operation.WRITE, "10")).start()


def test_multi_read_accumulates_in_order() -> None:
    items = (AddressItem("1"), AddressItem("2", data_type=MemoryArea.HR, count=2))
    status = MagicMock()
    queue = CommandQueue(Request(Operation.READ, items), SessionState(), StatusReporter(status))

    first = queue.start()
    second = queue.on_response(first, b"\x00\x05")
    assert second.body == bytes.fromhex("0101 B2 0002 00 0002")
    assert queue.state.phase == Phase.MULTI_READ_NEXT
    status.assert_called_once_with(StatusLevel.PROGRESS, "reading 2/2")

    done = queue.on_response(second, b"\x00\x06\x00\x07")
    assert isinstance(done, Completed)
    assert [(r.address, r.data_type, r.value) for r in done.value] == [
        ("1", MemoryArea.DM, [5]),
        ("2", MemoryArea.HR, [6, 7]),
    ]


def test_annotate_uses_current_item() -> None:
    items = (AddressItem("1"), AddressItem("2"))
    queue = queue_for(Request(Operation.READ, items))
    queue.on_response(queue.start(), b"\x00\x00")
    error = queue.annotate(ProtocolError("bad"))
    assert error.address == "2"
    assert error.operation == "read"


class TestStatusReporter:
    def test_without_callback(self) -> None:
        reporter = StatusReporter()
        reporter(StatusLevel.PROGRESS, "connecting")
        assert reporter.clear_after(0.1) is None

    def test_clear_after_zero_is_immediate(self) -> None:
        callback = MagicMock()
        StatusReporter(callback).clear_after(0)
        callback.assert_called_once_with(StatusLevel.IDLE, "")

    def test_clear_after_delay(self) -> None:
        done = threading.Event()
        seen: list = []

        def callback(level: StatusLevel, text: str) -> None:
            seen.append((level, text))
            done.set()

        timer = StatusReporter(callback).clear_after(0.01)
        assert timer is not None
        assert done.wait(2.0)
        assert seen == [(StatusLevel.IDLE, "")]

    def test_callback_error_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        reporter = StatusReporter(MagicMock(side_effect=RuntimeError("gone")))
        reporter(StatusLevel.ERROR, "error")
        assert "Status callback failed" in caplog.text
