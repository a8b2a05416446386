"""Tests for the FINS/TCP session (mocked stream socket)."""

import struct
from unittest.mock import patch

import pytest

from pyomron_fins import FinsClient, TcpConfig
from pyomron_fins.errors import (
    FinsConnectionError,
    FinsTimeoutError,
    HandshakeFailedError,
    HeaderError,
    InvalidAddressFormatError,
    ProtocolError,
)
from pyomron_fins.frames import build_handshake, build_tcp_envelope
from pyomron_fins.status import StatusLevel
from pyomron_fins.types import MemoryArea, ResultRecord

RESPONSE_HEADER = bytes([0xC0, 0x00, 0x02, 0x00, 0x21, 0x00, 0x00, 0x01, 0x00, 0x00])


def handshake_ok(client_node: int = 0x21, server_node: int = 0x01) -> bytes:
    return build_tcp_envelope(1, struct.pack(">II", client_node, server_node))


def fins_response(command: int, end_code: int = 0, data: bytes = b"") -> bytes:
    return build_tcp_envelope(2, RESPONSE_HEADER + struct.pack(">HH", command, end_code) + data)


class FakeStreamSocket:
    """Replies to each sendall with the next scripted message, delivered in small chunks."""

    def __init__(self, replies: list[bytes], on_empty: str = "timeout", chunk: int = 5) -> None:
        self.replies = list(replies)
        self.on_empty = on_empty
        self.chunk = chunk
        self.sent: list[bytes] = []
        self.rx = bytearray()
        self.closed = False

    def settimeout(self, timeout: float) -> None:
        assert timeout > 0

    def sendall(self, data: bytes) -> None:
        self.sent.append(bytes(data))
        if self.replies:
            self.rx.extend(self.replies.pop(0))

    def recv(self, size: int) -> bytes:
        if not self.rx:
            if self.on_empty == "close":
                return b""
            raise TimeoutError("timed out")
        n = min(size, self.chunk)
        data = bytes(self.rx[:n])
        del self.rx[:n]
        return data

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def config() -> TcpConfig:
    return TcpConfig(host="192.168.250.1", da2=1, timeout_ms=2000)


def run_client(config: TcpConfig, fake: FakeStreamSocket, statuses: list | None = None) -> FinsClient:
    on_status = (lambda level, text: statuses.append((level, text))) if statuses is not None else None
    return FinsClient(config, on_status=on_status, idle_delay=0)


def test_read_dm100_count_4(config: TcpConfig) -> None:
    fake = FakeStreamSocket([handshake_ok(), fins_response(0x0101, data=bytes.fromhex("0001000200030004"))])
    statuses: list = []
    with patch("pyomron_fins.tcp.socket.create_connection", return_value=fake) as connect:
        value = run_client(config, fake, statuses).read("100", count=4)

    assert value == [1, 2, 3, 4]
    connect.assert_called_once()
    assert connect.call_args[0][0] == ("192.168.250.1", 9600)
    assert fake.sent[0] == build_handshake()
    frame = fake.sent[1]
    # Header: DNA=0, DA1=1 (configured node), SA1=client node from handshake
    assert frame[16:26] == bytes([0x80, 0x00, 0x02, 0x00, 0x01, 0x00, 0x00, 0x21, 0x00, 0x00])
    assert frame[26:] == bytes.fromhex("0101 82 0064 00 0004")
    assert fake.closed
    assert statuses == [
        (StatusLevel.PROGRESS, "connecting"),
        (StatusLevel.PROGRESS, "handshake"),
        (StatusLevel.PROGRESS, "sending command"),
        (StatusLevel.SUCCESS, "success"),
        (StatusLevel.IDLE, ""),
    ]


def test_read_bit(config: TcpConfig) -> None:
    fake = FakeStreamSocket([handshake_ok(), fins_response(0x0101, data=b"\x00\x08")])
    with patch("pyomron_fins.tcp.socket.create_connection", return_value=fake):
        assert run_client(config, fake).read("100.03") is True


def test_bit_write_reads_then_writes_back(config: TcpConfig) -> None:
    fake = FakeStreamSocket(
        [handshake_ok(), fins_response(0x0101, data=b"\x12\x30"), fins_response(0x0102)]
    )
    with patch("pyomron_fins.tcp.socket.create_connection", return_value=fake):
        run_client(config, fake).write("100.03", True)

    assert len(fake.sent) == 3
    assert fake.sent[1][26:] == bytes.fromhex("0101 82 0064 00 0001")
    assert fake.sent[2][26:] == bytes.fromhex("0102 82 0064 00 0001 1238")


def test_word_write(config: TcpConfig) -> None:
    fake = FakeStreamSocket([handshake_ok(), fins_response(0x0102)])
    with patch("pyomron_fins.tcp.socket.create_connection", return_value=fake):
        run_client(config, fake).write("200", [10, -1], data_type="HR")

    assert fake.sent[1][26:] == bytes.fromhex("0102 B2 00C8 00 0002 000A FFFF")


def test_multi_read_in_order_with_overrides(config: TcpConfig) -> None:
    fake = FakeStreamSocket(
        [
            handshake_ok(),
            fins_response(0x0101, data=b"\x00\xc8"),
            fins_response(0x0101, data=b"\x00\x01\x00\x02"),
        ]
    )
    statuses: list = []
    items = ["100", {"address": "200", "count": 2, "dataType": "HR", "dataFormat": "hex"}]
    with patch("pyomron_fins.tcp.socket.create_connection", return_value=fake):
        results = run_client(config, fake, statuses).read_many(items)

    assert results == [
        ResultRecord(address="100", data_type=MemoryArea.DM, value=[200]),
        ResultRecord(address="200", data_type=MemoryArea.HR, value=["0001", "0002"]),
    ]
    assert fake.sent[2][26:] == bytes.fromhex("0101 B2 00C8 00 0002")
    assert (StatusLevel.PROGRESS, "reading 2/2") in statuses


def test_mode_acquires_access_right_first(config: TcpConfig) -> None:
    fake = FakeStreamSocket([handshake_ok(), fins_response(0x0C01), fins_response(0x0402)])
    statuses: list = []
    with patch("pyomron_fins.tcp.socket.create_connection", return_value=fake):
        run_client(config, fake, statuses).set_mode("stop")

    assert fake.sent[1][26:] == bytes.fromhex("0C01 FFFFFFFF")
    assert fake.sent[2][26:] == bytes.fromhex("0402")
    assert (StatusLevel.PROGRESS, "access rights") in statuses


def test_end_code_error_is_annotated(config: TcpConfig) -> None:
    fake = FakeStreamSocket([handshake_ok(), fins_response(0x0101, end_code=0x1103)])
    statuses: list = []
    with patch("pyomron_fins.tcp.socket.create_connection", return_value=fake):
        with pytest.raises(ProtocolError) as exc_info:
            run_client(config, fake, statuses).read("100")

    assert exc_info.value.end_code == 0x1103
    assert exc_info.value.address == "100"
    assert exc_info.value.operation == "read"
    assert statuses[-1] == (StatusLevel.ERROR, "error")
    assert fake.closed


def test_timeout_waiting_for_response(config: TcpConfig) -> None:
    fake = FakeStreamSocket([handshake_ok()])
    statuses: list = []
    with patch("pyomron_fins.tcp.socket.create_connection", return_value=fake):
        with pytest.raises(FinsTimeoutError):
            run_client(config, fake, statuses).read("100")

    assert statuses[-1] == (StatusLevel.ERROR, "timeout")
    assert fake.closed


def test_connection_closed_by_peer(config: TcpConfig) -> None:
    fake = FakeStreamSocket([handshake_ok()], on_empty="close")
    with patch("pyomron_fins.tcp.socket.create_connection", return_value=fake):
        with pytest.raises(FinsConnectionError, match="closed by peer"):
            run_client(config, fake).read("100")
    assert fake.closed


def test_connect_refused(config: TcpConfig) -> None:
    with patch("pyomron_fins.tcp.socket.create_connection", side_effect=ConnectionRefusedError("refused")):
        with pytest.raises(FinsConnectionError, match="refused"):
            FinsClient(config).read("100")


def test_connect_timeout(config: TcpConfig) -> None:
    with patch("pyomron_fins.tcp.socket.create_connection", side_effect=TimeoutError("timed out")):
        with pytest.raises(FinsTimeoutError, match="Connection timeout"):
            FinsClient(config).read("100")


def test_handshake_rejected(config: TcpConfig) -> None:
    rejected = build_tcp_envelope(1, struct.pack(">II", 0, 0), error_code=0x20)
    fake = FakeStreamSocket([rejected])
    with patch("pyomron_fins.tcp.socket.create_connection", return_value=fake):
        with pytest.raises(HandshakeFailedError):
            run_client(config, fake).read("100")
    assert fake.closed


def test_invalid_address_fails_before_connecting(config: TcpConfig) -> None:
    with patch("pyomron_fins.tcp.socket.create_connection") as connect:
        with pytest.raises(InvalidAddressFormatError):
            FinsClient(config).read("abc")
    connect.assert_not_called()


def test_status_callback_errors_do_not_break_session(config: TcpConfig) -> None:
    def broken(level: StatusLevel, text: str) -> None:
        raise RuntimeError("display gone")

    fake = FakeStreamSocket([handshake_ok(), fins_response(0x0101, data=b"\x00\x07")])
    with patch("pyomron_fins.tcp.socket.create_connection", return_value=fake):
        assert FinsClient(config, on_status=broken, idle_delay=0).read("100") == [7]


def test_default_config_addresses_node_1() -> None:
    fake = FakeStreamSocket([handshake_ok(), fins_response(0x0101, data=b"\x00\x00")])
    with patch("pyomron_fins.tcp.socket.create_connection", return_value=fake):
        FinsClient(TcpConfig(host="192.168.250.1"), idle_delay=0).read("100")

    assert fake.sent[1][16:26] == bytes([0x80, 0x00, 0x02, 0x00, 0x01, 0x00, 0x00, 0x21, 0x00, 0x00])


def test_untagged_handshake_reply_reports_bytes(config: TcpConfig) -> None:
    fake = FakeStreamSocket([b"HTTP/1.1 400 Bad Request\r\n\r\n"])
    with patch("pyomron_fins.tcp.socket.create_connection", return_value=fake):
        with pytest.raises(HandshakeFailedError, match=b"HTTP/1.1".hex()):
            run_client(config, fake).read("100")
    assert fake.closed


def test_untagged_response_raises_header_error(config: TcpConfig) -> None:
    fake = FakeStreamSocket([handshake_ok(), b"XXXX\x00\x00\x00\x16" + bytes(22)])
    with patch("pyomron_fins.tcp.socket.create_connection", return_value=fake):
        with pytest.raises(HeaderError, match="5858585800000016"):
            run_client(config, fake).read("100")
    assert len(fake.sent) == 2


def test_client_context_manager_keeps_no_connection(config: TcpConfig) -> None:
    client = FinsClient(config)
    with patch("pyomron_fins.tcp.socket.create_connection") as connect:
        with client as entered:
            assert entered is client
    connect.assert_not_called()
