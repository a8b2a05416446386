"""FINS/TCP session: connect, node address handshake, optional access right, command sequence."""

import logging
import socket
import struct
import time
from typing import Any

from .config import TcpConfig
from .errors import FinsConnectionError, FinsError, FinsTimeoutError, HandshakeFailedError, HeaderError
from .frames import (
    TCP_MAGIC,
    build_handshake,
    encode_tcp_frame,
    parse_handshake_response,
    parse_tcp_response,
)
from .session import Command, CommandKind, CommandQueue, Completed, Phase, SessionState
from .status import StatusLevel, StatusReporter
from .types import Operation, Request

logger = logging.getLogger(__name__)

# Largest FINS/TCP message length field accepted from the PLC.
MAX_MESSAGE_LENGTH = 0xFFFF


class TcpSession:
    """
    Runs one Request over a fresh FINS/TCP connection.

    A single deadline, armed when connecting, covers the whole operation;
    expiry in any state raises FinsTimeoutError (no retries). The socket is
    closed on every exit path.
    """

    def __init__(
        self,
        config: TcpConfig,
        status: StatusReporter | None = None,
        idle_delay: float = 1.0,
    ) -> None:
        self._config = config
        self._status = status or StatusReporter()
        self._idle_delay = idle_delay
        self.state = SessionState()

    def run(self, request: Request) -> Any:
        """Execute ``request`` and return the formatted value (or list of ResultRecord)."""
        cfg = self._config
        state = self.state = SessionState()
        queue = CommandQueue(request, state, self._status)
        sock: socket.socket | None = None

        try:
            # Build the first command before any I/O so bad addresses fail fast.
            command = queue.start()
            deadline = time.monotonic() + cfg.timeout

            state.phase = Phase.CONNECTING
            self._status(StatusLevel.PROGRESS, "connecting")
            sock = self._connect(deadline)

            state.phase = Phase.HANDSHAKING
            self._status(StatusLevel.PROGRESS, "handshake")
            self._send(sock, build_handshake(), deadline)
            handshake = parse_handshake_response(self._recv_message(sock, deadline, HandshakeFailedError))
            state.client_node = handshake.client_node
            state.handshake_complete = True
            logger.debug(
                "Handshake with %s:%d: client node %d, server node %d",
                cfg.host,
                cfg.port,
                handshake.client_node,
                handshake.server_node,
            )

            if request.operation == Operation.MODE:
                state.phase = Phase.ACQUIRING_ACCESS_RIGHTS
                self._status(StatusLevel.PROGRESS, "access rights")
            else:
                state.phase = Phase.AWAITING_RESPONSE
                self._status(StatusLevel.PROGRESS, "sending command")

            while True:
                frame = encode_tcp_frame(command.body, state.client_node, cfg.da1, cfg.da2, cfg.sa1)
                logger.debug("Sending %s, length: %d", command.label, len(frame))
                self._send(sock, frame, deadline)
                data = self._recv_message(sock, deadline)
                outcome = queue.on_response(command, self._parse(command, data))
                if isinstance(outcome, Completed):
                    break
                command = outcome
        except FinsError as e:
            state.phase = Phase.FAILED
            queue.annotate(e)
            logger.warning("FINS/TCP %s failed: %s", request.operation.value, e)
            self._status(StatusLevel.ERROR, "timeout" if isinstance(e, FinsTimeoutError) else "error")
            raise
        finally:
            if sock is not None:
                self._close(sock)

        state.phase = Phase.COMPLETED
        self._status(StatusLevel.SUCCESS, "success")
        self._status.clear_after(self._idle_delay)
        return outcome.value

    @staticmethod
    def _parse(command: Command, data: bytes) -> bytes | None:
        if command.kind == CommandKind.ACCESS_RIGHT:
            # Only the tag is checked (in _recv_message); the mode command result follows.
            return None
        return parse_tcp_response(data)

    # -- socket helpers ------------------------------------------------------

    def _connect(self, deadline: float) -> socket.socket:
        cfg = self._config
        try:
            return socket.create_connection((cfg.host, cfg.port), timeout=self._remaining(deadline))
        except TimeoutError as e:
            raise FinsTimeoutError("Connection timeout", cause=e) from e
        except OSError as e:
            raise FinsConnectionError(f"Connection error: {e}", cause=e) from e

    def _send(self, sock: socket.socket, frame: bytes, deadline: float) -> None:
        logger.debug("TX %s", frame.hex())
        try:
            sock.settimeout(self._remaining(deadline))
            sock.sendall(frame)
        except TimeoutError as e:
            raise FinsTimeoutError("Connection timeout", cause=e) from e
        except OSError as e:
            raise FinsConnectionError(f"Error sending frame: {e}", cause=e) from e

    def _recv_message(
        self, sock: socket.socket, deadline: float, error_cls: type[FinsError] = HeaderError
    ) -> bytes:
        """
        Read one FINS/TCP message, reassembling it from as many chunks as the stream delivers.

        A message not starting with the "FINS" tag raises ``error_cls`` with the bytes received.
        """
        head = self._recv_exact(sock, 8, deadline)
        if head[:4] != TCP_MAGIC:
            logger.debug("RX %s", head.hex())
            raise error_cls(f"Invalid FINS header: {head.hex()}")
        (length,) = struct.unpack(">I", head[4:8])
        if length > MAX_MESSAGE_LENGTH:
            raise HeaderError(f"FINS/TCP length field too large: {length}")
        data = head + self._recv_exact(sock, length, deadline)
        logger.debug("RX %s", data.hex())
        return data

    def _recv_exact(self, sock: socket.socket, size: int, deadline: float) -> bytes:
        buf = bytearray()
        while len(buf) < size:
            try:
                sock.settimeout(self._remaining(deadline))
                chunk = sock.recv(size - len(buf))
            except TimeoutError as e:
                raise FinsTimeoutError("Connection timeout", cause=e) from e
            except OSError as e:
                raise FinsConnectionError(f"Connection error: {e}", cause=e) from e
            if not chunk:
                raise FinsConnectionError("Connection closed by peer")
            buf.extend(chunk)
        return bytes(buf)

    @staticmethod
    def _remaining(deadline: float) -> float:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise FinsTimeoutError("Connection timeout")
        return remaining

    @staticmethod
    def _close(sock: socket.socket) -> None:
        try:
            sock.close()
        except OSError as e:
            logger.warning("Error closing FINS/TCP socket: %s", e)
