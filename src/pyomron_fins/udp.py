"""FINS/UDP session: self-contained datagrams with a per-attempt timeout and bounded retries."""

import logging
import socket
import time
from typing import Any

from .config import UdpConfig
from .errors import FinsConnectionError, FinsError, FinsTimeoutError, InvalidOperationError
from .frames import body_command_code, encode_udp_frame, parse_udp_response, response_command_code
from .session import Command, CommandQueue, Completed, Phase, SessionState
from .status import StatusLevel, StatusReporter
from .types import Operation, Request

logger = logging.getLogger(__name__)

RECV_BUFFER_SIZE = 4096


class UdpSession:
    """
    Runs one Request over its own UDP socket.

    Every command (including bit write-backs and each multi-read step) gets a
    fresh timeout/retry cycle: on timeout the same datagram is resent until
    ``retries`` attempts have been made, then FinsTimeoutError is raised.
    """

    def __init__(self, config: UdpConfig, status: StatusReporter | None = None) -> None:
        self._config = config
        self._status = status or StatusReporter()
        self._peer: tuple[str, int] | None = None
        self.state = SessionState()

    def run(self, request: Request) -> Any:
        """Execute ``request`` and return the formatted value (or list of ResultRecord)."""
        state = self.state = SessionState(phase=Phase.SENDING)
        queue = CommandQueue(request, state, self._status)
        sock: socket.socket | None = None

        try:
            if request.operation == Operation.MODE:
                raise InvalidOperationError("Mode change is only supported over FINS/TCP", operation="mode")
            command = queue.start()
            sock = self._open()
            while True:
                payload = self._exchange(sock, command)
                outcome = queue.on_response(command, payload)
                if isinstance(outcome, Completed):
                    break
                command = outcome
        except FinsError as e:
            state.phase = Phase.FAILED
            queue.annotate(e)
            logger.warning("FINS/UDP %s failed: %s", request.operation.value, e)
            self._status(StatusLevel.ERROR, "timeout" if isinstance(e, FinsTimeoutError) else "error")
            raise
        finally:
            if sock is not None:
                sock.close()

        state.phase = Phase.COMPLETED
        self._status(StatusLevel.SUCCESS, "success")
        return outcome.value

    def _open(self) -> socket.socket:
        cfg = self._config
        try:
            self._peer = (socket.gethostbyname(cfg.host), cfg.port)
        except OSError as e:
            raise FinsConnectionError(f"Cannot resolve {cfg.host}: {e}", cause=e) from e
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        except OSError as e:
            raise FinsConnectionError(f"UDP socket error: {e}", cause=e) from e
        if cfg.local_port:
            try:
                sock.bind(("", cfg.local_port))
            except OSError as e:
                sock.close()
                raise FinsConnectionError(f"Cannot bind local port {cfg.local_port}: {e}", cause=e) from e
        return sock

    def _exchange(self, sock: socket.socket, command: Command) -> bytes | None:
        """Send ``command`` until a response arrives or the retries are used up."""
        cfg = self._config
        state = self.state
        frame = encode_udp_frame(command.body, cfg.da1, cfg.da2, cfg.sa1, cfg.sa2)
        expected = body_command_code(command.body)
        state.retry_count = 0
        self._drain(sock)

        while True:
            self._status(StatusLevel.PROGRESS, "sending")
            self._send(sock, frame)
            state.phase = Phase.AWAITING_RESPONSE
            data = self._await_response(sock, expected)
            if data is not None:
                return parse_udp_response(data)

            state.retry_count += 1
            if state.retry_count >= cfg.retries:
                raise FinsTimeoutError(
                    f"UDP timeout after {state.retry_count} retries",
                    attempts=state.retry_count,
                )
            state.phase = Phase.RETRYING
            logger.info("No response to %s within %d ms, retry %d", command.label, cfg.timeout_ms, state.retry_count)
            self._status(StatusLevel.WARNING, f"retry {state.retry_count}")

    def _send(self, sock: socket.socket, frame: bytes) -> None:
        cfg = self._config
        logger.debug("TX %s", frame.hex())
        try:
            sock.sendto(frame, (cfg.host, cfg.port))
        except OSError as e:
            raise FinsConnectionError(f"Error sending UDP packet: {e}", cause=e) from e

    def _await_response(self, sock: socket.socket, expected: int) -> bytes | None:
        """Wait up to one timeout for a reply to ``expected``; None when the attempt times out."""
        deadline = time.monotonic() + self._config.timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            try:
                sock.settimeout(remaining)
                data, peer = sock.recvfrom(RECV_BUFFER_SIZE)
            except TimeoutError:
                return None
            except OSError as e:
                raise FinsConnectionError(f"UDP socket error: {e}", cause=e) from e
            logger.debug("RX %s from %s", data.hex(), peer)
            if self._peer is not None and tuple(peer[:2]) != self._peer:
                logger.debug("Ignoring datagram from %s, expected %s", peer, self._peer)
                continue
            code = response_command_code(data)
            if code is not None and code != expected:
                logger.debug("Ignoring response to command 0x%04X while waiting for 0x%04X", code, expected)
                continue
            return data

    def _drain(self, sock: socket.socket) -> None:
        """Discard datagrams already queued (late replies to earlier attempts) before a new command."""
        sock.setblocking(False)
        try:
            while True:
                try:
                    data, peer = sock.recvfrom(RECV_BUFFER_SIZE)
                except BlockingIOError:
                    return
                except OSError as e:
                    raise FinsConnectionError(f"UDP socket error: {e}", cause=e) from e
                logger.debug("Discarding stale datagram %s from %s", data.hex(), peer)
        finally:
            sock.setblocking(True)
