"""FinsClient: high-level wrapper running one FINS/TCP or FINS/UDP session per operation."""

import logging
import time
from typing import Any, Iterator, Mapping, Sequence

from .address import parse_address
from .config import ConnectionConfig, UdpConfig
from .errors import MissingConfigurationError
from .frames import build_read_body, encode_tcp_frame, encode_udp_frame, parse_mode, read_word_count
from .request import to_address_item
from .status import StatusCallback, StatusReporter
from .tcp import TcpSession
from .types import DataFormat, ExplainInfo, MemoryArea, Operation, Request, ResultRecord, RunMode
from .udp import UdpSession

logger = logging.getLogger(__name__)


class FinsClient:
    """
    Reads/writes Omron PLC memory areas by address (e.g. DM 100, DM 100.03) over FINS.

    No connection is kept between calls: every operation opens, uses and
    closes its own socket, so one client may be shared by several threads.
    """

    def __init__(
        self,
        config: ConnectionConfig | None,
        on_status: StatusCallback | None = None,
        idle_delay: float = 1.0,
    ) -> None:
        if config is None:
            raise MissingConfigurationError("Missing FINS configuration")
        self._config = config
        self._status = StatusReporter(on_status)
        self._idle_delay = idle_delay

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    @property
    def transport(self) -> str:
        return "udp" if isinstance(self._config, UdpConfig) else "tcp"

    def session(self) -> TcpSession | UdpSession:
        """New session bound to this client's configuration."""
        if isinstance(self._config, UdpConfig):
            return UdpSession(self._config, self._status)
        return TcpSession(self._config, self._status, idle_delay=self._idle_delay)

    def execute(self, request: Request) -> Any:
        """Run a Request to completion; raises a FinsError subclass on failure."""
        logger.debug("%s %s over %s", request.operation.value, request.address or request.mode, self.transport)
        return self.session().run(request)

    def __enter__(self) -> "FinsClient":
        return self

    def __exit__(self, *args: Any) -> None:
        """Nothing to close: each operation opens and closes its own socket."""
        logger.debug("FinsClient for %s:%d released", self._config.host, self._config.port)

    def read(
        self,
        address: str,
        data_type: MemoryArea | str = MemoryArea.DM,
        count: int = 1,
        data_format: DataFormat | str = DataFormat.ARRAY,
    ) -> Any:
        """Read ``count`` words (or bits, for ``word.bit`` addresses) and format them."""
        return self.execute(
            Request(
                operation=Operation.READ,
                address=str(address),
                data_type=MemoryArea.parse(data_type),
                count=count,
                data_format=DataFormat.parse(data_format),
            )
        )

    def write(self, address: str, value: Any, data_type: MemoryArea | str = MemoryArea.DM) -> None:
        """Write words, or bits (read-modify-write) for a ``word.bit`` address."""
        self.execute(
            Request(
                operation=Operation.WRITE,
                address=str(address),
                data_type=MemoryArea.parse(data_type),
                payload=value,
            )
        )

    def set_mode(self, mode: RunMode | str) -> None:
        """Switch the PLC to RUN, MONITOR or STOP (FINS/TCP only)."""
        self.execute(Request(operation=Operation.MODE, mode=parse_mode(mode)))

    def read_many(
        self,
        items: Sequence[str | Mapping[str, Any]],
        data_type: MemoryArea | str = MemoryArea.DM,
        data_format: DataFormat | str = DataFormat.ARRAY,
        count: int = 1,
    ) -> list[ResultRecord]:
        """
        Read several addresses in order, one command each. Items may be plain
        addresses or mappings with their own count/dataType/dataFormat.
        """
        if not items:
            return []
        return self.execute(
            Request(
                operation=Operation.READ,
                address=tuple(to_address_item(i) for i in items),
                data_type=MemoryArea.parse(data_type),
                count=count,
                data_format=DataFormat.parse(data_format),
            )
        )

    def explain(self, address: str, data_type: MemoryArea | str = MemoryArea.DM, count: int = 1) -> dict[str, Any]:
        """Return the area code, word span and encoded read frame for ``address`` without any I/O."""
        area = MemoryArea.parse(data_type)
        parsed = parse_address(address)
        body = build_read_body(area, parsed, count)
        cfg = self._config
        if isinstance(cfg, UdpConfig):
            frame = encode_udp_frame(body, cfg.da1, cfg.da2, cfg.sa1, cfg.sa2)
        else:
            # Client node is assigned by the handshake; shown as 0.
            frame = encode_tcp_frame(body, 0, cfg.da1, cfg.da2, cfg.sa1)
        info = ExplainInfo(
            address=str(address),
            data_type=area,
            area_code=area.code,
            word_address=parsed.word_address,
            bit_position=parsed.bit_position if parsed.is_bit_address else None,
            word_count=read_word_count(parsed, count),
            frame=frame,
        )
        return {
            "address": info.address,
            "data_type": info.data_type.value,
            "area_code": f"0x{info.area_code:02X}",
            "word_address": info.word_address,
            "bit_position": info.bit_position,
            "word_count": info.word_count,
            "transport": self.transport,
            "frame": info.frame.hex(" ").upper(),
        }

    def poll_iter(
        self,
        items: Sequence[str | Mapping[str, Any]],
        interval_s: float,
        data_type: MemoryArea | str = MemoryArea.DM,
        data_format: DataFormat | str = DataFormat.ARRAY,
    ) -> Iterator[list[ResultRecord]]:
        """Yield read_many(items) every interval_s seconds indefinitely."""
        while True:
            yield self.read_many(items, data_type=data_type, data_format=data_format)
            time.sleep(interval_s)
