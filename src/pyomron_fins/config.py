"""Connection parameters for FINS/TCP and FINS/UDP, with JSON file loading."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import MissingConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 9600
DEFAULT_TCP_TIMEOUT_MS = 5000
DEFAULT_UDP_TIMEOUT_MS = 1000
DEFAULT_UDP_RETRIES = 3


def _check_byte(name: str, value: int) -> None:
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{name} must be 0..255, got {value}")


@dataclass(frozen=True)
class TcpConfig:
    """FINS/TCP connection. DA1/DA2 are destination network/node, SA1 the source network."""

    host: str
    port: int = DEFAULT_PORT
    da1: int = 0
    da2: int = 0
    sa1: int = 0
    sa2: int = 0
    timeout_ms: int = DEFAULT_TCP_TIMEOUT_MS

    def __post_init__(self) -> None:
        if not self.host:
            raise MissingConfigurationError("Missing FINS configuration: host is required")
        if not 0 < self.port <= 0xFFFF:
            raise ValueError(f"port must be 1..65535, got {self.port}")
        for name in ("da1", "da2", "sa1", "sa2"):
            _check_byte(name, getattr(self, name))
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be > 0, got {self.timeout_ms}")

    @property
    def timeout(self) -> float:
        return self.timeout_ms / 1000.0


@dataclass(frozen=True)
class UdpConfig(TcpConfig):
    """FINS/UDP connection; adds per-attempt retries and an optional local bind port."""

    timeout_ms: int = DEFAULT_UDP_TIMEOUT_MS
    retries: int = DEFAULT_UDP_RETRIES
    local_port: int = 0  # 0 = auto-assign

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.retries < 1:
            raise ValueError(f"retries must be >= 1, got {self.retries}")
        if not 0 <= self.local_port <= 0xFFFF:
            raise ValueError(f"local_port must be 0..65535, got {self.local_port}")


ConnectionConfig = TcpConfig | UdpConfig

# Keys accepted in config files besides the field names themselves.
_ALIASES: dict[str, str] = {
    "DA1": "da1",
    "DA2": "da2",
    "SA1": "sa1",
    "SA2": "sa2",
    "timeout": "timeout_ms",
    "timeoutMs": "timeout_ms",
    "localPort": "local_port",
}


def config_from_dict(raw: dict[str, Any]) -> ConnectionConfig:
    """Build TcpConfig or UdpConfig from a mapping with a ``transport`` key (default tcp)."""
    transport = str(raw.get("transport", "tcp")).lower()
    if transport not in ("tcp", "udp"):
        raise ValueError(f"Unknown transport: {transport!r}")
    cls = UdpConfig if transport == "udp" else TcpConfig
    allowed = set(cls.__dataclass_fields__)

    kwargs: dict[str, Any] = {}
    for key, value in raw.items():
        name = _ALIASES.get(key, key)
        if name == "transport" or value is None:
            continue
        if name not in allowed:
            logger.debug("Ignoring unknown config key %r for %s", key, transport)
            continue
        kwargs[name] = value if name == "host" else int(value)

    if not kwargs.get("host"):
        raise MissingConfigurationError("Missing FINS configuration: host is required")
    return cls(**kwargs)


def load_config(path: Path | str) -> ConnectionConfig:
    """Load connection parameters from a JSON file."""
    p = Path(path)
    try:
        with p.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise MissingConfigurationError(f"Config file not found: {p}") from None
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a JSON object: {p}")
    cfg = config_from_dict(data)
    logger.debug("Loaded %s config from %s", type(cfg).__name__, p)
    return cfg
