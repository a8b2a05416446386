"""Core data model: memory areas, formats, operations, parsed addresses, requests and results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class MemoryArea(str, Enum):
    """PLC memory areas addressable by word."""

    CIO = "CIO"
    WR = "WR"
    HR = "HR"
    AR = "AR"
    DM = "DM"
    EM = "EM"

    @property
    def code(self) -> int:
        return _AREA_CODES[self]

    @classmethod
    def parse(cls, value: "str | MemoryArea | None") -> "MemoryArea":
        """Return the area for ``value``; unknown or missing text falls back to DM."""
        if isinstance(value, MemoryArea):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return cls.DM


_AREA_CODES: dict[MemoryArea, int] = {
    MemoryArea.CIO: 0xB0,
    MemoryArea.WR: 0xB1,
    MemoryArea.HR: 0xB2,
    MemoryArea.AR: 0xB3,
    MemoryArea.DM: 0x82,
    MemoryArea.EM: 0xA0,
}


class DataFormat(str, Enum):
    """Output representations for word data read from the PLC."""

    ARRAY = "array"
    UNSIGNED = "unsigned"
    INT32 = "int32"
    FLOAT32 = "float32"
    BINARY = "binary"
    HEX = "hex"
    ASCII = "ascii"
    BUFFER = "buffer"
    BITS = "bits"

    @classmethod
    def parse(cls, value: "str | DataFormat | None") -> "DataFormat":
        """Return the format for ``value``; unknown or missing text falls back to array."""
        if isinstance(value, DataFormat):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.ARRAY


class Operation(str, Enum):
    READ = "read"
    WRITE = "write"
    MODE = "mode"


class RunMode(str, Enum):
    RUN = "RUN"
    MONITOR = "MONITOR"
    STOP = "STOP"


@dataclass(frozen=True)
class ParsedAddress:
    """Word address with optional bit position (``1000`` or ``1000.05``)."""

    word_address: int
    bit_position: int = 0
    is_bit_address: bool = False

    def __post_init__(self) -> None:
        if not 0 <= self.word_address <= 0xFFFF:
            raise ValueError(f"word_address must be 0..65535, got {self.word_address}")
        if not 0 <= self.bit_position <= 15:
            raise ValueError(f"bit_position must be 0..15, got {self.bit_position}")


@dataclass(frozen=True)
class AddressItem:
    """One entry of a multi-address read; unset fields inherit the request's values."""

    address: str
    count: int | None = None
    data_type: MemoryArea | None = None
    data_format: DataFormat | None = None


@dataclass(frozen=True)
class Request:
    """A single operation: read, write or mode change."""

    operation: Operation
    address: str | tuple[AddressItem, ...] = ""
    data_type: MemoryArea = MemoryArea.DM
    count: int = 1
    payload: Any = None
    data_format: DataFormat = DataFormat.ARRAY
    mode: RunMode | None = None

    @property
    def is_multi_read(self) -> bool:
        return self.operation == Operation.READ and isinstance(self.address, tuple)


@dataclass(frozen=True)
class ResultRecord:
    """Value read from one address of a multi-address read."""

    address: str
    data_type: MemoryArea
    value: Any

    def as_dict(self) -> dict[str, Any]:
        return {"address": self.address, "dataType": self.data_type.value, "value": self.value}


@dataclass(frozen=True)
class HandshakeResult:
    """Node addresses assigned by the PLC during the FINS/TCP handshake."""

    client_node: int
    server_node: int


@dataclass
class ExplainInfo:
    """Result of client.explain(address): where a read goes and the frame it produces."""

    address: str
    data_type: MemoryArea
    area_code: int
    word_address: int
    bit_position: int | None
    word_count: int
    frame: bytes = field(repr=False, default=b"")
