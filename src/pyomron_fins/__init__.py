"""pyomron-fins: Omron FINS/TCP and FINS/UDP client for PLC memory areas and run mode."""

__version__ = "0.1.0"

from .address import parse_address
from .client import FinsClient
from .config import TcpConfig, UdpConfig, load_config
from .end_codes import describe_end_code
from .errors import (
    FinsConnectionError,
    FinsError,
    FinsTimeoutError,
    HandshakeFailedError,
    HeaderError,
    InvalidAddressFormatError,
    InvalidBitPositionError,
    InvalidModeError,
    InvalidOperationError,
    InvalidPayloadError,
    MissingConfigurationError,
    ProtocolError,
)
from .formatting import format_data
from .request import RequestDefaults, build_request
from .status import StatusLevel
from .types import AddressItem, DataFormat, MemoryArea, Operation, ParsedAddress, Request, ResultRecord, RunMode

__all__ = [
    "__version__",
    "FinsClient",
    "TcpConfig",
    "UdpConfig",
    "load_config",
    "parse_address",
    "describe_end_code",
    "format_data",
    "build_request",
    "RequestDefaults",
    "StatusLevel",
    "FinsError",
    "FinsConnectionError",
    "FinsTimeoutError",
    "HandshakeFailedError",
    "HeaderError",
    "InvalidAddressFormatError",
    "InvalidBitPositionError",
    "InvalidModeError",
    "InvalidOperationError",
    "InvalidPayloadError",
    "MissingConfigurationError",
    "ProtocolError",
    "AddressItem",
    "DataFormat",
    "MemoryArea",
    "Operation",
    "ParsedAddress",
    "Request",
    "ResultRecord",
    "RunMode",
]
