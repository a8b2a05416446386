"""Build and validate Requests from message-style mappings (camelCase or snake_case keys)."""

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from .errors import InvalidOperationError
from .frames import parse_mode
from .types import AddressItem, DataFormat, MemoryArea, Operation, Request, RunMode

INPUT_STYLE_NODE = "node"
INPUT_STYLE_MESSAGE = "message"


@dataclass(frozen=True)
class RequestDefaults:
    """Values configured on the triggering node; message fields override them."""

    operation: str = "read"
    address: str = ""
    data_type: str = "DM"
    mode: str = "RUN"
    data_format: str = "array"
    address_mode: str = "single"  # or "multiple"
    address_list: Sequence[Any] = field(default_factory=tuple)


def _get(message: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = message.get(key)
        if value not in (None, ""):
            return value
    return None


def _parse_operation(value: Any) -> Operation:
    try:
        return Operation(str(value).strip().lower())
    except ValueError:
        raise InvalidOperationError(f"Invalid operation: {value}", operation=str(value)) from None


def _parse_count(value: Any) -> int:
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise InvalidOperationError(f"Invalid count: {value!r}") from None
    if count < 1:
        raise InvalidOperationError(f"Count must be >= 1, got {count}")
    return count


def to_address_item(raw: Any) -> AddressItem:
    """Convert a string or mapping (address, count, dataType, dataFormat) into an AddressItem."""
    if isinstance(raw, AddressItem):
        return raw
    if isinstance(raw, Mapping):
        address = _get(raw, "address")
        if address is None:
            raise InvalidOperationError("Address list entry is missing 'address'")
        count = _get(raw, "count")
        data_type = _get(raw, "dataType", "data_type")
        data_format = _get(raw, "dataFormat", "data_format")
        return AddressItem(
            address=str(address),
            count=_parse_count(count) if count is not None else None,
            data_type=MemoryArea.parse(data_type) if data_type is not None else None,
            data_format=DataFormat.parse(data_format) if data_format is not None else None,
        )
    return AddressItem(address=str(raw))


def _has_own_data_types(address: Any) -> bool:
    return (
        isinstance(address, (list, tuple))
        and len(address) > 0
        and all(isinstance(a, Mapping) and _get(a, "dataType", "data_type") is not None for a in address)
    )


def build_request(
    message: Mapping[str, Any],
    defaults: RequestDefaults | None = None,
    input_style: str = INPUT_STYLE_NODE,
) -> Request:
    """
    Build a Request from a message mapping.

    ``"node"`` style: message fields override ``defaults``; a read with
    ``address_mode="multiple"`` uses the configured address list.

    ``"message"`` style: ``operation`` and ``address`` are mandatory, and
    ``dataType`` too unless every entry of an address list carries its own.

    Raises InvalidOperationError / InvalidModeError on invalid input.
    """
    defaults = defaults or RequestDefaults()

    if input_style == INPUT_STYLE_MESSAGE:
        operation_raw = _get(message, "operation")
        address = _get(message, "address")
        data_type_raw = _get(message, "dataType", "data_type")
        if operation_raw is None:
            raise InvalidOperationError("Input style is 'message' but operation is missing")
        if address is None:
            raise InvalidOperationError("Input style is 'message' but address is missing")
        if data_type_raw is None and not _has_own_data_types(address):
            raise InvalidOperationError("Input style is 'message' but dataType is missing")
        data_format_raw = _get(message, "dataFormat", "data_format") or "array"
        mode_raw = _get(message, "mode")
    elif input_style == INPUT_STYLE_NODE:
        operation_raw = _get(message, "operation") or defaults.operation
        address = _get(message, "address")
        if address is None:
            address = defaults.address
        data_type_raw = _get(message, "dataType", "data_type") or defaults.data_type
        data_format_raw = _get(message, "dataFormat", "data_format") or defaults.data_format
        mode_raw = _get(message, "mode") or defaults.mode
    else:
        raise ValueError(f"Unknown input style: {input_style!r}")

    operation = _parse_operation(operation_raw)

    if (
        operation == Operation.READ
        and input_style == INPUT_STYLE_NODE
        and not isinstance(address, (list, tuple))
        and defaults.address_mode == "multiple"
        and defaults.address_list
    ):
        address = list(defaults.address_list)

    mode: RunMode | None = None
    if operation == Operation.MODE:
        if not mode_raw:
            raise InvalidOperationError("Mode is required for mode operation", operation="mode")
        mode = parse_mode(mode_raw)
        address = ""
    elif address == "" or (isinstance(address, (list, tuple)) and not address):
        raise InvalidOperationError("Address is required", operation=operation.value)

    if isinstance(address, (list, tuple)):
        if operation != Operation.READ:
            raise InvalidOperationError(
                f"Address lists are only supported for read, not {operation.value}", operation=operation.value
            )
        address = tuple(to_address_item(a) for a in address)
    elif operation != Operation.MODE:
        address = str(address)

    count = _get(message, "count")
    return Request(
        operation=operation,
        address=address,
        data_type=MemoryArea.parse(data_type_raw),
        count=_parse_count(count) if count is not None else 1,
        payload=message.get("payload"),
        data_format=DataFormat.parse(data_format_raw),
        mode=mode,
    )
