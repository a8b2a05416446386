"""Clear exceptions for pyomron-fins: bad requests, transport failures and FINS end-codes."""


class FinsError(Exception):
    """Base exception for pyomron-fins."""

    def __init__(
        self,
        message: str,
        *,
        address: str | None = None,
        operation: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.address = address
        self.operation = operation
        self.cause = cause
        super().__init__(message)


class InvalidAddressFormatError(FinsError):
    """Raised when an address string is not ``<word>`` or ``<word>.<bit>``."""

    def __init__(self, address: str, message: str | None = None) -> None:
        super().__init__(
            message or f"Invalid address format: {address!r}. Use format like '1000' or '1000.05'",
            address=address,
        )


class InvalidBitPositionError(FinsError):
    """Raised when the bit part of an address is not an integer in 0..15."""

    def __init__(self, address: str, bit: str) -> None:
        self.bit = bit
        super().__init__(
            f"Invalid bit position: {bit!r}. Bit position must be between 0 and 15.",
            address=address,
        )


class InvalidOperationError(FinsError):
    """Raised when the requested operation is unknown or not valid for the request/transport."""


class InvalidModeError(FinsError):
    """Raised when a mode change names something other than RUN, MONITOR or STOP."""

    def __init__(self, mode: str) -> None:
        self.mode = mode
        super().__init__(f"Invalid mode: {mode!r}. Use RUN, MONITOR, or STOP", operation="mode")


class InvalidPayloadError(FinsError):
    """Raised when a write payload is missing or cannot be encoded as 16-bit words."""


class MissingConfigurationError(FinsError):
    """Raised when no connection parameters (or no host) are bound to the client."""


class FinsConnectionError(FinsError):
    """Raised when the socket cannot be opened, written or read."""


class HandshakeFailedError(FinsError):
    """Raised when the FINS/TCP node address handshake is rejected or malformed."""


class HeaderError(FinsError):
    """Raised when a FINS/TCP envelope is malformed or carries a nonzero error code."""

    def __init__(self, message: str, *, error_code: int | None = None, **kwargs) -> None:
        self.error_code = error_code
        super().__init__(message, **kwargs)


class ProtocolError(FinsError):
    """Raised when a FINS response carries a nonzero end-code or cannot be parsed."""

    def __init__(self, message: str, *, end_code: int | None = None, **kwargs) -> None:
        self.end_code = end_code
        super().__init__(message, **kwargs)


class FinsTimeoutError(FinsError):
    """Raised when no response arrives within the timeout (after all UDP retries)."""

    def __init__(self, message: str, *, attempts: int = 1, **kwargs) -> None:
        self.attempts = attempts
        super().__init__(message, **kwargs)
