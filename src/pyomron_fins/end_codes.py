"""FINS end-code and FINS/TCP error code descriptions."""

# Main/sub response codes (MRES << 8 | SRES) with the flag bits cleared.
END_CODES: dict[int, str] = {
    0x0000: "Normal completion",
    0x0001: "Service canceled",
    # Local node errors
    0x0101: "Local node not in network",
    0x0102: "Token timeout",
    0x0103: "Retries failed",
    0x0104: "Too many send frames",
    0x0105: "Node address range error",
    0x0106: "Node address duplication",
    # Destination node errors
    0x0201: "Destination node not in network",
    0x0202: "Unit missing",
    0x0203: "Third node missing",
    0x0204: "Destination node busy",
    0x0205: "Response timeout",
    # Controller errors
    0x0301: "Communications controller error",
    0x0302: "CPU Unit error",
    0x0303: "Controller error",
    0x0304: "Unit number error",
    # Service unsupported
    0x0401: "Undefined command",
    0x0402: "Not supported by model/version",
    # Routing table errors
    0x0501: "Destination address setting error",
    0x0502: "No routing tables",
    0x0503: "Routing table error",
    0x0504: "Too many relays",
    # Command format errors
    0x1001: "Command too long",
    0x1002: "Command too short",
    0x1003: "Elements/data don't match",
    0x1004: "Command format error",
    0x1005: "Header error",
    # Parameter errors
    0x1101: "Area classification missing",
    0x1102: "Access size error",
    0x1103: "Address range error",
    0x1104: "Address range exceeded",
    0x1106: "Program missing",
    0x1109: "Relational error",
    0x110A: "Duplicate data access",
    0x110B: "Response too long",
    0x110C: "Parameter error",
    # Read not possible
    0x2002: "Protected",
    0x2003: "Table missing",
    0x2004: "Data missing",
    0x2005: "Program missing",
    0x2006: "File missing",
    0x2007: "Data mismatch",
    # Write not possible
    0x2101: "Read-only",
    0x2102: "Protected - cannot write data link table",
    0x2103: "Cannot register",
    0x2105: "Program missing",
    0x2106: "File missing",
    0x2107: "File name already exists",
    0x2108: "Cannot change",
    # Not executable in current mode
    0x2201: "Not possible during execution",
    0x2202: "Not possible while running",
    0x2203: "Wrong PLC mode (in PROGRAM mode)",
    0x2204: "Wrong PLC mode (in DEBUG mode)",
    0x2205: "Wrong PLC mode (in MONITOR mode)",
    0x2206: "Wrong PLC mode (in RUN mode)",
    0x2207: "Specified node not polling node",
    0x2208: "Step cannot be executed",
    # No such device
    0x2301: "File device missing",
    0x2302: "Memory missing",
    0x2303: "Clock missing",
    # Cannot start/stop
    0x2401: "Table missing",
    # Unit errors
    0x2502: "Memory error",
    0x2503: "I/O setting error",
    0x2504: "Too many I/O points",
    0x2505: "CPU bus error",
    0x2506: "I/O duplication",
    0x2507: "I/O bus error",
    0x2509: "SYSMAC BUS/2 error",
    0x250A: "CPU Bus Unit error",
    0x250D: "SYSMAC BUS No. duplication",
    0x250F: "Memory error",
    0x2510: "SYSMAC BUS terminator missing",
    # Command errors
    0x2601: "No protection",
    0x2602: "Incorrect password",
    0x2604: "Protected",
    0x2605: "Service already executing",
    0x2606: "Service stopped",
    0x2607: "No execution right",
    0x2608: "Settings not complete",
    0x2609: "Necessary items not set",
    0x260A: "Number already defined",
    0x260B: "Error will not clear",
    # Access right errors
    0x3001: "No access right",
    # Abort
    0x4001: "Service aborted",
}

RELAY_ERROR_FLAG = 0x8000
FATAL_CPU_ERROR_FLAG = 0x0080
NON_FATAL_CPU_ERROR_FLAG = 0x0040
_FLAG_MASK = RELAY_ERROR_FLAG | FATAL_CPU_ERROR_FLAG | NON_FATAL_CPU_ERROR_FLAG

# FINS/TCP envelope error codes (handshake and send-frame responses).
TCP_ERROR_CODES: dict[int, str] = {
    0x00000001: "The header is not FINS (ASCII code)",
    0x00000002: "The data length is too long",
    0x00000003: "The command is not supported",
    0x00000020: "All connections are in use",
    0x00000021: "The specified node is already connected",
    0x00000022: "Attempt to access a protected node from an unspecified IP address",
    0x00000023: "The client FINS node address is out of range",
    0x00000024: "The same FINS node address is being used by the client and server",
    0x00000025: "All the node addresses available for allocation have been used",
}


def describe_end_code(code: int) -> str:
    """
    Return a human-readable description of a FINS end-code.

    The relay and CPU-error flag bits are stripped before the lookup and
    reported as a suffix. Unmapped codes produce ``"Unknown error: 0xNNNN"``.
    """
    base = code & ~_FLAG_MASK & 0xFFFF
    description = END_CODES.get(base)
    if description is None:
        return f"Unknown error: 0x{code:04X}"

    flags: list[str] = []
    if code & RELAY_ERROR_FLAG:
        flags.append("network relay error")
    if code & FATAL_CPU_ERROR_FLAG:
        flags.append("fatal CPU unit error")
    if code & NON_FATAL_CPU_ERROR_FLAG:
        flags.append("non-fatal CPU unit error")
    if flags:
        return f"{description} ({', '.join(flags)})"
    return description


def describe_tcp_error(code: int) -> str:
    """Describe a FINS/TCP envelope error code."""
    return TCP_ERROR_CODES.get(code, f"Unknown FINS/TCP error: 0x{code:08X}")
