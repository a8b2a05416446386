#!/usr/bin/env python3
"""Command line for pyomron-fins using Typer."""

import csv
import io
import json
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Optional

import typer
from typing_extensions import Annotated

from . import __version__  # type: ignore
from .address import parse_address
from .client import FinsClient
from .config import DEFAULT_PORT, DEFAULT_UDP_RETRIES, ConnectionConfig, TcpConfig, UdpConfig, load_config
from .errors import (
    FinsConnectionError,
    FinsError,
    FinsTimeoutError,
    InvalidAddressFormatError,
    InvalidBitPositionError,
    InvalidModeError,
    InvalidOperationError,
    InvalidPayloadError,
    MissingConfigurationError,
)
from .status import StatusLevel
from .types import ResultRecord

app = typer.Typer(
    name="pyfins",
    help="Read/write Omron PLC memory areas and change run mode over FINS/TCP or FINS/UDP.",
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

# ============================================================================
# Shared options and helpers
# ============================================================================

HostOption = Annotated[
    Optional[str],
    typer.Option("--host", "-h", help="PLC hostname or IP address", envvar="PYFINS_HOST"),
]
PortOption = Annotated[
    int,
    typer.Option("--port", "-p", help="FINS port (TCP or UDP)", envvar="PYFINS_PORT"),
]
TransportOption = Annotated[
    str,
    typer.Option("--transport", "-T", help="tcp or udp", envvar="PYFINS_TRANSPORT"),
]
TimeoutOption = Annotated[
    Optional[int],
    typer.Option(
        "--timeout", "-t", help="Timeout in milliseconds (default 5000 TCP, 1000 UDP)", envvar="PYFINS_TIMEOUT"
    ),
]
RetriesOption = Annotated[
    int,
    typer.Option("--retries", "-r", help="UDP attempts per command", envvar="PYFINS_RETRIES"),
]
LocalPortOption = Annotated[
    int,
    typer.Option("--local-port", help="UDP local bind port (0 = auto)", envvar="PYFINS_LOCAL_PORT"),
]
Da1Option = Annotated[int, typer.Option("--da1", help="Destination network address", envvar="PYFINS_DA1")]
Da2Option = Annotated[int, typer.Option("--da2", help="Destination node address", envvar="PYFINS_DA2")]
Sa1Option = Annotated[int, typer.Option("--sa1", help="Source network address", envvar="PYFINS_SA1")]
Sa2Option = Annotated[int, typer.Option("--sa2", help="Source node address (UDP)", envvar="PYFINS_SA2")]
ConfigOption = Annotated[
    Optional[str],
    typer.Option("--config", "-c", help="JSON connection config file", envvar="PYFINS_CONFIG"),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable debug logging"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]
AreaOption = Annotated[
    str,
    typer.Option("--area", "-a", help="Memory area: CIO, WR, HR, AR, DM, EM"),
]
DataFormatOption = Annotated[
    str,
    typer.Option(
        "--data-format", "-d", help="array, unsigned, int32, float32, binary, hex, ascii, buffer, bits"
    ),
]
CountOption = Annotated[
    int,
    typer.Option("--count", "-n", help="Words to read (bits for word.bit addresses)"),
]


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbose flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if not verbose else "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def build_config(
    host: Optional[str],
    port: int,
    transport: str,
    timeout: Optional[int],
    retries: int,
    local_port: int,
    da1: int,
    da2: int,
    sa1: int,
    sa2: int,
    config_path: Optional[str] = None,
) -> ConnectionConfig:
    """Connection config from a JSON file (CLI host overrides it) or from the options."""
    if config_path:
        cfg = load_config(config_path)
        return replace(cfg, host=host) if host else cfg

    if not host:
        raise MissingConfigurationError("--host is required for this command")
    transport = transport.lower()
    if transport == "udp":
        extra: dict[str, Any] = {"timeout_ms": timeout} if timeout else {}
        return UdpConfig(
            host=host, port=port, da1=da1, da2=da2, sa1=sa1, sa2=sa2, retries=retries, local_port=local_port, **extra
        )
    if transport == "tcp":
        extra = {"timeout_ms": timeout} if timeout else {}
        return TcpConfig(host=host, port=port, da1=da1, da2=da2, sa1=sa1, sa2=sa2, **extra)
    raise ValueError(f"Invalid transport {transport!r}. Must be tcp or udp.")


def echo_status(level: StatusLevel, text: str) -> None:
    """Print session status on stderr (debug runs only)."""
    if text:
        logger.debug("[%s] %s", level.value, text)


def create_client(*args: Any, **kwargs: Any) -> FinsClient:
    """Create and return a FinsClient instance."""
    return FinsClient(build_config(*args, **kwargs), on_status=echo_status, idle_delay=0)


def parse_bool(value: str) -> bool:
    """Parse boolean value from string."""
    v = value.lower().strip()
    if v in ("true", "1", "on", "yes"):
        return True
    if v in ("false", "0", "off", "no"):
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


def parse_word(value: str) -> int:
    """Parse a 16-bit word value (decimal, negative, or 0x hex)."""
    v = value.strip()
    num = int(v, 16) if v.lower().startswith("0x") else int(v)
    if not -32768 <= num <= 65535:
        raise ValueError(f"16-bit value out of range: {num}")
    return num


def format_value(value: Any) -> str:
    """Format a read result for display."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (bytes, bytearray)):
        return value.hex().upper()
    if isinstance(value, list):
        return ",".join(format_value(v) for v in value)
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (bytes, bytearray)):
        return obj.hex().upper()
    if isinstance(obj, ResultRecord):
        return obj.as_dict()
    raise TypeError(f"Not JSON serializable: {type(obj).__name__}")


def to_json(data: Any, indent: int | None = None) -> str:
    return json.dumps(data, default=_json_default, indent=indent)


def exit_for_error(e: Exception, verbose: bool) -> typer.Exit:
    """Report ``e`` on stderr and return the matching Exit (2 input, 3 PLC/network, 4 unexpected)."""
    if isinstance(e, (InvalidAddressFormatError, InvalidBitPositionError)):
        typer.echo(f"Error: Invalid address: {e}", err=True)
        return typer.Exit(2)
    if isinstance(
        e, (InvalidOperationError, InvalidModeError, InvalidPayloadError, MissingConfigurationError, ValueError)
    ):
        typer.echo(f"Error: Invalid request: {e}", err=True)
        return typer.Exit(2)
    if isinstance(e, (FinsConnectionError, FinsTimeoutError)):
        typer.echo(f"Error: Connection error: {e}", err=True)
        return typer.Exit(3)
    if isinstance(e, FinsError):
        typer.echo(f"Error: FINS error: {e}", err=True)
        return typer.Exit(3)
    typer.echo(f"Error: Unexpected error: {e}", err=True)
    if verbose:
        import traceback
        traceback.print_exc()
    return typer.Exit(4)


# ============================================================================
# Commands
# ============================================================================


@app.command()
def info(
    host: HostOption = None,
    port: PortOption = DEFAULT_PORT,
    transport: TransportOption = "tcp",
    timeout: TimeoutOption = None,
    retries: RetriesOption = DEFAULT_UDP_RETRIES,
    local_port: LocalPortOption = 0,
    da1: Da1Option = 0,
    da2: Da2Option = 0,
    sa1: Sa1Option = 0,
    sa2: Sa2Option = 0,
    config: ConfigOption = None,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Show package version and transport, and optionally test connectivity.

    Without --host: shows local metadata only.
    With --host: also reads DM 0 to test connectivity.
    """
    setup_logging(verbose)

    info_data: dict[str, Any] = {
        "version": __version__,
        "transport": transport.lower(),
    }

    if host or config:
        try:
            client = create_client(host, port, transport, timeout, retries, local_port, da1, da2, sa1, sa2, config)
            info_data["transport"] = client.transport
            with client:
                client.read("0")
            info_data["connectivity"] = {"status": "connected", "host": client.config.host, "port": client.config.port}
        except FinsError as e:
            info_data["connectivity"] = {"status": "failed", "error": str(e)}
        except Exception as e:
            info_data["connectivity"] = {"status": "error", "error": str(e)}

    if json_output:
        typer.echo(json.dumps(info_data, indent=2))
    else:
        typer.echo(f"pyomron-fins version: {info_data['version']}")
        typer.echo(f"Transport: {info_data['transport']}")
        if "connectivity" in info_data:
            conn = info_data["connectivity"]
            if conn["status"] == "connected":
                typer.echo(f"Connectivity: OK ({conn['host']}:{conn['port']})")
            elif conn["status"] == "failed":
                typer.echo(f"Connectivity: FAILED ({conn['error']})")
            else:
                typer.echo(f"Connectivity: ERROR - {conn.get('error', 'unknown')}")


@app.command()
def read(
    address: Annotated[str, typer.Argument(help="Address to read (e.g. 100, 100.03)")],
    area: AreaOption = "DM",
    count: CountOption = 1,
    data_format: DataFormatOption = "array",
    host: HostOption = None,
    port: PortOption = DEFAULT_PORT,
    transport: TransportOption = "tcp",
    timeout: TimeoutOption = None,
    retries: RetriesOption = DEFAULT_UDP_RETRIES,
    local_port: LocalPortOption = 0,
    da1: Da1Option = 0,
    da2: Da2Option = 0,
    sa1: Sa1Option = 0,
    sa2: Sa2Option = 0,
    config: ConfigOption = None,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Read words (or bits, for word.bit addresses) from a memory area.

    Returns the value as text by default, or JSON with --json.
    """
    setup_logging(verbose)

    try:
        client = create_client(host, port, transport, timeout, retries, local_port, da1, da2, sa1, sa2, config)
        with client:
            value = client.read(address, data_type=area, count=count, data_format=data_format)
        if json_output:
            typer.echo(to_json({"address": address, "dataType": area.upper(), "value": value}))
        else:
            typer.echo(format_value(value))
    except typer.Exit:
        raise
    except Exception as e:
        raise exit_for_error(e, verbose)


@app.command()
def write(
    address: Annotated[str, typer.Argument(help="Address to write (e.g. 100, 100.03)")],
    values: Annotated[
        list[str],
        typer.Argument(help="Values: words (decimal, negative or 0x hex), or true/false/1/0 for bit addresses"),
    ],
    area: AreaOption = "DM",
    host: HostOption = None,
    port: PortOption = DEFAULT_PORT,
    transport: TransportOption = "tcp",
    timeout: TimeoutOption = None,
    retries: RetriesOption = DEFAULT_UDP_RETRIES,
    local_port: LocalPortOption = 0,
    da1: Da1Option = 0,
    da2: Da2Option = 0,
    sa1: Sa1Option = 0,
    sa2: Sa2Option = 0,
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """
    Write one or more consecutive words, or bits starting at a word.bit address.

    Bit writes read the word(s) first and write them back with only the
    addressed bits changed.
    """
    setup_logging(verbose)

    try:
        parsed = parse_address(address)
        payload: list[Any]
        if parsed.is_bit_address:
            payload = [parse_bool(v) for v in values]
        else:
            payload = [parse_word(v) for v in values]

        client = create_client(host, port, transport, timeout, retries, local_port, da1, da2, sa1, sa2, config)
        with client:
            client.write(address, payload if len(payload) > 1 else payload[0], data_type=area)
        typer.echo(f"OK: Wrote {area.upper()}{address} = {','.join(values)}")
    except typer.Exit:
        raise
    except Exception as e:
        raise exit_for_error(e, verbose)


@app.command()
def mode(
    run_mode: Annotated[str, typer.Argument(metavar="MODE", help="RUN, MONITOR or STOP")],
    host: HostOption = None,
    port: PortOption = DEFAULT_PORT,
    timeout: TimeoutOption = None,
    da1: Da1Option = 0,
    da2: Da2Option = 0,
    sa1: Sa1Option = 0,
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """
    Change the PLC operating mode (FINS/TCP only).

    Acquires the access right first, then sends RUN/MONITOR or STOP.
    """
    setup_logging(verbose)

    try:
        client = create_client(host, port, "tcp", timeout, DEFAULT_UDP_RETRIES, 0, da1, da2, sa1, 0, config)
        with client:
            client.set_mode(run_mode)
        typer.echo(f"OK: Mode set to {run_mode.upper()}")
    except typer.Exit:
        raise
    except Exception as e:
        raise exit_for_error(e, verbose)


@app.command(name="read-many")
def read_many(
    addresses: Annotated[list[str], typer.Argument(help="Addresses to read, in order (space-separated)")],
    area: AreaOption = "DM",
    count: CountOption = 1,
    data_format: DataFormatOption = "array",
    host: HostOption = None,
    port: PortOption = DEFAULT_PORT,
    transport: TransportOption = "tcp",
    timeout: TimeoutOption = None,
    retries: RetriesOption = DEFAULT_UDP_RETRIES,
    local_port: LocalPortOption = 0,
    da1: Da1Option = 0,
    da2: Da2Option = 0,
    sa1: Sa1Option = 0,
    sa2: Sa2Option = 0,
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """
    Read several addresses in one session, in the order given.

    Prints a JSON list of {address, dataType, value}. Fails entirely if any
    address fails.
    """
    setup_logging(verbose)

    try:
        client = create_client(host, port, transport, timeout, retries, local_port, da1, da2, sa1, sa2, config)
        with client:
            results = client.read_many(addresses, data_type=area, data_format=data_format, count=count)
        typer.echo(to_json([r.as_dict() for r in results], indent=2))
    except typer.Exit:
        raise
    except Exception as e:
        raise exit_for_error(e, verbose)


@app.command()
def poll(
    addresses: Annotated[list[str], typer.Argument(help="Addresses to poll")],
    area: AreaOption = "DM",
    data_format: DataFormatOption = "array",
    host: HostOption = None,
    port: PortOption = DEFAULT_PORT,
    transport: TransportOption = "tcp",
    timeout: TimeoutOption = None,
    retries: RetriesOption = DEFAULT_UDP_RETRIES,
    local_port: LocalPortOption = 0,
    da1: Da1Option = 0,
    da2: Da2Option = 0,
    sa1: Sa1Option = 0,
    sa2: Sa2Option = 0,
    config: ConfigOption = None,
    verbose: VerboseOption = False,
    interval: Annotated[float, typer.Option("--interval", "-i", help="Polling interval in seconds")] = 1.0,
    once: Annotated[bool, typer.Option("--once", help="Poll once and exit")] = False,
    output_format: Annotated[str, typer.Option("--format", "-f", help="Output format: text, json, csv")] = "text",
) -> None:
    """
    Continuously poll addresses at the given interval.

    Output formats:
    - text: timestamp + AREAaddress=value pairs (default)
    - json: NDJSON with {"timestamp": "...", "values": {...}} per line
    - csv: addresses as columns, one row per poll cycle

    Press Ctrl+C to stop.
    """
    setup_logging(verbose)

    if output_format not in ("text", "json", "csv"):
        typer.echo(f"Error: Invalid format '{output_format}'. Must be text, json, or csv.", err=True)
        raise typer.Exit(2)

    if interval <= 0:
        typer.echo(f"Error: Interval must be positive, got {interval}", err=True)
        raise typer.Exit(2)

    names = [f"{area.upper()}{a}" for a in addresses]

    try:
        client = create_client(host, port, transport, timeout, retries, local_port, da1, da2, sa1, sa2, config)

        if output_format == "csv":
            typer.echo("timestamp," + ",".join(names))

        with client:
            for results in client.poll_iter(addresses, interval, data_type=area, data_format=data_format):
                timestamp = datetime.now(timezone.utc).isoformat()
                by_name = {name: r.value for name, r in zip(names, results)}

                if output_format == "text":
                    pairs = " ".join(f"{name}={format_value(by_name[name])}" for name in names)
                    typer.echo(f"{timestamp} {pairs}")
                elif output_format == "json":
                    typer.echo(to_json({"timestamp": timestamp, "values": by_name}))
                else:
                    buf = io.StringIO()
                    csv.writer(buf, lineterminator="").writerow(
                        [timestamp] + [format_value(by_name[name]) for name in names]
                    )
                    typer.echo(buf.getvalue())

                if once:
                    break
    except typer.Exit:
        raise
    except KeyboardInterrupt:
        typer.echo("\nStopped by user", err=True)
        raise typer.Exit(0)
    except Exception as e:
        raise exit_for_error(e, verbose)


@app.command()
def explain(
    address: Annotated[str, typer.Argument(help="Address to explain (e.g. 100, 100.03)")],
    area: AreaOption = "DM",
    count: CountOption = 1,
    transport: TransportOption = "tcp",
    da1: Da1Option = 0,
    da2: Da2Option = 0,
    sa1: Sa1Option = 0,
    sa2: Sa2Option = 0,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Show the area code, word span and encoded read frame for an address.

    Does not require a connection.
    """
    setup_logging(verbose)

    try:
        client = create_client("localhost", DEFAULT_PORT, transport, None, DEFAULT_UDP_RETRIES, 0, da1, da2, sa1, sa2)
        data = client.explain(address, data_type=area, count=count)

        if json_output:
            typer.echo(json.dumps(data, indent=2))
        else:
            typer.echo(f"Address:       {data['address']}")
            typer.echo(f"Memory area:   {data['data_type']} ({data['area_code']})")
            typer.echo(f"Word address:  {data['word_address']}")
            if data["bit_position"] is not None:
                typer.echo(f"Bit position:  {data['bit_position']}")
            typer.echo(f"Word count:    {data['word_count']}")
            typer.echo(f"Frame ({data['transport']}): {data['frame']}")
    except typer.Exit:
        raise
    except Exception as e:
        raise exit_for_error(e, verbose)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"pyomron-fins {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
) -> None:
    """pyfins - Omron FINS/TCP and FINS/UDP command line."""
    pass


if __name__ == "__main__":
    app()
