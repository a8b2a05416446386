#!/usr/bin/env python3
"""Example: poll a list of addresses over FINS/UDP using poll_iter; graceful shutdown on Ctrl+C."""

import sys

from pyomron_fins import FinsClient, UdpConfig
from pyomron_fins.errors import FinsError, FinsTimeoutError


def main() -> None:
    config = UdpConfig(host="192.168.250.1", da2=1, sa2=25, retries=3)  # change to your PLC IP / nodes
    addresses = ["100", "101", "0.00"]
    interval_s = 1.0

    try:
        with FinsClient(config) as plc:
            print(f"Polling {addresses} every {interval_s}s (Ctrl+C to stop)...")
            for snapshot in plc.poll_iter(addresses, interval_s):
                print({r.address: r.value for r in snapshot})
    except KeyboardInterrupt:
        print("\nStopped.")
    except FinsTimeoutError as e:
        print(f"No response after {e.attempts} attempt(s): {e}", file=sys.stderr)
        sys.exit(1)
    except FinsError as e:
        print(f"FINS error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
