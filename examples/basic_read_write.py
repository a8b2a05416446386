#!/usr/bin/env python3
"""Example: read and write DM words and a CIO bit on an Omron PLC over FINS/TCP."""

import sys

from pyomron_fins import FinsClient, TcpConfig
from pyomron_fins.errors import FinsConnectionError, FinsTimeoutError, InvalidAddressFormatError, ProtocolError


def main() -> None:
    config = TcpConfig(host="192.168.250.1", da2=1)  # change to your PLC IP / node

    try:
        with FinsClient(config) as plc:
            # Four data memory words
            v = plc.read("100", count=4)
            print(f"DM100..103 = {v}")

            # Two words as one signed 32-bit value
            v = plc.read("200", count=2, data_format="int32")
            print(f"DM200 (int32) = {v}")

            # Single bit
            v = plc.read("0.05", data_type="CIO")
            print(f"CIO0.05 = {v}")

            # Write (example; uncomment if your PLC allows)
            # plc.write("100", [1, 2, 3])
            # plc.write("0.05", True, data_type="CIO")

            # Show the frame a read would send
            print(f"explain(100): {plc.explain('100', count=4)}")

            # Several addresses in one session
            for record in plc.read_many(["100", {"address": "10", "dataType": "HR", "dataFormat": "hex"}]):
                print(record.as_dict())
    except InvalidAddressFormatError as e:
        print(f"Invalid address: {e}", file=sys.stderr)
        sys.exit(1)
    except ProtocolError as e:
        print(f"PLC rejected the command: {e}", file=sys.stderr)
        sys.exit(1)
    except (FinsConnectionError, FinsTimeoutError) as e:
        print(f"FINS/connection error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
