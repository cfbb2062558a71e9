# healthtrack/cli/args.py
from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional

DEFAULT_LOG_FILE = Path("logs") / "healthtrack.log"


def _positive_float(v: str) -> float:
    try:
        f = float(v)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid number '{v}'") from None
    if f <= 0:
        raise argparse.ArgumentTypeError(f"Expected a positive number, got '{v}'")
    return f


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="healthtrack")
    sub = parser.add_subparsers(dest="cmd", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--profile", default=None, help="GATT profile YAML (default: packaged profile).")
    common.add_argument("--log-file", type=Path, default=DEFAULT_LOG_FILE, help="Application log file.")
    common.add_argument("-v", "--verbose", action="store_true", help="Also log to stderr.")

    radio = argparse.ArgumentParser(add_help=False)
    radio.add_argument("--adapter", default=None, help="Bluetooth adapter (BlueZ only, e.g. hci0).")
    radio.add_argument("--timeout", type=_positive_float, default=10.0, help="Scan deadline in seconds.")

    sub.add_parser("profile", parents=[common], help="Print the GATT profile.")

    sub.add_parser("scan", parents=[common, radio], help="Scan for the target peripheral.")

    pm = sub.add_parser("monitor", parents=[common, radio], help="Connect and stream telemetry.")
    pm.add_argument("--address", default=None, help="Peripheral id; skips the scan.")
    pm.add_argument("--secs", type=_positive_float, default=None, help="Stop after this many seconds.")
    pm.add_argument("--record", default=None, help="Also record samples to this CSV file.")
    pm.add_argument(
        "--max-notify-errors",
        type=int,
        default=5,
        help="Disconnect after this many consecutive notification errors (0 = never).",
    )

    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)
