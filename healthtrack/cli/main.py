# healthtrack/cli/main.py
from __future__ import annotations

from typing import Optional

from healthtrack.core.errors import HealthTrackError

from healthtrack.cli.args import parse_args
from healthtrack.cli.commands import (
    cmd_monitor,
    cmd_profile,
    cmd_scan,
    setup_logging,
)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    try:
        setup_logging(args)

        if args.cmd == "profile":
            return cmd_profile(args)
        if args.cmd == "scan":
            return cmd_scan(args)
        if args.cmd == "monitor":
            return cmd_monitor(args)

        return 2
    except HealthTrackError as e:
        print(f"ERROR: {e.message}")
        if e.hint:
            print(f"Hint: {e.hint}")
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
