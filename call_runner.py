"""
call_runner.py - Command-line access to the scheduler, for cron or manual use.

Usage:
    python call_runner.py process                            # run one scheduling pass
    python call_runner.py call --phone "+447700900000"       # place a single test call
    python call_runner.py call --phone "+447700900000" --name "Alice"
    python call_runner.py export --out bookings.csv          # write the CSV export
"""

import argparse
import json
import sys

import config
import state_store
from dispatcher import place_call
from errors import BookingError
from export import records_to_csv
from phones import is_valid_phone, normalize_phone
from scheduler import build_greeting, run_scheduling_pass


def cmd_process(args) -> int:
    result = run_scheduling_pass()
    print(json.dumps(result.to_response(), indent=2))
    return 0


def cmd_call(args) -> int:
    phone = normalize_phone(args.phone)
    if not is_valid_phone(phone):
        print(f"[ERROR] Not a dialable number: {args.phone!r}", file=sys.stderr)
        return 2
    data = place_call(phone, build_greeting(args.name))
    print("[SUCCESS] Call requested!")
    print(f"  Call SID : {data.get('sid')}")
    print(f"  Status   : {data.get('status')}")
    print(f"  To       : {phone}")
    return 0


def cmd_export(args) -> int:
    csv_text = records_to_csv(state_store.all_records())
    if args.out:
        with open(args.out, "w", encoding="utf-8", newline="") as f:
            f.write(csv_text)
        print(f"Wrote {args.out}")
    else:
        sys.stdout.write(csv_text)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Outbound VRN recovery calls.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("process", help="Run one scheduling pass now").set_defaults(func=cmd_process)

    call = sub.add_parser("call", help="Place a single test call")
    call.add_argument("--phone", required=True, help="Customer phone number (E.164 format)")
    call.add_argument("--name", default="", help="Customer name used in the greeting")
    call.set_defaults(func=cmd_call)

    export = sub.add_parser("export", help="Export all bookings as CSV")
    export.add_argument("--out", default=None, help="Output file (defaults to stdout)")
    export.set_defaults(func=cmd_export)
    return parser


def main(argv=None) -> int:
    config.setup_logging()
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except BookingError as e:
        print(f"[ERROR] {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
