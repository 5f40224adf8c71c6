"""
tokenacl CLI
------------

Provides:
  - tags     list the operation tags of the Manager and the gate admin bytes
  - derive   derive an address from seeds under a program id
  - demo     run an end-to-end scenario (kyc, sanctions, geo, or all of them)
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Dict, List, Optional, Sequence

from tokenacl.ledger.derivation import find_program_address
from tokenacl.ledger.keys import Pubkey
from tokenacl.manager.state import MANAGER_PROGRAM_ID
from tokenacl.protocol.discriminators import OPERATION_TAGS
from tokenacl.protocol.enums import GateAdminOp
from tokenacl.protocol.errors import TokenAclError
from tokenacl.utils.logging import configure_logging


def _print_rows(rows: List[Dict[str, Any]], fmt: str) -> None:
    if fmt == "json":
        print(json.dumps(rows, indent=2))
        return
    if not rows:
        print("Nothing to show.")
        return
    columns = list(rows[0].keys())
    widths = {c: max(len(c), *(len(_cell(r.get(c))) for r in rows)) for c in columns}
    print("  ".join(c.upper().ljust(widths[c]) for c in columns))
    print("-" * (sum(widths.values()) + 2 * (len(columns) - 1)))
    for row in rows:
        print("  ".join(_cell(row.get(c)).ljust(widths[c]) for c in columns))


def _cell(value: Any) -> str:
    return "-" if value is None else str(value)


def _parse_seed(raw: str) -> bytes:
    """hex:<bytes>, key:<64 hex chars> or plain utf-8 text."""
    if raw.startswith("hex:"):
        return bytes.fromhex(raw[4:])
    if raw.startswith("key:"):
        return Pubkey.from_string(raw[4:]).raw
    return raw.encode("utf-8")


def cmd_tags(args) -> None:
    rows: List[Dict[str, Any]] = [
        {"operation": op.value, "tag": tag.hex()} for op, tag in OPERATION_TAGS.items()
    ]
    rows += [
        {"operation": f"gate:{op.name.lower()}", "tag": bytes([op]).hex()} for op in GateAdminOp
    ]
    _print_rows(rows, args.output)


def cmd_derive(args) -> None:
    program_id = Pubkey.from_string(args.program_id) if args.program_id else MANAGER_PROGRAM_ID
    try:
        seeds = [_parse_seed(s) for s in args.seeds]
        address, bump = find_program_address(seeds, program_id)
    except (ValueError, TokenAclError) as ex:
        print(f"Derivation failed: {ex}", file=sys.stderr)
        sys.exit(1)
    _print_rows(
        [{"address": str(address), "bump": bump, "program_id": str(program_id)}],
        args.output,
    )


def cmd_demo(args) -> None:
    from tokenacl.demos import DEMOS, run_all_demos

    rows = run_all_demos() if args.demo_name == "all" else DEMOS[args.demo_name]()
    _print_rows(rows, args.output)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tokenacl",
        description="Gated freeze/thaw authority manager",
    )
    parser.add_argument("--log-level", default=None, help="Override TOKENACL_LOG_LEVEL")
    sub = parser.add_subparsers(dest="command")

    def add_output(p: argparse.ArgumentParser) -> None:
        p.add_argument("--output", choices=["json", "table"], default="table", help="Output format")

    p_tags = sub.add_parser("tags", help="List operation tags")
    add_output(p_tags)
    p_tags.set_defaults(func=cmd_tags)

    p_derive = sub.add_parser("derive", help="Derive an address from seeds")
    p_derive.add_argument("seeds", nargs="+", help="Seeds: text, hex:<bytes> or key:<address>")
    p_derive.add_argument("--program-id", default=None, help="Program id (hex), default: the Manager")
    add_output(p_derive)
    p_derive.set_defaults(func=cmd_derive)

    p_demo = sub.add_parser("demo", help="Run a demo scenario")
    p_demo.add_argument("demo_name", choices=["kyc", "sanctions", "geo", "all"], help="Demo to run")
    add_output(p_demo)
    p_demo.set_defaults(func=cmd_demo)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    configure_logging(args.log_level)
    args.func(args)


if __name__ == "__main__":
    main()
