"""Administrative CLI utilities."""
from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import List, Optional

from auditstore.admin.status import checkpoint_status, invalid_by_host, summarise_runs
from auditstore.observability.log import configure_logging


def cmd_status(args: argparse.Namespace) -> None:
    payload = {
        "checkpoint": checkpoint_status(Path(args.checkpoint)),
        "runs": summarise_runs(Path(args.manifests), last=args.last),
    }
    print(json.dumps(payload, indent=2))


def cmd_invalid(args: argparse.Namespace) -> None:
    print(json.dumps(invalid_by_host(Path(args.checkpoint), host=args.host), indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="auditstore.admin.cli", description="Administration commands")
    sub = parser.add_subparsers(dest="command", required=True)

    status = sub.add_parser("status", help="Show checkpoint state and recent runs")
    status.add_argument("--checkpoint", default="invalidurls.txt")
    status.add_argument("--manifests", default="data/manifests")
    status.add_argument("--last", type=int, default=5, help="Number of runs to show")

    invalid = sub.add_parser("inspect-invalid", help="Count checkpointed URLs per host")
    invalid.add_argument("--checkpoint", default="invalidurls.txt")
    invalid.add_argument("--host")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    configure_logging(Path("config/logging.yaml"))
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "status":
        cmd_status(args)
        return
    if args.command == "inspect-invalid":
        cmd_invalid(args)
        return


if __name__ == "__main__":
    main()
