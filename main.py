"""
main.py — Thin CLI entry point.

All command implementations live in triage/cli/ submodules.

Commands:
  triage      Run one message through the triage pipeline and print the result
  domains     List the registered domains and their SLA thresholds
  serve-api   Start the FastAPI server
"""

import argparse
from pathlib import Path

from triage.config import ServerSettings
from triage.knowledge import UnknownDomainError


def build_parser() -> argparse.ArgumentParser:
    settings = ServerSettings()
    p = argparse.ArgumentParser(description="Triage Pipeline CLI")
    sub = p.add_subparsers(dest="command", required=True)

    p_triage = sub.add_parser("triage")
    p_triage.add_argument("--domain", type=str, required=True)
    p_triage.add_argument("--message", type=str, required=True)
    p_triage.add_argument("--history", type=Path, default=None)

    sub.add_parser("domains")

    p_api = sub.add_parser("serve-api")
    p_api.add_argument("--host", type=str, default=settings.host)
    p_api.add_argument("--port", type=int, default=settings.port)

    return p


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "triage":
        from triage.cli.run import cmd_triage
        try:
            cmd_triage(message=args.message, domain_id=args.domain, history_path=args.history)
        except UnknownDomainError as exc:
            parser.error(str(exc))
        except ValueError as exc:
            # Malformed --history: bad JSON, non-object turns, unknown roles.
            parser.error(f"invalid history: {exc}")

    elif args.command == "domains":
        from triage.cli.run import cmd_domains
        cmd_domains()

    elif args.command == "serve-api":
        from triage.cli.serve import cmd_serve_api
        cmd_serve_api(host=args.host, port=args.port, log_level=ServerSettings().log_level)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
