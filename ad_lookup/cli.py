"""
Operator command line for directory lookups.

Examples:
    ad-lookup search jdoe --domain all
    ad-lookup find LUX\\jdoe
    ad-lookup health
    ad-lookup set-expiration jdoe --domain essilor --date 2025-12-31
"""

import argparse
import getpass
import json
import logging
import sys
from datetime import datetime
from typing import Dict, List, Optional

from ad_lookup.actions import AccountActionAdapter
from ad_lookup.clients import DomainClient, build_domain_clients
from ad_lookup.config import ALL_DOMAINS, Settings
from ad_lookup.errors import DirectoryLookupError
from ad_lookup.models import SearchFilter
from ad_lookup.search import SearchOrchestrator

logger = logging.getLogger("ad_lookup")


def configure_logging(level: str) -> None:
    """Send library logs to stderr so stdout stays machine-readable."""
    if logger.handlers:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))


def parse_date(value: str):
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date {value!r}, expected YYYY-MM-DD")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ad-lookup",
        description="Search and manage directory user accounts across domains.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("search", help="Search users by login or display name.")
    search.add_argument("term")
    search.add_argument("--domain", default=ALL_DOMAINS, help="Domain key or 'all' (default: all).")

    advanced = sub.add_parser("advanced", help="Search users by structured criteria.")
    advanced.add_argument("--domain", default=ALL_DOMAINS)
    advanced.add_argument("--name")
    advanced.add_argument("--employee-id")
    advanced.add_argument("--email")
    advanced.add_argument("--department")

    find = sub.add_parser("find", help="Show a single account.")
    find.add_argument("account")
    find.add_argument("--domain", help="Domain key (optional for DOMAIN\\user or user@domain).")

    health = sub.add_parser("health", help="Test directory connectivity.")
    health.add_argument("--domain", help="Domain key (default: every configured domain).")

    for name, help_text in (
        ("unlock", "Unlock a locked-out account."),
        ("reset-password", "Set a new password (prompted)."),
        ("set-expiration", "Set the account expiration date."),
    ):
        action = sub.add_parser(name, help=help_text)
        action.add_argument("account")
        action.add_argument("--domain")
        if name == "set-expiration":
            action.add_argument("--date", required=True, type=parse_date, help="Expiration date as YYYY-MM-DD.")

    return parser


def run(args: argparse.Namespace, clients: Dict[str, DomainClient], settings: Settings) -> object:
    """Execute a parsed command and return a JSON-serializable result."""
    actions = AccountActionAdapter(clients)

    with SearchOrchestrator.from_settings(settings, clients) as orchestrator:
        if args.command == "search":
            return [u.to_dict() for u in orchestrator.search_users(args.term, args.domain)]

        if args.command == "advanced":
            criteria = SearchFilter(
                name=args.name,
                employee_id=args.employee_id,
                email=args.email,
                department=args.department,
            )
            return [u.to_dict() for u in orchestrator.advanced_search(criteria, args.domain)]

        if args.command == "find":
            return orchestrator.find_user(args.account, args.domain).to_dict()

        if args.command == "health":
            if args.domain:
                return {args.domain: orchestrator.check_connection(args.domain)}
            return orchestrator.check_all_connections()

    if args.command == "unlock":
        actions.unlock_account(args.account, args.domain)
    elif args.command == "reset-password":
        actions.reset_password(args.account, args.domain, getpass.getpass("New password: "))
    elif args.command == "set-expiration":
        actions.set_expiration(args.account, args.domain, args.date)
    return {"success": True, "account": args.account}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings()
    configure_logging(settings.log_level)

    try:
        clients = build_domain_clients(settings)
        result = run(args, clients, settings)
    except DirectoryLookupError as e:
        print(json.dumps({"success": False, "error": e.error_code, "message": e.message}))
        return 1

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
