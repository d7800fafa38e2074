"""
cardkeep CLI - Command-line interface for offline-first contact cards.

Usage:
    cardkeep cards list [--json]
    cardkeep cards add --name NAME [--email E] [--phone P] ...
    cardkeep cards delete ID
    cardkeep cards scan PAYLOAD|-
    cardkeep profile show [--json]
    cardkeep profile set [--name N] [--email E] ...
    cardkeep sync run [--json]
    cardkeep sync status [--json]
"""

import argparse
import logging
import sys

from cardkeep import CardKeep
from cardkeep.cli.commands import cmd_cards, cmd_profile, cmd_sync
from cardkeep.cli.commands.helpers import add_field_arguments, validate_input
from cardkeep.config import load_settings
from cardkeep.logging_config import setup_cardkeep_logging
from cardkeep.types import ConfigurationError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cardkeep",
        description="Offline-first contact cards",
    )
    parser.add_argument("--owner", "-o", help="Owner (account) ID", default=None)
    parser.add_argument("--db", help="Path to the local SQLite database", default=None)
    parser.add_argument("--log-level", dest="log_level", default=None, help="Log level")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # cards
    p_cards = subparsers.add_parser("cards", help="Saved contact cards")
    cards_sub = p_cards.add_subparsers(dest="cards_action", required=True)

    cards_list = cards_sub.add_parser("list", help="List saved cards")
    cards_list.add_argument("--json", "-j", action="store_true")

    cards_add = cards_sub.add_parser("add", help="Save a card entered by hand")
    add_field_arguments(cards_add)
    cards_add.add_argument("--json", "-j", action="store_true")

    cards_delete = cards_sub.add_parser("delete", help="Delete a card everywhere")
    cards_delete.add_argument("id", type=int, help="Local card id (from `cards list`)")
    cards_delete.add_argument("--json", "-j", action="store_true")

    cards_scan = cards_sub.add_parser("scan", help="Save a scanned card payload")
    cards_scan.add_argument("payload", help="Scanned text, or - to read stdin")
    cards_scan.add_argument("--json", "-j", action="store_true")

    # profile
    p_profile = subparsers.add_parser("profile", help="Your own card")
    profile_sub = p_profile.add_subparsers(dest="profile_action", required=True)

    profile_show = profile_sub.add_parser("show", help="Show your profile")
    profile_show.add_argument("--json", "-j", action="store_true")

    profile_set = profile_sub.add_parser("set", help="Edit your profile")
    add_field_arguments(profile_set)
    profile_set.add_argument("--json", "-j", action="store_true")

    # sync
    p_sync = subparsers.add_parser("sync", help="Reconcile with the remote replica")
    sync_sub = p_sync.add_subparsers(dest="sync_action", required=True)

    sync_run = sync_sub.add_parser("run", help="Run a full sync now")
    sync_run.add_argument("--json", "-j", action="store_true")

    sync_status = sync_sub.add_parser("status", help="Show sync status")
    sync_status.add_argument("--json", "-j", action="store_true")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    # Initialize CardKeep with error handling
    try:
        owner = validate_input(args.owner, "owner", 128) if args.owner else None
        settings = load_settings(owner_id=owner, db_path=args.db, log_level=args.log_level)
        setup_cardkeep_logging(settings.owner_id or "default", settings.log_level)
        k = CardKeep.from_settings(settings)
    except ConfigurationError as e:
        print(f"✗ {e}")
        sys.exit(1)
    except (ValueError, TypeError) as e:
        logger.error(f"Failed to initialize cardkeep: {e}")
        print(f"✗ {e}", file=sys.stderr)
        sys.exit(1)

    # Dispatch with error handling
    try:
        if args.command == "cards":
            cmd_cards(args, k)
        elif args.command == "profile":
            cmd_profile(args, k)
        elif args.command == "sync":
            cmd_sync(args, k)
    except (ValueError, TypeError) as e:
        logger.error(f"Input validation error: {e}")
        print(f"✗ {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Command failed: {e}")
        print(f"✗ Command failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
