"""Sync commands for cardkeep CLI - run a reconciliation or show status."""

import logging
import sys
from typing import TYPE_CHECKING

from cardkeep.cli.commands.helpers import print_json, report_to_dict, run_async

if TYPE_CHECKING:
    from cardkeep import CardKeep

logger = logging.getLogger(__name__)


def cmd_sync(args, k: "CardKeep"):
    """Handle sync subcommands."""
    if args.sync_action == "run":
        if k.remote is None:
            if args.json:
                print_json({"online": False, "error": "replica not configured"})
            else:
                print("✗ Replica not configured")
                print("  Set CARDKEEP_DATABASE_URL and CARDKEEP_AUTH_TOKEN")
            sys.exit(1)

        report = run_async(k, k.sync())
        if args.json:
            print_json(report_to_dict(report))
        elif not report.online:
            print("✗ Offline - sync skipped")
        else:
            print(f"Profile: {report.profile.direction.value}")
            cards = report.cards
            print(
                f"Cards: pushed {cards.pushed}, pulled {cards.pulled}, "
                f"canonicalized {cards.canonicalized}, removed {cards.deleted}"
            )
            if report.errors:
                print(f"⚠️  {len(report.errors)} error(s):")
                for error in report.errors:
                    print(f"   - {error}")
            else:
                print("✓ Sync complete")
        if not report.success:
            sys.exit(1)

    elif args.sync_action == "status":
        online = run_async(k, k.is_online())
        profile = k.get_profile()
        status = {
            "owner_id": k.owner_id,
            "replica_configured": k.remote is not None,
            "online": online,
            "local_cards": len(k.list_cards()),
            "profile_dirty": k.store.is_dirty(k.owner_id),
            "profile_last_synced_at": profile.last_synced_at if profile else None,
            "auto_sync": k.auto_sync,
        }
        if args.json:
            print_json(status)
            return

        print("Sync Status")
        print("=" * 50)
        print(f"Owner: {status['owner_id']}")
        if not status["replica_configured"]:
            print("✗ Replica not configured")
        else:
            conn_icon = "🟢" if online else "🔴"
            print(f"{conn_icon} Replica: {'reachable' if online else 'unreachable'}")
        print(f"📇 Local cards: {status['local_cards']}")
        dirty_icon = "🟡" if status["profile_dirty"] else "✓"
        print(f"{dirty_icon} Profile pending push: {'yes' if status['profile_dirty'] else 'no'}")
        last = status["profile_last_synced_at"] or "Never"
        print(f"🕐 Profile last stored: {last}")
