"""Profile commands for cardkeep CLI."""

import logging
from typing import TYPE_CHECKING

from cardkeep.cli.commands.helpers import collect_fields, print_json
from cardkeep.types import PROFILE_WIRE_KEYS, Profile

if TYPE_CHECKING:
    from cardkeep import CardKeep

logger = logging.getLogger(__name__)


def cmd_profile(args, k: "CardKeep"):
    """Show or edit the owner's own card."""
    if args.profile_action == "show":
        profile = k.get_profile()
        if args.json:
            data = None
            if profile is not None:
                data = {**profile.fields(), "dirty": k.store.is_dirty(k.owner_id)}
                data["last_synced_at"] = profile.last_synced_at
            print_json(data)
            return
        if profile is None:
            print("No profile saved yet. Run `cardkeep profile set --name ...`")
            return
        for name, label in PROFILE_WIRE_KEYS.items():
            print(f"{label + ':':13} {getattr(profile, name) or '-'}")
        if k.store.is_dirty(k.owner_id):
            print()
            print("⚠️  Local edits not yet pushed. Run `cardkeep sync run`")

    elif args.profile_action == "set":
        # Fields not given keep their current value
        current = k.get_profile() or Profile()
        fields = {**current.fields(), **collect_fields(args)}
        profile = k.save_profile(fields)
        if args.json:
            print_json({**profile.fields(), "dirty": True})
        else:
            print("✓ Profile saved (will push on next sync)")
