"""Card commands for cardkeep CLI - list, add, delete, scan."""

import logging
import sys
from typing import TYPE_CHECKING

from cardkeep.cli.commands.helpers import (
    card_to_dict,
    collect_fields,
    print_json,
    run_async,
    validate_input,
)
from cardkeep.types import Card, ScanRejectedError

if TYPE_CHECKING:
    from cardkeep import CardKeep

logger = logging.getLogger(__name__)


def _print_card(card) -> None:
    print(f"[{card.id}] {card.name or '(no name)'}")
    for label, value in (
        ("Occupation", card.occupation),
        ("Email", card.email),
        ("Phone", card.phone),
        ("Instagram", card.instagram),
        ("Website", card.website),
        ("Address", card.address),
    ):
        if value:
            print(f"    {label}: {value}")


def cmd_cards(args, k: "CardKeep"):
    """Handle cards subcommands."""
    if args.cards_action == "list":
        cards = k.list_cards()
        if args.json:
            print_json([card_to_dict(c) for c in cards])
            return
        if not cards:
            print("No saved cards.")
            return
        print(f"Saved cards ({len(cards)})")
        print("=" * 50)
        for card in cards:
            _print_card(card)

    elif args.cards_action == "add":
        fields = collect_fields(args)
        if Card.from_fields(fields).is_empty():
            print("✗ Give at least one field (e.g. --name)")
            sys.exit(1)
        card = k.add_card(fields)
        if args.json:
            print_json(card_to_dict(card))
        else:
            print(f"✓ Saved card [{card.id}] {card.name}")

    elif args.cards_action == "delete":
        result = run_async(k, k.delete_card(row_id=args.id))
        if args.json:
            print_json(result)
        elif result["local"] == 0:
            print(f"✗ No card with id {args.id}")
            sys.exit(1)
        else:
            print(f"✓ Deleted card {args.id} (remote records removed: {result['remote']})")

    elif args.cards_action == "scan":
        raw = sys.stdin.read() if args.payload == "-" else args.payload
        raw = validate_input(raw, "payload", 4000)
        try:
            card = run_async(k, k.save_scanned_card(raw))
        except ScanRejectedError as e:
            if args.json:
                print_json({"saved": False, "error": str(e)})
            else:
                print(f"✗ {e}")
            sys.exit(1)
        if args.json:
            print_json({"saved": True, "card": card_to_dict(card)})
        else:
            print(f"✓ Saved scanned card: {card.name}")
