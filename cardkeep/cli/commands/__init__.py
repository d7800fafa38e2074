"""CLI command modules for cardkeep.

Each module contains the handlers for one command group.
"""

from cardkeep.cli.commands.cards import cmd_cards
from cardkeep.cli.commands.profile import cmd_profile
from cardkeep.cli.commands.sync import cmd_sync

__all__ = ["cmd_cards", "cmd_profile", "cmd_sync"]
