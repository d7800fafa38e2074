"""Shared helper functions for CLI commands."""

import asyncio
import json
import re
from dataclasses import asdict
from typing import TYPE_CHECKING, Any, Awaitable, Dict

from cardkeep.content_key import card_fingerprint
from cardkeep.types import CARD_FIELDS, Card, SyncReport

if TYPE_CHECKING:
    from cardkeep import CardKeep


def validate_input(value: str, field_name: str, max_length: int = 1000) -> str:
    """Validate and sanitize CLI inputs."""
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")

    if len(value) > max_length:
        raise ValueError(f"{field_name} too long (max {max_length} characters)")

    # Remove null bytes and control characters except newlines
    sanitized = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", value)

    return sanitized


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""
    print(json.dumps(data, indent=2, default=str))


def add_field_arguments(parser) -> None:
    """Add one ``--<field>`` option per card field."""
    for name in CARD_FIELDS:
        parser.add_argument(f"--{name}", default=None, help=f"Card {name}")


def collect_fields(args) -> Dict[str, str]:
    """Fields given on the command line, sanitized. Omitted fields are absent."""
    fields = {}
    for name in CARD_FIELDS:
        value = getattr(args, name, None)
        if value is not None:
            fields[name] = validate_input(value, name, 500)
    return fields


def card_to_dict(card: Card) -> Dict[str, Any]:
    data = {"id": card.id, **card.fields(), "created_at": card.created_at}
    data["fingerprint"] = card_fingerprint(card)
    return data


def report_to_dict(report: SyncReport) -> Dict[str, Any]:
    data = asdict(report)
    if report.profile is not None:
        data["profile"]["direction"] = report.profile.direction.value
    data["success"] = report.success
    data["errors"] = report.errors
    return data


def run_async(k: "CardKeep", awaitable: Awaitable) -> Any:
    """Run one coroutine and close the replica client afterwards."""

    async def _main():
        try:
            return await awaitable
        finally:
            await k.close()

    return asyncio.run(_main())
