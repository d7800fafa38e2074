"""Content-derived identity for cards and profiles.

Two cards are the same logical card when their content keys are equal.
The content key trims every field and lower-cases only the email; nothing
else is folded, so ``"Jane"`` and ``"jane"`` stay distinct. The fingerprint
(SHA-256 hex of the key) is the card's node key on the remote replica.
"""

import hashlib
from typing import Any, Mapping, Union

from cardkeep.types import CARD_FIELDS, Card, Profile

KEY_DELIMITER = "|"

FieldSource = Union[Card, Profile, Mapping[str, Any]]


def _field_values(source: FieldSource) -> Mapping[str, Any]:
    if isinstance(source, (Card, Profile)):
        return source.fields()
    return source


def content_key(source: FieldSource) -> str:
    """Canonical, order-stable string for the seven textual fields."""
    values = _field_values(source)
    parts = []
    for name in CARD_FIELDS:
        value = values.get(name) or ""
        value = str(value).strip()
        if name == "email":
            value = value.lower()
        parts.append(value)
    return KEY_DELIMITER.join(parts)


def fingerprint(key: str) -> str:
    """SHA-256 of the UTF-8 content key, as lowercase hex."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def card_fingerprint(source: FieldSource) -> str:
    """Fingerprint of a card (or any field mapping) in one step."""
    return fingerprint(content_key(source))


def profile_content_key(profile: Profile) -> str:
    """Content key of a profile. Same normalization as cards."""
    return content_key(profile)
