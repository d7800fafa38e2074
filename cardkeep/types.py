"""
Shared card types for cardkeep.

Cards, profiles and the records read back from the remote replica are plain
dataclasses. They are the vocabulary shared by the local store, the replica
and the reconciler.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

# The seven textual fields, in content-key order.
CARD_FIELDS = ("name", "occupation", "email", "phone", "instagram", "website", "address")

# Remote profile records use capitalized field names.
PROFILE_WIRE_KEYS = {
    "name": "Name",
    "occupation": "Occupation",
    "email": "Email",
    "phone": "Phone",
    "instagram": "Instagram",
    "website": "Website",
    "address": "Address",
}

REMOTE_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


# === Shared Utility Functions ===


def utc_now() -> str:
    """Get current timestamp as ISO string in UTC."""
    return datetime.now(timezone.utc).isoformat()


def remote_timestamp(now: Optional[datetime] = None) -> str:
    """Format a UTC timestamp the way remote card records store ``createdAt``."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime(REMOTE_TIMESTAMP_FORMAT)


def parse_datetime(s: Optional[str]) -> Optional[datetime]:
    """Parse ISO datetime string. Returns None for empty or malformed input."""
    if not s:
        return None
    try:
        parsed = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


# === Enums ===


class CardSource(str, Enum):
    """How a card reached the remote replica. Manual cards carry no source."""

    SCAN = "scan"
    LOCAL_SYNC = "local_sync"


class SyncDirection(str, Enum):
    """Which replica won a profile sync."""

    PUSH = "push"
    PULL = "pull"
    SKIPPED = "skipped"


# === Errors ===


class CardKeepError(Exception):
    """Base class for cardkeep errors."""


class RemoteReplicaError(CardKeepError):
    """A remote replica call failed (network, timeout or HTTP error)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ScanRejectedError(CardKeepError):
    """A scanned payload does not look like a business card."""


class ConfigurationError(CardKeepError):
    """Required settings (owner id, database url, token) are missing."""


# === Records ===


@dataclass
class Card:
    """A saved contact card.

    ``id`` is the local row id and has no meaning on the remote replica.
    """

    owner_id: str = ""
    name: str = ""
    occupation: str = ""
    email: str = ""
    phone: str = ""
    instagram: str = ""
    website: str = ""
    address: str = ""
    created_at: Optional[str] = None
    source: Optional[str] = None
    id: Optional[int] = None

    @classmethod
    def from_fields(cls, fields: Mapping[str, Any], owner_id: str = "", **extra: Any) -> "Card":
        """Build a card from any mapping holding the seven field names."""
        values = {name: _text(fields.get(name)) for name in CARD_FIELDS}
        return cls(owner_id=owner_id, **values, **extra)

    def fields(self) -> Dict[str, str]:
        """The seven textual fields as a dict, in content-key order."""
        return {name: _text(getattr(self, name)) for name in CARD_FIELDS}

    def field_tuple(self) -> tuple:
        return tuple(self.fields().values())

    def is_empty(self) -> bool:
        return not any(value.strip() for value in self.fields().values())


@dataclass
class RemoteCard:
    """A card record as listed from the remote replica.

    ``key`` is the node key: a fingerprint for canonical records, or an
    arbitrary legacy string for records written before keys were derived
    from content.
    """

    key: str
    card: Card
    created_at: Optional[str] = None
    source: Optional[str] = None

    @property
    def created_at_dt(self) -> Optional[datetime]:
        return parse_datetime(self.created_at)

    @property
    def is_canonical(self) -> bool:
        """True when the node key is the fingerprint of the record's content."""
        from cardkeep.content_key import card_fingerprint

        return self.key == card_fingerprint(self.card)


@dataclass
class Profile:
    """The owner's own card. One per owner in each replica."""

    name: str = ""
    occupation: str = ""
    email: str = ""
    phone: str = ""
    instagram: str = ""
    website: str = ""
    address: str = ""
    last_synced_at: Optional[str] = None
    dirty: bool = False

    @classmethod
    def from_fields(cls, fields: Mapping[str, Any], **extra: Any) -> "Profile":
        values = {name: _text(fields.get(name)) for name in CARD_FIELDS}
        return cls(**values, **extra)

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> "Profile":
        """Build a profile from a remote record with capitalized keys."""
        values = {name: _text(payload.get(wire)) for name, wire in PROFILE_WIRE_KEYS.items()}
        return cls(**values)

    def fields(self) -> Dict[str, str]:
        return {name: _text(getattr(self, name)) for name in CARD_FIELDS}

    def to_wire(self) -> Dict[str, str]:
        return {PROFILE_WIRE_KEYS[name]: value for name, value in self.fields().items()}


# === Sync results ===


@dataclass
class CardSyncResult:
    """Outcome of one card reconciliation pass."""

    pushed: int = 0  # Local-only cards written to the replica
    pulled: int = 0  # Remote-only cards inserted locally
    canonicalized: int = 0  # Canonical records (re)written under their fingerprint
    deleted: int = 0  # Duplicate or legacy remote records removed
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0

    @property
    def remote_writes(self) -> int:
        return self.pushed + self.canonicalized


@dataclass
class ProfileSyncResult:
    """Outcome of one profile reconciliation pass."""

    direction: SyncDirection = SyncDirection.SKIPPED
    changed: bool = False
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0


@dataclass
class SyncReport:
    """Outcome of a full run: profile phase then card phase."""

    owner_id: str
    online: bool = True
    profile: Optional[ProfileSyncResult] = None
    cards: Optional[CardSyncResult] = None
    started_at: str = field(default_factory=utc_now)
    finished_at: Optional[str] = None

    @property
    def errors(self) -> List[str]:
        errors: List[str] = []
        if self.profile:
            errors.extend(self.profile.errors)
        if self.cards:
            errors.extend(self.cards.errors)
        return errors

    @property
    def success(self) -> bool:
        return self.online and not self.errors
