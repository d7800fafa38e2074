"""Filesystem helpers shared by storage, config and logging."""

import logging
import os
import re
from pathlib import Path

logger = logging.getLogger(__name__)

_OWNER_ID_RE = re.compile(r"^[A-Za-z0-9_\-:.@]+$")


def get_cardkeep_home() -> Path:
    """Return the cardkeep data directory.

    ``CARDKEEP_DATA_DIR`` wins when set; otherwise ``~/.cardkeep``.
    """
    override = os.environ.get("CARDKEEP_DATA_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".cardkeep"


def validate_owner_id(owner_id: str) -> str:
    """Validate an owner id before it is used in remote paths.

    Owner ids become path segments of the remote tree, so separators and
    traversal components are rejected.

    Raises:
        ValueError: If the owner id is empty or unsafe.
    """
    if not owner_id or not owner_id.strip():
        raise ValueError("Owner ID cannot be empty")
    owner_id = owner_id.strip()
    if owner_id == "." or ".." in owner_id:
        raise ValueError("Owner ID must not be a relative path component")
    if not _OWNER_ID_RE.match(owner_id):
        raise ValueError("Owner ID contains unsupported characters")
    return owner_id
