"""Configuration settings for cardkeep.

Settings come from ``CARDKEEP_*`` environment variables (or a ``.env``
file). Anything still missing is filled from ``<home>/credentials.json``,
which is what ``cardkeep`` writes after sign-in.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from cardkeep.types import ConfigurationError
from cardkeep.utils import get_cardkeep_home

logger = logging.getLogger(__name__)


def validate_database_url(url: Optional[str], *, allow_localhost_http: bool = True) -> Optional[str]:
    """Validate a replica URL for safe credential transmission.

    Rejects non-http/https schemes, URLs with no host, and remote HTTP
    endpoints (only localhost/127.0.0.1 are allowed over plaintext HTTP).

    Returns:
        The URL without a trailing slash if valid, or ``None`` if rejected.
    """
    if not url:
        return None
    from urllib.parse import urlparse

    parsed = urlparse(url)
    if parsed.scheme not in {"https", "http"}:
        logger.warning("Invalid database_url scheme; only http/https allowed.")
        return None
    if not parsed.netloc:
        logger.warning("Invalid database_url; missing host.")
        return None
    if parsed.scheme == "http":
        if not allow_localhost_http:
            logger.warning("HTTP not allowed in this context.")
            return None
        host = parsed.hostname or ""
        if host not in {"localhost", "127.0.0.1"}:
            logger.warning("Refusing non-local http database_url for security.")
            return None
    return url.rstrip("/")


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_prefix="CARDKEEP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Signed-in account
    owner_id: Optional[str] = None
    account_email: Optional[str] = None

    # Remote replica (Firebase Realtime Database REST endpoint)
    database_url: Optional[str] = None
    auth_token: Optional[str] = None
    request_timeout: float = 10.0

    # Local store
    db_path: Optional[Path] = None

    # Sync behaviour
    auto_sync: bool = True
    connectivity_timeout: float = 5.0
    connectivity_cache_ttl: float = 30.0

    log_level: str = "INFO"

    def resolved_db_path(self) -> Path:
        return self.db_path or (get_cardkeep_home() / "cards.db")

    def has_remote(self) -> bool:
        return bool(self.database_url and self.auth_token)

    def require_owner(self) -> str:
        if not self.owner_id:
            raise ConfigurationError(
                "No owner configured (set CARDKEEP_OWNER_ID or sign in to write credentials.json)"
            )
        return self.owner_id


def _read_credentials(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.debug(f"Failed to load credentials file: {e}")
        return {}
    return data if isinstance(data, dict) else {}


def load_settings(credentials_path: Optional[Path] = None, **overrides) -> Settings:
    """Build settings with env vars taking priority over credentials.json.

    Args:
        credentials_path: Override for ``<home>/credentials.json``.
        **overrides: Explicit values (e.g. from CLI flags); highest priority.
    """
    settings = Settings(**{k: v for k, v in overrides.items() if v is not None})
    creds = _read_credentials(credentials_path or get_cardkeep_home() / "credentials.json")

    updates = {}
    if not settings.owner_id:
        updates["owner_id"] = creds.get("owner_id") or creds.get("user_id")
    if not settings.account_email:
        updates["account_email"] = creds.get("email")
    if not settings.database_url:
        updates["database_url"] = creds.get("database_url")
    if not settings.auth_token:
        # Accept "auth_token" (preferred) and "id_token" (written by older sign-in flows)
        updates["auth_token"] = creds.get("auth_token") or creds.get("id_token")

    updates = {k: v for k, v in updates.items() if v}
    if updates:
        settings = settings.model_copy(update=updates)

    if settings.database_url:
        validated = validate_database_url(settings.database_url)
        settings = settings.model_copy(update={"database_url": validated})
    return settings
