"""Remote replica clients for cardkeep.

The replica is a key-value tree per owner::

    users/<owner>/profile          {"Name": ..., "Occupation": ..., ...}
    users/<owner>/cards/<key>      {"name": ..., ..., "source": ..., "createdAt": ...}

``FirebaseReplica`` talks to the Firebase Realtime Database REST API.
``InMemoryReplica`` keeps the same tree in a dict and counts writes; it is
what tests and offline demos use.
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Union
from urllib.parse import quote

import httpx

from cardkeep.types import Card, Profile, RemoteCard, RemoteReplicaError
from cardkeep.utils import validate_owner_id

logger = logging.getLogger(__name__)

CardFields = Union[Card, Mapping[str, Any]]


def _card_payload(card: CardFields, source: Optional[str], created_at: Optional[str]) -> Dict:
    fields = card.fields() if isinstance(card, Card) else Card.from_fields(card).fields()
    payload: Dict[str, Any] = dict(fields)
    payload["source"] = source
    payload["createdAt"] = created_at
    return payload


def parse_card_records(owner_id: str, records: Any) -> List[RemoteCard]:
    """Turn the ``cards`` subtree into RemoteCard objects.

    Non-object children (stray scalars left by old clients) are skipped.
    Missing fields read as empty strings.
    """
    if not records:
        return []
    if isinstance(records, list):
        # Firebase returns arrays when every key is a small integer
        records = {str(i): value for i, value in enumerate(records) if value is not None}
    if not isinstance(records, dict):
        logger.warning(f"Unexpected cards payload type for {owner_id}: {type(records).__name__}")
        return []

    cards = []
    for key, value in records.items():
        if not isinstance(value, dict):
            logger.debug(f"Skipping non-object card node {key!r}")
            continue
        cards.append(
            RemoteCard(
                key=str(key),
                card=Card.from_fields(value, owner_id=owner_id),
                created_at=value.get("createdAt") or None,
                source=value.get("source") or None,
            )
        )
    return cards


class FirebaseReplica:
    """Async client for a Firebase Realtime Database replica.

    Args:
        database_url: Base URL, e.g. ``https://<project>-default-rtdb.firebaseio.com``.
        auth_token: ID token or database secret passed as the ``auth`` query parameter.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        database_url: str,
        auth_token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.database_url = database_url.rstrip("/")
        self.auth_token = auth_token
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.database_url,
                timeout=httpx.Timeout(self.timeout),
                headers={"Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "FirebaseReplica":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _path(self, owner_id: str, *parts: str) -> str:
        owner_id = validate_owner_id(owner_id)
        segments = ["users", owner_id, *parts]
        return "/" + "/".join(quote(s, safe="") for s in segments) + ".json"

    def _params(self) -> Dict[str, str]:
        return {"auth": self.auth_token} if self.auth_token else {}

    async def _request(self, method: str, path: str, payload: Any = None) -> Any:
        try:
            if payload is None:
                response = await self.client.request(method, path, params=self._params())
            else:
                response = await self.client.request(
                    method, path, params=self._params(), json=payload
                )
        except httpx.HTTPError as e:
            raise RemoteReplicaError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            detail = response.text[:200]
            raise RemoteReplicaError(
                f"{method} {path} returned HTTP {response.status_code}: {detail}",
                status_code=response.status_code,
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RemoteReplicaError(f"{method} {path} returned invalid JSON") from e

    # === Cards ===

    async def list_cards(self, owner_id: str) -> List[RemoteCard]:
        records = await self._request("GET", self._path(owner_id, "cards"))
        return parse_card_records(owner_id, records)

    async def set_card(
        self,
        owner_id: str,
        key: str,
        card: CardFields,
        source: Optional[str],
        created_at: Optional[str],
    ) -> None:
        payload = _card_payload(card, source, created_at)
        await self._request("PUT", self._path(owner_id, "cards", key), payload)

    async def delete_card(self, owner_id: str, key: str) -> None:
        await self._request("DELETE", self._path(owner_id, "cards", key))

    # === Profile ===

    async def get_profile(self, owner_id: str) -> Optional[Profile]:
        payload = await self._request("GET", self._path(owner_id, "profile"))
        if not isinstance(payload, dict):
            return None
        return Profile.from_wire(payload)

    async def set_profile(self, owner_id: str, profile: Profile) -> None:
        await self._request("PUT", self._path(owner_id, "profile"), profile.to_wire())

    async def health_check(self) -> bool:
        """Cheap reachability probe: a shallow read of the root."""
        try:
            response = await self.client.get(
                "/.json", params={**self._params(), "shallow": "true"}
            )
        except httpx.HTTPError as e:
            logger.debug("Replica health check failed: %s", e)
            return False
        # 401 still proves the host is reachable
        return response.status_code < 500


class InMemoryReplica:
    """Dict-backed replica with call counters and failure injection.

    ``fail_on`` maps an operation name (``list_cards``, ``set_card``,
    ``delete_card``, ``get_profile``, ``set_profile``) to a predicate over
    the call arguments; when it returns True the call raises
    ``RemoteReplicaError`` instead of touching the tree.
    """

    def __init__(self):
        self.tree: Dict[str, Dict[str, Any]] = {}
        self.writes = 0
        self.deletes = 0
        self.calls: List[str] = []
        self.fail_on: Dict[str, Callable[..., bool]] = {}

    def _owner(self, owner_id: str) -> Dict[str, Any]:
        return self.tree.setdefault(owner_id, {"cards": {}, "profile": None})

    def _check(self, op: str, *args: Any) -> None:
        self.calls.append(op)
        predicate = self.fail_on.get(op)
        if predicate is not None and predicate(*args):
            raise RemoteReplicaError(f"{op} failed (injected)")

    def seed_card(
        self,
        owner_id: str,
        key: str,
        card: CardFields,
        source: Optional[str] = None,
        created_at: Optional[str] = None,
    ) -> None:
        """Place a record directly, bypassing counters (test setup)."""
        self._owner(owner_id)["cards"][key] = _card_payload(card, source, created_at)

    def seed_profile(self, owner_id: str, profile: Profile) -> None:
        self._owner(owner_id)["profile"] = profile.to_wire()

    def card_keys(self, owner_id: str) -> List[str]:
        return list(self._owner(owner_id)["cards"].keys())

    def card_payload(self, owner_id: str, key: str) -> Optional[Dict[str, Any]]:
        return self._owner(owner_id)["cards"].get(key)

    def reset_counters(self) -> None:
        self.writes = 0
        self.deletes = 0
        self.calls = []

    async def list_cards(self, owner_id: str) -> List[RemoteCard]:
        self._check("list_cards", owner_id)
        return parse_card_records(owner_id, dict(self._owner(owner_id)["cards"]))

    async def set_card(
        self,
        owner_id: str,
        key: str,
        card: CardFields,
        source: Optional[str],
        created_at: Optional[str],
    ) -> None:
        self._check("set_card", owner_id, key)
        self._owner(owner_id)["cards"][key] = _card_payload(card, source, created_at)
        self.writes += 1

    async def delete_card(self, owner_id: str, key: str) -> None:
        self._check("delete_card", owner_id, key)
        self._owner(owner_id)["cards"].pop(key, None)
        self.deletes += 1

    async def get_profile(self, owner_id: str) -> Optional[Profile]:
        self._check("get_profile", owner_id)
        payload = self._owner(owner_id)["profile"]
        return Profile.from_wire(payload) if payload else None

    async def set_profile(self, owner_id: str, profile: Profile) -> None:
        self._check("set_profile", owner_id)
        self._owner(owner_id)["profile"] = profile.to_wire()
        self.writes += 1

    async def health_check(self) -> bool:
        return "health_check" not in self.fail_on
