"""Content-addressable store client for credential and profile payloads.

Contract
--------
  put(payload) -> content_address
  get(content_address) -> payload

`put` either stores the whole payload or raises; there is no partial
write.  Failures are classified so the caller can tell "try again later"
from "fix the payload":

  StoreUnavailable   transport error, timeout, 5xx, 429, bad response
  StoreRejected      payload is not a JSON object, or the service said 4xx
  ContentNotFound    `get` of an address the store does not know

Nothing in this module retries.  Only the issuance coordinator knows
whether a ledger write already references an address, so the retry
decision belongs there (and it declines to make one; see issuance.py).

Implementations
---------------
  InMemoryContentStore   dev/tests; address = CIDv1 of canonical JSON
  PinataContentStore     Pinata pinning API + IPFS gateway over httpx
  CachingContentStore    read-through cache in front of either
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
from typing import Any, Protocol, runtime_checkable

import httpx

from credential_service.core.config import SETTINGS
from credential_service.core.errors import (
    ContentNotFound,
    StoreRejected,
    StoreUnavailable,
)
from credential_service.core.metrics import CACHE_OPERATIONS, CONTENT_STORE_OPERATIONS
from credential_service.services.cache import CacheService, cache_service

logger = logging.getLogger(__name__)

# CIDv1 header: version 1, multicodec json (0x0200 as varint), sha2-256, 32 bytes
_CID_PREFIX = bytes([0x01, 0x80, 0x04, 0x12, 0x20])


def canonical_json(payload: Any) -> bytes:
    """Serialize a payload deterministically.

    Raises StoreRejected for anything that is not a JSON object of
    JSON-representable values.
    """
    if not isinstance(payload, dict):
        raise StoreRejected(
            f"payload must be a JSON object (got {type(payload).__name__})",
            step="content_upload",
        )
    try:
        text = json.dumps(
            payload,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as e:
        raise StoreRejected(f"payload is not JSON-serializable: {e}", step="content_upload") from None
    return text.encode("utf-8")


def compute_content_address(payload: dict[str, Any]) -> str:
    """Base32 CIDv1 ("b..." multibase) of the canonical JSON encoding."""
    digest = hashlib.sha256(canonical_json(payload)).digest()
    encoded = base64.b32encode(_CID_PREFIX + digest).decode("ascii").rstrip("=")
    return "b" + encoded.lower()


@runtime_checkable
class ContentStore(Protocol):
    async def put(self, payload: dict[str, Any]) -> str: ...
    async def get(self, content_address: str) -> dict[str, Any]: ...
    async def aclose(self) -> None: ...


class InMemoryContentStore:
    """Process-local store for dev and tests."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}

    async def put(self, payload: dict[str, Any]) -> str:
        try:
            data = canonical_json(payload)
        except StoreRejected:
            CONTENT_STORE_OPERATIONS.labels(operation="put", result="rejected").inc()
            raise
        address = compute_content_address(payload)
        self._blobs[address] = data
        CONTENT_STORE_OPERATIONS.labels(operation="put", result="ok").inc()
        return address

    async def get(self, content_address: str) -> dict[str, Any]:
        data = self._blobs.get(content_address)
        if data is None:
            CONTENT_STORE_OPERATIONS.labels(operation="get", result="not_found").inc()
            raise ContentNotFound(content_address)
        CONTENT_STORE_OPERATIONS.labels(operation="get", result="ok").inc()
        return json.loads(data)

    async def aclose(self) -> None:
        return None


class PinataContentStore:
    """Pinata pinning API for writes, IPFS HTTP gateway for reads.

    Authenticated with the static key pair Pinata issues per account
    (sent only to the pinning API, never to the public gateway).
    """

    def __init__(
        self,
        *,
        api_url: str,
        gateway_url: str,
        api_key: str,
        secret_key: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._gateway_url = gateway_url.rstrip("/")
        self._auth_headers = {
            "pinata_api_key": api_key,
            "pinata_secret_api_key": secret_key,
        }
        self._http = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=10.0),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def put(self, payload: dict[str, Any]) -> str:
        try:
            body = canonical_json(payload)
        except StoreRejected:
            CONTENT_STORE_OPERATIONS.labels(operation="put", result="rejected").inc()
            raise

        try:
            response = await self._http.post(
                f"{self._api_url}/pinning/pinJSONToIPFS",
                content=body,
                headers={**self._auth_headers, "Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            CONTENT_STORE_OPERATIONS.labels(operation="put", result="unavailable").inc()
            logger.warning("Content store put failed: %s", type(e).__name__)
            raise StoreUnavailable(
                f"content store unreachable: {type(e).__name__}", step="content_upload"
            ) from e

        if response.status_code >= 500 or response.status_code == 429:
            CONTENT_STORE_OPERATIONS.labels(operation="put", result="unavailable").inc()
            raise StoreUnavailable(
                f"content store returned {response.status_code}", step="content_upload"
            )
        if response.status_code >= 400:
            CONTENT_STORE_OPERATIONS.labels(operation="put", result="rejected").inc()
            raise StoreRejected(
                f"content store rejected payload ({response.status_code}): "
                f"{response.text[:200]}",
                step="content_upload",
            )

        try:
            address = response.json()["IpfsHash"]
        except (ValueError, KeyError, TypeError):
            CONTENT_STORE_OPERATIONS.labels(operation="put", result="unavailable").inc()
            raise StoreUnavailable(
                "content store response missing IpfsHash", step="content_upload"
            ) from None

        CONTENT_STORE_OPERATIONS.labels(operation="put", result="ok").inc()
        return str(address)

    async def get(self, content_address: str) -> dict[str, Any]:
        try:
            response = await self._http.get(f"{self._gateway_url}/ipfs/{content_address}")
        except httpx.HTTPError as e:
            CONTENT_STORE_OPERATIONS.labels(operation="get", result="unavailable").inc()
            logger.warning(
                "Content store get failed: %s",
                type(e).__name__,
                extra={"content_address": content_address},
            )
            raise StoreUnavailable(
                f"content store unreachable: {type(e).__name__}", step="content_fetch"
            ) from e

        # Gateways answer 400 for syntactically invalid CIDs.
        if response.status_code in (400, 404, 410):
            CONTENT_STORE_OPERATIONS.labels(operation="get", result="not_found").inc()
            raise ContentNotFound(content_address)
        if response.status_code >= 400:
            CONTENT_STORE_OPERATIONS.labels(operation="get", result="unavailable").inc()
            raise StoreUnavailable(
                f"content gateway returned {response.status_code}", step="content_fetch"
            )

        try:
            payload = response.json()
        except ValueError:
            CONTENT_STORE_OPERATIONS.labels(operation="get", result="unavailable").inc()
            raise StoreUnavailable(
                "content gateway returned a non-JSON body", step="content_fetch"
            ) from None

        CONTENT_STORE_OPERATIONS.labels(operation="get", result="ok").inc()
        return payload


class CachingContentStore:
    """Read-through cache in front of another store.

    Blobs are immutable per address, so a cached entry is never stale and
    `put` may prime the cache with what it just wrote.
    """

    TTL_SECONDS = 24 * 60 * 60

    def __init__(self, inner: ContentStore, cache: CacheService) -> None:
        self.inner = inner
        self._cache = cache

    async def put(self, payload: dict[str, Any]) -> str:
        address = await self.inner.put(payload)
        await self._cache.set(
            f"content:{address}", canonical_json(payload).decode("utf-8"), self.TTL_SECONDS
        )
        return address

    async def get(self, content_address: str) -> dict[str, Any]:
        key = f"content:{content_address}"
        cached = await self._cache.get(key)
        if cached is not None:
            CACHE_OPERATIONS.labels(operation="hit").inc()
            return json.loads(cached)

        CACHE_OPERATIONS.labels(operation="miss").inc()
        payload = await self.inner.get(content_address)
        await self._cache.set(
            key, json.dumps(payload, sort_keys=True, separators=(",", ":")), self.TTL_SECONDS
        )
        return payload

    async def aclose(self) -> None:
        await self.inner.aclose()


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------


def build_content_store() -> ContentStore:
    if SETTINGS.content_store_api_url:
        backend: ContentStore = PinataContentStore(
            api_url=SETTINGS.content_store_api_url,
            gateway_url=SETTINGS.content_store_gateway_url,
            api_key=SETTINGS.content_store_api_key,
            secret_key=SETTINGS.content_store_secret_key,
        )
    else:
        backend = InMemoryContentStore()
    return CachingContentStore(backend, cache_service)


content_store = build_content_store()
