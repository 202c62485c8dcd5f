from __future__ import annotations

import asyncio
import json
import re

import httpx
import pytest
from prometheus_client import REGISTRY

from credential_service.core.errors import ContentNotFound, StoreRejected, StoreUnavailable
from credential_service.services.cache import InMemoryCacheService
from credential_service.services.content_store import (
    CachingContentStore,
    InMemoryContentStore,
    PinataContentStore,
    canonical_json,
    compute_content_address,
)

PINNED = "bafkreihdwdcefgh4dqkjv67uzcmw7ojee6xedzdetojuzjevtenxquvyku"


def _get_sample(name: str, labels: dict | None = None) -> float:
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


# ---- addressing ----


def test_content_address_is_cidv1_base32() -> None:
    address = compute_content_address({"school": "X"})
    assert re.fullmatch(r"b[a-z2-7]+", address)
    # 5 header bytes + 32 digest bytes -> 60 base32 characters
    assert len(address) == 61


def test_content_address_ignores_key_order() -> None:
    assert compute_content_address({"a": 1, "b": 2}) == compute_content_address({"b": 2, "a": 1})


def test_content_address_changes_with_any_byte() -> None:
    assert compute_content_address({"school": "X"}) != compute_content_address({"school": "x"})


@pytest.mark.parametrize("payload", [["a"], "text", 3, None])
def test_non_object_payload_rejected(payload) -> None:
    with pytest.raises(StoreRejected):
        canonical_json(payload)


def test_non_serializable_payload_rejected() -> None:
    with pytest.raises(StoreRejected, match="not JSON-serializable"):
        canonical_json({"when": object()})


def test_nan_rejected() -> None:
    with pytest.raises(StoreRejected):
        canonical_json({"score": float("nan")})


# ---- in-memory ----


def test_in_memory_put_get() -> None:
    store = InMemoryContentStore()

    async def _go():
        address = await store.put({"school": "X", "honours": True})
        return address, await store.get(address)

    address, payload = asyncio.run(_go())
    assert address == compute_content_address({"school": "X", "honours": True})
    assert payload == {"school": "X", "honours": True}


def test_in_memory_put_is_idempotent() -> None:
    store = InMemoryContentStore()

    async def _go():
        return await store.put({"a": 1}), await store.put({"a": 1})

    first, second = asyncio.run(_go())
    assert first == second
    assert len(store._blobs) == 1


def test_in_memory_get_unknown_raises_not_found() -> None:
    with pytest.raises(ContentNotFound):
        asyncio.run(InMemoryContentStore().get("bnothere"))


def test_in_memory_put_counts_operations() -> None:
    before = _get_sample("content_store_operations_total", {"operation": "put", "result": "ok"})
    asyncio.run(InMemoryContentStore().put({"a": 1}))
    after = _get_sample("content_store_operations_total", {"operation": "put", "result": "ok"})
    assert after - before == 1


# ---- Pinata ----


def _pinata(handler) -> PinataContentStore:
    return PinataContentStore(
        api_url="https://api.pinata.test",
        gateway_url="https://gateway.pinata.test/",
        api_key="key-123",
        secret_key="secret-456",
        transport=httpx.MockTransport(handler),
    )


def test_pinata_put_posts_canonical_json_with_key_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"IpfsHash": PINNED, "PinSize": 20})

    address = asyncio.run(_pinata(handler).put({"school": "X", "a": 1}))

    assert address == PINNED
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "https://api.pinata.test/pinning/pinJSONToIPFS"
    assert request.headers["pinata_api_key"] == "key-123"
    assert request.headers["pinata_secret_api_key"] == "secret-456"
    assert json.loads(request.content) == {"a": 1, "school": "X"}


@pytest.mark.parametrize("status", [500, 502, 503, 429])
def test_pinata_put_server_errors_are_unavailable(status: int) -> None:
    store = _pinata(lambda request: httpx.Response(status))
    with pytest.raises(StoreUnavailable):
        asyncio.run(store.put({"a": 1}))


@pytest.mark.parametrize("status", [400, 401, 403, 413])
def test_pinata_put_client_errors_are_rejected(status: int) -> None:
    store = _pinata(lambda request: httpx.Response(status, text="nope"))
    with pytest.raises(StoreRejected):
        asyncio.run(store.put({"a": 1}))


def test_pinata_put_transport_error_is_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out")

    with pytest.raises(StoreUnavailable) as exc_info:
        asyncio.run(_pinata(handler).put({"a": 1}))
    assert exc_info.value.step == "content_upload"


def test_pinata_put_response_without_hash_is_unavailable() -> None:
    store = _pinata(lambda request: httpx.Response(200, json={"PinSize": 2}))
    with pytest.raises(StoreUnavailable, match="IpfsHash"):
        asyncio.run(store.put({"a": 1}))


def test_pinata_get_reads_gateway_without_credentials() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"school": "X"})

    payload = asyncio.run(_pinata(handler).get(PINNED))

    assert payload == {"school": "X"}
    assert str(seen[0].url) == f"https://gateway.pinata.test/ipfs/{PINNED}"
    assert "pinata_api_key" not in seen[0].headers


@pytest.mark.parametrize("status", [400, 404, 410])
def test_pinata_get_missing_is_not_found(status: int) -> None:
    with pytest.raises(ContentNotFound):
        asyncio.run(_pinata(lambda request: httpx.Response(status)).get(PINNED))


def test_pinata_get_gateway_failure_is_unavailable() -> None:
    with pytest.raises(StoreUnavailable):
        asyncio.run(_pinata(lambda request: httpx.Response(504)).get(PINNED))


def test_pinata_get_non_json_is_unavailable() -> None:
    store = _pinata(lambda request: httpx.Response(200, text="<html>"))
    with pytest.raises(StoreUnavailable):
        asyncio.run(store.get(PINNED))


# ---- read-through cache ----


class CountingStore(InMemoryContentStore):
    def __init__(self) -> None:
        super().__init__()
        self.gets = 0

    async def get(self, content_address):
        self.gets += 1
        return await super().get(content_address)


def test_cache_serves_repeat_reads() -> None:
    inner = CountingStore()
    cache = InMemoryCacheService()
    store = CachingContentStore(inner, cache)

    async def _go():
        address = await inner.put({"school": "X"})
        return [await store.get(address) for _ in range(3)]

    hits_before = _get_sample("cache_operations_total", {"operation": "hit"})
    results = asyncio.run(_go())
    hits_after = _get_sample("cache_operations_total", {"operation": "hit"})

    assert results == [{"school": "X"}] * 3
    assert inner.gets == 1
    assert hits_after - hits_before == 2


def test_put_primes_the_cache() -> None:
    inner = CountingStore()
    store = CachingContentStore(inner, InMemoryCacheService())

    async def _go():
        address = await store.put({"school": "X"})
        return await store.get(address)

    assert asyncio.run(_go()) == {"school": "X"}
    assert inner.gets == 0


def test_cache_miss_propagates_not_found() -> None:
    store = CachingContentStore(CountingStore(), InMemoryCacheService())
    with pytest.raises(ContentNotFound):
        asyncio.run(store.get("bmissing"))
