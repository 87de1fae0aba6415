from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import pytest

from just_weather.errors import (
    CacheIOError,
    ErrorKind,
    InvalidParameters,
    ParseError,
    UpstreamTimeout,
)
from just_weather.fetcher import CachedClient, CacheMode, decode_json


@dataclass(frozen=True)
class DummyParams:
    value: str

    def validate(self) -> None:
        if not self.value:
            raise InvalidParameters("value is required")

    def cache_input(self) -> str:
        return f"dummy_{self.value}"


class DummyStore:
    def __init__(self, entries: dict[str, bytes] | None = None, fail_save=False):
        self.entries = dict(entries or {})
        self.fail_save = fail_save
        self.saved: list[tuple[str, bytes]] = []
        self.loads: list[str] = []

    def key_for(self, text: str) -> str:
        return text.lower()

    def is_valid(self, key: str) -> bool:
        return key in self.entries

    def load(self, key: str, *, check_ttl: bool = False) -> bytes:
        self.loads.append(key)
        return self.entries[key]

    def save(self, key: str, payload: bytes) -> None:
        if self.fail_save:
            raise CacheIOError("disk full")
        self.saved.append((key, payload))
        self.entries[key] = payload

    def invalidate(self, key: str) -> None:
        self.entries.pop(key, None)

    def clear(self) -> int:
        count = len(self.entries)
        self.entries.clear()
        return count


class DummyBridge:
    def __init__(self, payload: bytes | Exception = b'{"value": 1}'):
        self.payload = payload
        self.urls: list[str] = []

    def get(self, url: str, timeout: float = 30.0) -> bytes:
        self.urls.append(url)
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class DummyClient(CachedClient[DummyParams, dict]):
    name = "dummy"

    def build_url(self, params: DummyParams) -> str:
        return f"http://dummy.test/{params.value}"

    def _hydrate(self, document: Any, params: DummyParams) -> dict:
        if not isinstance(document, dict) or "value" not in document:
            raise ParseError("missing value")
        return dict(document)


def _client(store: DummyStore, bridge: DummyBridge, **kwargs) -> DummyClient:
    return DummyClient(cache=store, bridge=bridge, **kwargs)


def test_cached_client_uses_cache_first():
    store = DummyStore({"dummy_a": b'{"value": "cached"}'})
    bridge = DummyBridge()
    client = _client(store, bridge)

    result = client.fetch(DummyParams("a"))

    assert result == {"value": "cached"}
    assert client.last_response_source == "cache"
    assert bridge.urls == []
    assert store.saved == []


def test_cached_client_records_when_missing():
    store = DummyStore()
    bridge = DummyBridge(b'{"value": 5}')
    client = _client(store, bridge)
    assert client.last_response_source == "uninitialized"

    result = client.fetch(DummyParams("b"))

    assert result == {"value": 5}
    assert client.last_response_source == "network"
    assert bridge.urls == ["http://dummy.test/b"]
    assert store.saved == [("dummy_b", b'{"value": 5}')]


def test_second_fetch_is_served_from_cache():
    store = DummyStore()
    bridge = DummyBridge(b'{"value": 7}')
    client = _client(store, bridge)

    first = client.fetch(DummyParams("c"))
    second = client.fetch(DummyParams("c"))

    assert first == second
    assert len(bridge.urls) == 1


def test_corrupt_cache_falls_back_to_live_fetch():
    store = DummyStore({"dummy_d": b"{not json"})
    bridge = DummyBridge(b'{"value": "live"}')
    client = _client(store, bridge)

    assert client.fetch(DummyParams("d")) == {"value": "live"}
    assert client.last_response_source == "network"
    assert store.entries["dummy_d"] == b'{"value": "live"}'


def test_wrong_shape_in_cache_falls_back_to_live_fetch():
    store = DummyStore({"dummy_e": json.dumps({"other": 1}).encode()})
    client = _client(store, DummyBridge(b'{"value": 2}'))

    assert client.fetch(DummyParams("e")) == {"value": 2}


def test_live_parse_error_propagates_and_is_not_cached():
    store = DummyStore()
    client = _client(store, DummyBridge(b"<html>oops</html>"))

    with pytest.raises(ParseError):
        client.fetch(DummyParams("f"))
    assert store.saved == []


def test_cache_write_failure_does_not_fail_fetch():
    store = DummyStore(fail_save=True)
    client = _client(store, DummyBridge(b'{"value": 3}'))

    assert client.fetch(DummyParams("g")) == {"value": 3}


def test_read_only_mode_reads_but_never_writes():
    store = DummyStore({"dummy_h": b'{"value": "cached"}'})
    bridge = DummyBridge(b'{"value": "live"}')
    client = _client(store, bridge, mode=CacheMode.READ_ONLY)

    assert client.fetch(DummyParams("h")) == {"value": "cached"}
    assert client.fetch(DummyParams("i")) == {"value": "live"}
    assert store.saved == []
    assert bridge.urls == ["http://dummy.test/i"]


def test_bypass_mode_skips_cache_entirely():
    store = DummyStore({"dummy_j": b'{"value": "cached"}'})
    bridge = DummyBridge(b'{"value": "live"}')
    client = _client(store, bridge)

    assert client.fetch(DummyParams("j"), mode=CacheMode.BYPASS) == {"value": "live"}
    assert store.loads == []
    assert store.saved == []
    assert bridge.urls == ["http://dummy.test/j"]


def test_invalid_parameters_touch_neither_cache_nor_network():
    store = DummyStore()
    bridge = DummyBridge()
    client = _client(store, bridge)

    with pytest.raises(InvalidParameters):
        client.fetch(DummyParams(""))
    assert store.loads == [] and store.saved == [] and bridge.urls == []


def test_fetch_outcome_classifies_failures():
    client = _client(DummyStore(), DummyBridge(UpstreamTimeout("slow")))

    result, error = client.fetch_outcome(DummyParams("k"))

    assert result is None
    assert error is ErrorKind.UPSTREAM_TIMEOUT


def test_fetch_outcome_success_has_no_error():
    client = _client(DummyStore(), DummyBridge(b'{"value": 9}'))
    assert client.fetch_outcome(DummyParams("l")) == ({"value": 9}, None)


@pytest.mark.parametrize(
    "mode, reads, writes",
    [
        (CacheMode.READ_WRITE, True, True),
        (CacheMode.READ_ONLY, True, False),
        (CacheMode.BYPASS, False, False),
    ],
)
def test_cache_mode_flags(mode, reads, writes):
    assert mode.reads is reads
    assert mode.writes is writes


class IntValueClient(DummyClient):
    def _hydrate(self, document: Any, params: DummyParams) -> dict:
        return {"value": int(document["value"])}


def test_value_error_while_hydrating_is_parse_error():
    store = DummyStore()
    client = IntValueClient(cache=store, bridge=DummyBridge(b'{"value": "abc"}'))

    with pytest.raises(ParseError):
        client.fetch(DummyParams("m"))
    assert client.fetch_outcome(DummyParams("m")) == (None, ErrorKind.PARSE)
    assert store.saved == []


def test_value_error_in_cached_entry_falls_back_to_live_fetch():
    store = DummyStore({"dummy_n": b'{"value": "abc"}'})
    client = IntValueClient(cache=store, bridge=DummyBridge(b'{"value": "12"}'))

    assert client.fetch(DummyParams("n")) == {"value": 12}
    assert client.last_response_source == "network"


@pytest.mark.parametrize("payload", [b'{"value": NaN}', b"[Infinity]", b"-Infinity"])
def test_decode_json_rejects_non_finite_numbers(payload):
    with pytest.raises(ParseError):
        decode_json(payload)
