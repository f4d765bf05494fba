import pytest

from conveyor import RequestSpec, Response, ResponseCache


def _clock(cache, monkeypatch, start=1000.0):
    now = {"t": start}
    monkeypatch.setattr(cache, "_now", lambda: now["t"])
    return now


def test_cache_key_is_path_plus_compact_params():
    spec = RequestSpec("get", "/merchants", params={"limit": 20})
    assert spec.cache_key() == '/merchants{"limit":20}'
    assert RequestSpec("GET", "/merchants").cache_key() == "/merchants{}"


def test_hit_then_lazy_expiry(monkeypatch):
    cache = ResponseCache(ttl=300)
    now = _clock(cache, monkeypatch)
    resp = Response(200, [1, 2])
    cache.set("/x{}", resp)

    now["t"] += 299
    assert cache.get("/x{}") is resp

    # exactly at expiry the entry is already stale
    now["t"] += 1
    assert cache.get("/x{}") is None
    assert len(cache) == 0


def test_refresh_overwrites_entry(monkeypatch):
    cache = ResponseCache(ttl=10)
    now = _clock(cache, monkeypatch)
    cache.set("k", Response(200, "old"))
    now["t"] += 8
    cache.set("k", Response(200, "new"))
    now["t"] += 8
    assert cache.get("k").data == "new"


def test_invalidate_if_expired_only_removes_stale(monkeypatch):
    cache = ResponseCache(ttl=5)
    now = _clock(cache, monkeypatch)
    cache.set("k", Response(200))
    assert cache.invalidate_if_expired("k") is False
    now["t"] += 5
    assert cache.invalidate_if_expired("k") is True
    assert cache.invalidate_if_expired("missing") is False


def test_invalidate_prefix_matches_whole_path():
    cache = ResponseCache()
    cache.set('/merchants{"limit":20}', Response(200))
    cache.set("/merchants{}", Response(200))
    cache.set("/merchants/flagged{}", Response(200))
    assert cache.invalidate_prefix("/merchants") == 2  # noqa: PLR2004
    assert "/merchants/flagged{}" in cache


def test_ttl_must_be_positive():
    with pytest.raises(ValueError):
        ResponseCache(ttl=0)
