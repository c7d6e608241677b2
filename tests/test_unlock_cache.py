import pytest

from proxyspeed.models import UnlockResult, UnlockStatus
from proxyspeed.unlock.cache import UnlockCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    with UnlockCache(default_ttl=60, clock=clock, start_sweeper=False) as cache:
        yield cache


def _result(platform="Netflix", region="US"):
    return UnlockResult(platform=platform, status=UnlockStatus.UNLOCKED, region=region)


def test_round_trip_then_expiry(cache, clock):
    cache.set("proxy-a", "Netflix", _result(), ttl=10)
    assert cache.get("proxy-a", "Netflix") == _result()

    clock.now += 10
    assert cache.get("proxy-a", "Netflix") is None
    assert cache.stats().entries == 0


def test_default_ttl_applies(cache, clock):
    cache.set("proxy-a", "Netflix", _result())
    clock.now += 59
    assert cache.get("proxy-a", "Netflix") is not None
    clock.now += 1
    assert cache.get("proxy-a", "Netflix") is None


def test_keys_are_per_proxy_and_platform(cache):
    cache.set("proxy-a", "Netflix", _result())
    assert cache.get("proxy-b", "Netflix") is None
    assert cache.get("proxy-a", "YouTube") is None


def test_get_returns_a_copy(cache):
    cache.set("p", "Netflix", _result())
    first = cache.get("p", "Netflix")
    first.message = "changed"
    assert cache.get("p", "Netflix").message == ""


def test_stats_track_hits_and_misses(cache):
    cache.set("p", "Netflix", _result())
    cache.get("p", "Netflix")
    cache.get("p", "Netflix")
    cache.get("p", "Spotify")

    stats = cache.stats()
    assert stats.hits == 2
    assert stats.misses == 1
    assert stats.entries == 1
    assert stats.hit_ratio == pytest.approx(2 / 3)


def test_delete_clear_and_sweep(cache, clock):
    cache.set("p", "Netflix", _result(), ttl=5)
    cache.set("p", "YouTube", _result("YouTube"), ttl=50)
    cache.set("q", "Netflix", _result(), ttl=50)

    cache.delete("q", "Netflix")
    clock.now += 10
    assert cache.sweep() == 1
    assert cache.stats().entries == 1

    cache.clear()
    assert cache.stats().entries == 0


def test_background_sweeper_stops_on_close():
    cache = UnlockCache(sweep_interval=0.01)
    assert cache._sweeper is not None
    cache.close()
    assert cache._sweeper is None
