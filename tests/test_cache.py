from __future__ import annotations

from inquaire.core.cache import TtlCache


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_add_is_set_if_absent_until_expiry() -> None:
    clock = FakeClock()
    cache = TtlCache(clock=clock)

    assert cache.add("webhook_event:KAKAO:evt-1", True, 300) is True
    assert cache.add("webhook_event:KAKAO:evt-1", True, 300) is False

    clock.now = 301
    assert cache.add("webhook_event:KAKAO:evt-1", True, 300) is True


def test_expired_keys_are_swept_without_being_read() -> None:
    clock = FakeClock()
    cache = TtlCache(clock=clock)
    for index in range(1000):
        cache.add(f"webhook_event:LINE:msg-{index}", True, 300)
    assert len(cache) == 1000

    clock.now = 10_000
    cache.add("webhook_event:LINE:msg-late", True, 300)

    assert len(cache) == 1
    assert cache.get("webhook_event:LINE:msg-late") is True


def test_sweep_keeps_live_entries() -> None:
    clock = FakeClock()
    cache = TtlCache(clock=clock, sweep_interval=10)
    cache.set("stats:short", 1, 5)
    cache.set("stats:long", 2, 600)

    clock.now = 20
    cache.set("stats:new", 3, 600)

    assert len(cache) == 2
    assert cache.get("stats:long") == 2
    assert cache.get("stats:short") is None
