from conftest import FakeClock

from forumize.services.moderation.state_store import UserStateStore


def test_ttl_expiry():
    clock = FakeClock()
    store = UserStateStore(clock=clock)
    store.set("u1", "a", ttl=10)
    store.set("u2", "b", ttl=None)

    clock.advance(9)
    assert store.get("u1") == "a"

    clock.advance(1)
    assert store.get("u1") is None
    assert "u1" not in store
    assert store.get("u2") == "b"


def test_default_ttl_and_purge():
    clock = FakeClock()
    store = UserStateStore(default_ttl=5, clock=clock)
    store.set("a", 1)
    store.set("b", 2, ttl=None)

    clock.advance(5)
    assert store.purge() == 1
    assert len(store) == 1
    assert store.values() == [2]


def test_pop_and_delete():
    store = UserStateStore()
    store.set("a", 1)
    assert store.pop("a") == 1
    assert store.pop("a", "gone") == "gone"
    store.set("b", 2)
    store.delete("b")
    assert "b" not in store


def test_writes_evict_expired_entries():
    clock = FakeClock()
    store = UserStateStore(clock=clock)
    for i in range(100):
        store.set(f"u{i}", i, ttl=60)

    clock.advance(3600)
    store.set("late", "x", ttl=60)

    # Nothing left for an explicit purge to find
    assert store.purge() == 0
    assert len(store) == 1
    assert store.values() == ["x"]


def test_maxsize_drops_least_recently_used():
    store = UserStateStore(maxsize=2)
    store.set("a", 1)
    store.set("b", 2)
    store.get("a")
    store.set("c", 3)

    assert "b" not in store
    assert store.get("a") == 1
    assert store.get("c") == 3


def test_non_positive_ttl_removes_entry():
    store = UserStateStore()
    store.set("a", 1)
    store.set("a", 2, ttl=0)
    assert "a" not in store
