import threading

from streaming.registry import SessionRegistry


def test_insert_if_absent_refuses_duplicates():
    reg = SessionRegistry()
    first, second = object(), object()
    assert reg.insert_if_absent("abc", first) is True
    assert reg.insert_if_absent("abc", second) is False
    assert reg.get("abc") is first


def test_replace_returns_previous_entry():
    reg = SessionRegistry()
    first, second = object(), object()
    assert reg.replace("abc", first) is None
    assert reg.replace("abc", second) is first
    assert reg.get("abc") is second
    assert len(reg) == 1


def test_remove_if_present():
    reg = SessionRegistry()
    entry = object()
    reg.insert_if_absent("abc", entry)
    assert reg.remove("abc") is entry
    assert reg.remove("abc") is None
    assert "abc" not in reg


def test_remove_only_matching_session():
    reg = SessionRegistry()
    stale, fresh = object(), object()
    reg.insert_if_absent("abc", fresh)
    assert reg.remove("abc", stale) is None
    assert reg.get("abc") is fresh
    assert reg.remove("abc", fresh) is fresh


def test_concurrent_inserts_admit_exactly_one_winner():
    reg = SessionRegistry()
    results = []
    barrier = threading.Barrier(16)

    def worker(i):
        barrier.wait()
        results.append(reg.insert_if_absent("shared", i))

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert results.count(True) == 1
    assert len(reg) == 1


def test_pop_all_empties_registry():
    reg = SessionRegistry()
    reg.insert_if_absent("a", 1)
    reg.insert_if_absent("b", 2)
    assert sorted(reg.pop_all()) == [("a", 1), ("b", 2)]
    assert reg.snapshot() == []
