import pytest

from para_client.keycache import DEFAULT_CAPACITY, DerivedKeyCache


def make_compute(calls):
    def compute(secret, date_stamp, region, service):
        calls.append((secret, date_stamp, region, service))
        return f"{secret}|{date_stamp}|{region}|{service}".encode()

    return compute


def test_default_capacity():
    assert DerivedKeyCache().capacity == DEFAULT_CAPACITY == 1000


def test_invalid_capacity():
    with pytest.raises(ValueError):
        DerivedKeyCache(0)


def test_miss_then_hit():
    calls = []
    cache = DerivedKeyCache()
    compute = make_compute(calls)

    first = cache.get_or_compute("s", "20150101", "us-east-1", "para", compute)
    second = cache.get_or_compute("s", "20150101", "us-east-1", "para", compute)

    assert first == second == b"s|20150101|us-east-1|para"
    assert len(calls) == 1
    assert ("s", "20150101", "us-east-1", "para") in cache


def test_tuple_keys_do_not_collide():
    calls = []
    cache = DerivedKeyCache()
    compute = make_compute(calls)

    # would collide if the parts were joined with ","
    a = cache.get_or_compute("a,b", "c", "d", "e", compute)
    b = cache.get_or_compute("a", "b,c", "d", "e", compute)

    assert a != b
    assert len(calls) == 2
    assert len(cache) == 2


def test_evicts_least_recently_used():
    calls = []
    cache = DerivedKeyCache(capacity=2)
    compute = make_compute(calls)

    cache.get_or_compute("s1", "d", "r", "svc", compute)
    cache.get_or_compute("s2", "d", "r", "svc", compute)
    # touch s1 so s2 becomes the oldest entry
    cache.get_or_compute("s1", "d", "r", "svc", compute)
    cache.get_or_compute("s3", "d", "r", "svc", compute)

    assert len(cache) == 2
    assert ("s1", "d", "r", "svc") in cache
    assert ("s2", "d", "r", "svc") not in cache
    assert ("s3", "d", "r", "svc") in cache

    cache.get_or_compute("s2", "d", "r", "svc", compute)
    assert [c[0] for c in calls] == ["s1", "s2", "s3", "s2"]


def test_clear():
    cache = DerivedKeyCache()
    cache.get_or_compute("s", "d", "r", "svc", make_compute([]))
    cache.clear()
    assert len(cache) == 0
