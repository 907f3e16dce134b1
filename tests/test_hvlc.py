import hashlib

import pytest

from vlckit.hvlc import HVLCClock


def test_new():
    clock = HVLCClock()
    assert len(clock.inner) == 0
    assert clock.timestamp > 0


def test_is_genesis():
    clock = HVLCClock()
    assert clock.is_genesis()
    clock.inner[1] = 1
    assert not clock.is_genesis()


def test_is_genesis_with_zero_entries():
    assert HVLCClock({1: 0, 2: 0}, 5).is_genesis()


def test_merge():
    clock1 = HVLCClock({1: 1, 2: 2}, 100)
    clock2 = HVLCClock({2: 3, 3: 1}, 200)
    merged = clock1.merge(clock2)
    assert merged[1] == 1
    assert merged[2] == 3
    assert merged[3] == 1
    assert merged.timestamp == 200


def test_update():
    clock1 = HVLCClock()
    clock1.inner[1] = 1
    clock2 = HVLCClock()
    clock2.inner[1] = 2
    updated = clock1.update([clock2], 1)
    assert updated[1] == 3


def test_update_does_not_mutate_original():
    clock = HVLCClock({1: 1}, 10)
    clock.update([], 1)
    assert clock.inner == {1: 1}
    assert clock.timestamp == 10


def test_update_without_others_refreshes_timestamp():
    clock = HVLCClock({1: 1}, 5)
    updated = clock.update([], 2)
    assert updated.timestamp > 5
    assert dict(updated) == {1: 1, 2: 1}


def test_update_keeps_later_merged_timestamp():
    clock = HVLCClock({1: 1}, 5)
    later = HVLCClock({2: 4}, 50)
    updated = clock.update([later], 1)
    assert updated.timestamp == 50
    assert dict(updated) == {1: 2, 2: 4}


def test_base():
    clock1 = HVLCClock({1: 3, 2: 2}, 300)
    clock2 = HVLCClock({1: 2, 2: 4}, 150)
    base = HVLCClock.base([clock1, clock2])
    assert base[1] == 2
    assert base[2] == 2
    assert base.timestamp == 150


def test_base_of_nothing():
    base = HVLCClock.base([])
    assert len(base) == 0
    assert base.timestamp == 2**128 - 1


def test_partial_ord():
    clock1 = HVLCClock({1: 2}, 100)
    clock2 = HVLCClock({1: 1}, 200)
    assert clock1.partial_cmp(clock2) == 1
    assert clock2.partial_cmp(clock1) == -1
    assert clock1 > clock2


def test_partial_ord_concurrent_uses_timestamp():
    clock1 = HVLCClock({1: 1}, 100)
    clock2 = HVLCClock({2: 1}, 200)
    assert clock1.partial_cmp(clock2) == -1
    assert clock2.partial_cmp(clock1) == 1


def test_partial_ord_equal_counters_uses_timestamp():
    clock1 = HVLCClock({1: 1}, 100)
    clock2 = HVLCClock({1: 1}, 100)
    clock3 = HVLCClock({1: 1, 2: 0}, 50)
    assert clock1.partial_cmp(clock2) == 0
    assert clock1.partial_cmp(clock3) == 1


def test_dep_cmp():
    clock1 = HVLCClock({1: 2})
    clock2 = HVLCClock({1: 1})
    assert clock1.dep_cmp(clock2, 1) == 1
    assert clock1.dep_cmp(clock2, 2) == 0


def test_dep_cmp_missing_key():
    clock1 = HVLCClock({1: 2})
    clock2 = HVLCClock({2: 1})
    assert clock1.dep_cmp(clock2, 2) == -1
    assert clock2.dep_cmp(clock1, 2) == 1


def test_reduce():
    clock = HVLCClock({1: 2, 2: 3})
    assert clock.reduce() == 5


def test_reduce_truncates_to_64_bits():
    clock = HVLCClock({1: 2**64 - 1, 2: 2})
    assert clock.reduce() == 1


def test_calculate_sha256():
    clock = HVLCClock({1: 2}, 100)
    assert clock.calculate_sha256() == clock.calculate_sha256()
    assert len(clock.calculate_sha256()) == 32


def test_calculate_sha256_encoding():
    clock = HVLCClock({1: 2}, 100)
    assert clock.calculate_sha256() == hashlib.sha256(b"\x01\x01\x02\x64").digest()


def test_calculate_sha256_depends_on_timestamp():
    assert HVLCClock({1: 2}, 100).calculate_sha256() != HVLCClock({1: 2}, 101).calculate_sha256()


def test_calculate_sha256_rejects_negative_timestamp():
    with pytest.raises(ValueError):
        HVLCClock({1: 2}, -1).calculate_sha256()


def test_mapping_iterates_in_key_order():
    clock = HVLCClock({3: 1, 1: 2, 2: 3}, 1)
    assert list(clock) == [1, 2, 3]