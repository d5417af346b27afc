"""Tests for bucket partitioning and object keys."""

from __future__ import annotations

import pytest
from s3_gateway.buckets import (
    MAX_KEY_LENGTH,
    object_key,
    object_meta_key,
    partition_buckets,
    resolve_bucket,
    validate_key_size,
    validate_pool_size,
)

OBJECT_IDS = [
    "a82efa12-1b3f-5f4b-9b2e-6d6b1f0f4c7e",
    "0b1d7e0b-9a4e-5a27-8f0d-2c8b4f3e1a55",
    "ffffffff-ffff-ffff-ffff-ffffffffffff",
    "x",
    "",
]


class TestResolveBucket:
    @pytest.mark.parametrize("pool_size", [0, -1, -10])
    def test_partitioning_disabled_returns_base(self, pool_size):
        for object_id in OBJECT_IDS:
            assert resolve_bucket(object_id, "oicr.icgc", pool_size, 2) == "oicr.icgc"

    @pytest.mark.parametrize("pool_size", [1, 3, 16, 100])
    def test_partition_in_range_and_stable(self, pool_size):
        for object_id in OBJECT_IDS:
            bucket = resolve_bucket(object_id, "oicr.icgc", pool_size, 3)
            assert bucket == resolve_bucket(object_id, "oicr.icgc", pool_size, 3)
            base, _, suffix = bucket.rpartition(".")
            assert base == "oicr.icgc"
            assert len(suffix) == 3
            assert 0 <= int(suffix) < pool_size

    def test_known_value(self):
        # md5("x") starts with "9d", 0x9d == 157
        assert resolve_bucket("x", "base", 10, 2) == "base.07"

    def test_data_key_and_id_share_partition(self):
        for object_id in OBJECT_IDS[:3]:
            by_id = resolve_bucket(object_id, "b", 8, 2)
            by_key = resolve_bucket(object_key("data", object_id), "b", 8, 2)
            assert by_id == by_key

    def test_pool_of_one(self):
        assert resolve_bucket("anything", "b", 1, 1) == "b.0"


class TestValidateKeySize:
    def test_accepts_maximum(self):
        validate_key_size(MAX_KEY_LENGTH)

    def test_rejects_above_maximum(self):
        with pytest.raises(ValueError, match="exceeds maximum"):
            validate_key_size(MAX_KEY_LENGTH + 1)

    def test_rejects_zero(self):
        with pytest.raises(ValueError, match="positive"):
            validate_key_size(0)


class TestValidatePoolSize:
    @pytest.mark.parametrize(("pool_size", "key_size"), [(0, 1), (10, 1), (100, 2), (4, 2)])
    def test_accepts_pools_within_key_size(self, pool_size, key_size):
        validate_pool_size(pool_size, key_size)

    def test_rejects_pool_needing_longer_suffix(self):
        with pytest.raises(ValueError, match="bucket pool size 11"):
            validate_pool_size(11, 1)


def test_partition_buckets():
    assert partition_buckets("b", 0, 2) == ["b"]
    assert partition_buckets("b", 3, 2) == ["b.00", "b.01", "b.02"]


def test_object_keys():
    assert object_key("data", "abc") == "data/abc"
    assert object_meta_key("data", "abc") == "data/abc.meta"
