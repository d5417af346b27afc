"""Deterministic object placement across partition buckets."""

from __future__ import annotations

import hashlib

# Hex digits of the key digest fed into the partition number.
MAX_KEY_LENGTH = 7

META_SUFFIX = ".meta"


def validate_key_size(key_size: int) -> None:
    if key_size > MAX_KEY_LENGTH:
        msg = f"bucket key size {key_size} exceeds maximum allowable ({MAX_KEY_LENGTH})"
        raise ValueError(msg)
    if key_size < 1:
        msg = f"bucket key size must be positive, got {key_size}"
        raise ValueError(msg)


def validate_pool_size(pool_size: int, key_size: int) -> None:
    """Reject pools whose partition numbers do not fit in ``key_size`` digits."""
    if pool_size <= 0:
        return
    if pool_size > 10**key_size:
        msg = (
            f"bucket pool size {pool_size} needs suffixes longer than "
            f"the bucket key size ({key_size})"
        )
        raise ValueError(msg)


def resolve_bucket(
    object_key: str, base_bucket: str, pool_size: int, key_size: int
) -> str:
    """Return the bucket holding ``object_key``.

    With partitioning disabled (``pool_size <= 0``) every object lives in
    ``base_bucket``. Otherwise the last path segment of the key is hashed and
    the first ``key_size`` hex digits, modulo ``pool_size``, select a partition
    suffixed to the base name, e.g. ``oicr.icgc.07``.

    Only the last segment is hashed, so ``data/<id>`` and ``<id>`` resolve to
    the same partition number.
    """
    if pool_size <= 0:
        return base_bucket
    name = object_key.rsplit("/", 1)[-1]
    digest = hashlib.md5(name.encode("utf-8"), usedforsecurity=False).hexdigest()
    number = int(digest[:key_size], 16) % pool_size
    return f"{base_bucket}.{number:0{key_size}d}"


def partition_buckets(base_bucket: str, pool_size: int, key_size: int) -> list[str]:
    """Return every physical bucket of a logical bucket."""
    if pool_size <= 0:
        return [base_bucket]
    return [f"{base_bucket}.{number:0{key_size}d}" for number in range(pool_size)]


def object_key(data_dir: str, object_id: str) -> str:
    return f"{data_dir}/{object_id}"


def object_meta_key(data_dir: str, object_id: str) -> str:
    return f"{data_dir}/{object_id}{META_SUFFIX}"
