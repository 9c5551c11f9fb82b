# core/duplicate_index.py

import logging
import threading
from typing import Dict, List

from imgdedup.core.exceptions import IndexContentionError
from imgdedup.core.models import DuplicateGroup, Fingerprint, ImageRecord

logger = logging.getLogger(__name__)


class _Bucket:
    """Records sharing one fingerprint, guarded by their own lock"""

    __slots__ = ('lock', 'records')

    def __init__(self):
        self.lock = threading.Lock()
        self.records: Dict[str, ImageRecord] = {}

    def add(self, record: ImageRecord):
        with self.lock:
            # Same path twice is a no-op, so retries cannot inflate a group
            self.records.setdefault(record.path, record)

    def snapshot(self) -> List[ImageRecord]:
        with self.lock:
            return list(self.records.values())


class _Shard:
    """Independently locked slice of the bucket directory"""

    __slots__ = ('lock', 'buckets')

    def __init__(self):
        self.lock = threading.Lock()
        self.buckets: Dict[Fingerprint, _Bucket] = {}

    def bucket_for(self, fingerprint: Fingerprint) -> _Bucket:
        bucket = self.buckets.get(fingerprint)
        if bucket is not None:
            return bucket
        with self.lock:
            return self.buckets.setdefault(fingerprint, _Bucket())


class DuplicateIndex:
    """
    Concurrent mapping from fingerprint to the records that share it.

    Fingerprints are spread over ``shards`` shards; a shard lock is only taken
    to create a bucket, and each bucket carries its own lock for membership.
    Inserts on different shards never contend and inserts on the same
    fingerprint are serialized, so no update is ever lost. Buckets only grow
    while the index is being built.
    """

    def __init__(self, shards: int = 16):
        if shards < 1:
            raise ValueError("shards must be >= 1")
        self._shards = [_Shard() for _ in range(shards)]
        self._sealed = threading.Event()

    def _shard_for(self, fingerprint: Fingerprint) -> _Shard:
        return self._shards[hash(fingerprint) % len(self._shards)]

    def insert(self, record: ImageRecord):
        """Add a record; safe to call from many threads at once"""
        if self._sealed.is_set():
            raise IndexContentionError(
                f"insert of {record.path} after the index was drained"
            )
        self._shard_for(record.fingerprint).bucket_for(record.fingerprint).add(record)

    def bucket_count(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.buckets)
        return total

    def __len__(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                buckets = list(shard.buckets.values())
            total += sum(len(b.snapshot()) for b in buckets)
        return total

    def drain_groups(self) -> List[DuplicateGroup]:
        """
        Seal the index and return every bucket with two or more members.

        Members of a group are sorted by (order_key, path) and groups are
        ordered by their first member, so the result does not depend on the
        order workers inserted in.
        """
        self._sealed.set()

        groups = []
        for shard_no, shard in enumerate(self._shards):
            with shard.lock:
                items = list(shard.buckets.items())
            logger.debug("Shard %d holds %d buckets", shard_no, len(items))

            for fingerprint, bucket in items:
                records = bucket.snapshot()
                if len(records) < 2:
                    continue
                records.sort(key=lambda r: r.sort_key)
                groups.append(DuplicateGroup(fingerprint, tuple(records)))

        groups.sort(key=lambda g: g.records[0].sort_key)
        return groups
