"""
Key-value store interface.

All persistent engine state (auction records, refund balances, currency
balances, registry ownership, the event log) lives in named buckets of a
``KeyValueStore``. The store is injected, never global:

- ``MemoryStore``: dict-backed, for tests and throwaway runs
- ``StorageManager``: SQLite-backed (see storage_manager.py)
- ``JournaledStore``: staged writes over either of the above (see journal.py)
"""

from typing import Dict, List, Optional, Protocol, Tuple

# (bucket, key) -> new value, or None for a deletion
ChangeSet = Dict[Tuple[str, bytes], Optional[bytes]]


class KeyValueStore(Protocol):
    """Bucketed binary key-value store."""

    def get(self, bucket: str, key: bytes) -> Optional[bytes]:
        ...

    def put(self, bucket: str, key: bytes, value: bytes) -> None:
        ...

    def delete(self, bucket: str, key: bytes) -> None:
        ...

    def items(self, bucket: str) -> List[Tuple[bytes, bytes]]:
        """All (key, value) pairs of a bucket, ordered by key."""
        ...

    def write_batch(self, changes: ChangeSet) -> None:
        """Apply a set of puts and deletes as one unit."""
        ...


class MemoryStore:
    """In-memory KeyValueStore."""

    def __init__(self):
        self._buckets: Dict[str, Dict[bytes, bytes]] = {}

    def get(self, bucket: str, key: bytes) -> Optional[bytes]:
        return self._buckets.get(bucket, {}).get(key)

    def put(self, bucket: str, key: bytes, value: bytes) -> None:
        self._buckets.setdefault(bucket, {})[key] = value

    def delete(self, bucket: str, key: bytes) -> None:
        self._buckets.get(bucket, {}).pop(key, None)

    def items(self, bucket: str) -> List[Tuple[bytes, bytes]]:
        return sorted(self._buckets.get(bucket, {}).items())

    def write_batch(self, changes: ChangeSet) -> None:
        for (bucket, key), value in changes.items():
            if value is None:
                self.delete(bucket, key)
            else:
                self.put(bucket, key, value)

    def __repr__(self) -> str:
        sizes = {name: len(entries) for name, entries in self._buckets.items()}
        return f"MemoryStore({sizes})"
