from pathlib import Path
from typing import List, Optional, Tuple

from auctionstore.core.storage.kv import ChangeSet
from auctionstore.core.storage.sqlite_adapter import SQLiteAdapter
from auctionstore.utils.logger import get_logger

logger = get_logger("storage.manager")


class StorageManager:
    """
    Manages persistent storage for a chain.

    Coordinates data persistence using SQLite adapter and satisfies the
    KeyValueStore interface, so it can sit under a JournaledStore.
    Handles:
    - Engine state buckets (records, balances, registry, events)
    - Metadata (block height tip)
    """

    def __init__(self, data_dir: Path, db_name: str = "auctionstore.db"):
        self.data_dir = Path(data_dir)
        self.db_path = self.data_dir / db_name
        self.adapter = SQLiteAdapter(self.db_path)

        logger.info(f"StorageManager initialized at {self.db_path}")

    # =========================================================================
    # Chain State (Metadata)
    # =========================================================================

    def save_tip(self, height: int):
        """Save the current block height."""
        self.adapter.set_chain_meta("block_height", str(height))

    def get_tip(self) -> Optional[int]:
        """Get the persisted block height, if any."""
        n = self.adapter.get_chain_meta("block_height")
        return int(n) if n is not None else None

    # =========================================================================
    # KeyValueStore
    # =========================================================================

    def get(self, bucket: str, key: bytes) -> Optional[bytes]:
        return self.adapter.get(bucket, key)

    def put(self, bucket: str, key: bytes, value: bytes) -> None:
        self.adapter.put(bucket, key, value)

    def delete(self, bucket: str, key: bytes) -> None:
        self.adapter.delete(bucket, key)

    def items(self, bucket: str) -> List[Tuple[bytes, bytes]]:
        return self.adapter.items(bucket)

    def count(self, bucket: str) -> int:
        return self.adapter.count(bucket)

    def write_batch(self, changes: ChangeSet) -> None:
        """Atomically persist a committed call."""
        self.adapter.write_batch(changes)

    def close(self) -> None:
        self.adapter.close()

    def __repr__(self) -> str:
        return f"StorageManager({self.db_path})"
