"""
Persistent Storage Module.

Provides bucketed key-value persistence for:
- Auction records and refund balances
- Host chain state (currency balances, registry ownership, event log)
- Chain metadata (block height)

and the journal that gives calls all-or-nothing semantics.
"""

from auctionstore.core.storage.kv import ChangeSet, KeyValueStore, MemoryStore
from auctionstore.core.storage.journal import JournaledStore
from auctionstore.core.storage.sqlite_adapter import SQLiteAdapter
from auctionstore.core.storage.storage_manager import StorageManager

__all__ = [
    "ChangeSet",
    "KeyValueStore",
    "MemoryStore",
    "JournaledStore",
    "SQLiteAdapter",
    "StorageManager",
]
