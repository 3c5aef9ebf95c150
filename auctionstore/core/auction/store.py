"""
AuctionStore - (asset_contract, asset_id) -> AuctionRecord.

Records are never deleted. When an asset that already went through a
settled auction is put up again, the settled record is appended to the
key's history before the new record takes its place.
"""

from typing import Iterator, List, Tuple

from auctionstore.core.auction.record import (
    EMPTY_RECORD,
    AuctionRecord,
    auction_key,
    split_auction_key,
)
from auctionstore.core.storage.kv import KeyValueStore
from auctionstore.utils.logger import get_logger

logger = get_logger("auction.store")

RECORD_BUCKET = "auction"
HISTORY_BUCKET = "auction.history"


class AuctionStore:
    """Keyed persistent storage of auction records."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def get(self, asset_contract: bytes, asset_id: int) -> AuctionRecord:
        """Current record, or EMPTY_RECORD if none was ever written."""
        data = self.store.get(RECORD_BUCKET, auction_key(asset_contract, asset_id))
        return AuctionRecord.from_bytes(data) if data is not None else EMPTY_RECORD

    def put(self, asset_contract: bytes, asset_id: int, record: AuctionRecord) -> None:
        self.store.put(RECORD_BUCKET, auction_key(asset_contract, asset_id), record.to_bytes())

    def start(self, asset_contract: bytes, asset_id: int, record: AuctionRecord) -> None:
        """
        Install the record of a new auction.

        A settled predecessor is archived first.

        Raises:
            ValueError: if the current record is still open
        """
        previous = self.get(asset_contract, asset_id)
        if previous.is_open:
            raise ValueError("Cannot replace an open auction")
        if previous.exists:
            self._archive(asset_contract, asset_id, previous)

        self.put(asset_contract, asset_id, record)

    def _archive(self, asset_contract: bytes, asset_id: int, record: AuctionRecord) -> None:
        prefix = auction_key(asset_contract, asset_id)
        index = len(self.history(asset_contract, asset_id))
        self.store.put(HISTORY_BUCKET, prefix + index.to_bytes(4, byteorder="big"), record.to_bytes())
        logger.debug(f"Archived settled auction #{index} for asset {asset_id}")

    def history(self, asset_contract: bytes, asset_id: int) -> List[AuctionRecord]:
        """Settled auctions of this key that were superseded, oldest first."""
        prefix = auction_key(asset_contract, asset_id)
        return [
            AuctionRecord.from_bytes(value)
            for key, value in self.store.items(HISTORY_BUCKET)
            if key[:len(prefix)] == prefix
        ]

    def items(self) -> Iterator[Tuple[bytes, int, AuctionRecord]]:
        """Every current record as (asset_contract, asset_id, record)."""
        for key, value in self.store.items(RECORD_BUCKET):
            asset_contract, asset_id = split_auction_key(key)
            yield asset_contract, asset_id, AuctionRecord.from_bytes(value)

    def open_auctions(self) -> List[Tuple[bytes, int, AuctionRecord]]:
        return [entry for entry in self.items() if entry[2].is_open]

    def locked_value(self) -> int:
        """Sum of highest bids of open auctions (funds held for them)."""
        return sum(record.highest_bid for _, _, record in self.open_auctions())
