"""
auctionstore Auction Module.

This module provides the escrowed auction engine:
- Auction records and their history
- Pull-payment refund ledger
- Event log
- The engine state machine (auction, bid, refund, auction_end)
"""

from auctionstore.core.auction.record import (
    AuctionRecord,
    EMPTY_RECORD,
    RECORD_SIZE,
    auction_key,
    split_auction_key,
)

from auctionstore.core.auction.store import AuctionStore
from auctionstore.core.auction.refunds import RefundLedger

from auctionstore.core.auction.events import (
    AuctionEvent,
    AuctionStarted,
    HighestBidUpdated,
    AuctionEnded,
    EventSink,
    decode_event,
)

from auctionstore.core.auction.engine import AuctionEngine

__all__ = [
    # Records
    "AuctionRecord",
    "EMPTY_RECORD",
    "RECORD_SIZE",
    "auction_key",
    "split_auction_key",
    "AuctionStore",
    # Refunds
    "RefundLedger",
    # Events
    "AuctionEvent",
    "AuctionStarted",
    "HighestBidUpdated",
    "AuctionEnded",
    "EventSink",
    "decode_event",
    # Engine
    "AuctionEngine",
]
