"""
AuctionRecord - the persisted state of one auction.

Lifecycle:
---------
1. Created by ``auction`` (ended=False, no bid)
2. Updated by each accepted ``bid`` (highest_bid / highest_bidder only)
3. Closed once by ``auction_end`` (ended=True), never mutated again

Invariant: highest_bid == 0 exactly when highest_bidder is the zero address.

A key that was never written reads back as ``EMPTY_RECORD``, like the
default struct a contract platform returns for missing storage.
"""

from dataclasses import dataclass, replace

from auctionstore.crypto import ADDRESS_SIZE, ZERO_ADDRESS, bytes_to_hex

# seller(20) || end_block(8) || starting_price(8) || highest_bid(8) || highest_bidder(20) || ended(1)
RECORD_SIZE = ADDRESS_SIZE + 8 + 8 + 8 + ADDRESS_SIZE + 1


def auction_key(asset_contract: bytes, asset_id: int) -> bytes:
    """Composite storage key: contract(20) || asset_id(8)."""
    return asset_contract + asset_id.to_bytes(8, byteorder="big")


def split_auction_key(key: bytes) -> tuple:
    """Inverse of auction_key."""
    return key[:ADDRESS_SIZE], int.from_bytes(key[ADDRESS_SIZE:ADDRESS_SIZE + 8], byteorder="big")


@dataclass(frozen=True)
class AuctionRecord:
    """
    State of an auction for one (contract, asset_id).

    Attributes:
        seller: Owner of the asset when the auction started
        end_block: Height at which bidding closes
        starting_price: Minimum acceptable first bid
        highest_bid: Current best bid (0 = none)
        highest_bidder: Address behind highest_bid (zero = none)
        ended: Settlement done
    """
    seller: bytes = ZERO_ADDRESS
    end_block: int = 0
    starting_price: int = 0
    highest_bid: int = 0
    highest_bidder: bytes = ZERO_ADDRESS
    ended: bool = False

    def __post_init__(self):
        if len(self.seller) != ADDRESS_SIZE:
            raise ValueError(f"seller must be {ADDRESS_SIZE} bytes, got {len(self.seller)}")
        if len(self.highest_bidder) != ADDRESS_SIZE:
            raise ValueError(f"highest_bidder must be {ADDRESS_SIZE} bytes, got {len(self.highest_bidder)}")
        if (self.highest_bid == 0) != (self.highest_bidder == ZERO_ADDRESS):
            raise ValueError("highest_bid and highest_bidder must be set together")

    @property
    def exists(self) -> bool:
        """A created auction always has a non-zero seller."""
        return self.seller != ZERO_ADDRESS

    @property
    def is_open(self) -> bool:
        """Engine holds custody (created and not settled)."""
        return self.exists and not self.ended

    @property
    def has_bid(self) -> bool:
        return self.highest_bid > 0

    def with_bid(self, bidder: bytes, amount: int) -> "AuctionRecord":
        return replace(self, highest_bid=amount, highest_bidder=bidder)

    def closed(self) -> "AuctionRecord":
        return replace(self, ended=True)

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_bytes(self) -> bytes:
        """
        Serialize record to bytes.

        Format: seller(20) || end_block(8) || starting_price(8) ||
                highest_bid(8) || highest_bidder(20) || ended(1)
        """
        return (
            self.seller +
            self.end_block.to_bytes(8, byteorder="big") +
            self.starting_price.to_bytes(8, byteorder="big") +
            self.highest_bid.to_bytes(8, byteorder="big") +
            self.highest_bidder +
            (b"\x01" if self.ended else b"\x00")
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "AuctionRecord":
        """Deserialize record from bytes."""
        if len(data) != RECORD_SIZE:
            raise ValueError(f"AuctionRecord data must be {RECORD_SIZE} bytes, got {len(data)}")

        offset = 0
        seller = data[offset:offset + ADDRESS_SIZE]
        offset += ADDRESS_SIZE
        end_block = int.from_bytes(data[offset:offset + 8], byteorder="big")
        offset += 8
        starting_price = int.from_bytes(data[offset:offset + 8], byteorder="big")
        offset += 8
        highest_bid = int.from_bytes(data[offset:offset + 8], byteorder="big")
        offset += 8
        highest_bidder = data[offset:offset + ADDRESS_SIZE]
        offset += ADDRESS_SIZE
        ended = data[offset] == 1

        return cls(
            seller=seller,
            end_block=end_block,
            starting_price=starting_price,
            highest_bid=highest_bid,
            highest_bidder=highest_bidder,
            ended=ended,
        )

    def to_dict(self) -> dict:
        return {
            "seller": bytes_to_hex(self.seller),
            "end_block": self.end_block,
            "starting_price": self.starting_price,
            "highest_bid": self.highest_bid,
            "highest_bidder": bytes_to_hex(self.highest_bidder),
            "ended": self.ended,
        }

    def __repr__(self) -> str:
        seller = bytes_to_hex(self.seller)[:10] + "..."
        bidder = bytes_to_hex(self.highest_bidder)[:10] + "..."
        return (
            f"AuctionRecord(seller={seller}, end_block={self.end_block}, "
            f"start={self.starting_price}, bid={self.highest_bid}, bidder={bidder}, ended={self.ended})"
        )


EMPTY_RECORD = AuctionRecord()
