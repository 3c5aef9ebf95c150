"""
RefundLedger - pull-payment balances of outbid bidders.

Outbid funds are credited here instead of being pushed back, so a bidder
that cannot (or will not) receive currency can never block an auction.
Balances are created implicitly (default 0) and never deleted; a drained
balance is stored as 0.
"""

from typing import Dict

from auctionstore.core.storage.kv import KeyValueStore
from auctionstore.utils.validation import MAX_UINT64

REFUND_BUCKET = "refund"


class RefundLedger:
    """bidder address -> pending refund amount."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def get(self, address: bytes) -> int:
        data = self.store.get(REFUND_BUCKET, address)
        return int.from_bytes(data, byteorder="big") if data is not None else 0

    def set(self, address: bytes, amount: int) -> None:
        if not 0 <= amount <= MAX_UINT64:
            raise OverflowError(f"Refund balance out of uint64 range: {amount}")
        self.store.put(REFUND_BUCKET, address, amount.to_bytes(8, byteorder="big"))

    def credit(self, address: bytes, amount: int) -> int:
        """Add ``amount`` to a balance and return the new balance."""
        balance = self.get(address) + amount
        self.set(address, balance)
        return balance

    def balances(self) -> Dict[bytes, int]:
        """Every non-zero balance."""
        result = {}
        for address, data in self.store.items(REFUND_BUCKET):
            amount = int.from_bytes(data, byteorder="big")
            if amount:
                result[address] = amount
        return result

    def total(self) -> int:
        return sum(self.balances().values())
