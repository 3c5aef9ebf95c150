"""
AuctionEngine - escrowed auction state machine.

Conceptual Background:
---------------------
The engine takes custody of a non-fungible asset, runs a bidding period
bounded by block height, and settles to exactly one outcome:

    NotCreated --auction--> Open --bid--> Open --auction_end--> Ended

- Sale: the seller is paid the highest bid, the asset goes to the bidder
- Return: no bid was placed, the asset goes back to the seller

Guarantees:
----------
1. Pull payments: an outbid bidder is credited in the RefundLedger and
   withdraws with ``refund``; nothing is pushed to a bidder mid-auction
2. Checks-effects-interactions: authoritative state (``ended``, refund
   balances) is written before any external call, so a re-entrant call
   sees the post-call state
3. Exactly-once settlement: ``ended`` is a terminal guard
4. All-or-nothing: any ``Revert`` raised here discards every write of the
   call (the host chain runs each call in a journal frame), including
   ``ended = True`` written before a failed seller payment

Refund payout failure is the one recoverable external failure: the
balance is restored and ``refund`` returns False without aborting.
"""

from typing import Callable

from auctionstore.core.auction.events import AuctionEnded, AuctionStarted, EventSink, HighestBidUpdated
from auctionstore.core.auction.record import AuctionRecord
from auctionstore.core.auction.refunds import RefundLedger
from auctionstore.core.auction.store import AuctionStore
from auctionstore.core.context import CallContext
from auctionstore.core.errors import ErrorKind, RegistryError, Revert, require
from auctionstore.core.registry.asset_registry import AssetRegistry
from auctionstore.crypto import ADDRESS_SIZE, bytes_to_hex, short
from auctionstore.utils.logger import get_logger
from auctionstore.utils.validation import MAX_UINT64, validate_address, validate_amount

logger = get_logger("engine")

# asset_contract -> registry client calling as the engine
RegistryResolver = Callable[[bytes], AssetRegistry]

# (to, amount) -> success, paid from the engine's account
SendFunction = Callable[[bytes, int], bool]


class AuctionEngine:
    """
    Escrowed auction engine.

    Attributes:
        address: The engine's own account (custodian of assets and bids)
        auctions: Auction records
        refunds: Pull-payment balances
        events: Event log
    """

    # Methods a host may dispatch a call to
    CALLABLE = ("auction", "bid", "refund", "auction_end")

    def __init__(
        self,
        address: bytes,
        auctions: AuctionStore,
        refunds: RefundLedger,
        events: EventSink,
        registries: RegistryResolver,
        send: SendFunction,
    ):
        self.address = address
        self.auctions = auctions
        self.refunds = refunds
        self.events = events
        self._registries = registries
        self._send = send

    # =========================================================================
    # Auction
    # =========================================================================

    def auction(
        self,
        ctx: CallContext,
        asset_contract: bytes,
        asset_id: int,
        starting_price: int,
        duration: int,
    ) -> None:
        """
        Put an asset up for auction, taking custody of it.

        The caller must own the asset or be an operator approved by the
        owner; the recorded seller is always the owner.
        """
        self._ensure_not_payable(ctx)
        self._check_address(asset_contract, "asset_contract")
        self._check_uint64(asset_id, "asset_id")
        self._check_uint64(starting_price, "starting_price")
        self._check_uint64(duration, "duration")

        registry = self._registry(asset_contract)
        owner = self._get_owner(registry, asset_id)

        require(owner != self.address, ErrorKind.ALREADY_ON_SALE)
        self._ensure_caller_can_operate(ctx, registry, owner)

        self._transfer(
            registry.transfer_from, owner, self.address, asset_id,
            "The token transfer failed. Be sure sender is approved to transfer token.",
        )

        end_block = ctx.block_number + duration
        require(end_block <= MAX_UINT64, ErrorKind.OVERFLOW, f"end block {end_block} overflows uint64")

        record = AuctionRecord(
            seller=owner,
            end_block=end_block,
            starting_price=starting_price,
        )
        try:
            self.auctions.start(asset_contract, asset_id, record)
        except ValueError as exc:
            # Registry disagrees with our open record; refuse rather than overwrite
            raise Revert(ErrorKind.ALREADY_ON_SALE, str(exc)) from exc

        self.events.emit(AuctionStarted(
            contract=asset_contract,
            asset_id=asset_id,
            end_block=end_block,
            seller=owner,
            starting_price=starting_price,
        ))
        logger.info(
            f"Auction started: asset={asset_id} seller={short(owner)} "
            f"start={starting_price} end_block={end_block}"
        )

    # =========================================================================
    # Bid
    # =========================================================================

    def bid(self, ctx: CallContext, asset_contract: bytes, asset_id: int) -> None:
        """
        Place a bid of ``ctx.value``.

        The previous highest bid, if any, is credited to its bidder's
        refund balance.
        """
        self._check_address(asset_contract, "asset_contract")
        self._check_uint64(asset_id, "asset_id")

        record = self.auctions.get(asset_contract, asset_id)

        require(record.exists, ErrorKind.AUCTION_NOT_FOUND)
        require(not record.ended, ErrorKind.AUCTION_CLOSED)
        require(ctx.block_number < record.end_block, ErrorKind.AUCTION_CLOSED)
        require(
            ctx.value > record.highest_bid and ctx.value >= record.starting_price,
            ErrorKind.BID_TOO_LOW,
        )

        if record.has_bid:
            self._credit_refund(record.highest_bidder, record.highest_bid)

        record = record.with_bid(ctx.sender, ctx.value)
        self.auctions.put(asset_contract, asset_id, record)

        self.events.emit(HighestBidUpdated(
            contract=asset_contract,
            asset_id=asset_id,
            bidder=ctx.sender,
            bid=ctx.value,
        ))
        logger.info(f"Highest bid: asset={asset_id} bidder={short(ctx.sender)} bid={ctx.value}")

    # =========================================================================
    # Refund
    # =========================================================================

    def refund(self, ctx: CallContext) -> bool:
        """
        Withdraw the caller's pending refund.

        Returns:
            True if paid out; False if the payout failed, in which case
            the balance is restored and the call can be retried
        """
        self._ensure_not_payable(ctx)

        amount = self.refunds.get(ctx.sender)
        require(amount > 0, ErrorKind.NO_REFUND_BALANCE)

        # Zero before paying: a re-entrant refund finds nothing to withdraw
        self.refunds.set(ctx.sender, 0)

        if self._send(ctx.sender, amount):
            logger.info(f"Refunded {amount} to {short(ctx.sender)}")
            return True

        self.refunds.credit(ctx.sender, amount)
        logger.warning(f"Refund payout of {amount} to {short(ctx.sender)} failed, balance restored")
        return False

    # =========================================================================
    # Settlement
    # =========================================================================

    def auction_end(self, ctx: CallContext, asset_contract: bytes, asset_id: int) -> None:
        """
        Settle an auction once its end block is reached.

        Sold: pay the seller, then hand the asset to the highest bidder.
        Unsold: hand the asset back to the seller.
        """
        self._ensure_not_payable(ctx)
        self._check_address(asset_contract, "asset_contract")
        self._check_uint64(asset_id, "asset_id")

        record = self.auctions.get(asset_contract, asset_id)

        require(record.exists, ErrorKind.AUCTION_NOT_FOUND)
        require(ctx.block_number >= record.end_block, ErrorKind.AUCTION_STILL_OPEN)
        require(not record.ended, ErrorKind.ALREADY_ENDED)

        record = record.closed()
        self.auctions.put(asset_contract, asset_id, record)

        registry = self._registry(asset_contract)

        if record.has_bid:
            require(self._send(record.seller, record.highest_bid), ErrorKind.SELLER_PAYMENT_FAILED)
            self._transfer(registry.safe_transfer_from, self.address, record.highest_bidder, asset_id)
        else:
            self._transfer(registry.safe_transfer_from, self.address, record.seller, asset_id)

        self.events.emit(AuctionEnded(
            contract=asset_contract,
            asset_id=asset_id,
            highest_bidder=record.highest_bidder,
            highest_bid=record.highest_bid,
        ))
        if record.has_bid:
            logger.info(f"Auction settled: asset={asset_id} sold to {short(record.highest_bidder)} for {record.highest_bid}")
        else:
            logger.info(f"Auction settled: asset={asset_id} unsold, returned to {short(record.seller)}")

    # =========================================================================
    # Read-only accessors
    # =========================================================================

    def get_auction_info(self, asset_contract: bytes, asset_id: int) -> AuctionRecord:
        return self.auctions.get(asset_contract, asset_id)

    def get_refund(self, address: bytes) -> int:
        return self.refunds.get(address)

    def held_value(self) -> int:
        """Currency the engine should be holding: refunds plus open highest bids."""
        return self.refunds.total() + self.auctions.locked_value()

    # =========================================================================
    # Internals
    # =========================================================================

    def _ensure_not_payable(self, ctx: CallContext) -> None:
        require(ctx.value == 0, ErrorKind.NOT_PAYABLE)

    def _ensure_caller_can_operate(self, ctx: CallContext, registry: AssetRegistry, owner: bytes) -> None:
        if ctx.sender == owner:
            return
        try:
            approved = registry.is_approved_for_all(owner, ctx.sender)
        except RegistryError as exc:
            raise Revert(ErrorKind.REGISTRY_CALL_FAILED, "IsApprovedForAll method call failed.") from exc
        require(approved is True, ErrorKind.NOT_OWNER_OR_APPROVED)

    def _registry(self, asset_contract: bytes) -> AssetRegistry:
        try:
            return self._registries(asset_contract)
        except LookupError as exc:
            raise Revert(
                ErrorKind.REGISTRY_CALL_FAILED,
                f"No asset registry at {bytes_to_hex(asset_contract)}",
            ) from exc

    def _get_owner(self, registry: AssetRegistry, asset_id: int) -> bytes:
        try:
            owner = registry.get_owner(asset_id)
        except RegistryError as exc:
            raise Revert(ErrorKind.REGISTRY_CALL_FAILED, "GetOwner method call failed.") from exc
        require(
            isinstance(owner, bytes) and len(owner) == ADDRESS_SIZE,
            ErrorKind.REGISTRY_CALL_FAILED,
            "GetOwner method call failed.",
        )
        return owner

    def _transfer(
        self,
        transfer: Callable[[bytes, bytes, int], bool],
        from_: bytes,
        to: bytes,
        asset_id: int,
        message: str = "",
    ) -> None:
        """
        Run a registry transfer; a RegistryError or anything but an explicit
        True aborts the call. Other exceptions, including a bug in a
        recipient hook, propagate.
        """
        try:
            moved = transfer(from_, to, asset_id)
        except RegistryError as exc:
            raise Revert(ErrorKind.CUSTODY_TRANSFER_FAILED, message) from exc
        require(moved is True, ErrorKind.CUSTODY_TRANSFER_FAILED, message)

    def _credit_refund(self, bidder: bytes, amount: int) -> None:
        try:
            balance = self.refunds.credit(bidder, amount)
        except OverflowError as exc:
            raise Revert(ErrorKind.OVERFLOW, str(exc)) from exc
        logger.debug(f"Outbid {short(bidder)}: refund balance now {balance}")

    def _check_address(self, value, name: str) -> None:
        valid, err = validate_address(value, name)
        require(valid, ErrorKind.INVALID_ARGUMENT, err)

    def _check_uint64(self, value, name: str) -> None:
        valid, err = validate_amount(value, name)
        require(valid, ErrorKind.INVALID_ARGUMENT, err)

    def __repr__(self) -> str:
        return f"AuctionEngine({bytes_to_hex(self.address)})"
