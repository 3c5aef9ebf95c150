"""
Errors - Abort taxonomy for engine calls.

A call aborts by raising ``Revert``. The host chain catches it at the call
boundary, discards every write staged by the call and reports the failure
as a ``CallResult``. An asset registry reports a failed call by raising
``RegistryError``, which the engine turns into a ``Revert``. Nothing else is
treated as a recoverable abort; any other exception is a bug and propagates.
"""

from enum import IntEnum


class ErrorKind(IntEnum):
    """Why a call was aborted."""
    # Precondition violations
    NOT_PAYABLE = 1             # Currency attached to a non-payable call
    ALREADY_ON_SALE = 2         # Engine already holds the asset
    NOT_OWNER_OR_APPROVED = 3   # Caller may not operate the asset
    AUCTION_NOT_FOUND = 4       # No record for (contract, asset_id)
    AUCTION_CLOSED = 5          # Bid after end_block or after settlement
    AUCTION_STILL_OPEN = 6      # Settlement before end_block
    BID_TOO_LOW = 7             # Not above highest bid or below starting price
    ALREADY_ENDED = 8           # Second settlement attempt
    NO_REFUND_BALANCE = 9       # Nothing to withdraw
    INVALID_ARGUMENT = 10       # Malformed address or out-of-range integer

    # External custody failures (fatal)
    REGISTRY_CALL_FAILED = 20   # Registry lookup raised or returned garbage
    CUSTODY_TRANSFER_FAILED = 21

    # External payout failure (fatal when settling)
    SELLER_PAYMENT_FAILED = 30

    # Arithmetic
    OVERFLOW = 40

    # Host level
    INSUFFICIENT_FUNDS = 50     # Attached value exceeds caller balance
    UNKNOWN_METHOD = 51


# Human readable defaults, close to the messages a contract author would assert with
DEFAULT_MESSAGES = {
    ErrorKind.NOT_PAYABLE: "The method is not payable.",
    ErrorKind.ALREADY_ON_SALE: "The token is already on sale.",
    ErrorKind.NOT_OWNER_OR_APPROVED: "The caller is not owner of the token nor approved for all.",
    ErrorKind.AUCTION_NOT_FOUND: "Auction not found.",
    ErrorKind.AUCTION_CLOSED: "Auction ended.",
    ErrorKind.AUCTION_STILL_OPEN: "Auction is not ended yet.",
    ErrorKind.BID_TOO_LOW: "The amount is not higher than highest bidder or starting price.",
    ErrorKind.ALREADY_ENDED: "Auction end already executed.",
    ErrorKind.NO_REFUND_BALANCE: "No refund balance.",
    ErrorKind.INVALID_ARGUMENT: "Invalid argument.",
    ErrorKind.REGISTRY_CALL_FAILED: "Asset registry call failed.",
    ErrorKind.CUSTODY_TRANSFER_FAILED: "The token transfer failed.",
    ErrorKind.SELLER_PAYMENT_FAILED: "Transfer failed.",
    ErrorKind.OVERFLOW: "Arithmetic overflow.",
    ErrorKind.INSUFFICIENT_FUNDS: "Insufficient funds for attached value.",
    ErrorKind.UNKNOWN_METHOD: "Unknown method.",
}


class Revert(Exception):
    """
    Abort the current call.

    Attributes:
        kind: ErrorKind classifying the abort
        message: Human readable detail
    """

    def __init__(self, kind: ErrorKind, message: str = ""):
        self.kind = kind
        self.message = message or DEFAULT_MESSAGES.get(kind, kind.name)
        super().__init__(f"{kind.name}: {self.message}")


def require(condition: bool, kind: ErrorKind, message: str = "") -> None:
    """Revert with ``kind`` unless ``condition`` holds."""
    if not condition:
        raise Revert(kind, message)


class RegistryError(Exception):
    """An asset registry could not answer or carry out a call."""
