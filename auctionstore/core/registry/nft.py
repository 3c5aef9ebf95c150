"""
NonFungibleToken - reference asset registry.

An ERC-721-like registry kept in the host chain's world state, so its
ownership changes commit or roll back together with the call that caused
them. It is the registry the demo and the tests run against; production
registries only need to satisfy ``AssetRegistry``.

Fault injection:
- ``fail_transfers``: every transfer reports failure
- a token-received hook (installed by the chain) may refuse a safe transfer
"""

from typing import Callable, Optional

from auctionstore.core.storage.kv import KeyValueStore
from auctionstore.crypto import ZERO_ADDRESS, bytes_to_hex, short
from auctionstore.utils.logger import get_logger

logger = get_logger("registry")

OWNER_BUCKET = "nft.owner"
OPERATOR_BUCKET = "nft.operator"

# (token, operator, from_, to, asset_id) -> accepted
TokenReceivedHook = Callable[[bytes, bytes, bytes, bytes, int], bool]


class NonFungibleToken:
    """
    Ownership and operator approvals for one token contract.

    Attributes:
        address: Contract address of this registry
        store: World state holding the ownership buckets
        fail_transfers: Fault injection switch
    """

    def __init__(
        self,
        address: bytes,
        store: KeyValueStore,
        on_token_received: Optional[TokenReceivedHook] = None,
    ):
        self.address = address
        self.store = store
        self.on_token_received = on_token_received
        self.fail_transfers = False

    def _owner_key(self, asset_id: int) -> bytes:
        return self.address + asset_id.to_bytes(8, byteorder="big")

    def _operator_key(self, owner: bytes, operator: bytes) -> bytes:
        return self.address + owner + operator

    # =========================================================================
    # Queries
    # =========================================================================

    def get_owner(self, asset_id: int) -> bytes:
        owner = self.store.get(OWNER_BUCKET, self._owner_key(asset_id))
        return owner if owner is not None else ZERO_ADDRESS

    def exists(self, asset_id: int) -> bool:
        return self.get_owner(asset_id) != ZERO_ADDRESS

    def is_approved_for_all(self, owner: bytes, operator: bytes) -> bool:
        return self.store.get(OPERATOR_BUCKET, self._operator_key(owner, operator)) is not None

    # =========================================================================
    # Mutations
    # =========================================================================

    def mint(self, to: bytes, asset_id: int) -> None:
        """Create ``asset_id`` owned by ``to``."""
        if to == ZERO_ADDRESS:
            raise ValueError("Cannot mint to the zero address")
        if self.exists(asset_id):
            raise ValueError(f"Token {asset_id} already minted")

        self.store.put(OWNER_BUCKET, self._owner_key(asset_id), to)
        logger.debug(f"Minted token {asset_id} to {short(to)}")

    def set_approval_for_all(self, owner: bytes, operator: bytes, approved: bool) -> None:
        key = self._operator_key(owner, operator)
        if approved:
            self.store.put(OPERATOR_BUCKET, key, b"\x01")
        else:
            self.store.delete(OPERATOR_BUCKET, key)

    def transfer_from(self, caller: bytes, from_: bytes, to: bytes, asset_id: int) -> bool:
        """
        Move ``asset_id`` from ``from_`` to ``to``.

        The caller must be ``from_`` or an operator approved by ``from_``.

        Returns:
            True if the token moved
        """
        if self.fail_transfers:
            logger.warning(f"Transfer of token {asset_id} refused (fault injected)")
            return False

        if to == ZERO_ADDRESS or self.get_owner(asset_id) != from_:
            return False

        if caller != from_ and not self.is_approved_for_all(from_, caller):
            return False

        self.store.put(OWNER_BUCKET, self._owner_key(asset_id), to)
        logger.debug(f"Token {asset_id}: {short(from_)} -> {short(to)}")
        return True

    def safe_transfer_from(self, caller: bytes, from_: bytes, to: bytes, asset_id: int) -> bool:
        """
        Transfer, then let the recipient accept or refuse.

        A refusal undoes the move and reports failure.
        """
        if not self.transfer_from(caller, from_, to, asset_id):
            return False

        if self.on_token_received is None:
            return True

        if self.on_token_received(self.address, caller, from_, to, asset_id):
            return True

        self.store.put(OWNER_BUCKET, self._owner_key(asset_id), from_)
        logger.warning(f"Recipient {short(to)} refused token {asset_id}")
        return False

    def __repr__(self) -> str:
        return f"NonFungibleToken({bytes_to_hex(self.address)})"
