"""
Asset Registry - the capability the engine consumes for custody.

The registry owns tokens and authorizes transfers; the engine only ever
talks to it through these four calls. The caller identity is implicit
(like ``msg.sender`` on a contract platform): a ``RegistryClient`` binds a
registry to the address making the calls.

A registry that cannot answer or carry out a call raises ``RegistryError``
(or returns something other than an address or ``True``). Any other
exception is treated as a bug and propagates out of the engine call.
"""

from typing import Protocol

from auctionstore.core.registry.nft import NonFungibleToken


class AssetRegistry(Protocol):
    """Non-fungible asset registry, as seen by one caller."""

    def get_owner(self, asset_id: int) -> bytes:
        """Current owner of ``asset_id`` (ZERO_ADDRESS if unminted)."""
        ...

    def is_approved_for_all(self, owner: bytes, operator: bytes) -> bool:
        ...

    def transfer_from(self, from_: bytes, to: bytes, asset_id: int) -> bool:
        ...

    def safe_transfer_from(self, from_: bytes, to: bytes, asset_id: int) -> bool:
        """Like transfer_from, but the recipient may refuse the token."""
        ...


class RegistryClient:
    """
    Binds a NonFungibleToken to the address calling it.

    Satisfies AssetRegistry.
    """

    def __init__(self, token: NonFungibleToken, caller: bytes):
        self.token = token
        self.caller = caller

    def get_owner(self, asset_id: int) -> bytes:
        return self.token.get_owner(asset_id)

    def is_approved_for_all(self, owner: bytes, operator: bytes) -> bool:
        return self.token.is_approved_for_all(owner, operator)

    def transfer_from(self, from_: bytes, to: bytes, asset_id: int) -> bool:
        return self.token.transfer_from(self.caller, from_, to, asset_id)

    def safe_transfer_from(self, from_: bytes, to: bytes, asset_id: int) -> bool:
        return self.token.safe_transfer_from(self.caller, from_, to, asset_id)

    def __repr__(self) -> str:
        return f"RegistryClient(token={self.token!r}, caller={self.caller.hex()[:8]})"
