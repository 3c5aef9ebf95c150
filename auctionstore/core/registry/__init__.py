"""
Asset registry boundary.

The engine consumes the four-call ``AssetRegistry`` capability; the
reference ``NonFungibleToken`` implements it for demos and tests.
"""

from auctionstore.core.registry.nft import NonFungibleToken, TokenReceivedHook
from auctionstore.core.registry.asset_registry import AssetRegistry, RegistryClient

__all__ = [
    "AssetRegistry",
    "RegistryClient",
    "NonFungibleToken",
    "TokenReceivedHook",
]
