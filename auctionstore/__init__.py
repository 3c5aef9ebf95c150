"""
auctionstore - Escrowed NFT auction settlement engine.

A deterministic state machine that:
- takes custody of a non-fungible asset through an external registry
- runs a timed, block-height bounded bidding period
- parks outbid funds in a pull-payment refund ledger
- settles exactly once, to a sale or a return
"""

__version__ = "0.1.0"
