"""
Shared fixtures: an in-memory chain with the engine and one token deployed.

Accounts are derived from labels, so every test sees the same addresses.
"""

import pytest

from auctionstore.core.chain import Chain, Receiver
from auctionstore.crypto import address_from_label

ASSET_ID = 1
STARTING_PRICE = 100
DURATION = 50
START_BLOCK = 1000
INITIAL_FUNDS = 10_000


class RefusingReceiver(Receiver):
    """Refuses every payment and every token."""

    def on_receive(self, chain, from_, amount):
        return False

    def on_token_received(self, chain, token, operator, from_, asset_id):
        return False


@pytest.fixture
def refusing():
    return RefusingReceiver()


@pytest.fixture
def chain():
    return Chain(genesis_block=START_BLOCK)


@pytest.fixture
def operator():
    return address_from_label("operator")


@pytest.fixture
def seller():
    return address_from_label("seller")


@pytest.fixture
def bidder_1():
    return address_from_label("bidder-1")


@pytest.fixture
def bidder_2():
    return address_from_label("bidder-2")


@pytest.fixture
def stranger():
    return address_from_label("stranger")


@pytest.fixture
def engine(chain, operator):
    return chain.deploy_engine(operator)


@pytest.fixture
def token(chain, operator):
    return chain.deploy_token(operator)


@pytest.fixture
def minted(chain, engine, token, seller, bidder_1, bidder_2):
    """Seller owns ASSET_ID and has approved the engine; bidders are funded."""
    token.mint(seller, ASSET_ID)
    token.set_approval_for_all(seller, engine.address, True)
    chain.fund(bidder_1, INITIAL_FUNDS)
    chain.fund(bidder_2, INITIAL_FUNDS)
    return token


@pytest.fixture
def open_auction(chain, minted, seller):
    """ASSET_ID on auction from START_BLOCK to START_BLOCK + DURATION."""
    result = chain.call(seller, "auction", minted.address, ASSET_ID, STARTING_PRICE, DURATION)
    assert result.success, result
    return minted
