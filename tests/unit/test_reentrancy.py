"""
Re-entrancy tests.

A receiver hook runs in the middle of an engine call (during a refund
payout, a seller payment or a token hand-over) and calls back into the
engine. Because authoritative state is written before the external call,
the nested call must see the post-call state and the invariants must hold
once everything has unwound.
"""

import pytest

from auctionstore.core.chain import Receiver
from auctionstore.core.errors import ErrorKind

ASSET_ID = 1
END_BLOCK = 1050
INITIAL_FUNDS = 10_000


class CallbackReceiver(Receiver):
    """Runs a callback on every payment or token received, recording nested results."""

    def __init__(self, on_payment=None, on_token=None, accept=True):
        self.on_payment = on_payment
        self.on_token = on_token
        self.accept = accept
        self.results = []

    def on_receive(self, chain, from_, amount):
        if self.on_payment is not None:
            self.results.append(self.on_payment(chain))
        return self.accept

    def on_token_received(self, chain, token, operator, from_, asset_id):
        if self.on_token is not None:
            self.results.append(self.on_token(chain))
        return self.accept


def assert_conserved(chain, engine):
    assert chain.balance_of(engine.address) == engine.held_value()


@pytest.fixture
def outbid(chain, open_auction, bidder_1, bidder_2):
    chain.call(bidder_1, "bid", open_auction.address, ASSET_ID, value=150)
    chain.call(bidder_2, "bid", open_auction.address, ASSET_ID, value=200)
    return open_auction


class TestReentrantRefund:
    """Callbacks during a refund payout."""

    def test_nested_refund_finds_nothing(self, chain, engine, outbid, bidder_1):
        receiver = CallbackReceiver(on_payment=lambda c: c.call(bidder_1, "refund"))
        chain.set_receiver(bidder_1, receiver)

        result = chain.call(bidder_1, "refund")

        assert result.return_value is True
        assert [r.error for r in receiver.results] == [ErrorKind.NO_REFUND_BALANCE]
        assert chain.balance_of(bidder_1) == INITIAL_FUNDS
        assert engine.get_refund(bidder_1) == 0
        assert_conserved(chain, engine)

    def test_nested_refund_then_refusal(self, chain, engine, outbid, bidder_1):
        receiver = CallbackReceiver(on_payment=lambda c: c.call(bidder_1, "refund"), accept=False)
        chain.set_receiver(bidder_1, receiver)

        result = chain.call(bidder_1, "refund")

        assert result.return_value is False
        assert engine.get_refund(bidder_1) == 150
        assert chain.balance_of(bidder_1) == INITIAL_FUNDS - 150
        assert_conserved(chain, engine)

    def test_nested_bid_with_refunded_money(self, chain, engine, outbid, bidder_1, bidder_2):
        receiver = CallbackReceiver(
            on_payment=lambda c: c.call(bidder_1, "bid", outbid.address, ASSET_ID, value=INITIAL_FUNDS),
        )
        chain.set_receiver(bidder_1, receiver)

        result = chain.call(bidder_1, "refund")

        assert result.success
        assert receiver.results[0].success
        record = engine.get_auction_info(outbid.address, ASSET_ID)
        assert record.highest_bidder == bidder_1
        assert record.highest_bid == INITIAL_FUNDS
        assert engine.get_refund(bidder_2) == 200
        assert chain.balance_of(bidder_1) == 0
        assert_conserved(chain, engine)

    def test_nested_events_reported_with_outer_call(self, chain, engine, outbid, bidder_1):
        receiver = CallbackReceiver(
            on_payment=lambda c: c.call(bidder_1, "bid", outbid.address, ASSET_ID, value=500),
        )
        chain.set_receiver(bidder_1, receiver)
        received = []
        chain.subscribe(received.append)

        result = chain.call(bidder_1, "refund")

        assert [e.event for e in result.events] == ["HighestBidUpdated"]
        assert received == result.events


class TestReentrantSettlement:
    """Callbacks during auction_end."""

    def test_seller_reenters_auction_end(self, chain, engine, outbid, seller, bidder_2, operator):
        receiver = CallbackReceiver(
            on_payment=lambda c: c.call(seller, "auction_end", outbid.address, ASSET_ID),
        )
        chain.set_receiver(seller, receiver)
        chain.advance_to(END_BLOCK)

        result = chain.call(operator, "auction_end", outbid.address, ASSET_ID)

        assert result.success
        assert [r.error for r in receiver.results] == [ErrorKind.ALREADY_ENDED]
        assert chain.balance_of(seller) == 200
        assert outbid.get_owner(ASSET_ID) == bidder_2
        assert [e.event for e in result.events] == ["AuctionEnded"]
        assert_conserved(chain, engine)

    def test_winner_reenters_on_token(self, chain, engine, outbid, seller, bidder_2, operator):
        receiver = CallbackReceiver(
            on_token=lambda c: c.call(bidder_2, "auction_end", outbid.address, ASSET_ID),
        )
        chain.set_receiver(bidder_2, receiver)
        chain.advance_to(END_BLOCK)

        result = chain.call(operator, "auction_end", outbid.address, ASSET_ID)

        assert result.success
        assert [r.error for r in receiver.results] == [ErrorKind.ALREADY_ENDED]
        assert chain.balance_of(seller) == 200
        assert_conserved(chain, engine)

    def test_winner_relists_then_refuses(self, chain, engine, outbid, seller, bidder_2, operator):
        """Whatever the hook did is discarded with its refusal."""
        def relist(c):
            outbid.set_approval_for_all(bidder_2, engine.address, True)
            return c.call(bidder_2, "auction", outbid.address, ASSET_ID, 1, 10)

        receiver = CallbackReceiver(on_token=relist, accept=False)
        chain.set_receiver(bidder_2, receiver)
        chain.advance_to(END_BLOCK)

        result = chain.call(operator, "auction_end", outbid.address, ASSET_ID)

        assert not result.success
        assert result.error == ErrorKind.CUSTODY_TRANSFER_FAILED
        # The relisting itself went through inside the hook
        assert receiver.results[0].success
        record = engine.get_auction_info(outbid.address, ASSET_ID)
        assert record.seller == seller
        assert not record.ended
        assert engine.auctions.history(outbid.address, ASSET_ID) == []
        assert chain.balance_of(seller) == 0
        assert_conserved(chain, engine)

    def test_outbid_bidder_refunds_during_settlement(self, chain, engine, outbid, seller, bidder_1, operator):
        receiver = CallbackReceiver(on_payment=lambda c: c.call(bidder_1, "refund"))
        chain.set_receiver(seller, receiver)
        chain.advance_to(END_BLOCK)

        result = chain.call(operator, "auction_end", outbid.address, ASSET_ID)

        assert result.success
        assert receiver.results[0].return_value is True
        assert chain.balance_of(bidder_1) == INITIAL_FUNDS
        assert chain.balance_of(engine.address) == 0
        assert_conserved(chain, engine)
