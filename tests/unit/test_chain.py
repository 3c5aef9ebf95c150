"""
Unit tests for the host chain.

Tests cover:
1. Block height
2. Currency balances and send
3. Contract deployment
4. The atomic call boundary
5. Committed-event subscribers
6. Contract addresses as callers
7. Bugs in receiver hooks
"""

import pytest

from auctionstore.core.auction import AuctionStarted
from auctionstore.core.chain import Chain, Receiver
from auctionstore.core.errors import ErrorKind, Revert
from auctionstore.crypto import ZERO_ADDRESS, address_from_label, contract_address
from auctionstore.utils.validation import MAX_UINT64

ASSET_ID = 1
ALICE = address_from_label("alice")
BOB = address_from_label("bob")


class TestBlocks:
    """Tests for block height."""

    def test_genesis_height(self):
        assert Chain().block_number == 0
        assert Chain(genesis_block=500).block_number == 500

    def test_mine(self, chain):
        start = chain.block_number
        assert chain.mine() == start + 1
        assert chain.mine(9) == start + 10

    def test_advance_to(self, chain):
        assert chain.advance_to(chain.block_number + 100) == chain.block_number

    def test_cannot_go_back(self, chain):
        with pytest.raises(ValueError):
            chain.advance_to(chain.block_number - 1)
        with pytest.raises(ValueError):
            chain.mine(-1)

    def test_height_bounded(self, chain):
        chain.advance_to(MAX_UINT64)
        with pytest.raises(ValueError):
            chain.mine()

    @pytest.mark.parametrize("genesis", [-1, MAX_UINT64 + 1, "0"])
    def test_bad_genesis(self, genesis):
        with pytest.raises(ValueError):
            Chain(genesis_block=genesis)


class TestCurrency:
    """Tests for balances and payments."""

    def test_fund_and_balance(self, chain):
        assert chain.balance_of(ALICE) == 0
        chain.fund(ALICE, 100)
        chain.fund(ALICE, 50)
        assert chain.balance_of(ALICE) == 150
        assert chain.total_supply() == 150

    def test_fund_rejects_bad_input(self, chain):
        with pytest.raises(ValueError):
            chain.fund(b"short", 1)
        with pytest.raises(ValueError):
            chain.fund(ALICE, -1)

    def test_send(self, chain):
        chain.fund(ALICE, 100)
        assert chain.send(ALICE, BOB, 40)
        assert chain.balance_of(ALICE) == 60
        assert chain.balance_of(BOB) == 40
        assert chain.total_supply() == 100

    def test_send_insufficient(self, chain):
        chain.fund(ALICE, 10)
        assert not chain.send(ALICE, BOB, 11)
        assert chain.balance_of(ALICE) == 10
        assert chain.state.depth == 0

    def test_refused_send_undone(self, chain, refusing):
        chain.fund(ALICE, 100)
        chain.set_receiver(BOB, refusing)

        assert not chain.send(ALICE, BOB, 40)
        assert chain.balance_of(ALICE) == 100
        assert chain.balance_of(BOB) == 0

    def test_reverting_hook_is_refusal(self, chain):
        class Reverting(Receiver):
            def on_receive(self, chain, from_, amount):
                raise Revert(ErrorKind.INVALID_ARGUMENT, "no thanks")

        chain.fund(ALICE, 100)
        chain.set_receiver(BOB, Reverting())

        assert not chain.send(ALICE, BOB, 40)
        assert chain.balance_of(ALICE) == 100

    def test_hook_sees_payment(self, chain):
        seen = []

        class Recording(Receiver):
            def on_receive(self, chain, from_, amount):
                seen.append((from_, amount, chain.balance_of(BOB)))
                return True

        chain.fund(ALICE, 100)
        chain.set_receiver(BOB, Recording())
        chain.send(ALICE, BOB, 40)

        assert seen == [(ALICE, 40, 40)]

    def test_hook_bug_propagates(self, chain):
        class Broken(Receiver):
            def on_receive(self, chain, from_, amount):
                raise KeyError("bug")

        chain.fund(ALICE, 100)
        chain.set_receiver(BOB, Broken())

        with pytest.raises(KeyError):
            chain.send(ALICE, BOB, 40)
        assert chain.balance_of(ALICE) == 100
        assert chain.state.depth == 0


class TestDeployment:
    """Tests for contract deployment."""

    def test_addresses_follow_deployer_nonce(self, chain, operator):
        engine = chain.deploy_engine(operator)
        token = chain.deploy_token(operator)

        assert engine.address == contract_address(operator, 0)
        assert token.address == contract_address(operator, 1)
        assert chain.tokens[token.address] is token

    def test_single_engine(self, chain, engine, operator):
        with pytest.raises(RuntimeError):
            chain.deploy_engine(operator)

    def test_call_without_engine(self, chain, seller):
        with pytest.raises(RuntimeError):
            chain.call(seller, "refund")

    def test_foreign_registry_cannot_shadow_token(self, chain, token):
        with pytest.raises(ValueError):
            chain.register_registry(token.address, object())


class TestCallBoundary:
    """Tests for the atomic call boundary."""

    def test_unknown_method(self, chain, engine, seller):
        result = chain.call(seller, "get_refund", seller)

        assert not result.success
        assert result.error == ErrorKind.UNKNOWN_METHOD

    def test_private_method_not_callable(self, chain, engine, seller):
        result = chain.call(seller, "_credit_refund", seller, 100)
        assert result.error == ErrorKind.UNKNOWN_METHOD

    def test_zero_sender_rejected(self, chain, engine):
        result = chain.call(ZERO_ADDRESS, "refund")
        assert result.error == ErrorKind.INVALID_ARGUMENT

    def test_malformed_sender_rejected(self, chain, engine):
        result = chain.call("alice", "refund")
        assert result.error == ErrorKind.INVALID_ARGUMENT

    def test_negative_value_rejected(self, chain, engine, seller):
        result = chain.call(seller, "refund", value=-1)
        assert result.error == ErrorKind.INVALID_ARGUMENT

    def test_failed_call_reports_block(self, chain, engine, seller):
        result = chain.call(seller, "refund")

        assert result.block_number == chain.block_number
        assert "NO_REFUND_BALANCE" in repr(result)

    def test_frames_closed_after_calls(self, chain, open_auction, bidder_1, seller):
        chain.call(bidder_1, "bid", open_auction.address, ASSET_ID, value=150)
        chain.call(seller, "refund")
        assert chain.state.depth == 0

    def test_bug_in_engine_propagates_and_rolls_back(self, chain, open_auction, bidder_1):
        events_before = len(chain.events)

        with pytest.raises(TypeError):
            chain.call(bidder_1, "bid", open_auction.address, value=150)

        assert chain.state.depth == 0
        assert chain.balance_of(bidder_1) == 10_000
        assert len(chain.events) == events_before


class TestSubscribers:
    """Tests for committed-event notification."""

    def test_subscriber_gets_committed_events(self, chain, minted, seller, stranger):
        received = []
        chain.subscribe(received.append)

        chain.call(stranger, "auction", minted.address, ASSET_ID, 100, 50)
        assert received == []

        chain.call(seller, "auction", minted.address, ASSET_ID, 100, 50)
        assert len(received) == 1
        assert isinstance(received[0], AuctionStarted)

    def test_failing_subscriber_does_not_fail_committed_call(self, chain, minted, seller, engine):
        received = []

        def broken(event):
            raise ValueError("subscriber bug")

        chain.subscribe(broken)
        chain.subscribe(received.append)

        result = chain.call(seller, "auction", minted.address, ASSET_ID, 100, 50)

        assert result.success
        assert len(received) == 1
        assert minted.get_owner(ASSET_ID) == engine.address
        assert chain.state.depth == 0


class TestContractCallers:
    """Tests that contracts cannot act as callers of the engine."""

    def test_engine_cannot_bid_with_own_funds(self, chain, open_auction, engine, bidder_1, bidder_2):
        chain.call(bidder_1, "bid", open_auction.address, ASSET_ID, value=150)
        chain.call(bidder_2, "bid", open_auction.address, ASSET_ID, value=200)

        result = chain.call(engine.address, "bid", open_auction.address, ASSET_ID, value=300)

        assert result.error == ErrorKind.INVALID_ARGUMENT
        record = engine.get_auction_info(open_auction.address, ASSET_ID)
        assert (record.highest_bid, record.highest_bidder) == (200, bidder_2)
        assert engine.get_refund(bidder_2) == 0
        assert chain.balance_of(engine.address) == engine.held_value() == 350

    def test_engine_cannot_list_approved_asset(self, chain, minted, engine, seller):
        result = chain.call(engine.address, "auction", minted.address, ASSET_ID, 1, 1)

        assert result.error == ErrorKind.INVALID_ARGUMENT
        assert minted.get_owner(ASSET_ID) == seller
        assert not engine.get_auction_info(minted.address, ASSET_ID).exists

    @pytest.mark.parametrize("which", ["token", "foreign"])
    def test_registries_cannot_call(self, chain, engine, token, which):
        if which == "token":
            caller = token.address
        else:
            caller = address_from_label("foreign-registry")
            chain.register_registry(caller, object())

        assert chain.is_contract(caller)
        assert chain.call(caller, "refund").error == ErrorKind.INVALID_ARGUMENT

    def test_accounts_are_not_contracts(self, chain, engine, seller):
        assert not chain.is_contract(seller)


class TestHookBugs:
    """Exceptions other than Revert raised in receiver hooks."""

    def test_token_hook_bug_propagates_from_settlement(self, chain, open_auction, engine, seller, operator):
        class Broken(Receiver):
            def on_token_received(self, chain, token, operator, from_, asset_id):
                raise TypeError("bug in hook")

        chain.set_receiver(seller, Broken())
        chain.advance_to(1050)

        with pytest.raises(TypeError, match="bug in hook"):
            chain.call(operator, "auction_end", open_auction.address, ASSET_ID)

        assert chain.state.depth == 0
        assert not engine.get_auction_info(open_auction.address, ASSET_ID).ended
        assert open_auction.get_owner(ASSET_ID) == engine.address
