"""
CLI tests through click's CliRunner against a temporary data directory.
"""

import logging
import re

import pytest
from click.testing import CliRunner

from auctionstore.cli.main import cli
from auctionstore.crypto import address_from_label, bytes_to_hex
from auctionstore.utils.logger import setup_logging


@pytest.fixture(autouse=True)
def restore_logging():
    """The CLI points the console handler at the runner's stream; put it back."""
    yield
    setup_logging(level=logging.INFO)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def data_dir(tmp_path):
    return str(tmp_path / "cli_data")


def invoke(runner, data_dir, *args):
    result = runner.invoke(cli, ["--data-dir", data_dir, *args])
    assert result.exit_code == 0, result.output
    return result.output


def token_address(output):
    return re.search(r"Token:\s+(0x[0-9a-f]{40})", output).group(1)


class TestDemo:
    """Tests for the demo command."""

    def test_sale(self, runner, data_dir):
        output = invoke(runner, data_dir, "demo")

        assert "bidder-2 bids 1050" in output
        assert "Asset owner: bidder-2" in output
        assert "Paid out: True" in output
        assert "Demo complete" in output

    def test_no_bid(self, runner, data_dir):
        output = invoke(runner, data_dir, "demo", "--scenario", "no-bid")

        assert "Asset owner: seller" in output
        assert "Paid out" not in output

    def test_failed_refund(self, runner, data_dir):
        output = invoke(runner, data_dir, "demo", "--scenario", "failed-refund")

        assert "Paid out: False" in output
        assert "Pending refund of bidder-1: 1000" in output

    def test_unknown_scenario(self, runner, data_dir):
        result = runner.invoke(cli, ["--data-dir", data_dir, "demo", "--scenario", "nope"])
        assert result.exit_code != 0

    def test_demo_runs_twice_on_same_store(self, runner, data_dir):
        first = token_address(invoke(runner, data_dir, "demo"))
        second = token_address(invoke(runner, data_dir, "demo"))
        assert first != second


class TestInspection:
    """Tests for the read-only commands."""

    def test_auction_show(self, runner, data_dir):
        token = token_address(invoke(runner, data_dir, "demo"))

        output = invoke(runner, data_dir, "auction", "show", token, "1")

        assert '"highest_bid": 1050' in output
        assert '"ended": true' in output

    def test_auction_show_missing(self, runner, data_dir):
        invoke(runner, data_dir, "demo")
        output = invoke(runner, data_dir, "auction", "show", "0x" + "11" * 20, "1")
        assert "No auction" in output

    def test_auction_show_bad_address(self, runner, data_dir):
        result = runner.invoke(cli, ["--data-dir", data_dir, "auction", "show", "0x1234", "1"])
        assert result.exit_code != 0

    def test_pending_refund(self, runner, data_dir):
        invoke(runner, data_dir, "demo", "--scenario", "failed-refund")
        bidder = bytes_to_hex(address_from_label("bidder-1"))

        output = invoke(runner, data_dir, "auction", "refund", bidder)
        assert "Pending refund: 1000" in output

    def test_commands_without_engine(self, runner, data_dir):
        assert "No auction engine deployed" in invoke(runner, data_dir, "auction", "refund", "0x" + "22" * 20)
        assert "Engine: not deployed" in invoke(runner, data_dir, "stats")

    def test_events(self, runner, data_dir):
        invoke(runner, data_dir, "demo")

        output = invoke(runner, data_dir, "events", "--limit", "2")

        assert "Events 2..4 of 4" in output
        assert "HighestBidUpdated" in output
        assert "AuctionEnded" in output
        assert "AuctionStarted" not in output

    def test_stats(self, runner, data_dir):
        invoke(runner, data_dir, "demo")

        output = invoke(runner, data_dir, "stats")

        assert "Auctions: 1 (0 open)" in output
        assert "Pending refunds: 0" in output
        assert "Engine holds: 0 (expected 0)" in output
