"""
auctionstore CLI - Command Line Interface for the escrowed auction engine

Main entry point for all CLI commands.
"""

import logging

import click
from pathlib import Path

from auctionstore.utils.logger import setup_logging


def _open_chain(ctx):
    """Open the persisted chain under the configured data directory."""
    from auctionstore.core.chain import Chain
    from auctionstore.core.storage import StorageManager

    config = ctx.obj["config"]
    storage = StorageManager(config.data_dir, config.db_name)
    return Chain(storage_manager=storage, genesis_block=config.genesis_block)


def _parse_address(value: str, name: str) -> bytes:
    from auctionstore.utils.validation import parse_address

    try:
        return parse_address(value, name)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint=name)


def _step(result, action: str):
    """Echo the outcome of one chain call."""
    if result.success:
        click.echo(f"  ✓ {action}")
        for event in result.events:
            click.echo(f"      event: {event.event}")
    else:
        click.echo(f"  ✗ {action}: {result.error.name} ({result.message})")
    return result


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--data-dir", default=None, help="Data directory (default: AUCTIONSTORE_DATA_DIR or ./data)")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, data_dir):
    """auctionstore - Escrowed NFT auction engine"""
    from auctionstore.core.config import load_config

    try:
        config = load_config()
    except ValueError as exc:
        raise click.UsageError(f"Invalid configuration: {exc}")

    if data_dir:
        config.data_dir = Path(data_dir).expanduser()
    if debug:
        config.log_level = logging.DEBUG

    setup_logging(level=config.log_level, log_dir=str(config.log_dir), log_to_file=config.log_to_file)
    config.ensure_dirs()

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


# =============================================================================
# Demo Command
# =============================================================================


@cli.command("demo")
@click.option(
    "--scenario",
    type=click.Choice(["sale", "no-bid", "failed-refund"]),
    default="sale",
    help="Demo scenario to run",
)
@click.pass_context
def demo(ctx, scenario):
    """Run an auction scenario on the persisted chain"""
    from auctionstore.core.chain import Receiver
    from auctionstore.crypto import address_from_label, bytes_to_hex

    class RefusingReceiver(Receiver):
        def on_receive(self, chain, from_, amount):
            return False

    click.echo("=" * 60)
    click.echo(f"  AUCTIONSTORE - DEMO ({scenario})")
    click.echo("=" * 60)
    click.echo()

    chain = _open_chain(ctx)
    try:
        operator = address_from_label("operator")
        seller = address_from_label("seller")
        bidder_1 = address_from_label("bidder-1")
        bidder_2 = address_from_label("bidder-2")

        # Setup
        click.echo("📦 Initializing contracts...")
        engine = chain.engine or chain.deploy_engine(operator)
        token = chain.deploy_token(operator)
        asset_id = 1
        token.mint(seller, asset_id)
        token.set_approval_for_all(seller, engine.address, True)
        for bidder in (bidder_1, bidder_2):
            chain.fund(bidder, 5000)

        click.echo(f"  ✓ Engine: {bytes_to_hex(engine.address)}")
        click.echo(f"  ✓ Token:  {bytes_to_hex(token.address)} (asset {asset_id} minted to seller)")
        click.echo(f"  ✓ Block:  {chain.block_number}")
        click.echo()

        click.echo("🏷️  Seller opens the auction...")
        _step(chain.call(seller, "auction", token.address, asset_id, 1000, 10), "auction(start=1000, duration=10)")
        click.echo()

        if scenario in ("sale", "failed-refund"):
            if scenario == "failed-refund":
                chain.set_receiver(bidder_1, RefusingReceiver())

            click.echo("💸 Bidding...")
            _step(chain.call(bidder_1, "bid", token.address, asset_id, value=1000), "bidder-1 bids 1000")
            _step(chain.call(bidder_2, "bid", token.address, asset_id, value=1050), "bidder-2 bids 1050")
            click.echo(f"  Pending refund of bidder-1: {engine.get_refund(bidder_1)}")
            click.echo()

        click.echo("⏱️  Mining to the end block...")
        chain.mine(10)
        click.echo(f"  ✓ Block: {chain.block_number}")
        click.echo()

        click.echo("⚖️  Settling...")
        _step(chain.call(operator, "auction_end", token.address, asset_id), "auction_end")
        click.echo()

        if scenario in ("sale", "failed-refund"):
            click.echo("↩️  bidder-1 withdraws...")
            result = _step(chain.call(bidder_1, "refund"), "refund")
            click.echo(f"  Paid out: {result.return_value}")
            click.echo(f"  Pending refund of bidder-1: {engine.get_refund(bidder_1)}")
            click.echo()

        owner = token.get_owner(asset_id)
        labels = {seller: "seller", bidder_1: "bidder-1", bidder_2: "bidder-2"}

        click.echo("📊 Final State:")
        click.echo(f"  Asset owner: {labels.get(owner, bytes_to_hex(owner))}")
        click.echo(f"  Record: {engine.get_auction_info(token.address, asset_id)!r}")
        for address, label in labels.items():
            click.echo(f"  {label}: balance={chain.balance_of(address)}")
        click.echo(f"  Engine holds: {chain.balance_of(engine.address)}")
        click.echo()
        click.echo("✅ Demo complete!")
    finally:
        chain.close()


# =============================================================================
# Auction Commands
# =============================================================================


@cli.group()
def auction():
    """Auction inspection commands"""
    pass


@auction.command("show")
@click.argument("contract")
@click.argument("asset_id", type=int)
@click.pass_context
def auction_show(ctx, contract, asset_id):
    """Show the auction record of an asset"""
    import json

    contract_address = _parse_address(contract, "contract")

    chain = _open_chain(ctx)
    try:
        if chain.engine is None:
            click.echo("No auction engine deployed.")
            return

        record = chain.engine.get_auction_info(contract_address, asset_id)
        if not record.exists:
            click.echo(f"No auction for asset {asset_id} of {contract}")
            return

        click.echo(json.dumps(record.to_dict(), indent=2))
        history = chain.engine.auctions.history(contract_address, asset_id)
        if history:
            click.echo(f"Previous auctions: {len(history)}")
    finally:
        chain.close()


@auction.command("refund")
@click.argument("address")
@click.pass_context
def auction_refund(ctx, address):
    """Show the pending refund of an address"""
    bidder = _parse_address(address, "address")

    chain = _open_chain(ctx)
    try:
        if chain.engine is None:
            click.echo("No auction engine deployed.")
            return
        click.echo(f"Pending refund: {chain.engine.get_refund(bidder)}")
    finally:
        chain.close()


# =============================================================================
# Events Command
# =============================================================================


@cli.command("events")
@click.option("--limit", default=20, type=click.IntRange(min=1), help="Max events to show (most recent)")
@click.pass_context
def events(ctx, limit):
    """Show the persisted event log"""
    chain = _open_chain(ctx)
    try:
        total = len(chain.events)
        start = max(0, total - limit)
        click.echo(f"Events {start}..{total} of {total}")
        click.echo("-" * 40)
        for seq, event in enumerate(chain.events.events(start), start=start):
            click.echo(f"  {seq}. {event.model_dump_json()}")
    finally:
        chain.close()


# =============================================================================
# Stats Command
# =============================================================================


@cli.command("stats")
@click.pass_context
def stats(ctx):
    """Show chain statistics"""
    from auctionstore.crypto import bytes_to_hex

    chain = _open_chain(ctx)
    try:
        click.echo("auctionstore Statistics")
        click.echo("-" * 40)
        click.echo(f"  Block height: {chain.block_number}")
        click.echo(f"  Events: {len(chain.events)}")
        click.echo(f"  Token registries: {len(chain.tokens)}")

        engine = chain.engine
        if engine is None:
            click.echo("  Engine: not deployed")
            return

        records = list(engine.auctions.items())
        click.echo(f"  Engine: {bytes_to_hex(engine.address)}")
        click.echo(f"  Auctions: {len(records)} ({len(engine.auctions.open_auctions())} open)")
        click.echo(f"  Pending refunds: {engine.refunds.total()}")
        click.echo(f"  Engine holds: {chain.balance_of(engine.address)} (expected {engine.held_value()})")
    finally:
        chain.close()


if __name__ == "__main__":
    cli()
