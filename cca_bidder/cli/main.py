"""
CCA Bidder CLI - Command Line Interface for the auction bidder

Main entry point for all CLI commands.
"""

import asyncio
import sys

import click

from cca_bidder import __version__
from cca_bidder.utils.logger import setup_logging


def _load_settings(ctx):
    """Load settings, exiting with a readable message on failure."""
    from cca_bidder.core.config import ConfigError, load_config

    try:
        return load_config(env_file=ctx.obj["env_file"])
    except ConfigError as e:
        click.echo(f"❌ Configuration error: {e}", err=True)
        sys.exit(1)


def _provider(settings):
    from cca_bidder.chain.web3_provider import Web3ChainProvider

    return Web3ChainProvider(
        settings.rpc_url,
        settings.private_key,
        multicall_address=settings.multicall_address,
        poll_interval=settings.poll_interval,
    )


async def _load_params(provider, settings):
    from cca_bidder.core.auction import AuctionClient

    auction = AuctionClient(
        provider,
        cca_address=settings.cca_address,
        hook_address=settings.hook_address,
        soulbound_address=settings.soulbound_address,
    )
    return await auction.load_params(provider.signer_address)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--log-dir", default=None, help="Also write logs to this directory")
@click.option("--env-file", default=None, help="Path to a .env file (default: ./.env)")
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, debug, log_dir, env_file):
    """Bid lifecycle engine for continuous clearing auctions"""
    import logging

    level = logging.DEBUG if debug else logging.INFO
    setup_logging(level=level, log_dir=log_dir, log_to_file=log_dir is not None)

    ctx.ensure_object(dict)
    ctx.obj["env_file"] = env_file


# =============================================================================
# Run Command
# =============================================================================


@cli.command("run")
@click.pass_context
def run(ctx):
    """Submit the configured bids and follow the auction to completion"""
    from cca_bidder.core.engine import AuctionBot
    from cca_bidder.core.validate import PreflightError

    settings = _load_settings(ctx)

    async def run_bot():
        async with _provider(settings) as provider:
            bot = await AuctionBot.build(provider, settings)
            return await bot.run()

    try:
        completion = asyncio.run(run_bot())
    except PreflightError as e:
        click.echo(f"❌ Preflight failed: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nBidder stopped.")
        sys.exit(130)

    summary = completion.summary
    click.echo(f"Shutdown: {completion.reason.name}")
    click.echo(f"  Submitted: {summary.submitted}")
    click.echo(f"  Failed: {summary.failed}")
    click.echo(f"  Pending: {summary.pending}")
    if completion.reason.has_pending or completion.reason.is_abnormal:
        sys.exit(1)


# =============================================================================
# Inspection Commands
# =============================================================================


@cli.command("params")
@click.pass_context
def params(ctx):
    """Print the auction parameters as seen by the signer"""
    settings = _load_settings(ctx)

    async def fetch():
        async with _provider(settings) as provider:
            return provider.signer_address, await _load_params(provider, settings)

    signer, p = asyncio.run(fetch())

    click.echo("Auction Parameters")
    click.echo("-" * 40)
    click.echo(f"  CCA: {settings.cca_address}")
    click.echo(f"  Signer: {signer}")
    click.echo(f"  Contributor period ends: block {p.contributor_period_end_block}")
    click.echo(f"  End block: {p.end_block}")
    click.echo(f"  Floor price: {p.floor_price}")
    click.echo(f"  Tick spacing: {p.tick_spacing}")
    click.echo(f"  Max bid price: {p.max_bid_price}")
    click.echo(f"  Purchased: {p.total_purchased} / {p.max_purchase_limit}")
    click.echo(f"  Eligibility token: {'yes' if p.has_any_token else 'no'}")


@cli.command("check")
@click.pass_context
def check(ctx):
    """Validate the configured bids against the live auction without sending"""
    from cca_bidder.core.validate import PreflightValidator

    settings = _load_settings(ctx)

    async def fetch():
        async with _provider(settings) as provider:
            return await _load_params(provider, settings)

    p = asyncio.run(fetch())
    valid, err = PreflightValidator(p, settings.bids, settings.require_eligibility).run()
    if not valid:
        click.echo(f"❌ {err}")
        sys.exit(1)

    click.echo(f"✓ {len(settings.bids)} bid(s) pass preflight")
    for index, bid in enumerate(settings.bids, start=1):
        click.echo(f"  #{index} owner={bid.owner} max_bid={bid.max_bid} amount={bid.amount}")


@cli.command("align")
@click.argument("price", type=int)
@click.option("--floor", required=True, type=int, help="Auction floor price")
@click.option("--spacing", required=True, type=int, help="Tick spacing")
@click.option("--cap", required=True, type=int, help="Maximum bid price")
def align(price, floor, spacing, cap):
    """Align PRICE to the nearest valid tick (offline)"""
    from cca_bidder.core.ticks import align_price_to_tick

    if spacing <= 0:
        raise click.BadParameter("must be positive", param_hint="--spacing")
    if floor > cap:
        raise click.BadParameter("must not exceed --cap", param_hint="--floor")

    click.echo(align_price_to_tick(price, floor, spacing, cap))


if __name__ == "__main__":
    cli()
