"""
Token Aggregator CLI - run the API server or query providers directly
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List

import click
import uvicorn
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import Settings
from .main import build_aggregation_service
from .models.token import DEFAULT_PAGE_LIMIT, PaginatedResponse, Token, TokenFilter
from .services.aggregation_service import AggregationService, filter_and_sort, paginate
from .services.cache_service import CacheService
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

CONTEXT_SETTINGS = dict(help_option_names=['-h', '--help'])

SORT_FIELDS = ['volume', 'price_change', 'market_cap', 'liquidity']


@asynccontextmanager
async def open_services(settings: Settings) -> AsyncIterator[AggregationService]:
    """Connect the cache and provider clients for one command, closing them afterwards."""
    cache = CacheService(settings.redis_url, settings.cache_ttl)
    await cache.open()
    service = build_aggregation_service(settings, cache)
    try:
        yield service
    finally:
        await service.close()
        await cache.close()


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, debug):
    """Token Aggregator - merged Solana token market data"""
    settings = Settings.from_env()
    setup_logging('token_aggregator', logging.DEBUG if debug else logging.WARNING)

    ctx.ensure_object(dict)
    ctx.obj['console'] = Console()
    ctx.obj['settings'] = settings
    ctx.obj['debug'] = debug

    logger.debug("CLI initialized")


@cli.command()
@click.option('--host', help='Bind address (defaults to HOST)')
@click.option('--port', type=int, help='Port (defaults to PORT)')
@click.pass_context
def serve(ctx, host, port):
    """Run the HTTP and WebSocket API"""
    settings = ctx.obj['settings']
    uvicorn.run(
        'token_aggregator.main:create_app',
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        log_level='debug' if ctx.obj['debug'] else 'info',
    )


@cli.command()
@click.option('--sort-by', type=click.Choice(SORT_FIELDS), help='Field to sort by')
@click.option('--sort-order', type=click.Choice(['asc', 'desc']), help='Sort direction (default desc)')
@click.option('--limit', type=click.IntRange(min=1), default=DEFAULT_PAGE_LIMIT, show_default=True, help='Page size')
@click.option('--cursor', help='Offset cursor from a previous page')
@click.option('--query', help='Provider search query (defaults to DEFAULT_QUERY)')
@click.option('--no-cache', is_flag=True, help='Bypass the cached snapshot')
@click.option('--json', 'as_json', is_flag=True, help='Print raw JSON')
@click.pass_context
def tokens(ctx, sort_by, sort_order, limit, cursor, query, no_cache, as_json):
    """List merged tokens"""
    console = ctx.obj['console']
    token_filter = TokenFilter(sort_by=sort_by, sort_order=sort_order, limit=limit, cursor=cursor)

    async def run() -> PaginatedResponse:
        async with open_services(ctx.obj['settings']) as service:
            merged = await service.fetch_and_aggregate(query, use_cache=not no_cache)
            return paginate(filter_and_sort(merged, token_filter), token_filter)

    page = asyncio.run(run())

    if as_json:
        click.echo(json.dumps(page.model_dump(mode='json'), indent=2))
        return

    _display_tokens_table(console, page.data, f"Tokens ({len(page.data)} of {page.total})")
    if page.next_cursor:
        console.print(f"[dim]Next page: --cursor {page.next_cursor}[/dim]")


@cli.command()
@click.argument('address')
@click.option('--json', 'as_json', is_flag=True, help='Print raw JSON')
@click.pass_context
def token(ctx, address, as_json):
    """Look up a single token by address"""
    console = ctx.obj['console']

    async def run():
        async with open_services(ctx.obj['settings']) as service:
            return await service.get_token_by_address(address)

    result = asyncio.run(run())

    if result is None:
        console.print(f"[red]Token not found: {address}[/red]")
        ctx.exit(1)

    if as_json:
        click.echo(json.dumps(result.model_dump(mode='json'), indent=2))
    else:
        _display_tokens_table(console, [result], result.name or address)


@cli.command()
@click.pass_context
def refresh(ctx):
    """Re-fetch every provider and overwrite the cached snapshot"""
    console = ctx.obj['console']

    async def run() -> List[Token]:
        async with open_services(ctx.obj['settings']) as service:
            return await service.refresh_cache()

    with console.status("[bold green]Refreshing token cache..."):
        refreshed = asyncio.run(run())

    console.print(f"[green]Cache refreshed with {len(refreshed)} tokens[/green]")


def _display_tokens_table(console: Console, items: List[Token], title: str):
    """Display tokens as a table"""
    table = Table(title=title)
    table.add_column("Ticker", style="cyan")
    table.add_column("Name")
    table.add_column("Address", style="dim")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Volume", justify="right")
    table.add_column("Liquidity", justify="right")
    table.add_column("Market Cap", justify="right")
    table.add_column("Txns", justify="right")
    table.add_column("1h %", justify="right")
    table.add_column("Source")

    for item in items:
        change_color = "green" if item.price_change_1h_pct >= 0 else "red"
        table.add_row(
            item.ticker,
            item.name,
            item.address,
            f"{item.price_in_base_unit:.8g}",
            f"{item.volume_in_base_unit:,.2f}",
            f"{item.liquidity_in_base_unit:,.2f}",
            f"{item.market_cap_in_base_unit:,.2f}",
            str(item.transaction_count),
            f"[{change_color}]{item.price_change_1h_pct:+.2f}[/{change_color}]",
            item.source or "",
        )

    console.print(table)


if __name__ == '__main__':
    cli()
