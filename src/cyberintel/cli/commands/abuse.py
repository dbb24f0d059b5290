"""AbuseIPDB commands and call budget"""

import asyncio

import click

from ...cache.rate_limiter import RateLimiter
from ...cache.store import FileStore
from ..formatters.table import TableFormatter
from .common import debug_option, emit, force_option, format_option, output_option, run_with_service


@click.command()
@click.argument('target')
@click.option('--max-age', default=90, help='Only reports from the last N days')
@click.option('--reputation', is_flag=True, help='Also search ThreatFox IOCs for the address')
@force_option
@format_option
@output_option
@debug_option
@click.pass_context
def ip(ctx, target, max_age, reputation, force, output_format, output, debug):
    """Reputation of an IP address or CIDR network (e.g. 203.0.113.0/24)

    Each uncached lookup spends one call from the AbuseIPDB daily budget.
    """
    if reputation and '/' in target:
        raise click.UsageError("--reputation takes a single address, not a network")

    async def action(service):
        if reputation:
            return await service.ip_reputation(target, max_age, force=force)
        if '/' in target:
            return await service.sources.abuseipdb_network(target, max_age, force=force)
        return await service.sources.abuseipdb_ip(target, max_age, force=force)

    result = run_with_service(ctx, action, debug)
    table = TableFormatter.format_ip_reputation if reputation else TableFormatter.format_mapping
    emit(result, output_format, output, table)


@click.command()
@click.option('--confidence', default=90, help='Minimum abuse confidence score')
@click.option('--limit', default=100, help='Maximum addresses')
@force_option
@format_option
@output_option
@debug_option
@click.pass_context
def blacklist(ctx, confidence, limit, force, output_format, output, debug):
    """AbuseIPDB blacklist (cached for 30 minutes)"""
    async def action(service):
        return await service.sources.abuseipdb_blacklist(confidence, limit, force=force)

    result = run_with_service(ctx, action, debug)
    emit(result, output_format, output, lambda r: TableFormatter.format_rows(r['data'], [
        ('IP ADDRESS', 'ipAddress', 40), ('SCORE', 'abuseConfidenceScore', 5),
        ('COUNTRY', 'countryCode', 7), ('LAST REPORTED', 'lastReportedAt', 25),
    ]))


@click.command()
@click.option('--provider', default='abuseipdb', help='Provider whose budget to show')
@click.pass_context
def budget(ctx, provider):
    """Show the remaining 24-hour call budget"""
    config = ctx.obj['config']
    limiter = RateLimiter(FileStore(config.database_path), max_calls=config.abuseipdb_max_calls)

    async def show():
        state = await limiter.get_budget(provider)
        remaining = await limiter.remaining(provider)
        return state, remaining

    state, remaining = asyncio.run(show())
    click.echo(f"{provider}: {remaining}/{limiter.max_calls} calls remaining")
    if state.window_start:
        click.echo(f"   Window started: {state.window_start} ms since epoch ({state.count} calls used)")
