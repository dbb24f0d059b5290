"""Cache management commands"""

import asyncio
from datetime import datetime

import click

from ...cache.store import CacheStore, FileStore
from ...core.exceptions import CacheCorrupt
from ..formatters.table import TableFormatter
from .common import debug_option, emit, format_option, run_with_service


def _cache(ctx) -> CacheStore:
    return CacheStore(FileStore(ctx.obj['config'].database_path))


@click.group()
def cache():
    """Inspect or clear cached source data"""
    pass


@cache.command('list')
@click.option('--pattern', default='*.json', help='Glob over cache keys')
@click.pass_context
def list_entries(ctx, pattern):
    """List cache entries with their age"""
    store = _cache(ctx)

    async def collect():
        rows = []
        for key in await store.keys(pattern):
            try:
                entry = await store.read_entry(key)
            except CacheCorrupt:
                rows.append((key, None))
                continue
            rows.append((key, entry.written_at if entry else None))
        return rows

    rows = asyncio.run(collect())
    if not rows:
        click.echo("Cache is empty")
        return

    now = datetime.now().timestamp()
    for key, written_at in rows:
        if written_at is None:
            click.echo(f"{key:<50} unreadable")
        else:
            click.echo(f"{key:<50} {(now - written_at) / 3600:8.2f}h old")


@cache.command()
@click.argument('keys', nargs=-1)
@click.option('--all', 'clear_all', is_flag=True, help='Remove every cache entry (call budgets are kept)')
@click.pass_context
def clear(ctx, keys, clear_all):
    """Remove cache entries by key, or everything with --all"""
    if not keys and not clear_all:
        raise click.UsageError("Give one or more keys or --all")

    store = _cache(ctx)

    async def run():
        if clear_all:
            return await store.clear_all()
        return [key for key in keys if await store.clear(key)]

    removed = asyncio.run(run())
    click.echo(f"Removed {len(removed)} cache entries")
    for key in removed:
        click.echo(f"   {key}")


@cache.command()
@format_option
@debug_option
@click.pass_context
def refresh(ctx, output_format, debug):
    """Force-fetch NVD, CISA KEV, ATT&CK, cvelistV5 and Red Hat data

    AbuseIPDB data is left alone so the daily call budget is not spent.
    """
    async def action(service):
        return await service.refresh_all()

    result = run_with_service(ctx, action, debug)
    emit(result, output_format, None, TableFormatter.format_refresh)
    if result.get('errors'):
        ctx.exit(1)
