"""Cached data search command"""

import asyncio

import click

from ...cache.store import CacheStore, FileStore
from ...processing.search import SEARCHABLE_FIELDS, THREAT_SOURCE, search_cached, search_threats
from ...processing.sources import REFRESHABLE_SOURCES
from .common import debug_option, emit, format_option, output_option, run_with_service

SEARCH_SOURCES = sorted(list(SEARCHABLE_FIELDS) + [THREAT_SOURCE])


@click.command()
@click.argument('source', type=click.Choice(SEARCH_SOURCES))
@click.argument('query', required=False, default='')
@click.option('--fetch-missing/--cache-only', default=True,
              help='Fetch SOURCE from upstream when nothing is cached')
@format_option
@output_option
@debug_option
@click.pass_context
def search(ctx, source, query, fetch_missing, output_format, output, debug):
    """Search cached SOURCE data; every term must match

    The "threat" source searches the enriched vulnerability records for the
    query anywhere in their JSON.

    Examples:
        cyberintel search nvd "apache log4j"
        cyberintel search mitre "privilege escalation"
        cyberintel search threat T1068
    """
    if source == THREAT_SOURCE:
        result = run_with_service(ctx, lambda service: search_threats(service.enrichment, query), debug)
    elif fetch_missing and source in REFRESHABLE_SOURCES:
        result = run_with_service(
            ctx,
            lambda service: search_cached(service.cache, source, query,
                                          fetch=lambda: service.sources.refresh(source)),
            debug,
        )
    else:
        config = ctx.obj['config']
        cache = CacheStore(FileStore(config.database_path))
        result = asyncio.run(search_cached(cache, source, query))

    def table(data):
        lines = [f"{len(data['data'])} matches in {source} data"]
        if data.get('warning'):
            lines.append(f"WARNING: {data['warning']}")
        for item in data['data'][:50]:
            item_id = (item.get('cve') or {}).get('id') or item.get('cveID') or item.get('cve_id') \
                or item.get('id') or item.get('ioc')
            lines.append(f"  {item_id}")
        return "\n".join(lines)

    emit(result, output_format, output, table)
