"""Enrichment and threat-trend commands"""

import click

from ..formatters.table import TableFormatter
from .common import debug_option, emit, format_option, output_option, run_with_service


@click.command()
@click.option('--fetch-missing/--cache-only', default=None,
              help='Fetch sources missing from the cache (default from CYBERINTEL_ENRICH_FETCH_MISSING)')
@click.option('--limit', default=50, help='Records shown in table output')
@format_option
@output_option
@debug_option
@click.pass_context
def enrich(ctx, fetch_missing, limit, output_format, output, debug):
    """Join NVD, KEV, cvelistV5, ATT&CK, Red Hat and AbuseIPDB data

    Examples:
        cyberintel enrich
        cyberintel enrich --cache-only --format json -o enriched.json
    """
    async def action(service):
        if fetch_missing is not None:
            service.enrichment.fetch_missing = fetch_missing
        return await service.enrichment.enrich()

    result = run_with_service(ctx, action, debug)
    emit(result, output_format, output, lambda r: TableFormatter.format_enriched(r, limit))


@click.command()
@format_option
@output_option
@debug_option
@click.pass_context
def trends(ctx, output_format, output, debug):
    """Daily CVE publications and KEV additions over the last 30 days

    Counts come from cached NVD files and the latest cached KEV catalog.
    """
    async def action(service):
        return await service.trends.get_trends()

    points = run_with_service(ctx, action, debug)
    emit(points, output_format, output, TableFormatter.format_trends)
