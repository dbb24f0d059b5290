"""CISA KEV catalog command"""

from datetime import datetime, timezone

import click

from ...processing.kev_view import DUE_FILTERS, filter_by_due, kev_stats, paginate
from ...processing.parsers import parse_kev
from ..formatters.table import TableFormatter
from .common import debug_option, emit, force_option, format_option, output_option, run_with_service


@click.command()
@click.option('--days', type=int, help='Only entries added in the last N days')
@click.option('--due', type=click.Choice(DUE_FILTERS), default='all', help='Filter by remediation urgency')
@click.option('--page', default=1, help='Page number')
@click.option('--page-size', default=50, help='Entries per page')
@force_option
@format_option
@output_option
@debug_option
@click.pass_context
def kev(ctx, days, due, page, page_size, force, output_format, output, debug):
    """CISA Known Exploited Vulnerabilities with due-date urgency

    Urgency is computed at request time: urgent (due within 7 days),
    upcoming (8-30 days), later (more than 30 days).
    """
    async def action(service):
        return await service.sources.kev_catalog(days, force=force)

    catalog = run_with_service(ctx, action, debug)

    now = datetime.now(timezone.utc)
    entries = parse_kev(catalog)
    filtered = filter_by_due(entries, due, now)
    page_items, pagination = paginate(filtered, page, page_size)

    result = dict(catalog)
    result['vulnerabilities'] = [entry.raw for entry in page_items]
    result['pagination'] = pagination
    result['stats'] = kev_stats(entries, now)

    emit(result, output_format, output, TableFormatter.format_kev)
