"""MITRE ATT&CK, cvelistV5 and Red Hat feed commands"""

import click

from ...processing.kev_view import paginate
from ..formatters.table import TableFormatter
from .common import debug_option, emit, force_option, format_option, output_option, run_with_service


@click.command()
@click.option('--tactic', help='Only techniques for this tactic (e.g. "Privilege Escalation")')
@force_option
@format_option
@output_option
@debug_option
@click.pass_context
def mitre(ctx, tactic, force, output_format, output, debug):
    """MITRE ATT&CK enterprise techniques, one row per tactic"""
    async def action(service):
        return await service.sources.mitre_techniques(force=force)

    result = run_with_service(ctx, action, debug)
    if tactic:
        result = dict(result)
        result['techniques'] = [t for t in result['techniques'] if t.get('tactic', '').lower() == tactic.lower()]
        result['total'] = len(result['techniques'])

    emit(result, output_format, output, lambda r: TableFormatter.format_rows(r['techniques'], [
        ('ID', 'id', 34), ('NAME', 'name', 40), ('PLATFORMS', 'platforms', 30),
    ]))


@click.command()
@force_option
@format_option
@output_option
@debug_option
@click.pass_context
def cvelist(ctx, force, output_format, output, debug):
    """Recently published or updated cvelistV5 records (CNA/ADP containers)"""
    async def action(service):
        return await service.sources.cvelist_records(force=force)

    result = run_with_service(ctx, action, debug)
    emit(result, output_format, output, lambda r: TableFormatter.format_rows(r['vulnerabilities'], [
        ('CVE', 'cveMetadata.cveId', 18), ('STATE', 'cveMetadata.state', 10),
        ('CNA', 'cveMetadata.assignerShortName', 20), ('UPDATED', 'cveMetadata.dateUpdated', 24),
    ]))


@click.command()
@click.argument('cve_id', required=False)
@click.option('--page', default=1, help='Page number for the advisory list')
@click.option('--page-size', default=50, help='Advisories per page')
@force_option
@format_option
@output_option
@debug_option
@click.pass_context
def redhat(ctx, cve_id, page, page_size, force, output_format, output, debug):
    """Red Hat advisory for one CVE, or advisories for recent critical/high CVEs"""
    async def action(service):
        if cve_id:
            return await service.sources.redhat_cve(cve_id, force=force)
        return await service.sources.redhat_advisories(force=force)

    result = run_with_service(ctx, action, debug)

    if cve_id:
        if result is None:
            click.echo(f"No Red Hat security data for {cve_id}")
            return
        emit(result, output_format, output, TableFormatter.format_mapping)
        return

    advisories, pagination = paginate(result['advisories'], page, page_size)
    result = dict(result, advisories=advisories, pagination=pagination)
    emit(result, output_format, output, lambda r: TableFormatter.format_rows(r['advisories'], [
        ('CVE', 'cve_id', 18), ('SEVERITY', 'severity', 10), ('TITLE', 'title', 50),
    ]))
