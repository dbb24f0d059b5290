"""CVE lookup commands"""

import click

from ..formatters.table import TableFormatter
from .common import debug_option, emit, force_option, format_option, output_option, run_with_service


@click.command()
@click.argument('cve_ids', nargs=-1, required=True)
@click.option('--full', is_flag=True, help='Add KEV membership, Red Hat data and Vulners exploits')
@force_option
@format_option
@output_option
@debug_option
@click.pass_context
def cve(ctx, cve_ids, full, force, output_format, output, debug):
    """Look up CVEs in NVD, falling back to Vulners

    Examples:
        cyberintel cve CVE-2021-44228
        cyberintel cve CVE-2023-44487 CVE-2024-3400 --format json
        cyberintel cve CVE-2021-44228 --full
    """
    for cve_id in cve_ids:
        if not cve_id.upper().startswith('CVE-'):
            click.echo(f"Warning: '{cve_id}' doesn't follow CVE format (CVE-YYYY-NNNNN)", err=True)

    async def action(service):
        if full:
            reports = [await service.cve_report(cve_id, force=force) for cve_id in cve_ids]
            return reports[0] if len(reports) == 1 else reports
        if len(cve_ids) == 1:
            return await service.sources.cve(cve_ids[0], force=force)
        return await service.resolve_cves(list(cve_ids), force=force)

    result = run_with_service(ctx, action, debug)

    def table(data):
        if full:
            reports = [data] if isinstance(data, dict) else data
            return ("\n" + "=" * 60 + "\n").join(TableFormatter.format_cve_report(r) for r in reports)
        if isinstance(data, dict):
            return TableFormatter.format_cve(data)
        blocks = []
        for item in data:
            if 'vulnerabilities' in item:
                blocks.append(TableFormatter.format_cve(item))
            else:
                blocks.append(f"[{item['cveId']}] ERROR: {item['error']}")
        return ("\n" + "=" * 60 + "\n").join(blocks)

    emit(result, output_format, output, table)


@click.command()
@click.option('--days', type=int, help='Window in days (default from CYBERINTEL_RECENT_DAYS)')
@click.option('--limit', default=25, help='Rows shown in table output')
@force_option
@format_option
@output_option
@debug_option
@click.pass_context
def recent(ctx, days, limit, force, output_format, output, debug):
    """CVEs modified recently, from cache or NVD"""
    async def action(service):
        return await service.sources.recent_cves(days, force=force)

    result = run_with_service(ctx, action, debug)
    emit(result, output_format, output, lambda r: TableFormatter.format_recent(r, limit))


@click.command()
@click.argument('cwe_id')
@format_option
@output_option
@debug_option
@click.pass_context
def cwe(ctx, cwe_id, output_format, output, debug):
    """Look up a CWE weakness or category (e.g. CWE-79)"""
    async def action(service):
        return await service.cwe_client.get_cwe(cwe_id)

    result = run_with_service(ctx, action, debug)
    emit(result, output_format, output)


@click.command()
@click.argument('query', required=False)
@click.option('--id', 'document_id', help='Fetch one Vulners document by ID')
@click.option('--exploits', 'exploits_cve', help='Exploits referencing a CVE')
@click.option('--high-severity', 'high_days', type=int, help='CVEs with CVSS >= 7 published in the last N days')
@click.option('--size', default=10, help='Maximum results')
@format_option
@output_option
@debug_option
@click.pass_context
def vulners(ctx, query, document_id, exploits_cve, high_days, size, output_format, output, debug):
    """Query Vulners (requires VULNERS_API_KEY)

    Examples:
        cyberintel vulners "type:cve AND apache"
        cyberintel vulners --id CVE-2021-44228
        cyberintel vulners --exploits CVE-2021-44228
    """
    if not any([query, document_id, exploits_cve, high_days]):
        raise click.UsageError("Give a QUERY or one of --id, --exploits, --high-severity")

    async def action(service):
        client = service.vulners_client
        if document_id:
            return await client.get_by_id(document_id)
        if exploits_cve:
            return await client.get_exploits_for_cve(exploits_cve)
        if high_days:
            return await client.get_high_severity_cves(high_days, size=size)
        return await client.search(query, size=size)

    result = run_with_service(ctx, action, debug)
    emit(result, output_format, output)
