"""ThreatFox IOC commands"""

from dataclasses import asdict

import click

from ...processing.threatfox import ThreatFoxIocList, parse_threatfox_response
from ..formatters.table import TableFormatter
from .common import debug_option, emit, format_option, output_option, run_with_service

IOC_COLUMNS = [
    ('IOC', 'ioc', 40), ('TYPE', 'ioc_type', 12), ('THREAT', 'threat_type', 16),
    ('MALWARE', 'malware_printable', 20), ('CONF', 'confidence_level', 4),
]


def _run_query(ctx, query, output_format, output, debug):
    async def action(service):
        return parse_threatfox_response(await query(service.threatfox_client))

    parsed = run_with_service(ctx, action, debug)
    data = asdict(parsed)

    def table(result):
        if isinstance(parsed, ThreatFoxIocList):
            return TableFormatter.format_rows(parsed.iocs, IOC_COLUMNS)
        mapping = {k: v for k, v in result.items() if k != 'kind'}
        rows = [dict(value, name=name) for name, value in next(iter(mapping.values())).items()]
        return TableFormatter.format_rows(rows, [('NAME', 'name', 32)] + [
            (key.upper(), key, 24) for key in (rows[0].keys() if rows else []) if key != 'name'
        ])

    emit(data, output_format, output, table)


@click.group()
def threatfox():
    """Query ThreatFox indicators of compromise (requires THREATFOX_API_KEY)"""
    pass


@threatfox.command()
@click.option('--days', default=1, help='IOCs from the last N days (1-7)')
@format_option
@output_option
@debug_option
@click.pass_context
def recent(ctx, days, output_format, output, debug):
    """Recently reported IOCs"""
    _run_query(ctx, lambda c: c.get_recent_iocs(days), output_format, output, debug)


@threatfox.command()
@click.argument('term')
@format_option
@output_option
@debug_option
@click.pass_context
def search(ctx, term, output_format, output, debug):
    """Search IOCs by value (IP, domain, URL)"""
    _run_query(ctx, lambda c: c.search_ioc(term), output_format, output, debug)


@threatfox.command()
@click.argument('ioc_id')
@format_option
@output_option
@debug_option
@click.pass_context
def ioc(ctx, ioc_id, output_format, output, debug):
    """One IOC by ThreatFox ID"""
    _run_query(ctx, lambda c: c.get_ioc(ioc_id), output_format, output, debug)


@threatfox.command('hash')
@click.argument('file_hash')
@format_option
@output_option
@debug_option
@click.pass_context
def search_hash(ctx, file_hash, output_format, output, debug):
    """IOCs associated with an MD5 or SHA256 file hash"""
    _run_query(ctx, lambda c: c.search_hash(file_hash), output_format, output, debug)


@threatfox.command()
@click.argument('tag_name')
@click.option('--limit', default=100, help='Maximum IOCs')
@format_option
@output_option
@debug_option
@click.pass_context
def tag(ctx, tag_name, limit, output_format, output, debug):
    """IOCs carrying a tag"""
    _run_query(ctx, lambda c: c.get_tag_info(tag_name, limit), output_format, output, debug)


@threatfox.command()
@click.argument('malware_name')
@click.option('--limit', default=100, help='Maximum IOCs')
@format_option
@output_option
@debug_option
@click.pass_context
def malware(ctx, malware_name, limit, output_format, output, debug):
    """IOCs for a malware family (e.g. win.emotet)"""
    _run_query(ctx, lambda c: c.get_malware_info(malware_name, limit), output_format, output, debug)


@threatfox.command('malware-list')
@format_option
@output_option
@debug_option
@click.pass_context
def malware_list(ctx, output_format, output, debug):
    """Known malware families"""
    _run_query(ctx, lambda c: c.get_malware_list(), output_format, output, debug)


@threatfox.command()
@format_option
@output_option
@debug_option
@click.pass_context
def types(ctx, output_format, output, debug):
    """Supported IOC types"""
    _run_query(ctx, lambda c: c.get_ioc_types(), output_format, output, debug)


@threatfox.command()
@format_option
@output_option
@debug_option
@click.pass_context
def tags(ctx, output_format, output, debug):
    """Known tags"""
    _run_query(ctx, lambda c: c.get_tag_list(), output_format, output, debug)


@threatfox.command()
@click.argument('malware_name')
@click.option('--platform', help='Platform (e.g. win, osx, apk)')
@format_option
@output_option
@debug_option
@click.pass_context
def label(ctx, malware_name, platform, output_format, output, debug):
    """Resolve a malware name to its ThreatFox label"""
    async def action(service):
        return await service.threatfox_client.get_label(malware_name, platform)

    emit(run_with_service(ctx, action, debug), output_format, output)
