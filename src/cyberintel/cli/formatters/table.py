"""Table format output formatter"""

import textwrap
from datetime import datetime, timezone
from typing import Any, Dict, List, Sequence, Tuple

from ...core.models import KevEntry
from ...processing.parsers import parse_kev_entry, parse_nvd_cve

DESCRIPTION_WIDTH = 80


def _truncate(text: Any, width: int) -> str:
    text = '' if text is None else str(text)
    return text[:width - 3] + "..." if len(text) > width else text


class TableFormatter:
    """Plain text tables for terminal output"""

    @staticmethod
    def format_rows(rows: Sequence[Dict[str, Any]], columns: Sequence[Tuple[str, str, int]]) -> str:
        """
        Fixed-width table.

        ``columns`` holds ``(header, key, width)`` triples; a key may be a dotted
        path into nested dictionaries.
        """
        def lookup(row: Dict[str, Any], key: str) -> Any:
            value: Any = row
            for part in key.split('.'):
                value = value.get(part) if isinstance(value, dict) else None
            if isinstance(value, list):
                return ', '.join(str(v) for v in value)
            return value

        header = "  ".join(title.ljust(width) for title, _, width in columns)
        lines = [header, "-" * len(header)]
        for row in rows:
            lines.append("  ".join(_truncate(lookup(row, key), width).ljust(width)
                                   for _, key, width in columns).rstrip())
        if not rows:
            lines.append("(no results)")
        return "\n".join(lines)

    @staticmethod
    def format_mapping(data: Dict[str, Any], indent: int = 0) -> str:
        lines = []
        pad = " " * indent
        for key, value in data.items():
            if isinstance(value, dict):
                lines.append(f"{pad}{key}:")
                lines.append(TableFormatter.format_mapping(value, indent + 2))
            elif isinstance(value, list):
                lines.append(f"{pad}{key}: {len(value)} items")
            else:
                lines.append(f"{pad}{key}: {value}")
        return "\n".join(lines)

    @staticmethod
    def format_cve(data: Dict[str, Any]) -> str:
        """Single NVD-shaped CVE envelope"""
        cve = parse_nvd_cve(data['vulnerabilities'][0]['cve'])
        lines = [f"[{cve.id}] {cve.severity.value}"]
        lines.append("")
        if cve.cvss_score is not None:
            lines.append(f"  CVSS: {cve.cvss_score}/10.0 ({cve.severity.value})")
            if cve.cvss_vector:
                lines.append(f"  CVSS Vector: {cve.cvss_vector}")
        else:
            lines.append("  CVSS: Not Available")
        lines.append(f"  Published: {cve.published or 'Unknown'}")
        lines.append(f"  Last Modified: {cve.last_modified or 'Unknown'}")
        lines.append(f"  Source: {data.get('source', 'nvd')}")
        lines.append("")
        lines.append("DESCRIPTION:")
        for line in textwrap.wrap(cve.description or "No description available", width=76):
            lines.append(f"  {line}")
        return "\n".join(lines)

    @staticmethod
    def format_recent(data: Dict[str, Any], limit: int = 25) -> str:
        rows = []
        for item in data.get('vulnerabilities', [])[:limit]:
            cve = parse_nvd_cve(item['cve'])
            rows.append({
                'id': cve.id,
                'severity': cve.severity.value,
                'score': cve.cvss_score,
                'published': (cve.published or '')[:10],
                'description': cve.description,
            })

        lines = [f"Recent CVEs: {data.get('totalResults', len(rows))} (source: {data.get('source', 'unknown')})"]
        stats = data.get('stats') or {}
        if stats:
            lines.append("  " + "  ".join(f"{level}: {count}" for level, count in stats.items()))
        if data.get('warning'):
            lines.append(f"WARNING: {data['warning']}")
        lines.append("")
        lines.append(TableFormatter.format_rows(rows, [
            ('CVE', 'id', 18), ('SEVERITY', 'severity', 9), ('SCORE', 'score', 5),
            ('PUBLISHED', 'published', 10), ('DESCRIPTION', 'description', 50),
        ]))
        return "\n".join(lines)

    @staticmethod
    def format_enriched(result: Dict[str, Any], limit: int = 50) -> str:
        lines = [f"Enriched vulnerabilities: {result['vulnerabilityCount']} (generated {result['timestamp']})"]
        if result.get('warning'):
            lines.append(f"WARNING: {result['warning']}")

        for record in result['vulnerabilities'][:limit]:
            cve = parse_nvd_cve(record)
            lines.append("")
            header = f"[{cve.id}] {cve.severity.value}"
            if cve.cvss_score is not None:
                header += f" {cve.cvss_score}"
            if record.get('isKnownExploited'):
                header += " KNOWN EXPLOITED"
            lines.append(header)
            lines.append(f"  {_truncate(cve.description, DESCRIPTION_WIDTH)}")

            techniques = record.get('mitreAttack') or []
            if techniques:
                lines.append("  ATT&CK: " + ", ".join(f"{t['id']}" for t in techniques))
            advisories = record.get('redhatAdvisories') or []
            if advisories:
                lines.append("  Red Hat: " + ", ".join(str(a.get('id')) for a in advisories))
            ips = record.get('abuseIpdbInfo') or []
            if ips:
                lines.append("  AbuseIPDB: " + ", ".join(str(ip.get('ipAddress')) for ip in ips))
            if record.get('cnaContainer') is not None:
                lines.append("  CNA container: present")

        remaining = len(result['vulnerabilities']) - limit
        if remaining > 0:
            lines.append("")
            lines.append(f"... {remaining} more (use --format json for the full list)")
        return "\n".join(lines)

    @staticmethod
    def format_trends(points: List[Dict[str, Any]]) -> str:
        lines = [f"{'DATE':<8} {'CVES':>6} {'EXPLOITS':>9}", "-" * 25]
        for point in points:
            bar = "#" * min(point['cves'], 40)
            lines.append(f"{point['date']:<8} {point['cves']:>6} {point['exploits']:>9}  {bar}")
        return "\n".join(lines)

    @staticmethod
    def format_kev(result: Dict[str, Any]) -> str:
        now = datetime.now(timezone.utc)
        rows = []
        for vuln in result['vulnerabilities']:
            entry: KevEntry = parse_kev_entry(vuln)
            bucket = entry.due_bucket(now)
            rows.append({
                'cve': entry.cve_id,
                'product': f"{entry.vendor_project} {entry.product}".strip(),
                'added': (entry.date_added or '')[:10],
                'due': (entry.due_date or '')[:10],
                'bucket': bucket.value if bucket else '',
            })

        stats = result.get('stats') or {}
        pagination = result.get('pagination') or {}
        lines = [
            f"CISA KEV: {stats.get('total', len(rows))} total, "
            f"{stats.get('dueSoon', 0)} due within 7 days, "
            f"{stats.get('addedThisMonth', 0)} added this month",
            "",
            TableFormatter.format_rows(rows, [
                ('CVE', 'cve', 16), ('PRODUCT', 'product', 30), ('ADDED', 'added', 10),
                ('DUE', 'due', 10), ('URGENCY', 'bucket', 8),
            ]),
        ]
        if pagination:
            lines.append("")
            lines.append(f"Page {pagination['page']} of {pagination['totalPages']} "
                         f"({pagination['totalItems']} matching)")
        return "\n".join(lines)

    @staticmethod
    def _error_lines(result: Dict[str, Any]) -> List[str]:
        return [f"  {name}: {error.get('error')}" + (f" ({error['details']})" if error.get('details') else "")
                for name, error in (result.get('errors') or {}).items()]

    @staticmethod
    def format_cve_report(report: Dict[str, Any]) -> str:
        lines = []
        if report.get('nvd'):
            lines.append(TableFormatter.format_cve(report['nvd']))
        else:
            lines.append(f"[{report['cveId']}] no NVD or Vulners record")

        lines.append("")
        kev = report.get('kev')
        if kev:
            lines.append(f"CISA KEV: listed (added {kev.get('dateAdded', 'unknown')}, due {kev.get('dueDate', 'unknown')})")
            if kev.get('requiredAction'):
                lines.append(f"  {_truncate(kev['requiredAction'], DESCRIPTION_WIDTH)}")
        else:
            lines.append("CISA KEV: not listed")

        advisory = report.get('redhat')
        if advisory:
            lines.append(f"Red Hat: {advisory.get('severity')} - {advisory.get('title')}")
            lines.append(f"  {advisory.get('resource_url')}")
        else:
            lines.append("Red Hat: no security data")

        exploits = report.get('exploits')
        if exploits is not None:
            documents = (exploits.get('data') or {}).get('search') or []
            lines.append(f"Vulners exploits: {len(documents)}")
            for doc in documents[:10]:
                source = doc.get('_source') or doc
                lines.append(f"  {source.get('id')}  {_truncate(source.get('title'), 60)}")

        errors = TableFormatter._error_lines(report)
        if errors:
            lines.append("")
            lines.append("ERRORS:")
            lines.extend(errors)
        return "\n".join(lines)

    @staticmethod
    def format_ip_reputation(result: Dict[str, Any]) -> str:
        lines = [f"IP reputation for {result['ipAddress']}", ""]

        abuse = (result.get('abuseipdb') or {}).get('data')
        if abuse:
            lines.append(f"AbuseIPDB: confidence {abuse.get('abuseConfidenceScore')}%, "
                         f"{abuse.get('totalReports', 0)} reports, country {abuse.get('countryCode') or 'unknown'}")
            if abuse.get('isp'):
                lines.append(f"  ISP: {abuse['isp']}")
        else:
            lines.append("AbuseIPDB: no data")

        threatfox = result.get('threatfox')
        if threatfox is not None:
            iocs = threatfox.get('iocs') or []
            lines.append(f"ThreatFox: {len(iocs)} matching IOCs")
            for ioc in iocs[:10]:
                lines.append(f"  {ioc.get('ioc')}  {ioc.get('threat_type')}  {ioc.get('malware_printable')}")

        errors = TableFormatter._error_lines(result)
        if errors:
            lines.append("")
            lines.append("ERRORS:")
            lines.extend(errors)
        return "\n".join(lines)

    @staticmethod
    def format_refresh(result: Dict[str, Any]) -> str:
        lines = [f"Refreshed: {', '.join(result['refreshed']) or 'nothing'}"]
        errors = TableFormatter._error_lines(result)
        if errors:
            lines.append("Failed:")
            lines.extend(errors)
        return "\n".join(lines)
