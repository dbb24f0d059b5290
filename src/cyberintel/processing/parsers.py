"""
Provider response parsers

Each parser maps one provider's native JSON into the normalized models in
``core.models`` so nothing downstream reads provider field names. A parser
raises MalformedUpstreamShape when the envelope it needs is missing; individual
malformed items inside a valid envelope are skipped with a debug log.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from ..core.exceptions import MalformedUpstreamShape
from ..core.models import (
    AbuseIpRecord, CnaRecord, KevEntry, MitreTechnique, NvdCve, RedHatAdvisory, Severity,
)

MITRE_TECHNIQUE_URL = "https://attack.mitre.org/techniques"
REDHAT_CVE_PAGE_URL = "https://access.redhat.com/security/cve"


def _items(payload: Any, field: str, provider: str) -> List[Any]:
    """The list under ``field``, accepting a bare list as well"""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get(field), list):
        return payload[field]
    raise MalformedUpstreamShape(provider, f"payload has no {field} array")


def extract_cvss_data(cve_data: Dict[str, Any]) -> Tuple[Optional[float], Optional[str], Optional[str]]:
    """CVSS score, vector and severity, preferring v3.1 over v3.0 over v2"""
    metrics = cve_data.get('metrics') or {}

    for version in ['cvssMetricV31', 'cvssMetricV30', 'cvssMetricV2']:
        if metrics.get(version):
            metric = metrics[version][0]
            cvss_data = metric.get('cvssData') or {}
            score = cvss_data.get('baseScore')
            severity = cvss_data.get('baseSeverity') or metric.get('baseSeverity')
            if score is not None:
                logging.debug(f"Found CVSS {version}: {score}")
                return float(score), cvss_data.get('vectorString'), severity

    return None, None, None


def parse_nvd_cve(cve_data: Dict[str, Any]) -> NvdCve:
    """One NVD ``cve`` object"""
    cve_id = cve_data.get('id')
    if not cve_id:
        raise MalformedUpstreamShape("nvd", "cve object has no id")

    descriptions = cve_data.get('descriptions') or []
    description = ' '.join(d.get('value', '') for d in descriptions if isinstance(d, dict))
    score, vector, severity = extract_cvss_data(cve_data)

    return NvdCve(
        id=cve_id,
        description=description,
        published=cve_data.get('published'),
        last_modified=cve_data.get('lastModified'),
        cvss_score=score,
        severity=Severity.from_label(severity),
        cvss_vector=vector,
        raw=cve_data,
    )


def parse_nvd_vulnerabilities(payload: Any) -> List[NvdCve]:
    """``{vulnerabilities: [{cve: {...}}]}`` into NvdCve records"""
    if not isinstance(payload, dict) or not isinstance(payload.get('vulnerabilities'), list):
        raise MalformedUpstreamShape("nvd", "payload has no vulnerabilities array")

    records = []
    for item in payload['vulnerabilities']:
        cve_data = item.get('cve') if isinstance(item, dict) else None
        if not isinstance(cve_data, dict) or not cve_data.get('id'):
            logging.debug("Skipping NVD item without a cve object")
            continue
        records.append(parse_nvd_cve(cve_data))
    return records


def parse_kev_entry(vuln: Dict[str, Any]) -> KevEntry:
    return KevEntry(
        cve_id=vuln.get('cveID', ''),
        vendor_project=vuln.get('vendorProject', ''),
        product=vuln.get('product', ''),
        vulnerability_name=vuln.get('vulnerabilityName', ''),
        date_added=vuln.get('dateAdded'),
        due_date=vuln.get('dueDate'),
        short_description=vuln.get('shortDescription', ''),
        notes=vuln.get('notes', ''),
        raw=vuln,
    )


def parse_kev(payload: Any) -> List[KevEntry]:
    return [parse_kev_entry(v) for v in _items(payload, 'vulnerabilities', 'cisa-kev')
            if isinstance(v, dict) and v.get('cveID')]


def parse_mitre_bundle(bundle: Dict[str, Any]) -> List[MitreTechnique]:
    """
    Flatten an ATT&CK STIX bundle into technique rows.

    A technique that belongs to several tactics yields one row per tactic,
    each with id ``<externalId>-<tactic name>``.
    """
    objects = _items(bundle, 'objects', 'mitre-attack')

    tactics = {}
    for obj in objects:
        if obj.get('type') == 'x-mitre-tactic':
            shortname = obj.get('x_mitre_shortname')
            if shortname:
                tactics[shortname] = obj.get('name', shortname)

    techniques = []
    for obj in objects:
        if obj.get('type') != 'attack-pattern':
            continue

        references = obj.get('external_references') or []
        external_id = references[0].get('external_id') if references else None
        if not external_id:
            continue

        tactic_names = []
        for phase in obj.get('kill_chain_phases') or []:
            name = tactics.get(phase.get('phase_name'))
            if name and name not in tactic_names:
                tactic_names.append(name)

        for tactic in tactic_names:
            techniques.append(MitreTechnique(
                id=f"{external_id}-{tactic}",
                name=obj.get('name', ''),
                description=obj.get('description', ''),
                tactic=tactic,
                platforms=obj.get('x_mitre_platforms') or [],
                data_sources=obj.get('x_mitre_data_sources') or [],
                detection=obj.get('x_mitre_detection', ''),
                url=f"{MITRE_TECHNIQUE_URL}/{external_id.replace('.', '/')}",
            ))

    return techniques


def parse_mitre_techniques(payload: Any) -> List[MitreTechnique]:
    """Technique rows as cached by the MITRE source"""
    techniques = []
    for row in _items(payload, 'techniques', 'mitre-attack'):
        if not isinstance(row, dict) or not row.get('id'):
            continue
        techniques.append(MitreTechnique(
            id=row['id'],
            name=row.get('name', ''),
            description=row.get('description', ''),
            tactic=row.get('tactic', ''),
            platforms=row.get('platforms') or [],
            data_sources=row.get('dataSources') or [],
            detection=row.get('detectionName', ''),
            url=row.get('url', ''),
        ))
    return techniques


def parse_redhat_cve(cve_id: str, data: Dict[str, Any]) -> RedHatAdvisory:
    """Native Red Hat security data document"""
    bugzilla = data.get('bugzilla') or {}
    description = bugzilla.get('description')

    packages = [r.get('product_name') for r in data.get('affected_release') or [] if r.get('product_name')]
    if not packages:
        packages = [p.get('package_name') for p in data.get('package_state') or [] if p.get('package_name')]

    return RedHatAdvisory(
        cve_id=cve_id,
        id=data.get('name') or cve_id,
        severity=data.get('threat_severity') or 'Unknown',
        title=description or f"Security Update for {cve_id}",
        published=data.get('public_date'),
        cvss3=data.get('cvss3'),
        affected_packages=packages,
        resource_url=data.get('resource_url') or bugzilla.get('url') or f"{REDHAT_CVE_PAGE_URL}/{cve_id}",
        details=data.get('details') or [description or 'No additional details available.'],
    )


def parse_redhat_advisories(payload: Any) -> List[RedHatAdvisory]:
    """Advisory rows as cached by the Red Hat source"""
    advisories = []
    for row in _items(payload, 'advisories', 'redhat'):
        if not isinstance(row, dict) or not row.get('cve_id'):
            continue
        advisories.append(RedHatAdvisory(
            cve_id=row['cve_id'],
            id=row.get('id'),
            severity=row.get('severity') or 'Unknown',
            title=row.get('title', ''),
            published=row.get('published'),
            cvss3=row.get('cvss3'),
            affected_packages=row.get('affected_packages') or [],
            resource_url=row.get('resource_url', ''),
            details=row.get('details') or [],
            raw=row,
        ))
    return advisories


def parse_abuseipdb_blacklist(payload: Any) -> List[AbuseIpRecord]:
    records = []
    for row in _items(payload, 'data', 'abuseipdb'):
        if not isinstance(row, dict) or not row.get('ipAddress'):
            continue
        records.append(AbuseIpRecord(
            ip_address=row['ipAddress'],
            abuse_confidence_score=row.get('abuseConfidenceScore'),
            country_code=row.get('countryCode'),
            last_reported_at=row.get('lastReportedAt'),
            raw=row,
        ))
    return records


def parse_cvelist(payload: Any) -> List[CnaRecord]:
    """cvelistV5 records reduced to their containers"""
    records = []
    for record in _items(payload, 'vulnerabilities', 'cvelist'):
        if not isinstance(record, dict):
            continue
        cve_id = (record.get('cveMetadata') or {}).get('cveId')
        if not cve_id:
            logging.debug("Skipping cvelist record without cveMetadata.cveId")
            continue
        containers = record.get('containers') or {}
        records.append(CnaRecord(
            cve_id=cve_id,
            cna_container=containers.get('cna'),
            adp_containers=containers.get('adp'),
        ))
    return records
