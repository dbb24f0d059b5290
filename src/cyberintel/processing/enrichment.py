"""
Enrichment engine

Joins every cached source onto the NVD spine. Loading is concurrent and
tolerant: a source that fails to load contributes nothing and is named in the
result's ``warning``. Only the NVD spine is mandatory.

Technique and IP matching are text heuristics over the CVE description, so
``mitreAttack`` and ``abuseIpdbInfo`` are advisory annotations rather than an
authoritative classification.
"""

import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..cache import keys
from ..core.exceptions import CyberIntelError, SpineUnavailable
from ..core.models import (
    AbuseIpRecord, CnaRecord, KevEntry, MitreTechnique, NvdCve, RedHatAdvisory, VulnerabilityRecord,
)
from .parsers import (
    parse_abuseipdb_blacklist, parse_cvelist, parse_kev, parse_mitre_techniques,
    parse_nvd_vulnerabilities, parse_redhat_advisories,
)
from .sources import IntelSources

TECHNIQUE_ID_PATTERN = re.compile(r'T\d{4}(\.\d{3})?')
IPV4_PATTERN = re.compile(r'\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b')

KEYWORD_TECHNIQUES = {
    "sql injection": ["T1505"],
    "improper authorization": ["T1222", "T1069", "T1548"],
    "access control": ["T1222", "T1069", "T1548"],
    "privilege escalation": ["T1068"],
    "cross-site scripting": ["T1059.005"],
    "xss": ["T1059.005"],
}

BLACKLIST_CONFIDENCE = 90
BLACKLIST_LIMIT = 100


def _technique_map(techniques: Sequence[MitreTechnique]) -> Dict[str, List[MitreTechnique]]:
    """Tactic rows grouped under their bare technique ID"""
    technique_map: Dict[str, List[MitreTechnique]] = {}
    for technique in techniques:
        technique_map.setdefault(technique.technique_id, []).append(technique)
    return technique_map


def match_techniques(record: VulnerabilityRecord, technique_map: Dict[str, List[MitreTechnique]]):
    description = record.cve.description

    for match in TECHNIQUE_ID_PATTERN.finditer(description):
        for technique in technique_map.get(match.group(0), []):
            record.add_technique(technique)

    lowered = description.lower()
    for keyword, technique_ids in KEYWORD_TECHNIQUES.items():
        if keyword not in lowered:
            continue
        for technique_id in technique_ids:
            for technique in technique_map.get(technique_id, []):
                record.add_technique(technique)


def match_ip_addresses(record: VulnerabilityRecord, ip_map: Dict[str, AbuseIpRecord]):
    seen = set()
    for match in IPV4_PATTERN.finditer(record.cve.description):
        address = match.group(0)
        if address in ip_map and address not in seen:
            seen.add(address)
            record.abuse_ipdb_info.append(ip_map[address])


def merge(spine: Sequence[NvdCve],
          kev: Sequence[KevEntry] = (),
          cna_records: Sequence[CnaRecord] = (),
          techniques: Sequence[MitreTechnique] = (),
          advisories: Sequence[RedHatAdvisory] = (),
          blacklist: Sequence[AbuseIpRecord] = ()) -> List[VulnerabilityRecord]:
    """Join normalized sources onto the NVD spine; records keep spine order"""
    records: Dict[str, VulnerabilityRecord] = {}
    for cve in spine:
        records[cve.id] = VulnerabilityRecord(cve=cve)

    advisory_map: Dict[str, List[RedHatAdvisory]] = {}
    for advisory in advisories:
        advisory_map.setdefault(advisory.cve_id, []).append(advisory)

    ip_map = {entry.ip_address: entry for entry in blacklist}

    for entry in kev:
        record = records.get(entry.cve_id)
        if record is not None:
            record.is_known_exploited = True
            record.kev_data = entry

    for cna in cna_records:
        record = records.get(cna.cve_id)
        if record is not None:
            record.cna_container = cna.cna_container
            record.adp_containers = cna.adp_containers

    technique_map = _technique_map(techniques)

    for record in records.values():
        match_techniques(record, technique_map)
        record.redhat_advisories = list(advisory_map.get(record.cve_id, []))
        match_ip_addresses(record, ip_map)

    return list(records.values())


class EnrichmentEngine:
    """Builds enriched vulnerability records from the cached sources"""

    def __init__(self, sources: IntelSources, fetch_missing: Optional[bool] = None,
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.sources = sources
        self.fetch_missing = sources.config.enrich_fetch_missing if fetch_missing is None else fetch_missing
        self.clock = clock

    async def _load_inputs(self) -> Dict[str, Any]:
        sources = self.sources
        fetch = self.fetch_missing

        loaders = {
            'cvelist': sources.enrichment_input(keys.CVELIST_KEY, sources.cvelist_records, fetch),
            'nvd': sources.nvd_spine(fetch),
            'cisa-kev': sources.enrichment_input(keys.kev_key(), sources.kev_catalog, fetch),
            'mitre-attack': sources.enrichment_input(keys.MITRE_KEY, sources.mitre_techniques, fetch),
            'redhat': sources.all_redhat_advisories(),
            'abuseipdb': sources.enrichment_input(
                keys.abuseipdb_blacklist_key(BLACKLIST_CONFIDENCE, BLACKLIST_LIMIT),
                lambda: sources.abuseipdb_blacklist(BLACKLIST_CONFIDENCE, BLACKLIST_LIMIT),
                fetch,
            ),
        }

        results = await asyncio.gather(*loaders.values(), return_exceptions=True)
        return dict(zip(loaders.keys(), results))

    @staticmethod
    def _parse_optional(name: str, payload: Any, parser, failures: List[str]) -> list:
        if payload is None:
            logging.info(f"No cached {name} data; continuing without it")
            return []
        if isinstance(payload, BaseException):
            logging.warning(f"Could not load {name} data: {payload}")
            failures.append(name)
            return []
        try:
            return parser(payload)
        except CyberIntelError as e:
            logging.warning(f"Ignoring malformed {name} data: {e}")
            failures.append(name)
            return []

    async def enrich(self) -> Dict[str, Any]:
        """
        Enriched records plus count and generation timestamp.

        Raises SpineUnavailable when the NVD base list is missing, unreadable
        or malformed. An empty but valid base list yields zero records.
        """
        inputs = await self._load_inputs()

        nvd_payload = inputs['nvd']
        if isinstance(nvd_payload, BaseException):
            if not isinstance(nvd_payload, Exception):
                raise nvd_payload
            logging.error(f"NVD base data could not be loaded: {nvd_payload}")
            raise SpineUnavailable(str(nvd_payload)) from nvd_payload
        if nvd_payload is None:
            raise SpineUnavailable("no cached NVD recent data")
        try:
            spine = parse_nvd_vulnerabilities(nvd_payload)
        except CyberIntelError as e:
            raise SpineUnavailable(str(e)) from e

        failures: List[str] = []
        records = merge(
            spine,
            kev=self._parse_optional('cisa-kev', inputs['cisa-kev'], parse_kev, failures),
            cna_records=self._parse_optional('cvelist', inputs['cvelist'], parse_cvelist, failures),
            techniques=self._parse_optional('mitre-attack', inputs['mitre-attack'],
                                            parse_mitre_techniques, failures),
            advisories=self._parse_optional('redhat', inputs['redhat'], parse_redhat_advisories, failures),
            blacklist=self._parse_optional('abuseipdb', inputs['abuseipdb'],
                                           parse_abuseipdb_blacklist, failures),
        )
        logging.info(f"Enriched {len(records)} vulnerabilities")

        result: Dict[str, Any] = {
            'timestamp': self.clock().isoformat(),
            'vulnerabilityCount': len(records),
            'vulnerabilities': [record.to_dict() for record in records],
        }
        if failures:
            result['warning'] = f"Partial data: could not load {', '.join(failures)}"
        return result
