"""Core data models for CyberIntel"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from dateutil import parser as date_parser


class Severity(Enum):
    """CVSS Severity Levels"""
    UNKNOWN = "UNKNOWN"
    NONE = "NONE"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @classmethod
    def from_label(cls, label: Optional[str]) -> 'Severity':
        if not label:
            return cls.UNKNOWN
        try:
            return cls(label.strip().upper())
        except ValueError:
            return cls.UNKNOWN


class DueBucket(Enum):
    """KEV remediation urgency"""
    URGENT = "urgent"
    UPCOMING = "upcoming"
    LATER = "later"


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a provider timestamp, treating naive values as UTC"""
    if not value:
        return None
    try:
        parsed = date_parser.parse(value)
    except (ValueError, OverflowError, TypeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class CacheEntry:
    """One stored payload; written_at is epoch seconds"""
    key: str
    payload: Any
    written_at: float


@dataclass
class RateBudget:
    """Per-provider call counter; window_start is epoch milliseconds"""
    provider_id: str
    count: int = 0
    window_start: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {'count': self.count, 'timestamp': self.window_start}


@dataclass
class NvdCve:
    """Normalized NVD CVE record (the enrichment spine)"""
    id: str
    description: str = ""
    published: Optional[str] = None
    last_modified: Optional[str] = None
    cvss_score: Optional[float] = None
    severity: Severity = Severity.UNKNOWN
    cvss_vector: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def published_at(self) -> Optional[datetime]:
        return parse_timestamp(self.published)


@dataclass
class KevEntry:
    """CISA Known Exploited Vulnerabilities catalog entry"""
    cve_id: str
    vendor_project: str = ""
    product: str = ""
    vulnerability_name: str = ""
    date_added: Optional[str] = None
    due_date: Optional[str] = None
    short_description: str = ""
    notes: str = ""
    raw: Dict[str, Any] = field(default_factory=dict)

    def days_until_due(self, now: datetime) -> Optional[int]:
        due = parse_timestamp(self.due_date)
        if due is None:
            return None
        return math.ceil((due - now).total_seconds() / 86400)

    def due_bucket(self, now: datetime) -> Optional[DueBucket]:
        """Urgency relative to ``now``; boundaries move between requests"""
        days = self.days_until_due(now)
        if days is None:
            return None
        if days <= 7:
            return DueBucket.URGENT
        if days <= 30:
            return DueBucket.UPCOMING
        return DueBucket.LATER


@dataclass
class MitreTechnique:
    """One ATT&CK technique row per tactic"""
    id: str
    name: str
    description: str
    tactic: str
    platforms: List[str] = field(default_factory=list)
    data_sources: List[str] = field(default_factory=list)
    detection: str = ""
    url: str = ""

    @property
    def technique_id(self) -> str:
        """External technique ID with the tactic suffix stripped"""
        return self.id.split('-')[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'tactic': self.tactic,
            'platforms': list(self.platforms),
            'dataSources': list(self.data_sources),
            'detectionName': self.detection,
            'url': self.url,
        }


@dataclass
class RedHatAdvisory:
    """Red Hat security data for one CVE"""
    cve_id: str
    id: Optional[str] = None
    severity: str = "Unknown"
    title: str = ""
    published: Optional[str] = None
    cvss3: Optional[Dict[str, Any]] = None
    affected_packages: List[str] = field(default_factory=list)
    resource_url: str = ""
    details: List[str] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        if self.raw:
            return dict(self.raw)
        return {
            'id': self.id,
            'cve_id': self.cve_id,
            'severity': self.severity,
            'title': self.title,
            'published': self.published,
            'cvss3': self.cvss3,
            'affected_packages': list(self.affected_packages),
            'resource_url': self.resource_url,
            'details': list(self.details),
        }


@dataclass
class AbuseIpRecord:
    """AbuseIPDB blacklist entry"""
    ip_address: str
    abuse_confidence_score: Optional[int] = None
    country_code: Optional[str] = None
    last_reported_at: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        if self.raw:
            return dict(self.raw)
        return {
            'ipAddress': self.ip_address,
            'abuseConfidenceScore': self.abuse_confidence_score,
            'countryCode': self.country_code,
            'lastReportedAt': self.last_reported_at,
        }


@dataclass
class CnaRecord:
    """cvelistV5 record reduced to its CNA and ADP containers"""
    cve_id: str
    cna_container: Optional[Dict[str, Any]] = None
    adp_containers: Optional[List[Dict[str, Any]]] = None


@dataclass
class VulnerabilityRecord:
    """Enriched vulnerability keyed by CVE ID, always built on an NVD record"""
    cve: NvdCve
    is_known_exploited: bool = False
    kev_data: Optional[KevEntry] = None
    cna_container: Optional[Dict[str, Any]] = None
    adp_containers: Optional[List[Dict[str, Any]]] = None
    redhat_advisories: List[RedHatAdvisory] = field(default_factory=list)
    mitre_attack: List[MitreTechnique] = field(default_factory=list)
    abuse_ipdb_info: List[AbuseIpRecord] = field(default_factory=list)

    @property
    def cve_id(self) -> str:
        return self.cve.id

    def add_technique(self, technique: MitreTechnique) -> bool:
        """Append unless a technique with the same composite id is present"""
        if any(existing.id == technique.id for existing in self.mitre_attack):
            return False
        self.mitre_attack.append(technique)
        return True

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.cve.raw) if self.cve.raw else {'id': self.cve.id}
        data['isKnownExploited'] = self.is_known_exploited
        if self.kev_data is not None:
            data['kevData'] = dict(self.kev_data.raw)
        if self.cna_container is not None:
            data['cnaContainer'] = self.cna_container
        if self.adp_containers is not None:
            data['adpContainers'] = self.adp_containers
        data['redhatAdvisories'] = [advisory.to_dict() for advisory in self.redhat_advisories]
        data['mitreAttack'] = [technique.to_dict() for technique in self.mitre_attack]
        data['abuseIpdbInfo'] = [record.to_dict() for record in self.abuse_ipdb_info]
        return data


@dataclass
class ThreatTrendPoint:
    """Daily CVE and KEV counts; date is a display label only"""
    date: str
    cves: int = 0
    exploits: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {'date': self.date, 'cves': self.cves, 'exploits': self.exploits}
