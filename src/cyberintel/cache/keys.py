"""Deterministic cache keys and TTLs for every cached source"""

from typing import Optional

NVD_RECENT_TTL = 1
NVD_FALLBACK_TTL = 24
NVD_CVE_TTL = 24
KEV_TTL = 1
MITRE_TTL = 24
CVELIST_TTL = 1
REDHAT_LIST_TTL = 1
REDHAT_CVE_TTL = 24
ABUSEIPDB_BLACKLIST_TTL = 0.5
ABUSEIPDB_IP_TTL = 1
ENRICHMENT_TTL = 24

MITRE_KEY = "mitre-attack.json"
CVELIST_KEY = "cvelist.json"
REDHAT_ADVISORIES_KEY = "redhat-advisories.json"

NVD_FILES_PATTERN = "nvd-*.json"
KEV_FILES_PATTERN = "cisa-kev*.json"
REDHAT_ADVISORY_FILES_PATTERN = "redhat-advisories*.json"
RATE_STATE_PATTERN = "*-calls.json"


def nvd_recent_key(days: int) -> str:
    return f"nvd-recent-{days}days.json"


def nvd_cve_key(cve_id: str) -> str:
    return f"nvd-{cve_id.strip().upper()}.json"


def kev_key(days: Optional[int] = None) -> str:
    return f"cisa-kev-{days}days.json" if days else "cisa-kev.json"


def redhat_cve_key(cve_id: str) -> str:
    return f"redhat-{cve_id.strip().upper()}.json"


def abuseipdb_blacklist_key(confidence_minimum: int, limit: int) -> str:
    return f"abuseipdb-blacklist-{confidence_minimum}-{limit}.json"


def abuseipdb_ip_key(ip_address: str) -> str:
    return f"abuseipdb-ip-{ip_address}.json"


def abuseipdb_network_key(network_cidr: str) -> str:
    return f"abuseipdb-network-{network_cidr.replace('/', '-')}.json"
