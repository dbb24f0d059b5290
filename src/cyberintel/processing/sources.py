"""
Cache-or-fetch access to every intelligence source

``IntelSources`` is the one place that knows cache keys and TTLs. Each method
returns the cached payload when it is fresh, otherwise calls the provider,
writes the result back and returns it. AbuseIPDB calls are additionally gated
by the persistent call budget.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..cache import keys
from ..cache.rate_limiter import RateLimiter
from ..cache.store import CacheStore
from ..clients.abuseipdb_client import AbuseIPDBClient
from ..clients.cvelist_client import CVEListClient
from ..clients.kev_client import KEVClient
from ..clients.mitre_client import MitreClient
from ..clients.nvd_client import NVDClient
from ..clients.redhat_client import RedHatClient
from ..config.settings import CyberIntelConfig
from ..core.exceptions import ConfigurationError, CyberIntelError, RateLimitExceeded
from ..core.models import Severity
from .fallback import FallbackResolver
from .kev_view import format_catalog
from .parsers import parse_nvd_vulnerabilities, parse_redhat_cve

RATE_LIMITED_PROVIDER = "abuseipdb"
REFRESHABLE_SOURCES = ['nvd', 'cisa', 'mitre', 'cvelist', 'redhat']


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IntelSources:
    """Cached views over the provider clients"""

    def __init__(self, config: CyberIntelConfig, cache: CacheStore, rate_limiter: RateLimiter, *,
                 nvd: Optional[NVDClient] = None,
                 kev: Optional[KEVClient] = None,
                 mitre: Optional[MitreClient] = None,
                 cvelist: Optional[CVEListClient] = None,
                 redhat: Optional[RedHatClient] = None,
                 abuseipdb: Optional[AbuseIPDBClient] = None,
                 resolver: Optional[FallbackResolver] = None,
                 clock: Callable[[], datetime] = _utcnow):
        self.config = config
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.nvd = nvd
        self.kev = kev
        self.mitre = mitre
        self.cvelist = cvelist
        self.redhat = redhat
        self.abuseipdb = abuseipdb
        self.resolver = resolver
        self.clock = clock

    async def _cached(self, key: str, ttl_hours: Optional[float],
                      fetch: Callable[[], Awaitable[Any]], force: bool = False) -> Any:
        if not force:
            cached = await self.cache.get(key, ttl_hours)
            if cached is not None:
                return cached

        logging.info(f"Cache miss for {key}, fetching from upstream")
        data = await fetch()
        await self.cache.put(key, data)
        return data

    async def _rate_limited(self, fetch: Callable[[], Awaitable[Any]]) -> Any:
        """
        Run one upstream call inside the AbuseIPDB call budget.

        A missing API key fails before the budget is consulted, so only calls
        that reach the network are counted.
        """
        if not self.config.abuseipdb_api_key:
            raise ConfigurationError(f"{RATE_LIMITED_PROVIDER} API key not configured", "set ABUSEIPDB_API_KEY")
        if not await self.rate_limiter.is_allowed(RATE_LIMITED_PROVIDER):
            raise RateLimitExceeded(RATE_LIMITED_PROVIDER, self.rate_limiter.max_calls)
        try:
            return await fetch()
        finally:
            await self.rate_limiter.increment(RATE_LIMITED_PROVIDER)

    # NVD

    async def recent_cves(self, days: Optional[int] = None, force: bool = False) -> Dict[str, Any]:
        """
        Recent CVEs with their origin in ``source``.

        A fresh (1h) cache entry wins. When the live fetch fails, a snapshot up
        to 24h old is served with ``source='fallback_cache'`` and a warning.
        """
        days = days or self.config.recent_days
        key = keys.nvd_recent_key(days)

        if not force:
            cached = await self.cache.get(key, keys.NVD_RECENT_TTL)
            if cached is not None:
                return dict(cached, source='cache')

        try:
            data = await self.nvd.get_recent_cves(days)
        except CyberIntelError as e:
            snapshot = await self.cache.get(key, keys.NVD_FALLBACK_TTL)
            if snapshot is None:
                raise
            logging.warning(f"NVD fetch failed, serving cached snapshot: {e}")
            return dict(snapshot, source='fallback_cache', warning=f"Live NVD data unavailable: {e.message}")

        await self.cache.put(key, data)
        return dict(data, source='nvd_api')

    async def nvd_spine(self, fetch_missing: bool) -> Optional[Dict[str, Any]]:
        """NVD base list for enrichment; None when absent and not fetched"""
        key = keys.nvd_recent_key(self.config.recent_days)
        cached = await self.cache.get(key, keys.ENRICHMENT_TTL)
        if cached is not None or not fetch_missing:
            return cached
        return await self.recent_cves(self.config.recent_days)

    async def cve(self, cve_id: str, force: bool = False) -> Dict[str, Any]:
        """One CVE in NVD shape, resolved through the NVD/Vulners fallback"""
        cve_id = cve_id.strip().upper()
        return await self._cached(keys.nvd_cve_key(cve_id), keys.NVD_CVE_TTL,
                                  lambda: self.resolver.get_cve(cve_id), force)

    # CISA KEV

    async def kev_catalog(self, days: Optional[int] = None, force: bool = False) -> Dict[str, Any]:
        async def fetch():
            if days:
                data = await self.kev.get_recent_additions(days)
            else:
                data = await self.kev.download_catalog()
            return format_catalog(data['vulnerabilities'], self.clock())

        return await self._cached(keys.kev_key(days), keys.KEV_TTL, fetch, force)

    # MITRE ATT&CK

    async def mitre_techniques(self, force: bool = False) -> Dict[str, Any]:
        async def fetch():
            techniques = await self.mitre.fetch_techniques()
            return {
                'techniques': techniques,
                'total': len(techniques),
                'timestamp': self.clock().isoformat(),
            }

        return await self._cached(keys.MITRE_KEY, keys.MITRE_TTL, fetch, force)

    # cvelistV5

    async def cvelist_records(self, force: bool = False) -> Dict[str, Any]:
        async def fetch():
            records = await self.cvelist.get_recent_records()
            return {'vulnerabilities': records, 'timestamp': self.clock().isoformat()}

        return await self._cached(keys.CVELIST_KEY, keys.CVELIST_TTL, fetch, force)

    # Red Hat

    async def redhat_cve(self, cve_id: str, force: bool = False) -> Optional[Dict[str, Any]]:
        """Formatted advisory, or None when Red Hat has no record (not cached)"""
        cve_id = RedHatClient.normalize_cve_id(cve_id)
        key = keys.redhat_cve_key(cve_id)

        if not force:
            cached = await self.cache.get(key, keys.REDHAT_CVE_TTL)
            if cached is not None:
                return cached

        data = await self.redhat.get_cve_details(cve_id)
        if data is None:
            return None

        advisory = parse_redhat_cve(cve_id, data).to_dict()
        await self.cache.put(key, advisory)
        return advisory

    async def redhat_advisories(self, force: bool = False) -> Dict[str, Any]:
        """Advisories for recent CRITICAL and HIGH CVEs, highest CVSS first"""
        async def fetch():
            recent = await self.recent_cves()
            candidates = [cve for cve in parse_nvd_vulnerabilities(recent)
                          if cve.severity in (Severity.CRITICAL, Severity.HIGH)]
            candidates.sort(key=lambda cve: cve.cvss_score or 0.0, reverse=True)
            logging.info(f"Fetching Red Hat advisories for {len(candidates)} CVEs")

            semaphore = asyncio.Semaphore(self.config.max_concurrent_requests)

            async def fetch_one(cve_id: str):
                async with semaphore:
                    try:
                        data = await self.redhat.get_cve_details(cve_id)
                    except CyberIntelError as e:
                        logging.warning(f"Red Hat lookup for {cve_id} failed: {e}")
                        return None
                return parse_redhat_cve(cve_id, data).to_dict() if data else None

            results = await asyncio.gather(*(fetch_one(cve.id) for cve in candidates))
            advisories = [advisory for advisory in results if advisory is not None]
            logging.info(f"Retrieved {len(advisories)} Red Hat advisories")
            return {
                'advisories': advisories,
                'total': len(advisories),
                'timestamp': self.clock().isoformat(),
            }

        return await self._cached(keys.REDHAT_ADVISORIES_KEY, keys.REDHAT_LIST_TTL, fetch, force)

    async def all_redhat_advisories(self) -> Dict[str, List[Dict[str, Any]]]:
        """Concatenation of every cached advisory list file, regardless of age"""
        advisories: List[Dict[str, Any]] = []
        for key in await self.cache.keys(keys.REDHAT_ADVISORY_FILES_PATTERN):
            payload = await self.cache.get(key, None)
            if isinstance(payload, dict) and isinstance(payload.get('advisories'), list):
                advisories.extend(payload['advisories'])
        return {'advisories': advisories}

    # AbuseIPDB

    async def abuseipdb_blacklist(self, confidence_minimum: int = 90, limit: int = 100,
                                  force: bool = False) -> Dict[str, Any]:
        return await self._cached(
            keys.abuseipdb_blacklist_key(confidence_minimum, limit), keys.ABUSEIPDB_BLACKLIST_TTL,
            lambda: self._rate_limited(lambda: self.abuseipdb.get_blacklist(confidence_minimum, limit)),
            force,
        )

    async def abuseipdb_ip(self, ip_address: str, max_age_days: int = 90, force: bool = False) -> Dict[str, Any]:
        return await self._cached(
            keys.abuseipdb_ip_key(ip_address), keys.ABUSEIPDB_IP_TTL,
            lambda: self._rate_limited(lambda: self.abuseipdb.check_ip(ip_address, max_age_days)),
            force,
        )

    async def abuseipdb_network(self, network_cidr: str, max_age_days: int = 90,
                                force: bool = False) -> Dict[str, Any]:
        return await self._cached(
            keys.abuseipdb_network_key(network_cidr), keys.ABUSEIPDB_IP_TTL,
            lambda: self._rate_limited(lambda: self.abuseipdb.check_block(network_cidr, max_age_days)),
            force,
        )

    async def enrichment_input(self, key: str, fetch: Callable[[], Awaitable[Any]],
                               fetch_missing: bool) -> Optional[Any]:
        """Cached payload at the enrichment TTL, fetching on a miss when allowed"""
        cached = await self.cache.get(key, keys.ENRICHMENT_TTL)
        if cached is not None or not fetch_missing:
            return cached
        return await fetch()

    async def refresh(self, source: str) -> Any:
        """Force-fetch one cached source by its search name (``nvd``, ``cisa``, ...)"""
        refreshers = {
            'nvd': self.recent_cves,
            'cisa': self.kev_catalog,
            'mitre': self.mitre_techniques,
            'cvelist': self.cvelist_records,
            'redhat': self.redhat_advisories,
        }
        if source not in refreshers:
            raise ValueError(f"No upstream refresh for source {source!r}")
        logging.info(f"Refreshing {source} data from upstream")
        return await refreshers[source](force=True)
