"""CyberIntel service: owns the HTTP session and wires clients, cache and engines"""

import asyncio
import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Awaitable, Dict, List, Optional, Tuple

import aiohttp
from aiohttp import ClientSession, ClientTimeout

from ..cache.rate_limiter import RateLimiter
from ..cache.store import CacheStore, FileStore, KeyValueStore
from ..clients.abuseipdb_client import AbuseIPDBClient
from ..clients.base import USER_AGENT
from ..clients.cvelist_client import CVEListClient
from ..clients.cwe_client import CWEClient
from ..clients.kev_client import KEVClient
from ..clients.mitre_client import MitreClient
from ..clients.news_client import NewsClient
from ..clients.nvd_client import NVDClient
from ..clients.redhat_client import RedHatClient
from ..clients.threatfox_client import ThreatFoxClient
from ..clients.vulners_client import VulnersClient
from ..config.settings import CyberIntelConfig
from ..core.exceptions import CyberIntelError
from .enrichment import EnrichmentEngine
from .fallback import FallbackResolver
from .sources import REFRESHABLE_SOURCES, IntelSources
from .threatfox import parse_threatfox_response
from .trends import ThreatTrendsAggregator


class IntelService:
    """
    Async context manager holding one shared ClientSession.

    Usage::

        async with IntelService(config) as service:
            result = await service.enrichment.enrich()
    """

    def __init__(self, config: CyberIntelConfig, store: Optional[KeyValueStore] = None):
        self.config = config
        self.store = store or FileStore(config.database_path)
        self.cache = CacheStore(self.store)
        self.rate_limiter = RateLimiter(self.store, max_calls=config.abuseipdb_max_calls)
        self.trends = ThreatTrendsAggregator(self.cache)

        self.session: Optional[ClientSession] = None
        self.nvd_client: Optional[NVDClient] = None
        self.kev_client: Optional[KEVClient] = None
        self.mitre_client: Optional[MitreClient] = None
        self.cvelist_client: Optional[CVEListClient] = None
        self.redhat_client: Optional[RedHatClient] = None
        self.vulners_client: Optional[VulnersClient] = None
        self.abuseipdb_client: Optional[AbuseIPDBClient] = None
        self.threatfox_client: Optional[ThreatFoxClient] = None
        self.news_client: Optional[NewsClient] = None
        self.cwe_client: Optional[CWEClient] = None
        self.resolver: Optional[FallbackResolver] = None
        self.sources: Optional[IntelSources] = None
        self.enrichment: Optional[EnrichmentEngine] = None

    async def __aenter__(self):
        """Async context manager entry"""
        timeout = ClientTimeout(
            total=120,
            connect=10,
            sock_read=60
        )

        connector = aiohttp.TCPConnector(
            limit=20,
            limit_per_host=self.config.max_concurrent_requests,
            ttl_dns_cache=300,
            use_dns_cache=True,
        )

        self.session = ClientSession(
            timeout=timeout,
            connector=connector,
            headers={'User-Agent': USER_AGENT}
        )

        self.nvd_client = NVDClient(self.session, self.config)
        self.kev_client = KEVClient(self.session, self.config)
        self.mitre_client = MitreClient(self.session, self.config)
        self.cvelist_client = CVEListClient(self.session, self.config)
        self.redhat_client = RedHatClient(self.session, self.config)
        self.vulners_client = VulnersClient(self.session, self.config)
        self.abuseipdb_client = AbuseIPDBClient(self.session, self.config)
        self.threatfox_client = ThreatFoxClient(self.session, self.config)
        self.news_client = NewsClient(self.session, self.config)
        self.cwe_client = CWEClient(self.session, self.config)

        vulners = self.vulners_client if self.config.vulners_api_key else None
        self.resolver = FallbackResolver(self.nvd_client, vulners)

        self.sources = IntelSources(
            self.config, self.cache, self.rate_limiter,
            nvd=self.nvd_client,
            kev=self.kev_client,
            mitre=self.mitre_client,
            cvelist=self.cvelist_client,
            redhat=self.redhat_client,
            abuseipdb=self.abuseipdb_client,
            resolver=self.resolver,
        )
        self.enrichment = EnrichmentEngine(self.sources)

        logging.info("CyberIntel service initialized")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        if self.session:
            await self.session.close()
            logging.info("CyberIntel service closed")

    async def resolve_cves(self, cve_ids: List[str], force: bool = False) -> List[Dict[str, Any]]:
        """Look up several CVEs concurrently; failures become error entries"""
        semaphore = asyncio.Semaphore(self.config.max_concurrent_requests)

        async def resolve_with_semaphore(cve_id: str) -> Dict[str, Any]:
            async with semaphore:
                return await self.sources.cve(cve_id, force=force)

        logging.info(f"Resolving {len(cve_ids)} CVEs...")
        results = await asyncio.gather(*(resolve_with_semaphore(c) for c in cve_ids), return_exceptions=True)

        resolved = []
        for cve_id, result in zip(cve_ids, results):
            if isinstance(result, CyberIntelError):
                logging.error(f"Failed to resolve {cve_id}: {result}")
                resolved.append(dict(result.to_dict(), cveId=cve_id))
            elif isinstance(result, BaseException):
                raise result
            else:
                resolved.append(result)

        logging.info(f"Resolved {len(resolved)} CVEs")
        return resolved

    @staticmethod
    async def _gather_named(calls: Dict[str, Awaitable[Any]]) -> Tuple[Dict[str, Any], Dict[str, Dict[str, Any]]]:
        """Run named lookups concurrently; CyberIntelError failures are collected per name"""
        results = await asyncio.gather(*calls.values(), return_exceptions=True)

        data: Dict[str, Any] = {}
        errors: Dict[str, Dict[str, Any]] = {}
        for name, result in zip(calls.keys(), results):
            if isinstance(result, CyberIntelError):
                logging.warning(f"{name} lookup failed: {result}")
                data[name] = None
                errors[name] = result.to_dict()
            elif isinstance(result, BaseException):
                raise result
            else:
                data[name] = result
        return data, errors

    async def cve_report(self, cve_id: str, force: bool = False) -> Dict[str, Any]:
        """
        NVD record, KEV membership, Red Hat advisory and Vulners exploits for
        one CVE, fetched concurrently.

        A failing source leaves its field None and is reported under
        ``errors``. Exploits are only looked up when a Vulners key is set.
        """
        cve_id = cve_id.strip().upper()
        calls = {
            'nvd': self.sources.cve(cve_id, force=force),
            'kev': self.kev_client.check_cve(cve_id),
            'redhat': self.sources.redhat_cve(cve_id, force=force),
        }
        if self.config.vulners_api_key:
            calls['exploits'] = self.vulners_client.get_exploits_for_cve(cve_id)

        logging.info(f"Building report for {cve_id} from {len(calls)} sources")
        data, errors = await self._gather_named(calls)

        report = {
            'cveId': cve_id,
            'nvd': data['nvd'],
            'kev': data['kev'],
            'isKnownExploited': data['kev'] is not None,
            'redhat': data['redhat'],
            'exploits': data.get('exploits'),
            'timestamp': datetime.now(timezone.utc).isoformat(),
        }
        if errors:
            report['errors'] = errors
        return report

    async def _threatfox_matches(self, term: str) -> Dict[str, Any]:
        return asdict(parse_threatfox_response(await self.threatfox_client.search_ioc(term)))

    async def ip_reputation(self, ip_address: str, max_age_days: int = 90, force: bool = False) -> Dict[str, Any]:
        """
        AbuseIPDB report and ThreatFox IOC matches for one address.

        The AbuseIPDB lookup spends the call budget on a cache miss. ThreatFox
        is only queried when its key is set.
        """
        calls = {'abuseipdb': self.sources.abuseipdb_ip(ip_address, max_age_days, force=force)}
        if self.config.threatfox_api_key:
            calls['threatfox'] = self._threatfox_matches(ip_address)

        data, errors = await self._gather_named(calls)

        result = {
            'ipAddress': ip_address,
            'abuseipdb': data['abuseipdb'],
            'threatfox': data.get('threatfox'),
            'timestamp': datetime.now(timezone.utc).isoformat(),
        }
        if errors:
            result['errors'] = errors
        return result

    async def refresh_all(self) -> Dict[str, Any]:
        """
        Force-fetch every cached enrichment source.

        NVD goes first because the Red Hat advisory list is derived from the
        recent NVD data; the rest run concurrently.
        """
        logging.info("Refreshing all cached sources...")
        data, errors = await self._gather_named({'nvd': self.sources.refresh('nvd')})

        others = [source for source in REFRESHABLE_SOURCES if source != 'nvd']
        more, more_errors = await self._gather_named({s: self.sources.refresh(s) for s in others})
        data.update(more)
        errors.update(more_errors)

        refreshed = [source for source in REFRESHABLE_SOURCES if source not in errors]
        logging.info(f"Refreshed {len(refreshed)}/{len(REFRESHABLE_SOURCES)} sources")

        result: Dict[str, Any] = {
            'refreshed': refreshed,
            'timestamp': datetime.now(timezone.utc).isoformat(),
        }
        if errors:
            result['errors'] = errors
        return result
