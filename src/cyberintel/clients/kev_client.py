"""CISA KEV Catalog Client"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from aiohttp import ClientSession

from ..cache.store import MemoryCache
from ..config.settings import CyberIntelConfig
from ..core.exceptions import MalformedUpstreamShape
from ..core.models import parse_timestamp
from .base import BaseClient


class KEVClient(BaseClient):
    """CISA KEV Catalog Client"""

    provider = "cisa-kev"

    def __init__(self, session: ClientSession, config: CyberIntelConfig,
                 catalog_cache: Optional[MemoryCache] = None):
        super().__init__(session, config)
        self.catalog_cache = catalog_cache or MemoryCache(config.kev_memory_ttl)

    async def download_catalog(self) -> Dict[str, Any]:
        """Full catalog, served from the in-memory copy while it is fresh"""
        cached = self.catalog_cache.get()
        if cached is not None:
            return cached

        data = await self._get_json(self.config.kev_url)
        if not isinstance(data, dict) or not isinstance(data.get('vulnerabilities'), list):
            raise MalformedUpstreamShape(self.provider, "catalog has no vulnerabilities array")

        self.catalog_cache.set(data)
        logging.info(f"Loaded {len(data['vulnerabilities'])} CVEs from KEV catalog")
        return data

    async def get_recent_additions(self, days: int = 30) -> Dict[str, Any]:
        """Catalog entries added within the last ``days`` days"""
        catalog = await self.download_catalog()
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)

        recent = []
        for vuln in catalog['vulnerabilities']:
            added = parse_timestamp(vuln.get('dateAdded'))
            if added is not None and added >= cutoff:
                recent.append(vuln)

        logging.info(f"{len(recent)} KEV additions in the last {days} days")
        return {'vulnerabilities': recent}

    async def check_cve(self, cve_id: str) -> Optional[Dict[str, Any]]:
        """KEV entry for a CVE, or None when it is not in the catalog"""
        catalog = await self.download_catalog()
        cve_id = cve_id.strip().upper()
        for vuln in catalog['vulnerabilities']:
            if vuln.get('cveID') == cve_id:
                return vuln
        return None
