"""Vulners API Client"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from ..core.exceptions import MalformedUpstreamShape
from .base import BaseClient


class VulnersClient(BaseClient):
    """Vulners.com v3 API client"""

    provider = "vulners"

    @property
    def pacing_delay(self) -> float:
        return self.config.vulners_delay

    def _default_headers(self) -> Dict[str, str]:
        headers = super()._default_headers()
        headers['Content-Type'] = 'application/json'
        if self.config.vulners_api_key:
            headers['X-Api-Key'] = self.config.vulners_api_key
        return headers

    def _url(self, path: str) -> str:
        return f"{self.config.vulners_base_url.rstrip('/')}/{path}"

    def _check_result(self, data: Any) -> Dict[str, Any]:
        if not isinstance(data, dict) or data.get('result') != 'OK':
            error = data.get('data', {}).get('error') if isinstance(data, dict) else None
            raise MalformedUpstreamShape(self.provider, error or "result is not OK")
        return data

    async def search(self, query: str, size: int = 10, skip: int = 0) -> Dict[str, Any]:
        """Lucene search"""
        self._require_key(self.config.vulners_api_key, 'VULNERS_API_KEY')
        data = await self._post_json(self._url('search/lucene/'),
                                     {'query': query, 'skip': skip, 'size': size})
        return self._check_result(data)

    async def get_by_id(self, document_id: str) -> Optional[Dict[str, Any]]:
        """Single Vulners document (e.g. a CVE bulletin), or None when absent"""
        self._require_key(self.config.vulners_api_key, 'VULNERS_API_KEY')
        logging.info(f"Fetching {document_id} from Vulners...")
        data = await self._post_json(self._url('search/id/'), {'id': document_id, 'fields': ['*']})
        data = self._check_result(data)

        documents = data.get('data', {}).get('documents') or {}
        document = documents.get(document_id)
        if document is None and len(documents) == 1:
            document = next(iter(documents.values()))
        return document

    async def get_exploits_for_cve(self, cve_id: str) -> Dict[str, Any]:
        return await self.search(f"bulletinFamily:exploit AND {cve_id}", size=20)

    async def get_high_severity_cves(self, days: int = 7, size: int = 50) -> Dict[str, Any]:
        end_date = datetime.now(timezone.utc).date()
        start_date = end_date - timedelta(days=days)
        query = (f"published:[{start_date.isoformat()} TO {end_date.isoformat()}] "
                 f"AND cvss.score:[7.0 TO 10.0] AND type:cve")
        return await self.search(query, size=size)
