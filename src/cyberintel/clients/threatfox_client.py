"""ThreatFox (abuse.ch) API Client"""

from typing import Any, Dict, Optional

from .base import BaseClient


class ThreatFoxClient(BaseClient):
    """ThreatFox query API; every query is a JSON POST to one endpoint"""

    provider = "threatfox"

    def _default_headers(self) -> Dict[str, str]:
        headers = super()._default_headers()
        headers['Content-Type'] = 'application/json'
        headers['Auth-Key'] = self._require_key(self.config.threatfox_api_key, 'THREATFOX_API_KEY')
        return headers

    async def _query(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._post_json(self.config.threatfox_api_url, body)

    async def get_recent_iocs(self, days: int = 1) -> Dict[str, Any]:
        return await self._query({'query': 'get_iocs', 'days': days})

    async def search_ioc(self, search_term: str) -> Dict[str, Any]:
        return await self._query({'query': 'search_ioc', 'search_term': search_term})

    async def get_ioc(self, ioc_id: str) -> Dict[str, Any]:
        return await self._query({'query': 'ioc', 'id': ioc_id})

    async def search_hash(self, file_hash: str) -> Dict[str, Any]:
        return await self._query({'query': 'search_hash', 'hash': file_hash})

    async def get_tag_info(self, tag: str, limit: int = 100) -> Dict[str, Any]:
        return await self._query({'query': 'taginfo', 'tag': tag, 'limit': limit})

    async def get_malware_info(self, malware: str, limit: int = 100) -> Dict[str, Any]:
        return await self._query({'query': 'malwareinfo', 'malware': malware, 'limit': limit})

    async def get_malware_list(self) -> Dict[str, Any]:
        return await self._query({'query': 'malware_list'})

    async def get_ioc_types(self) -> Dict[str, Any]:
        return await self._query({'query': 'types'})

    async def get_tag_list(self) -> Dict[str, Any]:
        return await self._query({'query': 'tag_list'})

    async def get_label(self, malware: str, platform: Optional[str] = None) -> Dict[str, Any]:
        body = {'query': 'get_label', 'malware': malware}
        if platform:
            body['platform'] = platform
        return await self._query(body)
