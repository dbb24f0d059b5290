"""AbuseIPDB v2 API Client"""

import logging
from typing import Any, Dict

from ..core.exceptions import MalformedUpstreamShape
from .base import BaseClient


class AbuseIPDBClient(BaseClient):
    """AbuseIPDB v2 API Client"""

    provider = "abuseipdb"

    @property
    def pacing_delay(self) -> float:
        return self.config.abuseipdb_delay

    def _default_headers(self) -> Dict[str, str]:
        headers = super()._default_headers()
        headers['Key'] = self._require_key(self.config.abuseipdb_api_key, 'ABUSEIPDB_API_KEY')
        return headers

    def _url(self, path: str) -> str:
        return f"{self.config.abuseipdb_base_url.rstrip('/')}/{path}"

    async def check_ip(self, ip_address: str, max_age_days: int = 90) -> Dict[str, Any]:
        logging.info(f"Checking {ip_address} against AbuseIPDB...")
        return await self._get_json(self._url('check'), params={
            'ipAddress': ip_address,
            'maxAgeInDays': str(max_age_days),
            'verbose': '',
        })

    async def check_block(self, network_cidr: str, max_age_days: int = 90) -> Dict[str, Any]:
        logging.info(f"Checking network {network_cidr} against AbuseIPDB...")
        return await self._get_json(self._url('check-block'), params={
            'network': network_cidr,
            'maxAgeInDays': str(max_age_days),
        })

    async def get_blacklist(self, confidence_minimum: int = 90, limit: int = 100) -> Dict[str, Any]:
        logging.info(f"Fetching AbuseIPDB blacklist (confidence >= {confidence_minimum}, limit {limit})...")
        data = await self._get_json(self._url('blacklist'), params={
            'confidenceMinimum': str(confidence_minimum),
            'limit': str(limit),
        })
        if not isinstance(data, dict) or not isinstance(data.get('data'), list):
            raise MalformedUpstreamShape(self.provider, "blacklist has no data array")
        return data
