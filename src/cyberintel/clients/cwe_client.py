"""MITRE CWE REST API client"""

import logging
from typing import Any, Dict

from ..core.exceptions import UpstreamUnavailable
from .base import BaseClient


class CWEClient(BaseClient):
    """Looks up a CWE as a weakness first, then as a category"""

    provider = "cwe"

    @staticmethod
    def normalize_cwe_id(cwe_id: str) -> str:
        cwe_id = cwe_id.strip().upper()
        return cwe_id[4:] if cwe_id.startswith('CWE-') else cwe_id

    async def get_cwe(self, cwe_id: str) -> Dict[str, Any]:
        number = self.normalize_cwe_id(cwe_id)
        base = self.config.cwe_api_url.rstrip('/')

        try:
            return await self._get_json(f"{base}/cwe/weakness/{number}")
        except UpstreamUnavailable as e:
            if e.status != 404:
                raise

        logging.info(f"CWE-{number} is not a weakness, trying category")
        return await self._get_json(f"{base}/cwe/category/{number}")
