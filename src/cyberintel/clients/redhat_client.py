"""Red Hat Security Data API Client"""

import logging
from typing import Any, Dict, Optional

from ..core.exceptions import UpstreamUnavailable
from .base import BaseClient


class RedHatClient(BaseClient):
    """Red Hat Security Data API Client"""

    provider = "redhat"

    @property
    def pacing_delay(self) -> float:
        return self.config.redhat_delay

    @staticmethod
    def normalize_cve_id(cve_id: str) -> str:
        number = cve_id.strip().upper()
        if number.startswith('CVE-'):
            number = number[4:]
        return f"CVE-{number}"

    async def get_cve_details(self, cve_id: str) -> Optional[Dict[str, Any]]:
        """Native Red Hat CVE document, or None when Red Hat has no record"""
        cve_id = self.normalize_cve_id(cve_id)
        url = f"{self.config.redhat_base_url}/{cve_id}.json"

        try:
            data = await self._get_json(url)
        except UpstreamUnavailable as e:
            if e.status == 404:
                logging.info(f"{cve_id} not found in Red Hat security data")
                return None
            raise

        return data
