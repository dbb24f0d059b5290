"""MITRE ATT&CK Enterprise STIX bundle client"""

import logging
from typing import Any, Dict, List

from ..core.exceptions import MalformedUpstreamShape
from ..processing.parsers import parse_mitre_bundle
from .base import BaseClient


class MitreClient(BaseClient):
    """Downloads the enterprise-attack STIX bundle"""

    provider = "mitre-attack"

    async def get_bundle(self) -> Dict[str, Any]:
        logging.info("Fetching MITRE ATT&CK enterprise bundle...")
        data = await self._get_json(self.config.mitre_attack_url)
        if not isinstance(data, dict) or not isinstance(data.get('objects'), list):
            raise MalformedUpstreamShape(self.provider, "bundle has no objects array")
        return data

    async def fetch_techniques(self) -> List[Dict[str, Any]]:
        """Technique rows (one per tactic) ready for caching"""
        bundle = await self.get_bundle()
        techniques = parse_mitre_bundle(bundle)
        logging.info(f"Parsed {len(techniques)} technique/tactic rows from ATT&CK")
        return [technique.to_dict() for technique in techniques]
