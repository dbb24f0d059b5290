"""Single-CVE lookup with NVD as primary and Vulners as secondary source"""

import logging
from typing import Any, Dict, List, Optional

from ..clients.nvd_client import NVDClient
from ..clients.vulners_client import VulnersClient
from ..core.exceptions import CVENotFound, CyberIntelError, MalformedUpstreamShape


def _vulners_cvss3(document: Dict[str, Any]) -> Dict[str, Any]:
    """Score, severity and vector from either flat or nested Vulners cvss3 shapes"""
    cvss3 = document.get('cvss3') or {}
    nested = cvss3.get('cvssV3') or {}
    return {
        'score': cvss3.get('score', nested.get('baseScore')),
        'severity': cvss3.get('severity', nested.get('baseSeverity')),
        'vector': cvss3.get('vector', nested.get('vectorString')),
    }


def _references(document: Dict[str, Any]) -> List[Dict[str, str]]:
    references = []
    for ref in document.get('references') or []:
        url = ref.get('url') if isinstance(ref, dict) else ref
        if url:
            references.append({'url': url, 'source': 'vulners'})
    return references


def vulners_to_nvd(cve_id: str, document: Dict[str, Any]) -> Dict[str, Any]:
    """Wrap a Vulners document in the NVD ``vulnerabilities[0].cve`` envelope"""
    cve: Dict[str, Any] = {
        'id': cve_id,
        'sourceIdentifier': 'vulners',
        'published': document.get('published'),
        'lastModified': document.get('modified'),
        'descriptions': [{'lang': 'en', 'value': document.get('description') or ''}],
        'metrics': {},
        'weaknesses': [],
        'references': _references(document),
    }

    cvss3 = _vulners_cvss3(document)
    if cvss3['score'] is not None:
        cve['metrics']['cvssMetricV31'] = [{
            'source': 'vulners',
            'type': 'Secondary',
            'cvssData': {
                'version': '3.1',
                'baseScore': cvss3['score'],
                'baseSeverity': (cvss3['severity'] or 'UNKNOWN').upper(),
                'vectorString': cvss3['vector'],
            },
        }]

    cwes = document.get('cwe') or []
    if cwes:
        cve['weaknesses'] = [{
            'source': 'vulners',
            'type': 'Secondary',
            'description': [{'lang': 'en', 'value': cwe} for cwe in cwes],
        }]

    return {'totalResults': 1, 'vulnerabilities': [{'cve': cve}]}


class FallbackResolver:
    """Resolve one CVE from NVD, falling back to Vulners"""

    def __init__(self, nvd_client: NVDClient, vulners_client: Optional[VulnersClient] = None):
        self.nvd_client = nvd_client
        self.vulners_client = vulners_client

    async def get_cve(self, cve_id: str) -> Dict[str, Any]:
        """
        NVD-shaped record for ``cve_id``.

        Any NVD failure, including a structurally empty response, moves on to
        Vulners. Raises CVENotFound carrying both errors when neither source
        has the CVE.
        """
        cve_id = cve_id.strip().upper()
        errors = []

        try:
            data = await self.nvd_client.get_cve(cve_id)
            data['source'] = 'nvd'
            return data
        except CyberIntelError as e:
            logging.warning(f"NVD lookup for {cve_id} failed, trying Vulners: {e}")
            errors.append(f"nvd: {e}")

        if self.vulners_client is None:
            errors.append("vulners: client not configured")
            raise CVENotFound(cve_id, errors)

        try:
            document = await self.vulners_client.get_by_id(cve_id)
            if not document:
                raise MalformedUpstreamShape("vulners", f"no document for {cve_id}")
        except CyberIntelError as e:
            logging.error(f"Vulners lookup for {cve_id} failed: {e}")
            errors.append(f"vulners: {e}")
            raise CVENotFound(cve_id, errors) from e

        logging.info(f"Resolved {cve_id} from Vulners")
        data = vulners_to_nvd(cve_id, document)
        data['source'] = 'vulners'
        return data
