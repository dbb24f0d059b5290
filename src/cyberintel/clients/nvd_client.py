"""NVD API Client"""

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

from aiohttp import ClientError, ClientTimeout

from ..core.exceptions import CyberIntelError, MalformedUpstreamShape
from .base import BaseClient

RESULTS_PER_PAGE = 2000
HEALTH_CHECK_TIMEOUT = 5

# Served one by one when a date-range query comes back empty
FALLBACK_CVE_IDS = [
    "CVE-2021-44228",
    "CVE-2023-44487",
    "CVE-2024-3400",
    "CVE-2023-4966",
    "CVE-2024-21762",
]

SEVERITY_LEVELS = ['CRITICAL', 'HIGH', 'MEDIUM', 'LOW', 'UNKNOWN']


def _nvd_timestamp(value: datetime) -> str:
    return value.strftime('%Y-%m-%dT%H:%M:%S.000Z')


def severity_stats(vulnerabilities: List[Dict[str, Any]]) -> Dict[str, int]:
    """Count vulnerabilities per CVSS severity, preferring v3.1 over v3.0 over v2"""
    stats = {level: 0 for level in SEVERITY_LEVELS}
    for item in vulnerabilities:
        metrics = (item.get('cve') or {}).get('metrics') or {}
        severity = 'UNKNOWN'
        for version in ['cvssMetricV31', 'cvssMetricV30', 'cvssMetricV2']:
            if metrics.get(version):
                metric = metrics[version][0]
                severity = (metric.get('cvssData', {}).get('baseSeverity')
                            or metric.get('baseSeverity') or 'UNKNOWN')
                break
        if severity in stats:
            stats[severity] += 1
    return stats


class NVDClient(BaseClient):
    """NVD CVE 2.0 API client"""

    provider = "nvd"

    @property
    def pacing_delay(self) -> float:
        return self.config.nvd_delay

    def _default_headers(self) -> Dict[str, str]:
        headers = super()._default_headers()
        if self.config.nvd_api_key:
            headers['apiKey'] = self.config.nvd_api_key
        return headers

    async def get_cve(self, cve_id: str) -> Dict[str, Any]:
        """Fetch one CVE; the response must carry ``vulnerabilities[0].cve``"""
        logging.info(f"Fetching CVE data for {cve_id} from NVD...")
        data = await self._get_json(self.config.nvd_base_url, params={'cveId': cve_id})

        vulnerabilities = data.get('vulnerabilities') if isinstance(data, dict) else None
        if not vulnerabilities or not isinstance(vulnerabilities[0], dict) or not vulnerabilities[0].get('cve'):
            raise MalformedUpstreamShape(self.provider, f"no vulnerabilities[0].cve for {cve_id}")

        logging.info(f"Found CVE data for {cve_id}")
        return data

    async def get_recent_cves(self, days: int = 7) -> Dict[str, Any]:
        """
        CVEs modified within the last ``days`` days.

        Pages through results 2000 at a time while ``startIndex < totalResults``.
        When the window is empty, a fixed set of well-known CVEs is fetched
        individually instead so callers always get some data.
        """
        end_date = datetime.now(timezone.utc)
        start_date = end_date - timedelta(days=days)

        all_cves: List[Dict[str, Any]] = []
        start_index = 0
        total_results = 0

        while True:
            params = {
                'lastModStartDate': _nvd_timestamp(start_date),
                'lastModEndDate': _nvd_timestamp(end_date),
                'resultsPerPage': RESULTS_PER_PAGE,
                'startIndex': start_index,
            }
            data = await self._get_json(self.config.nvd_base_url, params=params)

            if not isinstance(data, dict) or not isinstance(data.get('vulnerabilities'), list):
                raise MalformedUpstreamShape(self.provider, "response has no vulnerabilities array")

            total_results = int(data.get('totalResults', 0))
            page = data['vulnerabilities']
            all_cves.extend(page)
            logging.info(f"NVD page at {start_index}: {len(page)} CVEs ({len(all_cves)}/{total_results})")

            start_index += RESULTS_PER_PAGE
            if start_index >= total_results or not page:
                break

        if not all_cves:
            logging.warning(f"NVD returned no CVEs for the last {days} days - using fallback set")
            all_cves = await self._fetch_fallback_set()

        return {
            'vulnerabilities': all_cves,
            'totalResults': len(all_cves),
            'stats': severity_stats(all_cves),
        }

    async def _fetch_fallback_set(self) -> List[Dict[str, Any]]:
        results = []
        for cve_id in FALLBACK_CVE_IDS:
            try:
                data = await self.get_cve(cve_id)
                results.extend(data['vulnerabilities'])
            except CyberIntelError as e:
                logging.warning(f"Fallback fetch of {cve_id} failed: {e}")
        return results

    async def health_check(self) -> Dict[str, Any]:
        """Ping NVD with a hard 5 second timeout"""
        timeout = ClientTimeout(total=HEALTH_CHECK_TIMEOUT)
        started = time.time()
        try:
            async with self.session.get(self.config.nvd_base_url, params={'resultsPerPage': 1},
                                        headers=self._default_headers(), timeout=timeout) as response:
                elapsed_ms = int((time.time() - started) * 1000)
                return {
                    'status': 'healthy' if 200 <= response.status < 300 else 'degraded',
                    'httpStatus': response.status,
                    'responseTimeMs': elapsed_ms,
                    'lastCheck': int(time.time() * 1000),
                }
        except (ClientError, asyncio.TimeoutError) as e:
            logging.warning(f"NVD health check failed: {e!r}")
            return {
                'status': 'unhealthy',
                'error': str(e) or 'request timed out',
                'lastCheck': int(time.time() * 1000),
            }
