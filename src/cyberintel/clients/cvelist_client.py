"""cvelistV5 delta log client (CNA / ADP containers)"""

import asyncio
import logging
from typing import Any, Dict, List

from ..core.exceptions import CyberIntelError, MalformedUpstreamShape
from .base import BaseClient

BATCH_SIZE = 10
BATCH_PAUSE = 1.0


class CVEListClient(BaseClient):
    """Reads the cvelistV5 deltaLog and the CVE records it links to"""

    provider = "cvelist"

    async def get_delta_log(self) -> List[Dict[str, Any]]:
        data = await self._get_json(self.config.cvelist_delta_url)
        if not isinstance(data, list):
            raise MalformedUpstreamShape(self.provider, "deltaLog is not a list")
        return data

    @staticmethod
    def record_urls(delta_log: List[Dict[str, Any]]) -> List[str]:
        """GitHub links of every new or updated record in the delta log"""
        urls = []
        for delta in delta_log:
            for bucket in ('new', 'updated'):
                for item in delta.get(bucket) or []:
                    link = item.get('githubLink')
                    if link:
                        urls.append(link)
        return urls

    async def _fetch_record(self, url: str):
        try:
            return await self._get_json(url)
        except CyberIntelError as e:
            logging.warning(f"Failed to fetch CVE record {url}: {e}")
            return None

    async def fetch_records(self, urls: List[str], batch_size: int = BATCH_SIZE) -> List[Dict[str, Any]]:
        """Fetch records in fixed-size concurrent batches; failed records are skipped"""
        results: List[Dict[str, Any]] = []
        total_batches = (len(urls) + batch_size - 1) // batch_size

        for i in range(0, len(urls), batch_size):
            batch = urls[i:i + batch_size]
            logging.debug(f"Processing cvelist batch {i // batch_size + 1} of {total_batches}")
            records = await asyncio.gather(*(self._fetch_record(url) for url in batch))
            results.extend(record for record in records if record is not None)
            if i + batch_size < len(urls):
                await asyncio.sleep(BATCH_PAUSE)

        return results

    async def get_recent_records(self) -> List[Dict[str, Any]]:
        delta_log = await self.get_delta_log()
        urls = self.record_urls(delta_log)
        logging.info(f"Found {len(urls)} CVE records in cvelistV5 delta log")
        records = await self.fetch_records(urls)
        logging.info(f"Fetched {len(records)} cvelistV5 records")
        return records
