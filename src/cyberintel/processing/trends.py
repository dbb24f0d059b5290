"""30-day CVE publication and KEV addition trends from cached files"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..cache import keys
from ..cache.store import CacheStore
from ..core.exceptions import CacheCorrupt
from ..core.models import ThreatTrendPoint, parse_timestamp

TREND_DAYS = 30


def day_label(day: date) -> str:
    """'Jan 5' style label; carries no year, so the same day in two years collides"""
    return f"{day.strftime('%b')} {day.day}"


def _published_dates(payload: Any) -> Iterable[Optional[str]]:
    """``published`` of every CVE in either a list response or a single-CVE file"""
    if not isinstance(payload, dict):
        return []
    if isinstance(payload.get('vulnerabilities'), list):
        return [(item.get('cve') or {}).get('published')
                for item in payload['vulnerabilities'] if isinstance(item, dict)]
    if isinstance(payload.get('cve'), dict):
        return [payload['cve'].get('published')]
    return []


class ThreatTrendsAggregator:
    """Counts cached CVEs by publication day and KEV entries by date added"""

    def __init__(self, cache: CacheStore, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.cache = cache
        self.clock = clock

    def _empty_buckets(self) -> Dict[str, ThreatTrendPoint]:
        today = self.clock().date()
        buckets = {}
        for offset in range(TREND_DAYS - 1, -1, -1):
            label = day_label(today - timedelta(days=offset))
            buckets[label] = ThreatTrendPoint(date=label)
        return buckets

    def _in_window(self, value: Optional[str], first_day: date, last_day: date) -> Optional[str]:
        parsed = parse_timestamp(value)
        if parsed is None:
            return None
        day = parsed.astimezone(timezone.utc).date()
        if first_day <= day <= last_day:
            return day_label(day)
        return None

    async def _read(self, key: str) -> Any:
        try:
            entry = await self.cache.read_entry(key)
        except CacheCorrupt as e:
            logging.error(f"Skipping unreadable cache file {key}: {e.details}")
            return None
        return entry.payload if entry else None

    async def get_trends(self) -> List[Dict[str, Any]]:
        """Exactly 30 points, oldest first"""
        buckets = self._empty_buckets()
        last_day = self.clock().date()
        first_day = last_day - timedelta(days=TREND_DAYS - 1)

        for key in await self.cache.keys(keys.NVD_FILES_PATTERN):
            payload = await self._read(key)
            for published in _published_dates(payload):
                label = self._in_window(published, first_day, last_day)
                if label in buckets:
                    buckets[label].cves += 1

        kev_files = await self.cache.keys(keys.KEV_FILES_PATTERN)
        if kev_files:
            payload = await self._read(kev_files[-1])
            vulnerabilities = payload.get('vulnerabilities') if isinstance(payload, dict) else None
            for vuln in vulnerabilities or []:
                if not isinstance(vuln, dict):
                    continue
                label = self._in_window(vuln.get('dateAdded'), first_day, last_day)
                if label in buckets:
                    buckets[label].exploits += 1

        return [point.to_dict() for point in buckets.values()]
