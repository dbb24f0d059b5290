"""KEV catalog views: formatting, stats, due-date filtering and pagination"""

import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..core.models import DueBucket, KevEntry, parse_timestamp

DEFAULT_DUE_DAYS = 30
DUE_FILTERS = ['all'] + [bucket.value for bucket in DueBucket]


def format_catalog(vulnerabilities: List[Dict[str, Any]], now: datetime) -> Dict[str, Any]:
    """Cacheable catalog with missing due/added dates filled in"""
    default_due = (now + timedelta(days=DEFAULT_DUE_DAYS)).isoformat()
    formatted = []
    for vuln in vulnerabilities:
        row = dict(vuln)
        row['dueDate'] = vuln.get('dueDate') or default_due
        row['dateAdded'] = vuln.get('dateAdded') or now.isoformat()
        formatted.append(row)

    return {
        'vulnerabilities': formatted,
        'total': len(formatted),
        'timestamp': now.isoformat(),
    }


def kev_stats(entries: Sequence[KevEntry], now: datetime) -> Dict[str, int]:
    due_soon = 0
    added_this_month = 0
    for entry in entries:
        days = entry.days_until_due(now)
        if days is not None and days <= 7:
            due_soon += 1
        added = parse_timestamp(entry.date_added)
        if added is not None and added.year == now.year and added.month == now.month:
            added_this_month += 1

    return {'total': len(entries), 'dueSoon': due_soon, 'addedThisMonth': added_this_month}


def filter_by_due(entries: Sequence[KevEntry], bucket: Optional[str], now: datetime) -> List[KevEntry]:
    """Entries in the given urgency bucket; ``all`` or None keeps everything"""
    if not bucket or bucket == 'all':
        return list(entries)
    wanted = DueBucket(bucket)
    return [entry for entry in entries if entry.due_bucket(now) == wanted]


def paginate(items: Sequence[Any], page: int = 1, page_size: int = 50) -> Tuple[List[Any], Dict[str, int]]:
    page = max(page, 1)
    page_size = max(page_size, 1)
    start = (page - 1) * page_size

    return list(items[start:start + page_size]), {
        'page': page,
        'pageSize': page_size,
        'totalPages': math.ceil(len(items) / page_size),
        'totalItems': len(items),
    }
