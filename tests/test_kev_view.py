"""Tests for KEV formatting, urgency buckets, stats and pagination"""

from datetime import datetime, timedelta, timezone

import pytest

from cyberintel.core.models import DueBucket, KevEntry
from cyberintel.processing.kev_view import filter_by_due, format_catalog, kev_stats, paginate

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def entry(cve_id, due_in_days=None, added=None):
    due = (NOW + timedelta(days=due_in_days)).isoformat() if due_in_days is not None else None
    return KevEntry(cve_id=cve_id, due_date=due, date_added=added)


@pytest.mark.parametrize("days, bucket", [
    (-3, DueBucket.URGENT),
    (7, DueBucket.URGENT),
    (8, DueBucket.UPCOMING),
    (30, DueBucket.UPCOMING),
    (31, DueBucket.LATER),
])
def test_due_bucket_boundaries(days, bucket):
    assert entry('CVE-2024-0001', days).due_bucket(NOW) == bucket


def test_partial_day_rounds_up():
    kev = KevEntry(cve_id='CVE-2024-0001', due_date=(NOW + timedelta(days=7, hours=1)).isoformat())

    assert kev.days_until_due(NOW) == 8
    assert kev.due_bucket(NOW) == DueBucket.UPCOMING


def test_missing_due_date_has_no_bucket():
    assert entry('CVE-2024-0001').due_bucket(NOW) is None


def test_format_catalog_fills_missing_dates():
    catalog = format_catalog([
        {'cveID': 'CVE-2024-0001'},
        {'cveID': 'CVE-2024-0002', 'dateAdded': '2024-03-01', 'dueDate': '2024-03-22'},
    ], NOW)

    first, second = catalog['vulnerabilities']
    assert first['dueDate'] == '2024-04-14T12:00:00+00:00'
    assert first['dateAdded'] == NOW.isoformat()
    assert second['dueDate'] == '2024-03-22'
    assert catalog['total'] == 2
    assert catalog['timestamp'] == NOW.isoformat()


def test_stats():
    entries = [
        entry('CVE-2024-0001', 2, added='2024-03-01'),
        entry('CVE-2024-0002', 7, added='2024-02-28'),
        entry('CVE-2024-0003', 20, added='2024-03-14'),
        entry('CVE-2023-0001', None, added='2023-03-10'),
    ]

    assert kev_stats(entries, NOW) == {'total': 4, 'dueSoon': 2, 'addedThisMonth': 2}


def test_filter_by_due():
    entries = [entry('A', 1), entry('B', 10), entry('C', 40)]

    assert [e.cve_id for e in filter_by_due(entries, 'urgent', NOW)] == ['A']
    assert [e.cve_id for e in filter_by_due(entries, 'upcoming', NOW)] == ['B']
    assert [e.cve_id for e in filter_by_due(entries, 'later', NOW)] == ['C']
    assert len(filter_by_due(entries, 'all', NOW)) == 3
    assert len(filter_by_due(entries, None, NOW)) == 3


def test_paginate():
    items, pagination = paginate(list(range(7)), page=2, page_size=3)

    assert items == [3, 4, 5]
    assert pagination == {'page': 2, 'pageSize': 3, 'totalPages': 3, 'totalItems': 7}


def test_paginate_past_end_is_empty():
    items, pagination = paginate(list(range(2)), page=5, page_size=10)

    assert items == []
    assert pagination['totalPages'] == 1
