"""Tests for the 30-day threat trends"""

from datetime import date, datetime, timezone

import pytest

from cyberintel.core.exceptions import CacheCorrupt
from cyberintel.processing.trends import ThreatTrendsAggregator, day_label

from conftest import nvd_item

NOW = datetime(2024, 3, 15, 18, 30, tzinfo=timezone.utc)


@pytest.fixture
def aggregator(cache):
    return ThreatTrendsAggregator(cache, clock=lambda: NOW)


def by_label(points):
    return {point['date']: point for point in points}


def test_day_label_has_no_leading_zero():
    assert day_label(date(2024, 1, 5)) == "Jan 5"
    assert day_label(date(2024, 12, 25)) == "Dec 25"


@pytest.mark.asyncio
async def test_empty_cache_gives_thirty_zero_points(aggregator):
    points = await aggregator.get_trends()

    assert len(points) == 30
    assert points[0] == {'date': 'Feb 15', 'cves': 0, 'exploits': 0}
    assert points[-1]['date'] == 'Mar 15'


@pytest.mark.asyncio
async def test_counts_cves_from_every_nvd_file(aggregator, cache):
    await cache.put('nvd-recent-7days.json', {'vulnerabilities': [
        nvd_item('CVE-2024-0001', published='2024-03-14T08:00:00.000'),
        nvd_item('CVE-2024-0002', published='2024-03-14T23:59:00.000'),
        nvd_item('CVE-2024-0003', published='2024-02-14T10:00:00.000'),
    ]})
    await cache.put('nvd-CVE-2024-0004.json', {'vulnerabilities': [
        nvd_item('CVE-2024-0004', published='2024-02-15T00:00:00.000'),
    ]})

    points = by_label(await aggregator.get_trends())

    assert points['Mar 14']['cves'] == 2
    assert points['Feb 15']['cves'] == 1
    assert sum(p['cves'] for p in points.values()) == 3


@pytest.mark.asyncio
async def test_counts_kev_additions_from_latest_kev_file(aggregator, cache):
    await cache.put('cisa-kev-30days.json', {'vulnerabilities': [
        {'cveID': 'CVE-2024-0001', 'dateAdded': '2024-03-01'},
    ]})
    await cache.put('cisa-kev.json', {'vulnerabilities': [
        {'cveID': 'CVE-2024-0001', 'dateAdded': '2024-03-10'},
        {'cveID': 'CVE-2024-0002', 'dateAdded': '2024-03-10T00:00:00+00:00'},
        {'cveID': 'CVE-2023-0001', 'dateAdded': '2023-12-01'},
    ]})

    points = by_label(await aggregator.get_trends())

    assert points['Mar 10']['exploits'] == 2
    assert points['Mar 1']['exploits'] == 0


@pytest.mark.asyncio
async def test_unreadable_file_is_skipped(aggregator, cache, mocker):
    await cache.put('nvd-recent-7days.json', {'vulnerabilities': [
        nvd_item('CVE-2024-0001', published='2024-03-14T08:00:00.000'),
    ]})
    await cache.put('nvd-CVE-2024-0009.json', {})
    real_read = cache.read_entry

    async def read_entry(key):
        if key == 'nvd-CVE-2024-0009.json':
            raise CacheCorrupt(key, "invalid JSON")
        return await real_read(key)

    mocker.patch.object(cache, 'read_entry', side_effect=read_entry)

    points = by_label(await aggregator.get_trends())

    assert points['Mar 14']['cves'] == 1
