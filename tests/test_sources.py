"""Tests for cache-or-fetch source access"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from cyberintel.cache.rate_limiter import MAX_CALLS
from cyberintel.clients.abuseipdb_client import AbuseIPDBClient
from cyberintel.core.exceptions import ConfigurationError, RateLimitExceeded, UpstreamUnavailable
from cyberintel.processing.sources import IntelSources

from conftest import FakeSession, nvd_item

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clients():
    return {
        'nvd': AsyncMock(),
        'kev': AsyncMock(),
        'mitre': AsyncMock(),
        'cvelist': AsyncMock(),
        'redhat': AsyncMock(),
        'abuseipdb': AsyncMock(),
        'resolver': AsyncMock(),
    }


@pytest.fixture
def sources(config, cache, rate_limiter, clients):
    return IntelSources(config, cache, rate_limiter, clock=lambda: NOW, **clients)


@pytest.mark.asyncio
async def test_recent_cves_cache_hit_skips_upstream(sources, cache, clients):
    await cache.put('nvd-recent-7days.json', {'vulnerabilities': [], 'totalResults': 0})

    data = await sources.recent_cves(7)

    assert data['source'] == 'cache'
    clients['nvd'].get_recent_cves.assert_not_awaited()


@pytest.mark.asyncio
async def test_recent_cves_miss_fetches_and_writes_back(sources, cache, clients):
    payload = {'vulnerabilities': [nvd_item('CVE-2024-0001')], 'totalResults': 1, 'stats': {}}
    clients['nvd'].get_recent_cves.return_value = payload

    data = await sources.recent_cves(7)

    assert data['source'] == 'nvd_api'
    assert await cache.get('nvd-recent-7days.json', 1) == payload


@pytest.mark.asyncio
async def test_recent_cves_serves_stale_snapshot_on_failure(sources, cache, clients, clock):
    await cache.put('nvd-recent-7days.json', {'vulnerabilities': [], 'totalResults': 0})
    clock.now += 5 * 3600
    clients['nvd'].get_recent_cves.side_effect = UpstreamUnavailable('nvd', 503)

    data = await sources.recent_cves(7)

    assert data['source'] == 'fallback_cache'
    assert 'nvd returned HTTP 503' in data['warning']


@pytest.mark.asyncio
async def test_recent_cves_failure_without_snapshot_raises(sources, cache, clients, clock):
    await cache.put('nvd-recent-7days.json', {'vulnerabilities': []})
    clock.now += 25 * 3600
    clients['nvd'].get_recent_cves.side_effect = UpstreamUnavailable('nvd', 503)

    with pytest.raises(UpstreamUnavailable):
        await sources.recent_cves(7)


@pytest.mark.asyncio
async def test_cve_lookup_cached_per_id(sources, cache, clients):
    envelope = {'vulnerabilities': [nvd_item('CVE-2024-0001')]}
    clients['resolver'].get_cve.return_value = envelope

    await sources.cve('cve-2024-0001')
    await sources.cve('CVE-2024-0001')

    clients['resolver'].get_cve.assert_awaited_once_with('CVE-2024-0001')
    assert await cache.get('nvd-CVE-2024-0001.json', 24) == envelope


@pytest.mark.asyncio
async def test_kev_catalog_is_formatted_and_keyed_by_days(sources, cache, clients):
    clients['kev'].get_recent_additions.return_value = {'vulnerabilities': [{'cveID': 'CVE-2024-0001'}]}

    data = await sources.kev_catalog(days=30)

    vuln = data['vulnerabilities'][0]
    assert vuln['dateAdded'] == NOW.isoformat()
    assert vuln['dueDate'] == datetime(2024, 4, 14, 12, 0, tzinfo=timezone.utc).isoformat()
    assert data['total'] == 1
    assert await cache.get('cisa-kev-30days.json', 1) == data


@pytest.mark.asyncio
async def test_rate_limit_exhaustion_prevents_upstream_call(sources, rate_limiter, clients):
    for _ in range(MAX_CALLS):
        await rate_limiter.increment('abuseipdb')

    with pytest.raises(RateLimitExceeded):
        await sources.abuseipdb_ip('203.0.113.5')

    clients['abuseipdb'].check_ip.assert_not_awaited()


@pytest.mark.asyncio
async def test_rate_limited_call_counts_even_when_it_fails(sources, rate_limiter, clients):
    clients['abuseipdb'].check_block.side_effect = UpstreamUnavailable('abuseipdb', 429)

    with pytest.raises(UpstreamUnavailable):
        await sources.abuseipdb_network('203.0.113.0/24')

    assert await rate_limiter.remaining('abuseipdb') == MAX_CALLS - 1


@pytest.mark.asyncio
async def test_cached_blacklist_does_not_spend_budget(sources, cache, rate_limiter, clients):
    await cache.put('abuseipdb-blacklist-90-100.json', {'data': []})

    assert await sources.abuseipdb_blacklist() == {'data': []}
    assert await rate_limiter.remaining('abuseipdb') == MAX_CALLS
    clients['abuseipdb'].get_blacklist.assert_not_awaited()


@pytest.mark.asyncio
async def test_network_key_replaces_slash(sources, cache, clients):
    clients['abuseipdb'].check_block.return_value = {'data': {'networkAddress': '203.0.113.0'}}

    await sources.abuseipdb_network('203.0.113.0/24')

    assert await cache.keys('abuseipdb-network-*') == ['abuseipdb-network-203.0.113.0-24.json']


@pytest.mark.asyncio
async def test_redhat_advisories_concatenate_every_matching_file(sources, cache, clock):
    await cache.put('redhat-advisories.json', {'advisories': [{'cve_id': 'CVE-2024-0001'}]})
    await cache.put('redhat-advisories-weekly.json', {'advisories': [{'cve_id': 'CVE-2024-0002'}]})
    await cache.put('redhat-CVE-2024-0003.json', {'cve_id': 'CVE-2024-0003'})
    clock.now += 30 * 24 * 3600

    data = await sources.all_redhat_advisories()

    assert sorted(a['cve_id'] for a in data['advisories']) == ['CVE-2024-0001', 'CVE-2024-0002']


@pytest.mark.asyncio
async def test_redhat_advisory_list_from_critical_and_high(sources, cache, clients):
    await cache.put('nvd-recent-7days.json', {'vulnerabilities': [
        nvd_item('CVE-2024-0001', score=7.5, severity='HIGH'),
        nvd_item('CVE-2024-0002', score=9.8, severity='CRITICAL'),
        nvd_item('CVE-2024-0003', score=4.0, severity='MEDIUM'),
        nvd_item('CVE-2024-0004', score=8.0, severity='HIGH'),
    ]})

    async def details(cve_id):
        if cve_id == 'CVE-2024-0004':
            return None
        return {'name': cve_id, 'threat_severity': 'Important'}

    clients['redhat'].get_cve_details.side_effect = details

    data = await sources.redhat_advisories()

    assert [a['cve_id'] for a in data['advisories']] == ['CVE-2024-0002', 'CVE-2024-0001']
    assert data['total'] == 2
    assert await cache.get('redhat-advisories.json', 1) == data


@pytest.mark.asyncio
async def test_redhat_single_cve_not_found_is_not_cached(sources, cache, clients):
    clients['redhat'].get_cve_details.return_value = None

    assert await sources.redhat_cve('CVE-2024-0009') is None
    assert await cache.keys('redhat-*') == []


@pytest.mark.asyncio
async def test_enrichment_input_respects_fetch_missing(sources):
    fetch = AsyncMock(return_value={'techniques': []})

    assert await sources.enrichment_input('mitre-attack.json', fetch, fetch_missing=False) is None
    fetch.assert_not_awaited()

    assert await sources.enrichment_input('mitre-attack.json', fetch, fetch_missing=True) == {'techniques': []}


@pytest.mark.asyncio
async def test_missing_abuseipdb_key_does_not_spend_budget(config, cache, rate_limiter, clients):
    config.abuseipdb_api_key = None
    session = FakeSession()
    clients['abuseipdb'] = AbuseIPDBClient(session, config)
    sources = IntelSources(config, cache, rate_limiter, clock=lambda: NOW, **clients)

    for _ in range(4):
        with pytest.raises(ConfigurationError):
            await sources.abuseipdb_blacklist()

    assert await rate_limiter.remaining('abuseipdb') == MAX_CALLS
    assert session.calls == []


@pytest.mark.asyncio
async def test_refresh_forces_the_named_source(sources, cache, clients):
    await cache.put('cisa-kev.json', {'vulnerabilities': [], 'total': 0, 'stale': True})
    clients['kev'].download_catalog.return_value = {'vulnerabilities': [{'cveID': 'CVE-2024-0001'}]}

    data = await sources.refresh('cisa')

    clients['kev'].download_catalog.assert_awaited_once()
    assert data['total'] == 1
    assert await cache.get('cisa-kev.json', None) == data


@pytest.mark.asyncio
async def test_refresh_unknown_source_is_rejected(sources):
    with pytest.raises(ValueError):
        await sources.refresh('abuseipdb')
