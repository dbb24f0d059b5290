"""Tests for cached-source search"""

from unittest.mock import AsyncMock

import pytest

from cyberintel.processing.search import DEFAULT_FIELDS, SEARCHABLE_FIELDS, search_cached, search_items, search_threats

from conftest import nvd_item


def with_cpe(item, criteria):
    item['cve']['configurations'] = [{'nodes': [{'cpeMatch': [{'criteria': criteria}]}]}]
    return item


NVD_ITEMS = [
    with_cpe(nvd_item('CVE-2024-0001', description="Remote code execution in Apache Struts"),
             'cpe:2.3:a:apache:struts:2.5.30:*:*:*:*:*:*:*'),
    nvd_item('CVE-2024-0002', description="Denial of service in nginx"),
]


def test_every_term_must_match_some_field():
    fields = SEARCHABLE_FIELDS['nvd']

    assert [i['cve']['id'] for i in search_items(NVD_ITEMS, "apache code", fields)] == ['CVE-2024-0001']
    assert search_items(NVD_ITEMS, "apache nginx", fields) == []


def test_cpe_criteria_and_id_are_searched():
    fields = SEARCHABLE_FIELDS['nvd']

    assert len(search_items(NVD_ITEMS, "struts:2.5.30", fields)) == 1
    assert [i['cve']['id'] for i in search_items(NVD_ITEMS, "cve-2024-0002", fields)] == ['CVE-2024-0002']


def test_list_fields_match_any_element():
    advisories = [{'cve_id': 'CVE-2024-0001', 'affected_packages': ['openssl-3.0.7', 'curl']}]

    assert search_items(advisories, "OpenSSL", SEARCHABLE_FIELDS['redhat']) == advisories


@pytest.mark.asyncio
async def test_search_cached_collects_matching_files(cache):
    await cache.put('nvd-recent-7days.json', {'vulnerabilities': NVD_ITEMS})
    await cache.put('nvd-CVE-2024-0003.json', {'vulnerabilities': [nvd_item('CVE-2024-0003', "nginx leak")]})
    await cache.put('mitre-attack.json', {'techniques': [{'id': 'T1068-x', 'description': 'nginx'}]})

    result = await search_cached(cache, 'nvd', 'nginx')

    assert sorted(i['cve']['id'] for i in result['data']) == ['CVE-2024-0002', 'CVE-2024-0003']
    assert 'timestamp' in result


@pytest.mark.asyncio
async def test_search_cached_without_query_returns_everything(cache):
    await cache.put('redhat-advisories.json', {'advisories': [{'cve_id': 'A'}, {'cve_id': 'B'}]})

    result = await search_cached(cache, 'redhat')

    assert len(result['data']) == 2


@pytest.mark.asyncio
async def test_unknown_source_uses_default_fields(cache):
    await cache.put('custom-feed.json', {'data': [{'id': 'x1', 'description': 'phishing kit'}, {'id': 'x2'}]})

    result = await search_cached(cache, 'custom', 'phishing')

    assert DEFAULT_FIELDS == ['id', 'description']
    assert [i['id'] for i in result['data']] == ['x1']


@pytest.mark.asyncio
async def test_search_cached_fetches_when_nothing_is_cached(cache):
    async def populate():
        await cache.put('cisa-kev.json', {'vulnerabilities': [{'cveID': 'CVE-2024-0001', 'vendorProject': 'Ivanti'}]})

    fetch = AsyncMock(side_effect=populate)

    result = await search_cached(cache, 'cisa', 'ivanti', fetch=fetch)

    fetch.assert_awaited_once()
    assert [i['cveID'] for i in result['data']] == ['CVE-2024-0001']


@pytest.mark.asyncio
async def test_search_cached_skips_fetch_when_data_is_cached(cache):
    await cache.put('cisa-kev.json', {'vulnerabilities': [{'cveID': 'CVE-2024-0002', 'vendorProject': 'Cisco'}]})
    fetch = AsyncMock()

    result = await search_cached(cache, 'cisa', 'cisco', fetch=fetch)

    fetch.assert_not_awaited()
    assert len(result['data']) == 1


@pytest.mark.asyncio
async def test_search_threats_matches_anywhere_in_the_record():
    engine = AsyncMock()
    engine.enrich.return_value = {
        'vulnerabilities': [
            {'cveId': 'CVE-2024-0001', 'mitreAttack': [{'id': 'T1068-privilege-escalation'}]},
            {'cveId': 'CVE-2024-0002', 'mitreAttack': []},
        ],
        'vulnerabilityCount': 2,
        'warning': 'redhat: unavailable',
    }

    result = await search_threats(engine, 't1068')

    assert [r['cveId'] for r in result['data']] == ['CVE-2024-0001']
    assert result['warning'] == 'redhat: unavailable'


@pytest.mark.asyncio
async def test_search_threats_without_query_keeps_everything():
    engine = AsyncMock()
    engine.enrich.return_value = {'vulnerabilities': [{'cveId': 'A'}, {'cveId': 'B'}], 'vulnerabilityCount': 2}

    result = await search_threats(engine)

    assert len(result['data']) == 2
    assert 'warning' not in result
