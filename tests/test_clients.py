"""Tests for the provider clients other than NVD"""

import pytest

from cyberintel.cache.store import MemoryCache
from cyberintel.clients import cvelist_client
from cyberintel.clients.abuseipdb_client import AbuseIPDBClient
from cyberintel.clients.cvelist_client import CVEListClient
from cyberintel.clients.cwe_client import CWEClient
from cyberintel.clients.kev_client import KEVClient
from cyberintel.clients.mitre_client import MitreClient
from cyberintel.clients.news_client import NewsClient
from cyberintel.clients.redhat_client import RedHatClient
from cyberintel.clients.threatfox_client import ThreatFoxClient
from cyberintel.clients.vulners_client import VulnersClient
from cyberintel.core.exceptions import ConfigurationError, MalformedUpstreamShape, UpstreamUnavailable

from conftest import FakeResponse, FakeSession

KEV_CATALOG = {'catalogVersion': '2024.01.01', 'vulnerabilities': [
    {'cveID': 'CVE-2024-0001', 'dateAdded': '2000-01-01'},
    {'cveID': 'CVE-2024-0002', 'dateAdded': '2099-01-01'},
]}


@pytest.mark.asyncio
async def test_kev_catalog_served_from_memory_cache(config, clock):
    session = FakeSession([FakeResponse(200, KEV_CATALOG)])
    client = KEVClient(session, config, MemoryCache(3600, clock=clock))

    await client.download_catalog()
    entry = await client.check_cve('cve-2024-0002')

    assert entry['cveID'] == 'CVE-2024-0002'
    assert len(session.calls) == 1
    assert await client.check_cve('CVE-2000-0000') is None


@pytest.mark.asyncio
async def test_kev_recent_additions_filters_by_date(config):
    client = KEVClient(FakeSession([FakeResponse(200, KEV_CATALOG)]), config)

    recent = await client.get_recent_additions(30)

    assert [v['cveID'] for v in recent['vulnerabilities']] == ['CVE-2024-0002']


@pytest.mark.asyncio
async def test_kev_catalog_without_vulnerabilities_is_malformed(config):
    client = KEVClient(FakeSession([FakeResponse(200, {'catalogVersion': 'x'})]), config)

    with pytest.raises(MalformedUpstreamShape):
        await client.download_catalog()


@pytest.mark.asyncio
async def test_mitre_fetch_techniques(config):
    bundle = {'objects': [
        {'type': 'x-mitre-tactic', 'x_mitre_shortname': 'execution', 'name': 'Execution'},
        {'type': 'attack-pattern', 'name': 'Command and Scripting Interpreter',
         'external_references': [{'external_id': 'T1059'}],
         'kill_chain_phases': [{'phase_name': 'execution'}]},
    ]}
    client = MitreClient(FakeSession([FakeResponse(200, bundle)]), config)

    techniques = await client.fetch_techniques()

    assert techniques == [{
        'id': 'T1059-Execution',
        'name': 'Command and Scripting Interpreter',
        'description': '',
        'tactic': 'Execution',
        'platforms': [],
        'dataSources': [],
        'detectionName': '',
        'url': 'https://attack.mitre.org/techniques/T1059',
    }]


@pytest.mark.asyncio
async def test_redhat_404_returns_none(config):
    session = FakeSession([FakeResponse(404, text='Not Found')])

    assert await RedHatClient(session, config).get_cve_details('2024-0001') is None
    assert session.calls[0]['url'].endswith('/CVE-2024-0001.json')


@pytest.mark.asyncio
async def test_redhat_other_errors_propagate(config):
    session = FakeSession([FakeResponse(500, text='oops')])

    with pytest.raises(UpstreamUnavailable):
        await RedHatClient(session, config).get_cve_details('CVE-2024-0001')


@pytest.mark.asyncio
async def test_cwe_falls_back_to_category(config):
    session = FakeSession([
        FakeResponse(404, text='not a weakness'),
        FakeResponse(200, {'Categories': [{'ID': '1000'}]}),
    ])

    data = await CWEClient(session, config).get_cwe('CWE-1000')

    assert data == {'Categories': [{'ID': '1000'}]}
    assert session.calls[0]['url'].endswith('/cwe/weakness/1000')
    assert session.calls[1]['url'].endswith('/cwe/category/1000')


@pytest.mark.asyncio
async def test_abuseipdb_sends_key_header(config):
    session = FakeSession([FakeResponse(200, {'data': {'ipAddress': '203.0.113.5'}})])

    await AbuseIPDBClient(session, config).check_ip('203.0.113.5', 30)

    call = session.calls[0]
    assert call['headers']['Key'] == 'test-abuse-key'
    assert call['params']['ipAddress'] == '203.0.113.5'
    assert call['params']['maxAgeInDays'] == '30'
    assert call['url'].endswith('/check')


@pytest.mark.asyncio
async def test_abuseipdb_missing_key_is_configuration_error(config):
    config.abuseipdb_api_key = None
    session = FakeSession()

    with pytest.raises(ConfigurationError):
        await AbuseIPDBClient(session, config).get_blacklist()
    assert session.calls == []


@pytest.mark.asyncio
async def test_abuseipdb_blacklist_requires_data_array(config):
    session = FakeSession([FakeResponse(200, {'errors': [{'detail': 'x'}]})])

    with pytest.raises(MalformedUpstreamShape):
        await AbuseIPDBClient(session, config).get_blacklist()


@pytest.mark.asyncio
async def test_threatfox_posts_query_body(config):
    session = FakeSession([FakeResponse(200, {'query_status': 'ok', 'data': []})])

    await ThreatFoxClient(session, config).get_tag_info('Emotet', limit=5)

    call = session.calls[0]
    assert call['method'] == 'POST'
    assert call['json'] == {'query': 'taginfo', 'tag': 'Emotet', 'limit': 5}
    assert call['headers']['Auth-Key'] == 'test-threatfox-key'


@pytest.mark.asyncio
async def test_vulners_get_by_id(config):
    doc = {'id': 'CVE-2021-44228', 'description': 'Log4Shell'}
    session = FakeSession([FakeResponse(200, {'result': 'OK', 'data': {'documents': {'CVE-2021-44228': doc}}})])

    assert await VulnersClient(session, config).get_by_id('CVE-2021-44228') == doc
    assert session.calls[0]['json']['id'] == 'CVE-2021-44228'
    assert session.calls[0]['headers']['X-Api-Key'] == 'test-vulners-key'


@pytest.mark.asyncio
async def test_vulners_error_result_is_malformed(config):
    session = FakeSession([FakeResponse(200, {'result': 'error', 'data': {'error': 'Wrong API key'}})])

    with pytest.raises(MalformedUpstreamShape) as exc_info:
        await VulnersClient(session, config).search('type:cve')
    assert 'Wrong API key' in str(exc_info.value)


@pytest.mark.asyncio
async def test_vulners_exploit_query(config):
    session = FakeSession([FakeResponse(200, {'result': 'OK', 'data': {'search': []}})])

    await VulnersClient(session, config).get_exploits_for_cve('CVE-2021-44228')

    assert session.calls[0]['json'] == {'query': 'bulletinFamily:exploit AND CVE-2021-44228',
                                        'skip': 0, 'size': 20}


@pytest.mark.asyncio
async def test_news_security_feed_params(config):
    session = FakeSession([FakeResponse(200, {'status': 'ok', 'articles': []})])

    await NewsClient(session, config).get_security_news()

    call = session.calls[0]
    assert call['url'].endswith('/everything')
    assert call['params']['sortBy'] == 'publishedAt'
    assert call['headers']['X-Api-Key'] == 'test-news-key'


def test_cvelist_record_urls_from_delta_log():
    delta_log = [
        {'new': [{'cveId': 'CVE-2024-0001', 'githubLink': 'https://raw/1.json'}],
         'updated': [{'cveId': 'CVE-2024-0002', 'githubLink': 'https://raw/2.json'}]},
        {'new': [], 'updated': [{'cveId': 'CVE-2024-0003'}]},
    ]

    assert CVEListClient.record_urls(delta_log) == ['https://raw/1.json', 'https://raw/2.json']


@pytest.mark.asyncio
async def test_cvelist_batches_skip_failures(config, mocker):
    sleep = mocker.patch.object(cvelist_client.asyncio, 'sleep', new=mocker.AsyncMock())
    urls = [f'https://raw/{i}.json' for i in range(3)]

    def respond(method, url, kwargs):
        if url.endswith('/1.json'):
            return FakeResponse(500, text='error')
        return FakeResponse(200, {'cveMetadata': {'cveId': url}})

    session = FakeSession([respond] * 3)

    records = await CVEListClient(session, config).fetch_records(urls, batch_size=2)

    assert [r['cveMetadata']['cveId'] for r in records] == ['https://raw/0.json', 'https://raw/2.json']
    sleep.assert_awaited_once_with(cvelist_client.BATCH_PAUSE)
