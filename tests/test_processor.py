"""Tests for the combined IntelService reports"""

from unittest.mock import AsyncMock

import pytest

from cyberintel.core.exceptions import ConfigurationError, UpstreamUnavailable
from cyberintel.processing.processor import IntelService
from cyberintel.processing.sources import REFRESHABLE_SOURCES

from conftest import nvd_item


@pytest.fixture
def service(config, memory_store):
    service = IntelService(config, store=memory_store)
    service.sources = AsyncMock()
    service.kev_client = AsyncMock()
    service.vulners_client = AsyncMock()
    service.threatfox_client = AsyncMock()
    return service


@pytest.mark.asyncio
async def test_cve_report_combines_every_source(service):
    nvd = {'vulnerabilities': [nvd_item('CVE-2021-44228', "Log4j JNDI", score=10.0, severity='CRITICAL')]}
    service.sources.cve.return_value = nvd
    service.kev_client.check_cve.return_value = {'cveID': 'CVE-2021-44228', 'dueDate': '2021-12-24'}
    service.sources.redhat_cve.return_value = {'severity': 'critical'}
    service.vulners_client.get_exploits_for_cve.return_value = {'data': {'search': []}}

    report = await service.cve_report(' cve-2021-44228 ')

    assert report['cveId'] == 'CVE-2021-44228'
    assert report['nvd'] == nvd
    assert report['isKnownExploited'] is True
    assert report['redhat'] == {'severity': 'critical'}
    assert report['exploits'] == {'data': {'search': []}}
    assert 'errors' not in report
    service.sources.cve.assert_awaited_once_with('CVE-2021-44228', force=False)


@pytest.mark.asyncio
async def test_cve_report_keeps_going_when_one_source_fails(service):
    service.sources.cve.return_value = {'vulnerabilities': []}
    service.kev_client.check_cve.return_value = None
    service.sources.redhat_cve.side_effect = UpstreamUnavailable('redhat', 503)
    service.vulners_client.get_exploits_for_cve.return_value = {'data': {'search': []}}

    report = await service.cve_report('CVE-2024-0001')

    assert report['redhat'] is None
    assert report['isKnownExploited'] is False
    assert report['errors'] == {'redhat': UpstreamUnavailable('redhat', 503).to_dict()}


@pytest.mark.asyncio
async def test_cve_report_skips_exploits_without_vulners_key(service, config):
    config.vulners_api_key = None
    service.sources.cve.return_value = {'vulnerabilities': []}
    service.kev_client.check_cve.return_value = None
    service.sources.redhat_cve.return_value = None

    report = await service.cve_report('CVE-2024-0001')

    assert report['exploits'] is None
    service.vulners_client.get_exploits_for_cve.assert_not_called()


@pytest.mark.asyncio
async def test_unexpected_errors_are_not_collected(service):
    service.sources.cve.side_effect = RuntimeError("bug")
    service.kev_client.check_cve.return_value = None
    service.sources.redhat_cve.return_value = None

    with pytest.raises(RuntimeError):
        await service.cve_report('CVE-2024-0001')


@pytest.mark.asyncio
async def test_ip_reputation_adds_threatfox_matches(service):
    service.sources.abuseipdb_ip.return_value = {'data': {'abuseConfidenceScore': 100}}
    service.threatfox_client.search_ioc.return_value = {
        'query_status': 'ok',
        'data': [{'ioc': '198.51.100.7:443', 'threat_type': 'botnet_cc', 'malware_printable': 'Cobalt Strike'}],
    }

    result = await service.ip_reputation('198.51.100.7')

    assert result['abuseipdb'] == {'data': {'abuseConfidenceScore': 100}}
    assert result['threatfox']['iocs'][0]['malware_printable'] == 'Cobalt Strike'
    service.sources.abuseipdb_ip.assert_awaited_once_with('198.51.100.7', 90, force=False)
    service.threatfox_client.search_ioc.assert_awaited_once_with('198.51.100.7')


@pytest.mark.asyncio
async def test_ip_reputation_without_threatfox_key(service, config):
    config.threatfox_api_key = None
    service.sources.abuseipdb_ip.side_effect = ConfigurationError("abuseipdb API key not configured")

    result = await service.ip_reputation('198.51.100.7')

    assert result['abuseipdb'] is None
    assert result['threatfox'] is None
    assert list(result['errors']) == ['abuseipdb']
    service.threatfox_client.search_ioc.assert_not_called()


@pytest.mark.asyncio
async def test_refresh_all_fetches_nvd_first_and_reports_failures(service):
    order = []

    async def refresh(source):
        order.append(source)
        if source == 'mitre':
            raise UpstreamUnavailable('mitre', 500)
        return {}

    service.sources.refresh.side_effect = refresh

    result = await service.refresh_all()

    assert order[0] == 'nvd'
    assert sorted(order) == sorted(REFRESHABLE_SOURCES)
    assert result['refreshed'] == ['nvd', 'cisa', 'cvelist', 'redhat']
    assert list(result['errors']) == ['mitre']
