"""Shared fixtures: a fake aiohttp session, zero-delay config and in-memory stores"""

import json
from typing import Any, Callable, Dict, List, Optional, Union

import pytest

from cyberintel.cache.rate_limiter import RateLimiter
from cyberintel.cache.store import CacheStore, InMemoryStore
from cyberintel.config.settings import CyberIntelConfig


class FakeResponse:
    def __init__(self, status: int = 200, payload: Any = None, text: Optional[str] = None):
        self.status = status
        self._payload = payload
        self._text = text if text is not None else json.dumps(payload)

    async def json(self, content_type=None):
        if self._payload is None:
            return json.loads(self._text)
        return self._payload

    async def text(self):
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


Handler = Union[FakeResponse, Exception, Callable[[str, str, Dict[str, Any]], FakeResponse]]


class FakeSession:
    """
    Stand-in for aiohttp.ClientSession.

    Responses are consumed in order from ``responses``; an Exception entry is
    raised instead of returning. Every call is recorded in ``calls``.
    """

    def __init__(self, responses: Optional[List[Handler]] = None):
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []

    def _next(self, method: str, url: str, kwargs: Dict[str, Any]) -> FakeResponse:
        self.calls.append({'method': method, 'url': url, **kwargs})
        if not self.responses:
            raise AssertionError(f"Unexpected {method} {url}")
        handler = self.responses.pop(0)
        if isinstance(handler, Exception):
            raise handler
        if callable(handler):
            return handler(method, url, kwargs)
        return handler

    def request(self, method: str, url: str, **kwargs) -> FakeResponse:
        return self._next(method, url, kwargs)

    def get(self, url: str, **kwargs) -> FakeResponse:
        return self._next('GET', url, kwargs)

    async def close(self):
        pass


@pytest.fixture
def config():
    return CyberIntelConfig(
        nvd_api_key="test-nvd-key",
        vulners_api_key="test-vulners-key",
        abuseipdb_api_key="test-abuse-key",
        threatfox_api_key="test-threatfox-key",
        news_api_key="test-news-key",
        nvd_delay_with_key=0.0,
        nvd_delay_without_key=0.0,
        vulners_delay=0.0,
        abuseipdb_delay=0.0,
        redhat_delay=0.0,
    )


@pytest.fixture
def clock():
    """Mutable epoch-seconds clock; set ``clock.now`` to move time"""
    class Clock:
        now = 1_700_000_000.0

        def __call__(self):
            return self.now

    return Clock()


@pytest.fixture
def memory_store(clock):
    return InMemoryStore(clock=clock)


@pytest.fixture
def cache(memory_store, clock):
    return CacheStore(memory_store, clock=clock)


@pytest.fixture
def rate_limiter(memory_store, clock):
    return RateLimiter(memory_store, clock=lambda: int(clock() * 1000))


def nvd_item(cve_id: str, description: str = "", published: str = "2024-01-15T10:00:00.000",
             score: Optional[float] = None, severity: str = "HIGH") -> Dict[str, Any]:
    """One NVD ``vulnerabilities[]`` item"""
    cve: Dict[str, Any] = {
        'id': cve_id,
        'published': published,
        'lastModified': published,
        'descriptions': [{'lang': 'en', 'value': description}],
        'metrics': {},
    }
    if score is not None:
        cve['metrics']['cvssMetricV31'] = [{
            'cvssData': {'baseScore': score, 'baseSeverity': severity, 'vectorString': 'CVSS:3.1/AV:N'},
        }]
    return {'cve': cve}
