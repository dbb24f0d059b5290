"""NewsAPI client for security headlines"""

from typing import Any, Dict

from .base import BaseClient

SECURITY_QUERY = '(cybersecurity OR "cyber security" OR "data breach" OR vulnerability OR ransomware)'
HEADLINE_QUERY = '(cybersecurity OR "cyber security" OR "data breach")'


class NewsClient(BaseClient):
    """NewsAPI v2 client"""

    provider = "newsapi"

    def _default_headers(self) -> Dict[str, str]:
        headers = super()._default_headers()
        headers['X-Api-Key'] = self._require_key(self.config.news_api_key, 'NEWS_API_KEY')
        return headers

    def _url(self, path: str) -> str:
        return f"{self.config.newsapi_base_url.rstrip('/')}/{path}"

    async def get_security_news(self, page_size: int = 20) -> Dict[str, Any]:
        return await self._get_json(self._url('everything'), params={
            'q': SECURITY_QUERY,
            'language': 'en',
            'sortBy': 'publishedAt',
            'pageSize': str(page_size),
        })

    async def get_top_headlines(self, country: str = 'us', page_size: int = 10) -> Dict[str, Any]:
        return await self._get_json(self._url('top-headlines'), params={
            'category': 'technology',
            'q': HEADLINE_QUERY,
            'country': country,
            'pageSize': str(page_size),
        })
