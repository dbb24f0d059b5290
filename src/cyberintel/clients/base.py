"""Shared request handling for provider clients"""

import asyncio
import logging
from typing import Any, Dict, Optional

from aiohttp import ClientError, ClientSession, ClientTimeout

from ..config.settings import CyberIntelConfig
from ..core.exceptions import ConfigurationError, UpstreamUnavailable

USER_AGENT = 'CyberIntel-Platform/1.0'


class BaseClient:
    """
    Single-attempt JSON client.

    Non-2xx responses and transport failures surface as UpstreamUnavailable
    carrying the provider name and status. There is no retry. ``pacing_delay``
    seconds are slept after every call so the next caller stays under the
    provider's published rate limit.
    """

    provider = "upstream"

    def __init__(self, session: ClientSession, config: CyberIntelConfig):
        self.session = session
        self.config = config

    @property
    def pacing_delay(self) -> float:
        return 0.0

    def _default_headers(self) -> Dict[str, str]:
        return {'User-Agent': USER_AGENT, 'Accept': 'application/json'}

    def _require_key(self, key: Optional[str], env_name: str) -> str:
        if not key:
            raise ConfigurationError(f"{self.provider} API key not configured", f"set {env_name}")
        return key

    async def _request_json(self, method: str, url: str, *,
                            params: Optional[Dict[str, Any]] = None,
                            json_body: Optional[Any] = None,
                            headers: Optional[Dict[str, str]] = None,
                            timeout: Optional[ClientTimeout] = None) -> Any:
        request_headers = self._default_headers()
        if headers:
            request_headers.update(headers)

        kwargs: Dict[str, Any] = {'headers': request_headers}
        if params is not None:
            kwargs['params'] = params
        if json_body is not None:
            kwargs['json'] = json_body
        if timeout is not None:
            kwargs['timeout'] = timeout

        try:
            logging.debug(f"{self.provider}: {method} {url}")
            async with self.session.request(method, url, **kwargs) as response:
                logging.debug(f"{self.provider} response status: {response.status}")

                if not 200 <= response.status < 300:
                    error_text = await response.text()
                    logging.warning(f"{self.provider} API error {response.status}: {error_text[:200]}")
                    raise UpstreamUnavailable(self.provider, response.status, error_text[:200] or None)

                data = await response.json(content_type=None)

        except asyncio.TimeoutError as e:
            logging.error(f"Timeout calling {self.provider}")
            raise UpstreamUnavailable(self.provider, None, "request timed out") from e
        except ClientError as e:
            logging.error(f"Network error calling {self.provider}: {e}")
            raise UpstreamUnavailable(self.provider, None, str(e)) from e
        except ValueError as e:
            raise UpstreamUnavailable(self.provider, None, f"invalid JSON: {e}") from e
        finally:
            if self.pacing_delay > 0:
                await asyncio.sleep(self.pacing_delay)

        return data

    async def _get_json(self, url: str, **kwargs) -> Any:
        return await self._request_json('GET', url, **kwargs)

    async def _post_json(self, url: str, body: Any, **kwargs) -> Any:
        return await self._request_json('POST', url, json_body=body, **kwargs)
