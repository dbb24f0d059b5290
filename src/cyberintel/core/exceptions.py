"""
Exception hierarchy for CyberIntel

Every error can render itself as the structured ``{error, details}`` object
returned to callers.
"""

from typing import Any, Dict, List, Optional


class CyberIntelError(Exception):
    """Base exception for CyberIntel operations"""

    def __init__(self, message: str, details: Optional[str] = None):
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'error': self.message}
        if self.details:
            data['details'] = self.details
        return data


class ConfigurationError(CyberIntelError):
    """Required configuration (usually an API key) is missing"""
    pass


class UpstreamUnavailable(CyberIntelError):
    """
    Provider HTTP call failed or returned a non-2xx status.

    Attributes:
        provider: Provider identifier (e.g. ``nvd``)
        status: HTTP status, or None for transport failures
    """

    def __init__(self, provider: str, status: Optional[int] = None, details: Optional[str] = None):
        self.provider = provider
        self.status = status
        if status is None:
            message = f"{provider} request failed"
        else:
            message = f"{provider} returned HTTP {status}"
        super().__init__(message, details)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data['provider'] = self.provider
        if self.status is not None:
            data['status'] = self.status
        return data


class RateLimitExceeded(CyberIntelError):
    """Local call budget is exhausted; no upstream call was made"""

    def __init__(self, provider: str, max_calls: int):
        self.provider = provider
        self.max_calls = max_calls
        super().__init__(
            f"{provider} rate limit exceeded",
            f"at most {max_calls} calls per 24 hours",
        )


class CacheCorrupt(CyberIntelError):
    """Stored cache entry could not be read or decoded"""

    def __init__(self, key: str, details: Optional[str] = None):
        self.key = key
        super().__init__(f"Cache entry {key} is unreadable", details)


class MalformedUpstreamShape(CyberIntelError):
    """Provider answered 2xx but the payload lacks expected fields"""

    def __init__(self, provider: str, details: str):
        self.provider = provider
        super().__init__(f"Unexpected {provider} response format", details)


class SpineUnavailable(CyberIntelError):
    """NVD base data is missing so no enriched record can be built"""

    def __init__(self, details: Optional[str] = None):
        super().__init__("NVD data is missing or invalid.", details)


class CVENotFound(CyberIntelError):
    """Neither the primary nor the secondary source could resolve a CVE"""

    def __init__(self, cve_id: str, errors: Optional[List[str]] = None):
        self.cve_id = cve_id
        self.errors = errors or []
        super().__init__(
            f"No valid data available for {cve_id} from NVD or Vulners",
            "; ".join(self.errors) or None,
        )
