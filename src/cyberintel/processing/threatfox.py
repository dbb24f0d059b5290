"""
ThreatFox response variants

ThreatFox answers every query with ``{query_status, data}`` where ``data``
takes a different shape per query. Responses are parsed by trying each variant
in order; a variant accepts a payload only when every element carries its
discriminating field. The first variant that accepts wins.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..core.exceptions import MalformedUpstreamShape

PROVIDER = "threatfox"


def _non_empty_mapping_of(data: Any, required: List[str]) -> bool:
    if not isinstance(data, dict) or not data:
        return False
    return all(isinstance(v, dict) and all(k in v for k in required) for v in data.values())


@dataclass
class ThreatFoxIocList:
    """IOC query results (get_iocs, search_ioc, search_hash, taginfo, malwareinfo, ioc)"""
    iocs: List[Dict[str, Any]] = field(default_factory=list)
    kind: str = "ioc_list"

    @classmethod
    def parse(cls, data: Any) -> Optional['ThreatFoxIocList']:
        # The single-IOC query returns one object instead of a list
        if isinstance(data, dict) and 'ioc' in data:
            return cls([data])
        if isinstance(data, list) and all(isinstance(i, dict) and 'ioc' in i for i in data):
            return cls(list(data))
        return None


@dataclass
class ThreatFoxMalwareList:
    """malware_list: malware family name -> printable name and aliases"""
    malware: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    kind: str = "malware_list"

    @classmethod
    def parse(cls, data: Any) -> Optional['ThreatFoxMalwareList']:
        if _non_empty_mapping_of(data, ['malware_printable']):
            return cls(dict(data))
        return None


@dataclass
class ThreatFoxTagList:
    """tag_list: tag -> first/last seen"""
    tags: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    kind: str = "tag_list"

    @classmethod
    def parse(cls, data: Any) -> Optional['ThreatFoxTagList']:
        if _non_empty_mapping_of(data, ['first_seen', 'last_seen']):
            return cls(dict(data))
        return None


@dataclass
class ThreatFoxIocTypes:
    """types: numeric id -> IOC type description"""
    types: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    kind: str = "ioc_types"

    @classmethod
    def parse(cls, data: Any) -> Optional['ThreatFoxIocTypes']:
        if _non_empty_mapping_of(data, ['ioc_type']):
            return cls(dict(data))
        return None


ThreatFoxResponse = Union[ThreatFoxIocList, ThreatFoxMalwareList, ThreatFoxTagList, ThreatFoxIocTypes]

VARIANTS = (ThreatFoxIocList, ThreatFoxMalwareList, ThreatFoxTagList, ThreatFoxIocTypes)


def parse_threatfox_response(payload: Any) -> ThreatFoxResponse:
    """Parse a ThreatFox envelope into the first variant that accepts its data"""
    if not isinstance(payload, dict) or 'query_status' not in payload:
        raise MalformedUpstreamShape(PROVIDER, "response has no query_status")

    status = payload['query_status']
    if status == 'no_result':
        return ThreatFoxIocList([])
    if status != 'ok':
        raise MalformedUpstreamShape(PROVIDER, f"query_status is {status!r}: {payload.get('data')}")

    data = payload.get('data')
    for variant in VARIANTS:
        parsed = variant.parse(data)
        if parsed is not None:
            return parsed

    raise MalformedUpstreamShape(PROVIDER, "data matches no known ThreatFox response shape")
