"""Term search over cached source files"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..cache.store import CacheStore
from ..core.exceptions import CacheCorrupt
from .enrichment import EnrichmentEngine

SEARCHABLE_FIELDS = {
    'nvd': ['cve.id', 'cve.descriptions', 'cve.configurations'],
    'redhat': ['title', 'cve_id', 'affected_packages', 'details'],
    'cisa': ['cveID', 'vulnerabilityName', 'vendorProject', 'product', 'shortDescription'],
    'mitre': ['id', 'name', 'tactic', 'description', 'platforms'],
    'ioc': ['ioc', 'threat_type', 'malware_printable'],
}
DEFAULT_FIELDS = ['id', 'description']

THREAT_SOURCE = 'threat'

DATA_ARRAY_FIELDS = ['vulnerabilities', 'advisories', 'techniques', 'data']


def _lookup(item: Any, path: str) -> Any:
    value = item
    for part in path.split('.'):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _field_matches(item: Dict[str, Any], field: str, term: str) -> bool:
    if field == 'cve.descriptions':
        descriptions = _lookup(item, field) or []
        return any(term in str(d.get('value', '')).lower() for d in descriptions if isinstance(d, dict))

    if field == 'cve.configurations':
        for config in _lookup(item, field) or []:
            for node in config.get('nodes') or []:
                for cpe in node.get('cpeMatch') or []:
                    if term in str(cpe.get('criteria', '')).lower():
                        return True
        return False

    value = _lookup(item, field)
    if isinstance(value, list):
        return any(isinstance(v, str) and term in v.lower() for v in value)
    return isinstance(value, str) and term in value.lower()


def search_items(items: List[Dict[str, Any]], query: str, fields: List[str]) -> List[Dict[str, Any]]:
    """Items where every whitespace-separated term matches at least one field"""
    terms = query.lower().split()
    return [item for item in items
            if isinstance(item, dict) and all(any(_field_matches(item, f, t) for f in fields) for t in terms)]


def _data_array(payload: Any) -> List[Any]:
    if isinstance(payload, dict):
        for field in DATA_ARRAY_FIELDS:
            if isinstance(payload.get(field), list):
                return payload[field]
    return []


async def search_cached(cache: CacheStore, source: str, query: str = "",
                        fetch: Optional[Callable[[], Awaitable[Any]]] = None) -> Dict[str, Any]:
    """
    Search every cached file whose key starts with ``source``.

    Without a query all items are returned. Unreadable files are skipped.
    When nothing is cached and ``fetch`` is given, it is awaited once to
    populate the cache before searching.
    """
    pattern = f"{source}*.json"
    cached_keys = await cache.keys(pattern)
    if not cached_keys and fetch is not None:
        logging.info(f"No cached {source} data, fetching from upstream")
        await fetch()
        cached_keys = await cache.keys(pattern)

    items: List[Any] = []
    for key in cached_keys:
        try:
            entry = await cache.read_entry(key)
        except CacheCorrupt as e:
            logging.warning(f"Skipping unreadable cache file {key}: {e.details}")
            continue
        if entry is not None:
            items.extend(_data_array(entry.payload))

    if query:
        items = search_items(items, query, SEARCHABLE_FIELDS.get(source, DEFAULT_FIELDS))

    logging.info(f"Search over {source} cache returned {len(items)} items")
    return {'data': items, 'timestamp': datetime.now(timezone.utc).isoformat()}


async def search_threats(engine: EnrichmentEngine, query: str = "") -> Dict[str, Any]:
    """Enriched records whose JSON text contains ``query`` (case-insensitive)"""
    enriched = await engine.enrich()
    needle = query.lower()
    matches = [record for record in enriched['vulnerabilities']
               if needle in json.dumps(record, ensure_ascii=False).lower()]

    logging.info(f"Threat search matched {len(matches)} of {enriched['vulnerabilityCount']} records")
    result: Dict[str, Any] = {'data': matches, 'timestamp': datetime.now(timezone.utc).isoformat()}
    if enriched.get('warning'):
        result['warning'] = enriched['warning']
    return result
