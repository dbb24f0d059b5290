"""CLI commands package"""

from .abuse import blacklist, budget, ip
from .cache import cache
from .config import config_cmd
from .cve import cve, cwe, recent, vulners
from .enrich import enrich, trends
from .feeds import cvelist, mitre, redhat
from .health import health
from .kev import kev
from .news import news
from .search import search
from .threatfox import threatfox
from .version import version

__all__ = [
    'enrich', 'trends', 'cve', 'recent', 'kev', 'mitre', 'cvelist', 'redhat', 'ip', 'blacklist',
    'threatfox', 'news', 'cwe', 'vulners', 'search', 'health', 'cache', 'budget', 'config_cmd', 'version',
]
