"""CyberIntel threat intelligence aggregation package"""

__version__ = "1.0.0"
__author__ = "CyberIntel Development Team"
__description__ = "Multi-source threat intelligence caching and CVE enrichment"
