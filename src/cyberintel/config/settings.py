"""CyberIntel Configuration Management with .env file support"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class CyberIntelConfig:
    """CyberIntel System Configuration"""
    nvd_api_key: Optional[str] = None
    vulners_api_key: Optional[str] = None
    abuseipdb_api_key: Optional[str] = None
    threatfox_api_key: Optional[str] = None
    news_api_key: Optional[str] = None

    nvd_base_url: str = "https://services.nvd.nist.gov/rest/json/cves/2.0"
    kev_url: str = "https://www.cisa.gov/sites/default/files/feeds/known_exploited_vulnerabilities.json"
    mitre_attack_url: str = "https://raw.githubusercontent.com/mitre/cti/master/enterprise-attack/enterprise-attack.json"
    cvelist_delta_url: str = "https://raw.githubusercontent.com/CVEProject/cvelistV5/main/cves/deltaLog.json"
    redhat_base_url: str = "https://access.redhat.com/hydra/rest/securitydata/cve"
    vulners_base_url: str = "https://vulners.com/api/v3/"
    abuseipdb_base_url: str = "https://api.abuseipdb.com/api/v2/"
    threatfox_api_url: str = "https://threatfox-api.abuse.ch/api/v1/"
    newsapi_base_url: str = "https://newsapi.org/v2/"
    cwe_api_url: str = "https://cwe-api.mitre.org/api/v1"

    database_dir: str = "database"

    # Pacing delays (seconds) applied after each upstream call
    nvd_delay_with_key: float = 0.6
    nvd_delay_without_key: float = 6.0
    vulners_delay: float = 1.0
    abuseipdb_delay: float = 1.0
    redhat_delay: float = 1.0

    abuseipdb_max_calls: int = 4
    max_concurrent_requests: int = 10
    kev_memory_ttl: int = 3600
    recent_days: int = 7
    enrich_fetch_missing: bool = True
    log_level: str = "INFO"

    @property
    def nvd_delay(self) -> float:
        """Delay between NVD calls, shorter when an API key is configured"""
        return self.nvd_delay_with_key if self.nvd_api_key else self.nvd_delay_without_key

    @property
    def database_path(self) -> Path:
        return Path(self.database_dir)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> 'CyberIntelConfig':
        """Load configuration from environment variables and .env file"""

        if env_file:
            env_path = Path(env_file)
        else:
            # Look for .env in current directory and up to 3 parent directories
            current_dir = Path.cwd()
            env_path = None
            for path in [current_dir] + list(current_dir.parents)[:3]:
                potential_env = path / ".env"
                if potential_env.exists():
                    env_path = potential_env
                    break

        if env_path and env_path.exists():
            load_dotenv(env_path)
            logging.debug(f"Loaded configuration from {env_path}")
        elif env_file:
            logging.warning(f"Specified .env file not found: {env_file}")

        defaults = cls()
        return cls(
            nvd_api_key=os.getenv('NVD_API_KEY'),
            vulners_api_key=os.getenv('VULNERS_API_KEY'),
            abuseipdb_api_key=os.getenv('ABUSEIPDB_API_KEY'),
            threatfox_api_key=os.getenv('THREATFOX_API_KEY'),
            news_api_key=os.getenv('NEWS_API_KEY'),
            nvd_base_url=os.getenv('CYBERINTEL_NVD_BASE_URL', defaults.nvd_base_url),
            kev_url=os.getenv('CYBERINTEL_KEV_URL', defaults.kev_url),
            database_dir=os.getenv('CYBERINTEL_DATABASE_DIR', defaults.database_dir),
            abuseipdb_max_calls=int(os.getenv('CYBERINTEL_MAX_CALLS', str(defaults.abuseipdb_max_calls))),
            max_concurrent_requests=int(os.getenv('CYBERINTEL_MAX_CONCURRENT',
                                                  str(defaults.max_concurrent_requests))),
            recent_days=int(os.getenv('CYBERINTEL_RECENT_DAYS', str(defaults.recent_days))),
            enrich_fetch_missing=_env_bool('CYBERINTEL_ENRICH_FETCH_MISSING', defaults.enrich_fetch_missing),
            log_level=os.getenv('CYBERINTEL_LOG_LEVEL', 'INFO'),
        )

    def validate(self) -> list[str]:
        """Validate configuration and return list of issues"""
        issues = []

        if not self.nvd_api_key:
            issues.append("NVD API key not set - requests will be paced at 6s intervals")

        if not self.abuseipdb_api_key:
            issues.append("AbuseIPDB API key not set - IP reputation and blacklist unavailable")

        if not self.vulners_api_key:
            issues.append("Vulners API key not set - CVE lookups have no fallback source")

        if not self.threatfox_api_key:
            issues.append("ThreatFox API key not set - IOC queries unavailable")

        if not self.news_api_key:
            issues.append("News API key not set - security news unavailable")

        if self.abuseipdb_max_calls <= 0:
            issues.append("AbuseIPDB call budget must be positive")

        if self.max_concurrent_requests <= 0:
            issues.append("Max concurrent requests must be positive")

        if self.recent_days <= 0:
            issues.append("Recent days window must be positive")

        return issues
