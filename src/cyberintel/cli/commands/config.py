"""Configuration management commands"""

import os

import click

from ...config.settings import CyberIntelConfig

API_KEY_VARS = ['NVD_API_KEY', 'VULNERS_API_KEY', 'ABUSEIPDB_API_KEY', 'THREATFOX_API_KEY', 'NEWS_API_KEY']
SETTING_VARS = [
    'CYBERINTEL_DATABASE_DIR',
    'CYBERINTEL_NVD_BASE_URL',
    'CYBERINTEL_KEV_URL',
    'CYBERINTEL_MAX_CALLS',
    'CYBERINTEL_MAX_CONCURRENT',
    'CYBERINTEL_RECENT_DAYS',
    'CYBERINTEL_ENRICH_FETCH_MISSING',
    'CYBERINTEL_LOG_LEVEL',
]


def _mask(value):
    if not value:
        return "Not Set"
    return f"{value[:8]}..." if len(value) > 8 else "***"


@click.command('config')
@click.option('--show-env', is_flag=True, help='Show all environment variables')
@click.option('--validate', is_flag=True, help='Validate configuration')
@click.option('--env-file', help='Specify custom .env file path')
def config_cmd(show_env, validate, env_file):
    """Show current CyberIntel configuration

    Example:
        cyberintel config
        cyberintel config --show-env
        cyberintel config --validate
        cyberintel config --env-file /path/to/custom.env
    """
    config = CyberIntelConfig.from_env(env_file)

    click.echo("CYBERINTEL CONFIGURATION")
    click.echo("=" * 50)

    click.echo("\nAPI Keys:")
    click.echo(f"   NVD: {_mask(config.nvd_api_key)}")
    click.echo(f"   Vulners: {_mask(config.vulners_api_key)}")
    click.echo(f"   AbuseIPDB: {_mask(config.abuseipdb_api_key)}")
    click.echo(f"   ThreatFox: {_mask(config.threatfox_api_key)}")
    click.echo(f"   NewsAPI: {_mask(config.news_api_key)}")

    click.echo("\nStorage and Limits:")
    click.echo(f"   Database Directory: {config.database_path.resolve()}")
    click.echo(f"   AbuseIPDB Calls per 24h: {config.abuseipdb_max_calls}")
    click.echo(f"   NVD Pacing Delay: {config.nvd_delay}s")
    click.echo(f"   Max Concurrent: {config.max_concurrent_requests}")
    click.echo(f"   Recent Window: {config.recent_days} days")
    click.echo(f"   Enrichment Fetches Missing Sources: {config.enrich_fetch_missing}")
    click.echo(f"   Log Level: {config.log_level}")

    click.echo("\nAPI Endpoints:")
    click.echo(f"   NVD: {config.nvd_base_url}")
    click.echo(f"   KEV: {config.kev_url}")
    click.echo(f"   MITRE ATT&CK: {config.mitre_attack_url}")
    click.echo(f"   cvelistV5: {config.cvelist_delta_url}")
    click.echo(f"   Red Hat: {config.redhat_base_url}")

    if show_env:
        click.echo("\nEnvironment Variables:")
        for var in API_KEY_VARS:
            click.echo(f"   {var}: {_mask(os.getenv(var))}")
        for var in SETTING_VARS:
            click.echo(f"   {var}: {os.getenv(var) or 'Not Set'}")

    if validate:
        click.echo("\nConfiguration Validation:")
        issues = config.validate()

        if not issues:
            click.echo("   Configuration looks good!")
        else:
            click.echo("   Issues found:")
            for issue in issues:
                click.echo(f"      - {issue}")

    click.echo("\nQuick Setup:")
    click.echo("   1. Get an NVD API key: https://nvd.nist.gov/developers/request-an-api-key")
    click.echo("   2. Create .env file: echo 'NVD_API_KEY=your_key' > .env")
    click.echo("   3. Add optional keys: VULNERS_API_KEY, ABUSEIPDB_API_KEY, THREATFOX_API_KEY, NEWS_API_KEY")
    click.echo("   4. Test with: cyberintel cve CVE-2021-44228")
