"""CyberIntel CLI Main Entry Point"""

import logging

import click

from ..config.settings import CyberIntelConfig
from .commands import (
    blacklist, budget, cache, config_cmd, cve, cvelist, cwe, enrich, health, ip, kev, mitre, news,
    recent, redhat, search, threatfox, trends, version, vulners,
)


def setup_logging(level: str):
    """Setup logging configuration"""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


@click.group()
@click.option('--log-level', default=None, help='Logging level (default from CYBERINTEL_LOG_LEVEL)')
@click.option('--env-file', help='Path to a .env file')
@click.pass_context
def cli(ctx, log_level, env_file):
    """CyberIntel threat intelligence CLI

    Aggregates NVD, CISA KEV, cvelistV5, MITRE ATT&CK, Red Hat, AbuseIPDB,
    ThreatFox, Vulners and NewsAPI into a local cache and joins them into
    enriched vulnerability records.
    """
    config = CyberIntelConfig.from_env(env_file)
    if log_level:
        config.log_level = log_level
    setup_logging(config.log_level)

    ctx.ensure_object(dict)
    ctx.obj['config'] = config


# Register commands
cli.add_command(enrich)
cli.add_command(trends)
cli.add_command(cve)
cli.add_command(recent)
cli.add_command(kev)
cli.add_command(mitre)
cli.add_command(cvelist)
cli.add_command(redhat)
cli.add_command(ip)
cli.add_command(blacklist)
cli.add_command(threatfox)
cli.add_command(news)
cli.add_command(cwe)
cli.add_command(vulners)
cli.add_command(search)
cli.add_command(health)
cli.add_command(cache)
cli.add_command(budget)
cli.add_command(config_cmd, name='config')
cli.add_command(version)


if __name__ == '__main__':
    cli()
