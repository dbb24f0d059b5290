"""Version information command"""

import platform
import sys

import click

from ... import __version__


@click.command()
def version():
    """Show CyberIntel version and system information"""
    click.echo("CYBERINTEL THREAT INTELLIGENCE PLATFORM")
    click.echo("=" * 50)

    click.echo("\nVersion Information:")
    click.echo(f"   CyberIntel Version: {__version__}")

    click.echo("\nIntegrated Sources:")
    click.echo("   - NVD CVE 2.0 API (enrichment spine)")
    click.echo("   - CISA Known Exploited Vulnerabilities")
    click.echo("   - CVEProject cvelistV5 (CNA/ADP containers)")
    click.echo("   - MITRE ATT&CK Enterprise")
    click.echo("   - Red Hat Security Data API")
    click.echo("   - AbuseIPDB, ThreatFox, Vulners, NewsAPI, MITRE CWE")

    click.echo("\nSystem Information:")
    click.echo(f"   Python Version: {sys.version.split()[0]}")
    click.echo(f"   Platform: {platform.platform()}")
    click.echo(f"   Architecture: {platform.architecture()[0]}")

    import aiohttp
    import click as click_lib

    click.echo("\nDependencies:")
    click.echo(f"   - aiohttp: {aiohttp.__version__}")
    click.echo(f"   - click: {getattr(click_lib, '__version__', 'unknown')}")
