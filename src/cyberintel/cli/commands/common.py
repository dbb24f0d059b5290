"""Helpers shared by CLI commands"""

import asyncio
import logging
import sys
from typing import Any, Awaitable, Callable, Optional

import click

from ...config.settings import CyberIntelConfig
from ...core.exceptions import CyberIntelError
from ...processing.processor import IntelService
from ..formatters.json import JSONFormatter

format_option = click.option('--format', 'output_format', type=click.Choice(['json', 'table']),
                             default='table', help='Output format')
output_option = click.option('--output', '-o', help='Output file path (JSON)')
debug_option = click.option('--debug', is_flag=True, help='Enable debug logging for this command')
force_option = click.option('--force', is_flag=True, help='Ignore cached data and fetch from upstream')


def enable_debug(config: CyberIntelConfig):
    """Switch the root logger to DEBUG for this command"""
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        root_logger.addHandler(handler)

    for handler in root_logger.handlers:
        handler.setLevel(logging.DEBUG)

    config.log_level = 'DEBUG'


def run_with_service(ctx: click.Context, action: Callable[[IntelService], Awaitable[Any]],
                     debug: bool = False) -> Any:
    """
    Run ``action`` inside an IntelService and return its result.

    CyberIntelError is printed as its ``{error, details}`` JSON on stderr and
    the command exits with status 1.
    """
    config: CyberIntelConfig = ctx.obj['config']
    if debug or config.log_level.upper() == 'DEBUG':
        enable_debug(config)

    async def process():
        async with IntelService(config) as service:
            return await action(service)

    try:
        return asyncio.run(process())
    except CyberIntelError as e:
        logging.debug(f"Command failed: {e!r}")
        click.echo(JSONFormatter.format(e.to_dict()), err=True)
        ctx.exit(1)


def emit(data: Any, output_format: str, output: Optional[str] = None,
         table: Optional[Callable[[Any], str]] = None):
    """Write JSON to a file, or print JSON / table text to stdout"""
    if output:
        JSONFormatter.save(data, output)
        click.echo(f"Results saved to {output}")
        return

    if output_format == 'table' and table is not None:
        click.echo(table(data))
    else:
        click.echo(JSONFormatter.format(data))
