"""Upstream health command"""

import click

from .common import emit, format_option, run_with_service


@click.command()
@format_option
@click.pass_context
def health(ctx, output_format):
    """Check NVD API reachability (5 second timeout)"""
    async def action(service):
        return await service.nvd_client.health_check()

    result = run_with_service(ctx, action)

    def table(data):
        line = f"NVD: {data['status'].upper()}"
        if 'httpStatus' in data:
            line += f" (HTTP {data['httpStatus']}, {data['responseTimeMs']} ms)"
        if 'error' in data:
            line += f" - {data['error']}"
        return line

    emit(result, output_format, None, table)
    if result['status'] == 'unhealthy':
        ctx.exit(1)
