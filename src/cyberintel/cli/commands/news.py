"""Security news command"""

import click

from ..formatters.table import TableFormatter
from .common import debug_option, emit, format_option, output_option, run_with_service


@click.command()
@click.option('--headlines', is_flag=True, help='Top technology headlines instead of the security feed')
@click.option('--country', default='us', help='Country for headlines')
@click.option('--page-size', type=int, help='Number of articles')
@format_option
@output_option
@debug_option
@click.pass_context
def news(ctx, headlines, country, page_size, output_format, output, debug):
    """Recent cybersecurity news from NewsAPI (requires NEWS_API_KEY)"""
    async def action(service):
        if headlines:
            return await service.news_client.get_top_headlines(country, page_size or 10)
        return await service.news_client.get_security_news(page_size or 20)

    result = run_with_service(ctx, action, debug)
    emit(result, output_format, output, lambda r: TableFormatter.format_rows(r.get('articles', []), [
        ('PUBLISHED', 'publishedAt', 20), ('SOURCE', 'source.name', 20), ('TITLE', 'title', 70),
    ]))
