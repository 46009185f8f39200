# === FILE: site_tracer/cli.py ===
#!/usr/bin/env python3
"""
Command line entry point of the SiteTracer crawler.

Commands:
  crawl     Crawl a site and print/save the report
  sources   Show every page that links to a URL (needs a Redis store)
  config    Print the effective configuration

Global options:
  --config PATH       YAML/JSON config file (optional)
  --log-level LEVEL   Logging level (DEBUG, INFO, ...)
  --log-file PATH     Also log to this file
  --log-format FORMAT Log format string

crawl options:
  --max-depth, --concurrency, --timeout, --user-agent, --exclude (repeatable),
  --keep-data-images, --cleanup, --redis-url,
  --json PATH, --html PATH, --template DIR, --pretty, --events,
  --crawl-timeout SEC

Environment variables (WEBSITE_URL, MAX_DEPTH, REDIS_URL, ...) override the
config file; command line options override both.

Example:
  site_tracer crawl https://example.com --max-depth 2 --json crawl-report.json
"""
import asyncio
import json
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from site_tracer import __version__
from site_tracer.aggregator import CrawlReport
from site_tracer.config import build_config, env_overrides, read_config_file
from site_tracer.crawler.urls import UrlNormalizer
from site_tracer.engine import show_sources, start_crawl
from site_tracer.events import CrawlEvent
from site_tracer.logger import DEFAULT_FORMAT, init_logging
from site_tracer.report.html_report import render_html
from site_tracer.report.json_report import render_json
from site_tracer.store import StoreUnavailableError
from site_tracer.utils import styled_status, truncate_url

CONTEXT_SETTINGS = dict(help_option_names=["--help"])

CONFIG_ERRORS = (ValidationError, ValueError, TypeError, FileNotFoundError)


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def _load(ctx, **overrides):
    try:
        return build_config(ctx.obj['config_path'], **overrides)
    except CONFIG_ERRORS as e:
        print_error(f'Config error: {e}')


def _print_event(event: CrawlEvent) -> None:
    click.echo(json.dumps(event.to_dict(), ensure_ascii=False))


def _print_summary(report: CrawlReport) -> None:
    click.secho('\nCrawl complete! Summary:', fg='green', bold=True)
    click.echo(f'Total URLs checked: {report.total}')
    for name, count in report.types.items():
        click.echo(f'{name}: {count}')
    click.echo(f'\nInternal URLs: {report.internal}')
    click.echo(f'External URLs: {report.external}')

    if report.samples:
        click.secho('\nSample URLs with source counts:', bold=True)
    for code, rows in report.samples.items():
        internal = report.status_codes[code]['internal']
        click.echo(f'\nStatus {styled_status(code)} ({internal} internal URLs):')
        for row in rows:
            found_on = ''
            if row['source_count'] == 1:
                found_on = f" (found on: {truncate_url(row['first_source'], 50)})"
            elif row['source_count'] > 1:
                found_on = f" (found on {row['source_count']} pages)"
            click.echo(f"- {truncate_url(row['url'], 100)}{found_on}")
        if internal > len(rows):
            click.echo(f'  ... and {internal - len(rows)} more')


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='SiteTracer, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='YAML/JSON configuration file.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Logging level'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Log file (console only when omitted)'
)
@click.option(
    '--log-format', 'log_format',
    default=DEFAULT_FORMAT,
    show_default=True,
    help='Log format string'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """SiteTracer: crawl one site, check every link, CSS, script and image."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config_path


@cli.command('crawl', context_settings=CONTEXT_SETTINGS)
@click.argument('url', required=False)
@click.option('--max-depth', '-d', type=click.IntRange(min=0), default=None, help='Maximum crawl depth')
@click.option('--concurrency', '-n', type=click.IntRange(min=1), default=None, help='Parallel requests')
@click.option('--timeout', 'request_timeout', type=float, default=None, help='Per-request timeout (seconds)')
@click.option('--user-agent', default=None, help='User-Agent header')
@click.option('--exclude', '-x', 'exclude', multiple=True, help='Path prefix to skip (repeatable)')
@click.option('--keep-data-images', is_flag=True, help='Crawl data:image URLs instead of skipping them')
@click.option('--cleanup', is_flag=True, help='Delete results of earlier runs first')
@click.option('--redis-url', default=None, help='Redis URL (in-memory store when omitted)')
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Save the JSON report to a file'
)
@click.option(
    '--html', '-h', 'html_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Save the HTML report to a file'
)
@click.option(
    '--template', '-t', 'template_dir',
    default=None,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help='Directory with a report.html.j2 template'
)
@click.option('--pretty', is_flag=True, help='Indent the JSON report')
@click.option('--events', is_flag=True, help='Print progress events as JSON lines')
@click.option('--crawl-timeout', 'crawl_timeout', type=float, default=None, help='Timeout of the whole crawl (seconds)')
@click.pass_context
def crawl(ctx, url, max_depth, concurrency, request_timeout, user_agent, exclude,
          keep_data_images, cleanup, redis_url, json_output, html_output, template_dir,
          pretty, events, crawl_timeout):
    """Crawl URL (or the configured seed) and report every resource found."""
    cfg = _load(
        ctx,
        seed_url=url,
        max_depth=max_depth,
        concurrency=concurrency,
        request_timeout=request_timeout,
        user_agent=user_agent,
        exclude_patterns=list(exclude) or None,
        skip_data_images=False if keep_data_images else None,
        cleanup_prior_state=True if cleanup else None,
        redis_url=redis_url,
    )
    if not events:
        click.echo(f'Starting crawl for {cfg.seed_url}')

    listeners = [_print_event] if events else []
    try:
        if crawl_timeout:
            report = asyncio.run(
                asyncio.wait_for(start_crawl(cfg, listeners=listeners), timeout=crawl_timeout)
            )
        else:
            report = asyncio.run(start_crawl(cfg, listeners=listeners))
    except asyncio.TimeoutError:
        print_error(f'Crawl did not finish within {crawl_timeout} seconds')
    except StoreUnavailableError as e:
        print_error(f'Cannot connect to the result store: {e}')
    except Exception as e:
        print_error(f'Crawl failed: {e}')

    if not events:
        _print_summary(report)

    if json_output:
        try:
            saved_json = render_json(report, json_output, pretty=pretty)
            click.echo(f'JSON report: {saved_json}', err=events)
        except OSError as e:
            print_error(f'Error saving JSON: {e}')

    if html_output:
        try:
            saved_html = render_html(report, template_dir, html_output, seed_url=cfg.seed_url)
            click.echo(f'HTML report: {saved_html}', err=events)
        except Exception as e:
            print_error(f'Error saving HTML: {e}')

    if cfg.redis_url and not events:
        click.secho('\nTo view all source URLs for a specific URL:', bold=True)
        click.echo('  site_tracer sources "URL_HERE"')


@cli.command('sources', context_settings=CONTEXT_SETTINGS)
@click.argument('url')
@click.option('--redis-url', default=None, help='Redis URL of the crawl store')
@click.option('--prefix', 'key_prefix', default=None, help='Key prefix of the crawl store')
@click.pass_context
def sources(ctx, url, redis_url, key_prefix):
    """Show status, type and every source page of URL."""
    try:
        configured = read_config_file(ctx.obj['config_path']) if ctx.obj['config_path'] else {}
    except CONFIG_ERRORS as e:
        print_error(f'Config error: {e}')
    configured.update(env_overrides())
    redis_url = redis_url or configured.get('redis_url')
    key_prefix = key_prefix or configured.get('key_prefix') or 'tracer:'
    if not redis_url:
        print_error('Source lookup needs a persistent store: pass --redis-url or set REDIS_URL')

    # Stored keys are normalized URLs; relative input resolves against the configured seed.
    url = UrlNormalizer(configured.get('seed_url') or url).normalize(url) or url
    click.secho(f'Finding source pages for: {url}', bold=True)
    try:
        found = asyncio.run(show_sources(url, redis_url, key_prefix))
    except StoreUnavailableError as e:
        print_error(f'Cannot connect to the result store: {e}')

    if found is None:
        click.secho('URL not found in the crawl database', fg='yellow')
        return

    click.secho('\nURL information:', bold=True)
    click.echo(f'Status: {styled_status(found.status)}')
    click.echo(f'Type: {found.asset_type or "unknown"}')
    click.echo(f'Is internal: {"Yes" if found.is_inbound else "No"}')
    if found.is_redirect:
        click.echo(f'Redirects to: {found.final_url}')
    if found.error:
        click.echo(f'Error: {found.error}')

    click.secho(f'\nFound on {len(found.sources)} page(s):', bold=True)
    if not found.sources:
        click.echo('No source pages recorded (this might be the starting URL)')
    for page in found.sources:
        click.echo(f'- {page}')


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.argument('url', required=False)
@click.pass_context
def show_config(ctx, url):
    """Print the effective configuration as JSON."""
    cfg = _load(ctx, seed_url=url)
    click.echo(cfg.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
