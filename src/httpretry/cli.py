"""CLI interface for httpretry"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
import requests

from httpretry.domain.errors import HTTPRetryError
from httpretry.domain.models.context import RequestContext
from httpretry.domain.models.request import BodyType
from httpretry.infrastructure.config.config_manager import ConfigManager
from httpretry.infrastructure.http_client import Client

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,
    )
    # urllib3 is noisy at DEBUG and its lines are not about retries
    logging.getLogger("urllib3").setLevel(logging.INFO if verbose else logging.WARNING)


def _die(message: str, verbose: bool = False, exc: Optional[Exception] = None) -> None:
    """Exit with a user-friendly error message"""
    if exc is not None:
        logger.error(message, exc_info=verbose)
    else:
        logger.error(message)
    raise click.ClickException(message)


def _create_client(ctx: click.Context) -> Client:
    """Create client from config file, environment and CLI overrides"""
    config_manager = ConfigManager(config_path=ctx.obj.get("config_path"))
    client = Client.from_config(config_manager.config)

    overrides = {
        "retry_max": ctx.obj.get("retry_max"),
        "retry_wait_min": ctx.obj.get("wait_min"),
        "retry_wait_max": ctx.obj.get("wait_max"),
    }
    for field, value in overrides.items():
        if value is not None:
            setattr(client.config, field, value)
    if ctx.obj.get("timeout") is not None:
        client.timeout = ctx.obj["timeout"]
    return client


def _context(ctx: click.Context) -> RequestContext:
    deadline = ctx.obj.get("deadline")
    if deadline is None:
        return RequestContext.background()
    return RequestContext.with_timeout(deadline)


def _output_response(response: requests.Response, include: bool, no_fail: bool) -> None:
    """Print response (optionally with status line and headers) to stdout"""
    if include:
        click.echo(f"HTTP {response.status_code} {response.reason}")
        for name, value in response.headers.items():
            click.echo(f"{name}: {value}")
        click.echo("")
    click.echo(response.content, nl=False)
    response.close()

    if response.status_code >= 400 and not no_fail:
        click.echo(f"\nERROR: server responded with {response.status_code}", err=True)
        sys.exit(1)


def _execute(ctx: click.Context, method: str, url: str, body: BodyType, content_type: Optional[str]) -> None:
    verbose = ctx.obj.get("verbose", False)
    try:
        with _create_client(ctx) as client:
            request = client.new_request(method, url, body, context=_context(ctx))
            if content_type:
                request.headers["Content-Type"] = content_type
            response = client.do(request)
            _output_response(response, ctx.obj.get("include", False), ctx.obj.get("no_fail", False))
    except click.ClickException:
        raise
    except (HTTPRetryError, requests.exceptions.RequestException) as e:
        _die(str(e), verbose=verbose, exc=e)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose (DEBUG) logging, shows retry decisions")
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to .httpretry.yml config file",
)
@click.option("--retry-max", type=click.IntRange(min=0), help="Maximum number of retries. Overrides config.")
@click.option("--wait-min", type=click.FloatRange(min=0.0), help="Minimum wait between attempts (seconds).")
@click.option("--wait-max", type=click.FloatRange(min=0.0), help="Maximum wait between attempts (seconds).")
@click.option("--timeout", type=click.FloatRange(min=0.0, min_open=True), help="Per-attempt timeout (seconds).")
@click.option("--deadline", type=click.FloatRange(min=0.0), help="Overall deadline for the call (seconds).")
@click.option("--include", "-i", is_flag=True, help="Print status line and response headers")
@click.option("--no-fail", is_flag=True, help="Exit 0 even when the final status is >= 400")
@click.pass_context
def cli(
    ctx,
    verbose: bool,
    config: Path,
    retry_max: Optional[int],
    wait_min: Optional[float],
    wait_max: Optional[float],
    timeout: Optional[float],
    deadline: Optional[float],
    include: bool,
    no_fail: bool,
):
    """httpretry - HTTP requests with automatic retries and backoff"""
    ctx.ensure_object(dict)
    setup_logging(verbose)
    ctx.obj.update(
        config_path=config,
        verbose=verbose,
        retry_max=retry_max,
        wait_min=wait_min,
        wait_max=wait_max,
        timeout=timeout,
        deadline=deadline,
        include=include,
        no_fail=no_fail,
    )


@cli.command()
@click.argument("url", type=str)
@click.pass_context
def get(ctx, url: str):
    """Send a GET request.

    URL: Absolute target URL
    """
    _execute(ctx, "GET", url, None, None)


@cli.command()
@click.argument("url", type=str)
@click.option("--content-type", "-t", default="application/octet-stream", show_default=True, help="Content-Type header")
@click.option("--data", "-d", type=str, help="Request body as text")
@click.option(
    "--data-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Read request body from file (replayed on every attempt)",
)
@click.pass_context
def post(ctx, url: str, content_type: str, data: Optional[str], data_file: Optional[Path]):
    """Send a POST request.

    URL: Absolute target URL
    """
    if data is not None and data_file is not None:
        raise click.UsageError("--data and --data-file are mutually exclusive")

    if data_file is not None:
        with open(data_file, "rb") as f:
            _execute(ctx, "POST", url, f, content_type)
    else:
        body = data.encode("utf-8") if data is not None else None
        _execute(ctx, "POST", url, body, content_type)


def main():
    """Main entry point"""
    cli(obj={})


if __name__ == "__main__":
    main()
