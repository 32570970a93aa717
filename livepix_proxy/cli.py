"""cli.py – LivePix Proxy Command-Line Interface

This module exposes a Click-based CLI for pulling LivePix donations either
*locally* (calling LivePix directly through the in-process adapter and
pipeline) or *remotely* via HTTP calls to a running proxy server.

Usage examples
--------------
# Local execution – talk to LivePix in-process
$ python -m livepix_proxy.cli token
$ python -m livepix_proxy.cli messages --token TOKEN --start-date 2024-01-10

# Remote execution – go through a deployed proxy
$ python -m livepix_proxy.cli --api-url http://localhost:3001 messages --token TOKEN

Environment variables
---------------------
LIVEPIX_PROXY_URL  If set, acts like the --api-url option (handy for scripts).
"""

from __future__ import annotations

from typing import Any, Dict, Optional
import json

import click
import requests

from livepix_proxy import cloud_logging as logging
from livepix_proxy.helper_functions import resolve_client_credentials
from livepix_proxy.inputs import livepix
from livepix_proxy.pipeline import MAX_PAGES, PAGE_SIZE, InvalidDateRange, aggregate_messages

# ---------------------------------------------------------------------------
# HTTP helper (remote execution)
# ---------------------------------------------------------------------------


def _call_proxy(method: str, url: str, **kwargs: Any) -> Any:
    """Send a request to the proxy and return the decoded JSON response."""

    logging.log_text(f"{method} {url}", severity="DEBUG")
    try:
        response = requests.request(method, url, timeout=60, **kwargs)
    except requests.RequestException as exc:
        raise click.ClickException(f"HTTP call failed: {exc}") from exc

    try:
        body = response.json()
    except ValueError:
        body = {"error": response.text}
    if not response.ok:
        raise click.ClickException(f"Proxy responded with HTTP {response.status_code}: {body}")
    return body


def _echo_json(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False))


# ---------------------------------------------------------------------------
# Click entry-point
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--api-url",
    envvar="LIVEPIX_PROXY_URL",
    default=None,
    metavar="URL",
    help="If provided, commands are forwarded to the proxy at this URL "
    "instead of calling LivePix directly.",
)
@click.pass_context
def cli(ctx: click.Context, api_url: Optional[str]):
    """LivePix proxy command-line interface."""

    ctx.obj = {"api_url": api_url}


# ---------------------------------------------------------------------------
# `token` command – client-credentials exchange
# ---------------------------------------------------------------------------


@cli.command("token", help="Obtain a LivePix access token.")
@click.option("--client-id", default=None, help="OAuth client id (defaults to LIVEPIX_CLIENT_ID).")
@click.option(
    "--client-secret",
    default=None,
    help="OAuth client secret (defaults to LIVEPIX_CLIENT_SECRET).",
)
@click.pass_context
def token_command(
    ctx: click.Context,
    client_id: Optional[str],
    client_secret: Optional[str],
) -> None:
    """Print the token response as JSON."""

    api_url: Optional[str] = ctx.obj.get("api_url") if ctx.obj else None
    body: Dict[str, Any] = {}
    if client_id and client_secret:
        body = {"clientId": client_id, "clientSecret": client_secret}

    if api_url:
        _echo_json(_call_proxy("POST", api_url.rstrip("/") + "/api/livepix/token", json=body))
        return

    resolved_id, resolved_secret = resolve_client_credentials(body)
    if not resolved_id or not resolved_secret:
        raise click.UsageError(
            "Client credentials missing – pass --client-id/--client-secret or set "
            "LIVEPIX_CLIENT_ID and LIVEPIX_CLIENT_SECRET."
        )
    try:
        _echo_json(livepix.request_token(resolved_id, resolved_secret))
    except livepix.UpstreamError as exc:
        raise click.ClickException(f"LivePix responded with HTTP {exc.status_code}: {exc.body}") from exc


# ---------------------------------------------------------------------------
# `messages` command – aggregated donations
# ---------------------------------------------------------------------------


@cli.command("messages", help="List donation messages across all pages.")
@click.option("--token", "access_token", required=True, envvar="LIVEPIX_ACCESS_TOKEN", help="Bearer token.")
@click.option("--start-date", default=None, metavar="YYYY-MM-DD", help="Inclusive start date (UTC-03:00).")
@click.option("--end-date", default=None, metavar="YYYY-MM-DD", help="Inclusive end date (UTC-03:00).")
@click.option(
    "--max-pages",
    type=click.IntRange(min=1),
    default=MAX_PAGES,
    show_default=True,
    help="Upper bound on pages fetched (local execution only).",
)
@click.pass_context
def messages_command(
    ctx: click.Context,
    access_token: str,
    start_date: Optional[str],
    end_date: Optional[str],
    max_pages: int,
) -> None:
    """Print ``{"data": [...]}`` for the requested date range."""

    api_url: Optional[str] = ctx.obj.get("api_url") if ctx.obj else None

    if api_url:
        params = {k: v for k, v in (("startDate", start_date), ("endDate", end_date)) if v}
        result = _call_proxy(
            "GET",
            api_url.rstrip("/") + "/api/livepix/messages",
            params=params,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        _echo_json(result)
        return

    try:
        result = aggregate_messages(
            livepix.page_fetcher(access_token, limit=PAGE_SIZE),
            start_date,
            end_date,
            max_pages=max_pages,
        )
    except InvalidDateRange as exc:
        raise click.BadParameter(str(exc)) from exc
    except livepix.UpstreamError as exc:
        raise click.ClickException(f"LivePix responded with HTTP {exc.status_code}: {exc.body}") from exc
    _echo_json(result)


# ---------------------------------------------------------------------------
# Entry-point shim for `python -m livepix_proxy.cli`
# ---------------------------------------------------------------------------

if __name__ == "__main__":  # pragma: no cover – manual execution shortcut
    cli()  # pylint: disable=no-value-for-parameter
