"""Click CLI for fetching G2B data and relaying it to the webhook."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import click
from dotenv import load_dotenv

from g2b_relay.audit.delivery_log import DeliveryLog
from g2b_relay.config import Settings
from g2b_relay.errors import ConfigurationError, ExternalAPIError
from g2b_relay.g2b.client import G2BClient
from g2b_relay.models import BidSearchParams, ContractSearchParams, DataKind
from g2b_relay.pipeline.orchestrator import RelayOrchestrator
from g2b_relay.webhook.relay import WebhookRelay

CONFIG_ERROR_EXIT = 2

_KIND_CHOICES = {
    "bid-notice": DataKind.BID_NOTICE,
    "pre-notice": DataKind.PRE_NOTICE,
    "contract": DataKind.CONTRACT,
}


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, ensure_ascii=False, indent=2))


def _config_error(ctx: click.Context, exc: ConfigurationError) -> None:
    click.echo(f"Configuration error: {exc}", err=True)
    ctx.exit(CONFIG_ERROR_EXIT)


def _delivery_log(settings: Settings) -> DeliveryLog | None:
    if not settings.delivery_log_path:
        return None
    return DeliveryLog.from_env(settings.delivery_log_path)


def _client(ctx: click.Context) -> G2BClient:
    try:
        return G2BClient(ctx.obj["settings"])
    except ConfigurationError as exc:
        _config_error(ctx, exc)
        raise


def _orchestrator(ctx: click.Context) -> RelayOrchestrator:
    settings: Settings = ctx.obj["settings"]
    delivery_log = _delivery_log(settings)
    try:
        relay = WebhookRelay.from_settings(settings, delivery_log=delivery_log)
    except ConfigurationError as exc:
        _config_error(ctx, exc)
        raise
    return RelayOrchestrator(_client(ctx), relay, delivery_log=delivery_log)


@click.group()
@click.option("--env-file", default=None, help="Load environment variables from this file.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, env_file: str | None, verbose: bool) -> None:
    """G2B (나라장터) data fetch and webhook relay CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    if env_file:
        load_dotenv(env_file, override=True)
    ctx.ensure_object(dict)
    try:
        ctx.obj["settings"] = Settings.from_env(load_env_file=env_file is None)
    except ConfigurationError as exc:
        _config_error(ctx, exc)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Check whether the procurement API is reachable."""
    client = _client(ctx)
    is_available = asyncio.run(client.check_api_status())
    _echo_json({
        "isAvailable": is_available,
        "isUsingMockData": client.is_using_mock_data,
        "config": client.get_config(),
    })


@cli.command()
@click.option("--page", default=1, type=click.IntRange(min=1), help="Page number.")
@click.option("--rows", default=10, type=click.IntRange(min=1), help="Rows per page.")
@click.option("--keyword", default=None, help="Filter by notice name.")
@click.option("--institution", default=None, help="Filter by demand institution.")
@click.option("--from", "from_dt", default=None, help="Inquiry start (YYYYMMDDHHMM).")
@click.option("--to", "to_dt", default=None, help="Inquiry end (YYYYMMDDHHMM).")
@click.pass_context
def bids(
    ctx: click.Context,
    page: int,
    rows: int,
    keyword: str | None,
    institution: str | None,
    from_dt: str | None,
    to_dt: str | None,
) -> None:
    """List bid notices."""
    client = _client(ctx)
    params = BidSearchParams(
        pageNo=page,
        numOfRows=rows,
        bidNtceNm=keyword,
        dminsttNm=institution,
        fromDt=from_dt,
        toDt=to_dt,
    )
    try:
        envelope = asyncio.run(client.get_bid_list(params))
    except ExternalAPIError as exc:
        raise click.ClickException(f"{exc} {exc.detail}") from exc
    _echo_json(envelope.model_dump(mode="json", exclude_none=True))


@cli.command()
@click.option("--page", default=1, type=click.IntRange(min=1), help="Page number.")
@click.option("--rows", default=10, type=click.IntRange(min=1), help="Rows per page.")
@click.pass_context
def contracts(ctx: click.Context, page: int, rows: int) -> None:
    """List contracts."""
    client = _client(ctx)
    try:
        envelope = asyncio.run(
            client.get_contract_list(ContractSearchParams(pageNo=page, numOfRows=rows)),
        )
    except ExternalAPIError as exc:
        raise click.ClickException(f"{exc} {exc.detail}") from exc
    _echo_json(envelope.model_dump(mode="json", exclude_none=True))


@cli.command()
@click.argument("kind", type=click.Choice([*_KIND_CHOICES, "all"]))
@click.option("--page", default=1, type=click.IntRange(min=1), help="Page number.")
@click.option("--rows", default=10, type=click.IntRange(min=1), help="Rows per page.")
@click.option("--from", "from_dt", default=None, help="Inquiry start (YYYYMMDDHHMM).")
@click.option("--to", "to_dt", default=None, help="Inquiry end (YYYYMMDDHHMM).")
@click.pass_context
def send(
    ctx: click.Context,
    kind: str,
    page: int,
    rows: int,
    from_dt: str | None,
    to_dt: str | None,
) -> None:
    """Fetch a dataset and relay it to the webhook (exit 1 if the relay fails)."""
    orchestrator = _orchestrator(ctx)
    if kind == "all":
        all_outcome = asyncio.run(orchestrator.relay_all())
        _echo_json(all_outcome.model_dump())
        delivered = all_outcome.success
    else:
        outcome = asyncio.run(
            orchestrator.relay_kind(_KIND_CHOICES[kind], page, rows, from_dt, to_dt),
        )
        _echo_json(outcome.model_dump())
        delivered = outcome.webhookSuccess
    if not delivered:
        ctx.exit(1)


@cli.command("test-webhook")
@click.pass_context
def test_webhook(ctx: click.Context) -> None:
    """Send a diagnostic payload to the webhook."""
    outcome = asyncio.run(_orchestrator(ctx).test_webhook())
    _echo_json(outcome.model_dump())
    if not outcome.success:
        ctx.exit(1)


@cli.command()
@click.option("--limit", default=20, type=click.IntRange(min=1), help="Number of events.")
@click.pass_context
def logs(ctx: click.Context, limit: int) -> None:
    """Show the most recent delivery log events."""
    delivery_log = _delivery_log(ctx.obj["settings"])
    if delivery_log is None:
        raise click.ClickException("DELIVERY_LOG_PATH is not configured")
    _echo_json([e.model_dump(mode="json") for e in delivery_log.recent(limit)])


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address.")
@click.option("--port", default=3002, type=int, help="Bind port.")
def serve(host: str, port: int) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "g2b_relay.api.app:create_app_from_env",
        factory=True,
        host=host,
        port=port,
    )
