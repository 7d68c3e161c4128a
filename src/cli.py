"""Click CLI for running the relay server or replaying a single webhook payload."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import click
import uvicorn

from src.audit.logger import AuditLogger, validate_audit_chain
from src.config import RelayConfig
from src.webhook.annotate import ArticleAnnotationHandler
from src.webhook.handler import BaseWebhookHandler, HighlightTagHandler


@click.group()
@click.option("--log-level", default="INFO", help="Python logging level.")
def cli(log_level: str) -> None:
    """Omnivore correlation-tag relay."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.option("--host", default="0.0.0.0", help="Bind address.")
@click.option("--port", default=8080, type=int, help="Bind port.")
def serve(host: str, port: int) -> None:
    """Serve the webhook endpoints."""
    uvicorn.run("src.server.app:create_app_from_env", factory=True, host=host, port=port)


@cli.command()
@click.argument("payload", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--annotate", is_flag=True, help="Use the article annotation handler.")
def handle(payload: Path, annotate: bool) -> None:
    """Run one webhook PAYLOAD file through a handler and print the response."""
    try:
        config = RelayConfig.from_env()
    except ValueError as exc:
        raise click.ClickException(f"Invalid configuration: {exc}") from exc

    audit_logger = AuditLogger.from_env(config.audit_log_path) if config.audit_log_path else None
    handler: BaseWebhookHandler
    if annotate:
        handler = ArticleAnnotationHandler(config, audit_logger=audit_logger)
    else:
        handler = HighlightTagHandler(config, audit_logger=audit_logger)

    result = asyncio.run(handler.handle(payload.read_bytes()))
    click.echo(json.dumps({"status_code": result.status_code, **result.to_body()}, indent=2))
    if not result.ok:
        raise SystemExit(1)


@cli.command("verify-audit")
@click.argument("log_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def verify_audit(log_path: Path) -> None:
    """Verify the hash chain of an audit LOG_PATH."""
    result = validate_audit_chain(log_path)
    if not result.valid:
        raise click.ClickException(f"Audit chain broken at line {result.broken_at_line}")
    click.echo("Audit chain valid")
