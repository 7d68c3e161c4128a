"""FastAPI application exposing the Omnivore webhook endpoints."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.audit.logger import AuditLogger
from src.config import RelayConfig
from src.webhook.annotate import ArticleAnnotationHandler
from src.webhook.handler import BaseWebhookHandler, HighlightTagHandler

logger = logging.getLogger(__name__)

_MAX_WEBHOOK_BODY_SIZE = 1024 * 1024  # 1MB

HIGHLIGHT_WEBHOOK_PATH = "/webhook/highlight"
ANNOTATE_WEBHOOK_PATH = "/webhook/annotate"


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    config = RelayConfig.from_env()
    audit_logger = AuditLogger.from_env(config.audit_log_path) if config.audit_log_path else None
    return create_app(config, audit_logger)


def create_app(
    config: RelayConfig,
    audit_logger: AuditLogger | None = None,
    tag_handler: HighlightTagHandler | None = None,
    annotation_handler: ArticleAnnotationHandler | None = None,
) -> FastAPI:
    """Create the relay app.

    The annotate route is only registered when a completion API key is
    configured (or a handler is supplied).
    """
    app = FastAPI(docs_url=None, redoc_url=None)
    tag_handler = tag_handler or HighlightTagHandler(config, audit_logger=audit_logger)
    if annotation_handler is None and config.annotation_enabled:
        annotation_handler = ArticleAnnotationHandler(config, audit_logger=audit_logger)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post(HIGHLIGHT_WEBHOOK_PATH)
    async def highlight_webhook(request: Request) -> JSONResponse:
        return await _dispatch(request, tag_handler)

    if annotation_handler is not None:
        handler = annotation_handler

        @app.post(ANNOTATE_WEBHOOK_PATH)
        async def annotate_webhook(request: Request) -> JSONResponse:
            return await _dispatch(request, handler)

    return app


async def _dispatch(request: Request, handler: BaseWebhookHandler) -> JSONResponse:
    body = await request.body()
    if len(body) > _MAX_WEBHOOK_BODY_SIZE:
        logger.warning("Rejected %d byte webhook body on %s", len(body), request.url.path)
        return JSONResponse({"error": "Request body too large"}, status_code=413)
    result = await handler.handle(body)
    return JSONResponse(result.to_body(), status_code=result.status_code)
