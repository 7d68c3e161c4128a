"""Omnivore highlight webhook handler.

Flow for one invocation:
1. Parse the body into a WebhookEvent
2. Classify (only highlight-creation actions are acted on)
3. Validate that the highlight and its id are present
4. Generate the ``uuid:<uuid4>`` correlation tag
5. Resolve the Omnivore credential
6. Attach the tag with the configured strategy, retrying each mutation

Every outcome, including unexpected exceptions, resolves to a WebhookResponse.
Missing payloads are successes so that partial or repeated deliveries are safe.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from src.config import RelayConfig
from src.models import AuditEvent, AuditEventType, RiskLevel
from src.omnivore.client import OmnivoreClient
from src.webhook.models import WebhookEvent, WebhookResponse
from src.webhook.retry import RetryExhaustedError
from src.webhook.tagging import TagAttacher, generate_correlation_tag

if TYPE_CHECKING:
    from src.audit.logger import AuditLogger

logger = logging.getLogger(__name__)

MISSING_API_KEY_MESSAGE = "OMNIVORE_API_KEY is not set"


class WebhookPayloadError(ValueError):
    """The request body is not a usable webhook event."""


def parse_event(body: bytes | str | dict[str, Any]) -> WebhookEvent:
    try:
        raw = json.loads(body) if isinstance(body, (bytes, str)) else body
        return WebhookEvent.model_validate(raw)
    except ValueError as exc:
        raise WebhookPayloadError(f"Invalid webhook payload: {exc}") from exc


class BaseWebhookHandler(ABC):
    """Shared plumbing: parsing, client construction, audit and failure mapping."""

    def __init__(
        self,
        config: RelayConfig,
        client: OmnivoreClient | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._audit = audit_logger

    async def handle(self, body: bytes | str | dict[str, Any]) -> WebhookResponse:
        """Process one webhook body. Never raises."""
        try:
            event = parse_event(body)
        except WebhookPayloadError as exc:
            logger.error("%s", exc)
            return WebhookResponse(text=str(exc), status_code=500)

        logger.info("Received webhook action=%s", event.action)
        try:
            return await self._process(event)
        except Exception as exc:  # boundary: every failure becomes a response
            logger.exception("Error handling Omnivore webhook")
            return WebhookResponse(
                text=f"Error handling Omnivore webhook: {exc}",
                status_code=500,
            )

    @abstractmethod
    async def _process(self, event: WebhookEvent) -> WebhookResponse:
        """Act on a parsed event and return the response for it."""

    def _omnivore_client(self) -> OmnivoreClient | None:
        if not self._config.omnivore_api_key:
            return None
        if self._client is not None:
            return self._client
        return OmnivoreClient(
            self._config.omnivore_api_key,
            endpoint=self._config.omnivore_api_url,
        )

    def _ignored(self, event: WebhookEvent, text: str) -> WebhookResponse:
        logger.info("%s", text)
        self._log_audit(
            AuditEventType.WEBHOOK_IGNORED, event, "ignored", RiskLevel.INFO,
            details={"reason": text},
        )
        return WebhookResponse(text=text, status_code=200)

    def _config_error(self, event: WebhookEvent, text: str) -> WebhookResponse:
        logger.error("%s", text)
        self._log_audit(AuditEventType.CONFIG_ERROR, event, "failure", RiskLevel.HIGH)
        return WebhookResponse(text=text, status_code=500)

    def _exhausted(self, exc: RetryExhaustedError) -> str:
        if exc.attempts == 1:
            # No retry configured: surface the remote error payload directly.
            return f"Failed to {exc.description}: {exc.last_error}"
        return (
            f"Failed to {exc.description} after {exc.attempts} attempts; "
            "check server logs"
        )

    def _log_audit(
        self,
        event_type: AuditEventType,
        event: WebhookEvent,
        result: str,
        risk_level: RiskLevel,
        target_id: str | None = None,
        tag: str | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        if self._audit:
            self._audit.log(AuditEvent(
                event_type=event_type,
                action=event.action or "",
                result=result,
                risk_level=risk_level,
                target_id=target_id,
                tag=tag,
                details=details,
            ))


class HighlightTagHandler(BaseWebhookHandler):
    """Tags newly created highlights with a fresh correlation label."""

    async def _process(self, event: WebhookEvent) -> WebhookResponse:
        if not event.is_highlight_creation:
            return self._ignored(
                event, f"Not a highlight 'created' event ('{event.action}'), no action taken.",
            )

        highlight = event.highlight
        if highlight is None:
            return self._ignored(event, "No highlight found in webhook payload, nothing to do.")
        if not highlight.id:
            return self._ignored(event, "Highlight has no id, nothing to do.")

        logger.info("Highlight created: %s", highlight.id)
        tag = generate_correlation_tag()

        client = self._omnivore_client()
        if client is None:
            return self._config_error(event, MISSING_API_KEY_MESSAGE)

        attacher = TagAttacher(client, self._config.tag_strategy, self._config.retry)
        try:
            await attacher.attach(highlight.id, tag)
        except RetryExhaustedError as exc:
            logger.error("Tagging highlight %s failed: %s", highlight.id, exc)
            self._log_audit(
                AuditEventType.TAG_FAILED, event, "failure", RiskLevel.MEDIUM,
                target_id=highlight.id, tag=tag,
                details={"attempts": exc.attempts, "step": exc.description},
            )
            return WebhookResponse(text=self._exhausted(exc), status_code=500)

        logger.info("Added label %s to highlight %s", tag, highlight.id)
        self._log_audit(
            AuditEventType.TAG_ATTACHED, event, "success", RiskLevel.INFO,
            target_id=highlight.id, tag=tag,
            details={"strategy": attacher.strategy.value},
        )
        return WebhookResponse(
            text=f"Added label {tag} to highlight {highlight.id}.",
            status_code=200,
            tag=tag,
            target_id=highlight.id,
        )
