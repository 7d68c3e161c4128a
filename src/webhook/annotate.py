"""Article annotation handler: LLM summary note plus correlation tag.

Triggered by LABEL_ADDED (optionally filtered to one label) and PAGE_CREATED
events. The article is fetched, summarized by the completion service, and the
summary is written to the article's NOTE highlight, which then receives the
correlation tag. Any failing step aborts the invocation with a 500.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from src.completion.client import CompletionClient, CompletionError
from src.config import RelayConfig
from src.models import AuditEventType, RiskLevel
from src.omnivore.client import (
    HIGHLIGHT_ALREADY_EXISTS,
    Article,
    GraphQLError,
    OmnivoreClient,
    OmnivoreError,
    new_highlight_id,
)
from src.webhook.handler import MISSING_API_KEY_MESSAGE, BaseWebhookHandler
from src.webhook.models import Label, WebhookAction, WebhookEvent, WebhookResponse
from src.webhook.retry import RetryExhaustedError, with_retry
from src.webhook.tagging import TagAttacher, generate_correlation_tag

if TYPE_CHECKING:
    from src.audit.logger import AuditLogger

logger = logging.getLogger(__name__)

MIN_CONTENT_LENGTH = 280
MISSING_COMPLETION_KEY_MESSAGE = "OPENAI_API_KEY is not set"
DEFAULT_PROMPT = (
    "Summarize the following article in three to five concise bullet points. "
    "Write the summary in the same language as the article."
)


class AnnotationError(Exception):
    """A step of the annotation workflow failed; the message is caller-visible."""


class ArticleAnnotationHandler(BaseWebhookHandler):
    def __init__(
        self,
        config: RelayConfig,
        client: OmnivoreClient | None = None,
        completion_client: CompletionClient | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        super().__init__(config, client=client, audit_logger=audit_logger)
        self._completion = completion_client

    async def _process(self, event: WebhookEvent) -> WebhookResponse:
        if event.action == WebhookAction.LABEL_ADDED.value:
            if event.label is None:
                return self._ignored(event, "No label data in webhook payload, nothing to do.")
            article_id, labels = event.label.page_id, event.label.labels
        elif event.action == WebhookAction.PAGE_CREATED.value:
            if event.page is None:
                return self._ignored(event, "No page data in webhook payload, nothing to do.")
            article_id, labels = event.page.id, event.page.labels
        else:
            return self._ignored(
                event, f"Not a label or page event ('{event.action}'), no action taken.",
            )

        trigger_label: Label | None = None
        if self._config.annotate_label:
            trigger_label = _find_label(labels, self._config.annotate_label)
            if trigger_label is None:
                return self._ignored(
                    event,
                    f"Label '{self._config.annotate_label}' not present, no action taken.",
                )

        if not article_id:
            return self._ignored(event, "Article id missing, nothing to do.")

        tag = generate_correlation_tag()

        client = self._omnivore_client()
        if client is None:
            return self._config_error(event, MISSING_API_KEY_MESSAGE)
        completion = self._completion_client()
        if completion is None:
            return self._config_error(event, MISSING_COMPLETION_KEY_MESSAGE)

        try:
            article = await self._fetch_article(client, article_id)
            prompt = self._resolve_prompt(trigger_label, article)
            summary = await self._summarize(completion, prompt, article)
            note_id = await self._write_note(client, article, summary)
            attacher = TagAttacher(client, self._config.tag_strategy, self._config.retry)
            await attacher.attach(note_id, tag)
        except RetryExhaustedError as exc:
            logger.error("Annotating article %s failed: %s", article_id, exc)
            return self._failed(event, article_id, tag, self._exhausted(exc))
        except AnnotationError as exc:
            logger.error("Annotating article %s failed: %s", article_id, exc)
            return self._failed(event, article_id, tag, str(exc))

        logger.info("Annotated article %s with note %s tagged %s", article_id, note_id, tag)
        self._log_audit(
            AuditEventType.ANNOTATION_CREATED, event, "success", RiskLevel.INFO,
            target_id=note_id, tag=tag, details={"article_id": article_id},
        )
        return WebhookResponse(
            text=f"Added label {tag} to note {note_id} on article {article_id}.",
            status_code=200,
            tag=tag,
            target_id=note_id,
        )

    def _completion_client(self) -> CompletionClient | None:
        if not self._config.completion_api_key:
            return None
        if self._completion is not None:
            return self._completion
        return CompletionClient(
            self._config.completion_api_key,
            base_url=self._config.completion_base_url,
        )

    async def _fetch_article(self, client: OmnivoreClient, article_id: str) -> Article:
        try:
            article = await client.get_article(self._config.omnivore_username, article_id)
        except OmnivoreError as exc:
            raise AnnotationError(f"Failed to fetch article {article_id}: {exc}") from exc

        if len(article.content) < MIN_CONTENT_LENGTH:
            raise AnnotationError(
                f"Article {article_id} is shorter than {MIN_CONTENT_LENGTH} characters, "
                "nothing to summarize."
            )
        return article

    def _resolve_prompt(self, trigger_label: Label | None, article: Article) -> str:
        if trigger_label is not None and trigger_label.description:
            return trigger_label.description
        if self._config.annotate_label:
            description = article.label_description(self._config.annotate_label)
            if description:
                return description
        return self._config.prompt or DEFAULT_PROMPT

    async def _summarize(
        self, completion: CompletionClient, prompt: str, article: Article,
    ) -> str:
        messages = [
            {"role": "system", "content": prompt},
            {"role": "user", "content": f"Title: {article.title}\n\n{article.content}"},
        ]
        try:
            result = await completion.complete(
                self._config.model, messages, self._config.completion_settings,
            )
        except CompletionError as exc:
            raise AnnotationError(f"Failed to generate annotation: {exc}") from exc
        logger.info("Generated %d character annotation for %s", len(result.text), article.id)
        return result.text

    async def _write_note(self, client: OmnivoreClient, article: Article, summary: str) -> str:
        existing = article.note_highlight()
        if existing and existing.get("id"):
            note_id = str(existing["id"])
            await with_retry(
                lambda: client.update_highlight(note_id, summary),
                self._config.retry,
                f"update note {note_id}",
            )
            return note_id

        # One id for every attempt, so a retry can only ever recreate this note.
        new_id = new_highlight_id()

        def created_earlier(exc: Exception) -> dict[str, Any] | None:
            if isinstance(exc, GraphQLError) and exc.has_code(HIGHLIGHT_ALREADY_EXISTS):
                return {"id": new_id}
            return None

        created = await with_retry(
            lambda: client.create_highlight(article.id, summary, highlight_id=new_id),
            self._config.retry,
            f"create note on article {article.id}",
            already_applied=created_earlier,
        )
        note_id = created.get("id")
        if not note_id:
            raise AnnotationError(f"createHighlight returned no id for article {article.id}")
        return str(note_id)

    def _failed(
        self, event: WebhookEvent, article_id: str, tag: str, text: str,
    ) -> WebhookResponse:
        self._log_audit(
            AuditEventType.ANNOTATION_FAILED, event, "failure", RiskLevel.MEDIUM,
            target_id=article_id, tag=tag, details={"reason": text},
        )
        return WebhookResponse(text=text, status_code=500)


def _find_label(labels: list[Label], name: str) -> Label | None:
    wanted = name.lower()
    for label in labels:
        if label.name.lower() == wanted:
            return label
    return None
