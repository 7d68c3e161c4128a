"""Correlation tag generation and attachment strategies."""

from __future__ import annotations

import logging
import random
import uuid
from typing import Any

from src.config import RetryPolicy, TagStrategy
from src.omnivore.client import LABEL_ALREADY_EXISTS, GraphQLError, OmnivoreClient
from src.webhook.retry import RetryExhaustedError, with_retry

logger = logging.getLogger(__name__)

TAG_PREFIX = "uuid:"
TAG_DESCRIPTION = "Auto-generated correlation tag"


def generate_correlation_tag() -> str:
    return f"{TAG_PREFIX}{uuid.uuid4()}"


def random_label_color() -> str:
    return f"#{random.randrange(0x1000000):06x}"


class TagAttacher:
    """Attaches a correlation tag to a highlight using one TagStrategy.

    Every mutating call goes through ``with_retry``. A label created by a
    ``create_then_*`` strategy is not deleted when the attach step is
    exhausted; the orphan is logged instead.
    """

    def __init__(
        self,
        client: OmnivoreClient,
        strategy: TagStrategy,
        retry: RetryPolicy,
    ) -> None:
        self._client = client
        self._strategy = strategy
        self._retry = retry

    @property
    def strategy(self) -> TagStrategy:
        return self._strategy

    async def attach(self, highlight_id: str, tag: str) -> None:
        if self._strategy == TagStrategy.DIRECT_ADD:
            await self._add(highlight_id, tag)
            return

        color = random_label_color()
        label = await self._create_label(tag, color)
        logger.info("Created label %s (id=%s)", tag, label.get("id"))

        try:
            if self._strategy == TagStrategy.CREATE_THEN_ADD:
                await self._add(highlight_id, tag)
            elif self._strategy == TagStrategy.CREATE_THEN_SET_BY_OBJECT:
                label_object = {"name": tag, "color": color, "description": TAG_DESCRIPTION}
                await with_retry(
                    lambda: self._client.set_labels_for_highlight(
                        highlight_id, labels=[label_object],
                    ),
                    self._retry,
                    f"set labels on highlight {highlight_id}",
                )
            else:
                label_id = label.get("id") or await self._lookup_label_id(tag)
                await with_retry(
                    lambda: self._client.set_labels_for_highlight(
                        highlight_id, label_ids=[label_id],
                    ),
                    self._retry,
                    f"set labels on highlight {highlight_id}",
                )
        except RetryExhaustedError:
            logger.warning(
                "Label %s was created but never attached to highlight %s",
                tag, highlight_id,
            )
            raise

    async def _create_label(self, tag: str, color: str) -> dict[str, Any]:
        def created_earlier(exc: Exception) -> dict[str, Any] | None:
            # A timed-out attempt can still have created the label.
            if isinstance(exc, GraphQLError) and exc.has_code(LABEL_ALREADY_EXISTS):
                return {"name": tag}
            return None

        return await with_retry(
            lambda: self._client.create_label(tag, color, TAG_DESCRIPTION),
            self._retry,
            f"create label {tag}",
            already_applied=created_earlier,
        )

    async def _lookup_label_id(self, tag: str) -> str:
        label = await with_retry(
            lambda: self._client.find_label(tag),
            self._retry,
            f"look up label {tag}",
        )
        if not label or not label.get("id"):
            raise GraphQLError([{"message": f"no label id for {tag}"}], "createLabel")
        return str(label["id"])

    async def _add(self, highlight_id: str, tag: str) -> None:
        await with_retry(
            lambda: self._client.add_label_to_highlight(highlight_id, tag),
            self._retry,
            f"add label to highlight {highlight_id}",
        )
