"""Omnivore GraphQL client.

Every call is a POST of ``{"query", "variables"}`` to a single endpoint with
the raw API key in the ``Authorization`` header. A response carrying an
``errors`` list (even with HTTP 200) or an ``errorCodes`` union member is a
logical failure and raises GraphQLError; connection failures, timeouts and
non-JSON bodies raise OmnivoreTransportError.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

import httpx

from src.config import DEFAULT_OMNIVORE_API_URL
from src.omnivore import queries

logger = logging.getLogger(__name__)

NOTE_HIGHLIGHT_TYPE = "NOTE"

# errorCodes returned when a create mutation repeats an earlier one
LABEL_ALREADY_EXISTS = "LABEL_ALREADY_EXISTS"
HIGHLIGHT_ALREADY_EXISTS = "ALREADY_EXISTS"


class OmnivoreError(Exception):
    """Base class for failures talking to Omnivore."""


class GraphQLError(OmnivoreError):
    """The response carried a logical error payload."""

    def __init__(self, errors: Any, operation: str = "request") -> None:
        self.errors = errors
        self.operation = operation
        super().__init__(f"{operation} returned errors: {json.dumps(errors, default=str)}")

    def has_code(self, code: str) -> bool:
        """True if ``code`` appears as an ``errorCodes`` entry or an extensions code."""
        if not isinstance(self.errors, list):
            return False
        for error in self.errors:
            if error == code:
                return True
            if isinstance(error, dict) and (error.get("extensions") or {}).get("code") == code:
                return True
        return False


class OmnivoreTransportError(OmnivoreError):
    """Network-level failure or a response that is not JSON."""


def new_highlight_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Article:
    id: str
    title: str
    content: str
    labels: list[dict[str, Any]] = field(default_factory=list)
    highlights: list[dict[str, Any]] = field(default_factory=list)

    def note_highlight(self) -> dict[str, Any] | None:
        for highlight in self.highlights:
            if highlight.get("type") == NOTE_HIGHLIGHT_TYPE:
                return highlight
        return None

    def label_description(self, name: str) -> str | None:
        for label in self.labels:
            if str(label.get("name", "")).lower() == name.lower():
                return label.get("description") or None
        return None


class OmnivoreClient:
    """Thin async client for the Omnivore GraphQL API."""

    def __init__(
        self,
        api_key: str,
        endpoint: str = DEFAULT_OMNIVORE_API_URL,
        timeout: float = 30.0,
    ) -> None:
        self._api_key = api_key
        self._endpoint = endpoint
        self._timeout = timeout

    async def execute(
        self, query: str, variables: dict[str, Any], operation: str = "request",
    ) -> dict[str, Any]:
        """Send one GraphQL document and return its ``data`` object."""
        headers = {
            "Authorization": self._api_key,
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(verify=True) as client:
                resp = await client.post(
                    self._endpoint,
                    json={"query": query, "variables": variables},
                    headers=headers,
                    timeout=self._timeout,
                )
        except httpx.TransportError as exc:
            raise OmnivoreTransportError(f"{operation} failed: {exc!r}") from exc

        try:
            body = resp.json()
        except ValueError as exc:
            raise OmnivoreTransportError(
                f"{operation} returned a non-JSON response (HTTP {resp.status_code})"
            ) from exc

        logger.debug("%s response: %s", operation, body)
        if not isinstance(body, dict):
            raise OmnivoreTransportError(f"{operation} returned an unexpected body")
        if body.get("errors"):
            raise GraphQLError(body["errors"], operation)
        data = body.get("data")
        if not isinstance(data, dict):
            raise GraphQLError([{"message": "response carried no data"}], operation)
        return data

    async def _mutate(
        self, query: str, variables: dict[str, Any], field_name: str,
    ) -> dict[str, Any]:
        data = await self.execute(query, variables, operation=field_name)
        result = data.get(field_name)
        if not isinstance(result, dict):
            raise GraphQLError([{"message": f"missing {field_name} result"}], field_name)
        if result.get("errorCodes"):
            raise GraphQLError(result["errorCodes"], field_name)
        return result

    async def create_label(
        self, name: str, color: str | None = None, description: str | None = None,
    ) -> dict[str, Any]:
        label_input: dict[str, Any] = {"name": name}
        if color:
            label_input["color"] = color
        if description:
            label_input["description"] = description
        result = await self._mutate(
            queries.CREATE_LABEL, {"input": label_input}, "createLabel",
        )
        return result.get("label") or {}

    async def add_label_to_highlight(self, highlight_id: str, label: str) -> dict[str, Any]:
        result = await self._mutate(
            queries.ADD_LABEL_TO_HIGHLIGHT,
            {"input": {"highlightId": highlight_id, "label": label}},
            "addLabelToHighlight",
        )
        return result.get("highlight") or {}

    async def set_labels_for_highlight(
        self,
        highlight_id: str,
        labels: list[dict[str, Any]] | None = None,
        label_ids: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Replace the label set of a highlight, by label objects or by label ids."""
        if (labels is None) == (label_ids is None):
            raise ValueError("Pass exactly one of labels or label_ids")
        set_input: dict[str, Any] = {"highlightId": highlight_id}
        if labels is not None:
            set_input["labels"] = labels
        else:
            set_input["labelIds"] = label_ids
        result = await self._mutate(
            queries.SET_LABELS_FOR_HIGHLIGHT, {"input": set_input}, "setLabelsForHighlight",
        )
        return list(result.get("labels") or [])

    async def get_article(self, username: str, slug: str) -> Article:
        result = await self._mutate(
            queries.GET_ARTICLE,
            {"username": username, "slug": slug, "format": "markdown"},
            "article",
        )
        raw = result.get("article")
        if not isinstance(raw, dict):
            raise GraphQLError([{"message": f"article {slug} not found"}], "article")
        return Article(
            id=str(raw.get("id") or slug),
            title=raw.get("title") or "",
            content=raw.get("content") or "",
            labels=list(raw.get("labels") or []),
            highlights=list(raw.get("highlights") or []),
        )

    async def find_label(self, name: str) -> dict[str, Any] | None:
        """Look up one of the user's labels by exact name."""
        result = await self._mutate(queries.LABELS, {}, "labels")
        for label in result.get("labels") or []:
            if isinstance(label, dict) and label.get("name") == name:
                return label
        return None

    async def create_highlight(
        self,
        article_id: str,
        annotation: str,
        highlight_type: str = NOTE_HIGHLIGHT_TYPE,
        highlight_id: str | None = None,
    ) -> dict[str, Any]:
        """Create a highlight; pass ``highlight_id`` to keep retries on one id."""
        highlight_id = highlight_id or new_highlight_id()
        result = await self._mutate(
            queries.CREATE_HIGHLIGHT,
            {"input": {
                "id": highlight_id,
                "shortId": highlight_id.replace("-", "")[:8],
                "articleId": article_id,
                "type": highlight_type,
                "annotation": annotation,
            }},
            "createHighlight",
        )
        return result.get("highlight") or {"id": highlight_id}

    async def update_highlight(self, highlight_id: str, annotation: str) -> dict[str, Any]:
        result = await self._mutate(
            queries.UPDATE_HIGHLIGHT,
            {"input": {"highlightId": highlight_id, "annotation": annotation}},
            "updateHighlight",
        )
        return result.get("highlight") or {"id": highlight_id}
