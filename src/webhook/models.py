"""Data models for Omnivore webhook events and handler responses."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class WebhookAction(str, Enum):
    CREATED = "created"
    HIGHLIGHT_CREATED = "HIGHLIGHT_CREATED"
    LABEL_ADDED = "LABEL_ADDED"
    PAGE_CREATED = "PAGE_CREATED"


HIGHLIGHT_CREATION_ACTIONS = frozenset({
    WebhookAction.CREATED.value,
    WebhookAction.HIGHLIGHT_CREATED.value,
})


class _Payload(BaseModel):
    # Omnivore ids arrive as strings, but numeric ids are accepted as given.
    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)


class Label(_Payload):
    id: str | None = None
    name: str = ""
    color: str | None = None
    description: str | None = None


class Highlight(_Payload):
    id: str | None = None
    type: str | None = None
    annotation: str | None = None
    labels: list[Label] = Field(default_factory=list)


class LabelPayload(_Payload):
    page_id: str | None = Field(default=None, alias="pageId")
    labels: list[Label] = Field(default_factory=list)


class Page(_Payload):
    id: str | None = None
    slug: str | None = None
    title: str | None = None
    labels: list[Label] = Field(default_factory=list)


class WebhookEvent(_Payload):
    """Inbound Omnivore webhook payload, discriminated by ``action``."""

    action: str | None = None
    user_id: str | None = Field(default=None, alias="userId")
    highlight: Highlight | None = None
    label: LabelPayload | None = None
    page: Page | None = None

    @property
    def is_highlight_creation(self) -> bool:
        return self.action in HIGHLIGHT_CREATION_ACTIONS


@dataclass
class WebhookResponse:
    """Outcome of one webhook invocation."""

    text: str
    status_code: int
    tag: str | None = None
    target_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def to_body(self) -> dict[str, str]:
        if not self.ok:
            return {"error": self.text}
        body = {"message": self.text}
        if self.tag:
            body["tag"] = self.tag
        if self.target_id:
            body["target_id"] = self.target_id
        return body
