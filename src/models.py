"""Shared Pydantic data models for omnivore-tag-relay."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

# --- Enums ---


class AuditEventType(str, Enum):
    WEBHOOK_IGNORED = "webhook_ignored"
    CONFIG_ERROR = "config_error"
    TAG_ATTACHED = "tag_attached"
    TAG_FAILED = "tag_failed"
    ANNOTATION_CREATED = "annotation_created"
    ANNOTATION_FAILED = "annotation_failed"


class RiskLevel(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


# --- Audit Models ---


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class AuditEvent(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    event_type: AuditEventType
    action: str  # webhook action that triggered the invocation
    result: str  # "success" | "failure" | "ignored"
    risk_level: RiskLevel
    target_id: str | None = None
    tag: str | None = None
    details: dict[str, object] | None = None
