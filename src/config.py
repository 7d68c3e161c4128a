"""Relay configuration: one explicit object built from the environment at startup."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_OMNIVORE_API_URL = "https://api-prod.omnivore.app/api/graphql"
DEFAULT_COMPLETION_BASE_URL = "https://api.openai.com"
DEFAULT_MODEL = "gpt-4o-mini"


class TagStrategy(str, Enum):
    """How the correlation tag is attached to a highlight."""

    DIRECT_ADD = "direct_add"
    CREATE_THEN_ADD = "create_then_add"
    CREATE_THEN_SET_BY_OBJECT = "create_then_set_by_object"
    CREATE_THEN_SET_BY_ID = "create_then_set_by_id"


class RetryPolicy(BaseModel):
    """Bounded retry with linear backoff: sleep ``n * backoff_step`` before retry n."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1)
    backoff_step: float = Field(default=2.0, ge=0)

    def delay_for(self, attempt: int) -> float:
        return attempt * self.backoff_step


class RelayConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    omnivore_api_key: str | None = None
    omnivore_api_url: str = DEFAULT_OMNIVORE_API_URL
    omnivore_username: str = "me"
    tag_strategy: TagStrategy = TagStrategy.CREATE_THEN_ADD
    retry: RetryPolicy = Field(default_factory=RetryPolicy)

    completion_api_key: str | None = None
    completion_base_url: str = DEFAULT_COMPLETION_BASE_URL
    model: str = DEFAULT_MODEL
    completion_settings: dict[str, Any] = Field(default_factory=dict)
    annotate_label: str | None = None
    prompt: str | None = None

    audit_log_path: str | None = None

    @property
    def annotation_enabled(self) -> bool:
        return bool(self.completion_api_key)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> RelayConfig:
        """Read configuration from environment variables.

        Raises ValueError for malformed values so misconfiguration surfaces at
        startup rather than on the first webhook.
        """
        env = os.environ if environ is None else environ

        strategy_raw = env.get("OMNIVORE_TAG_STRATEGY", TagStrategy.CREATE_THEN_ADD.value)
        try:
            strategy = TagStrategy(strategy_raw.strip().lower())
        except ValueError:
            valid = ", ".join(s.value for s in TagStrategy)
            raise ValueError(
                f"Unknown OMNIVORE_TAG_STRATEGY {strategy_raw!r} (expected one of: {valid})"
            ) from None

        retry = RetryPolicy(
            max_attempts=int(env.get("RETRY_MAX_ATTEMPTS", "3")),
            backoff_step=float(env.get("RETRY_BACKOFF_SECONDS", "2")),
        )

        settings_raw = env.get("OPENAI_SETTINGS", "").strip()
        settings: dict[str, Any] = {}
        if settings_raw:
            settings = json.loads(settings_raw)
            if not isinstance(settings, dict):
                raise ValueError("OPENAI_SETTINGS must be a JSON object")

        return cls(
            omnivore_api_key=env.get("OMNIVORE_API_KEY") or None,
            omnivore_api_url=env.get("OMNIVORE_API_URL", DEFAULT_OMNIVORE_API_URL),
            omnivore_username=env.get("OMNIVORE_USERNAME", "me"),
            tag_strategy=strategy,
            retry=retry,
            completion_api_key=env.get("OPENAI_API_KEY") or None,
            completion_base_url=env.get("OPENAI_BASE_URL", DEFAULT_COMPLETION_BASE_URL),
            model=env.get("OPENAI_MODEL") or DEFAULT_MODEL,
            completion_settings=settings,
            annotate_label=env.get("OMNIVORE_ANNOTATE_LABEL") or None,
            prompt=env.get("OMNIVORE_ANNOTATE_PROMPT") or None,
            audit_log_path=env.get("AUDIT_LOG_PATH") or None,
        )
