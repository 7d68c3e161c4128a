"""Shared test fixtures for omnivore-tag-relay."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.audit.logger import AuditLogger
from src.config import RelayConfig, RetryPolicy, TagStrategy
from src.models import AuditEvent, AuditEventType, RiskLevel


@pytest.fixture
def mock_audit_logger() -> MagicMock:
    return MagicMock(spec=AuditLogger)


# --- Factory functions for test data ---


def make_config(**kwargs: Any) -> RelayConfig:
    """Factory for RelayConfig with an API key and the default strategy."""
    defaults: dict[str, Any] = {
        "omnivore_api_key": "test-omnivore-key",
        "omnivore_api_url": "https://omnivore.test/api/graphql",
        "tag_strategy": TagStrategy.CREATE_THEN_ADD,
        "retry": RetryPolicy(),
    }
    defaults.update(kwargs)
    return RelayConfig(**defaults)


def make_audit_event(**kwargs: Any) -> AuditEvent:
    defaults: dict[str, Any] = {
        "event_type": AuditEventType.TAG_ATTACHED,
        "action": "created",
        "result": "success",
        "risk_level": RiskLevel.INFO,
    }
    defaults.update(kwargs)
    return AuditEvent(**defaults)


def make_highlight_event(highlight_id: str | None = "h1", **kwargs: Any) -> dict[str, Any]:
    event: dict[str, Any] = {
        "action": "created",
        "userId": "user-1",
        "highlight": {
            "id": highlight_id,
            "type": "HIGHLIGHT",
            "annotation": None,
            "labels": [],
        },
    }
    event.update(kwargs)
    return event


def make_graphql_response(
    data: dict[str, Any] | None = None,
    errors: list[dict[str, Any]] | None = None,
    status_code: int = 200,
) -> MagicMock:
    """Mock httpx response carrying a GraphQL envelope."""
    body: dict[str, Any] = {}
    if data is not None:
        body["data"] = data
    if errors is not None:
        body["errors"] = errors
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = body
    return resp


def mock_async_client(mock_client_cls: MagicMock) -> AsyncMock:
    """Wire a patched httpx.AsyncClient class to return an async context manager."""
    mock_client = AsyncMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client_cls.return_value = mock_client
    return mock_client


CREATE_LABEL_OK = {
    "createLabel": {"label": {"id": "label-1", "name": "uuid:x", "color": "#000000"}},
}
ADD_LABEL_OK = {
    "addLabelToHighlight": {"highlight": {"id": "h1", "type": "HIGHLIGHT", "labels": []}},
}
SET_LABELS_OK = {
    "setLabelsForHighlight": {"labels": [{"id": "label-1", "name": "uuid:x"}]},
}
