"""Client for an OpenAI-compatible chat completions endpoint."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from src.config import DEFAULT_COMPLETION_BASE_URL

logger = logging.getLogger(__name__)


class CompletionError(Exception):
    """The completion service failed or returned no text."""


@dataclass
class Completion:
    text: str
    model: str
    usage: dict[str, Any] = field(default_factory=dict)


class CompletionClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_COMPLETION_BASE_URL,
        timeout: float = 120.0,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout

    async def complete(
        self,
        model: str,
        messages: list[dict[str, str]],
        settings: dict[str, Any] | None = None,
    ) -> Completion:
        """Run one chat completion and return the assistant text plus usage."""
        url = f"{self._base_url.rstrip('/')}/v1/chat/completions"
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        request_body: dict[str, Any] = {**(settings or {}), "model": model, "messages": messages}

        try:
            async with httpx.AsyncClient(verify=True) as client:
                resp = await client.post(
                    url, json=request_body, headers=headers, timeout=self._timeout,
                )
        except httpx.TransportError as exc:
            raise CompletionError(f"Completion service unavailable: {exc!r}") from exc

        if resp.status_code >= 400:
            raise CompletionError(
                f"Completion service returned HTTP {resp.status_code}: {resp.text[:500]}"
            )

        try:
            resp_json = resp.json()
            text = resp_json["choices"][0]["message"]["content"]
        except (ValueError, IndexError, KeyError, TypeError) as exc:
            raise CompletionError("Completion response had no message content") from exc

        if not isinstance(text, str) or not text.strip():
            raise CompletionError("Completion service returned empty text")

        usage = resp_json.get("usage") or {}
        logger.info("Completion from %s used %s tokens", model, usage.get("total_tokens", "?"))
        return Completion(text=text.strip(), model=resp_json.get("model", model), usage=usage)
