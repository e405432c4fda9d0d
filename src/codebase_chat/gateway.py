"""Completion gateway: the single outbound call to the remote model endpoint."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import json
import logging
from typing import Any

import httpx

from .exceptions import NetworkError, TransportError
from .models import CompletionResult, Role

LOGGER = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "You must use codebase_tool and pass our chat to get the answer. "
    "Always use the codebase_tool when answering questions about code, "
    "technical issues, or when you need to search through codebases."
)
THINKING_BUDGET_TOKENS = 10000
ORGANISATION_ID = 13
REQUEST_SOURCE = "copilotkit codebase agent"
API_KEY_HEADER = "x-orca-api-key"


def build_payload(
    history: Iterable[Mapping[str, Any]], model_id: str
) -> dict[str, Any]:
    """Build the request envelope for a conversation history.

    Only ``role`` and ``content`` of each history entry reach the wire.
    """
    messages: list[dict[str, str]] = [
        {"role": Role.SYSTEM.value, "content": SYSTEM_INSTRUCTION}
    ]
    for entry in history:
        role = entry.get("role")
        if isinstance(role, Role):
            role = role.value
        messages.append({"role": str(role), "content": str(entry.get("content", ""))})
    return {
        "messages": messages,
        "model": model_id,
        "thinking": {"type": "enabled", "budget_tokens": THINKING_BUDGET_TOKENS},
        "organisation_id": ORGANISATION_ID,
        "metadata": {"source": REQUEST_SOURCE},
    }


class CompletionGateway:
    """POST conversation histories to the completion endpoint.

    No retries are attempted.  ``timeout=None`` leaves the request unbounded.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> CompletionGateway:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this gateway created it."""
        if self._owns_client:
            await self._client.aclose()

    def build_payload(
        self, history: Iterable[Mapping[str, Any]], model_id: str
    ) -> dict[str, Any]:
        return build_payload(history, model_id)

    async def complete(
        self, history: Iterable[Mapping[str, Any]], model_id: str
    ) -> CompletionResult:
        """Send one completion request and decode the response body."""
        payload = self.build_payload(history, model_id)
        return await self.send_payload(payload)

    async def send_payload(self, payload: dict[str, Any]) -> CompletionResult:
        """Send an already-built request envelope."""
        headers = {
            "Content-Type": "application/json",
            API_KEY_HEADER: self.api_key,
        }
        LOGGER.info(
            "gateway.request",
            extra={
                "event": "gateway.request",
                "model": payload.get("model"),
                "message_count": len(payload.get("messages", [])),
            },
        )
        LOGGER.debug(
            "gateway.request.payload",
            extra={
                "event": "gateway.request.payload",
                "payload": json.dumps(payload, ensure_ascii=False),
            },
        )

        try:
            response = await self._client.post(self.url, headers=headers, json=payload)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            LOGGER.warning(
                "gateway.request.failed",
                extra={
                    "event": "gateway.request.failed",
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            raise NetworkError(str(exc) or type(exc).__name__) from exc

        if not response.is_success:
            LOGGER.warning(
                "gateway.response.error",
                extra={
                    "event": "gateway.response.error",
                    "status_code": response.status_code,
                },
            )
            raise TransportError(
                f"Lambda request failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise NetworkError(f"Invalid JSON in completion response: {exc}") from exc
        if not isinstance(body, dict):
            raise NetworkError("Completion response must be a JSON object.")

        result = self._parse_body(body)
        LOGGER.info(
            "gateway.response",
            extra={
                "event": "gateway.response",
                "status_code": response.status_code,
                "time_taken_seconds": result.elapsed_seconds,
            },
        )
        return result

    @staticmethod
    def _parse_body(body: dict[str, Any]) -> CompletionResult:
        output = body.get("output")
        elapsed = body.get("time_taken_seconds")
        if isinstance(elapsed, bool) or not isinstance(elapsed, (int, float)):
            elapsed = None
        return CompletionResult(
            text=output if isinstance(output, str) else None,
            usage=body.get("usage"),
            elapsed_seconds=elapsed,
            raw=body,
        )
