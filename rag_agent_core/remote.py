"""
Client for an agent hosted behind a REST endpoint.

The remote service receives the conversation state as JSON and returns the
updated state. Services disagree on key casing, so responses are normalized
through a field-alias table before use.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from rag_agent_core.config import get_config
from rag_agent_core.errors import CapabilityTimeoutError, ExternalCapabilityError
from rag_agent_core.interfaces import Message
from rag_agent_core.messages import message_from_dict, message_to_dict

logger = logging.getLogger(__name__)

# canonical key -> accepted spellings, first match wins
RESPONSE_ALIASES: dict[str, tuple[str, ...]] = {
    "metadata": ("metaData", "meta_data", "Metadata", "MetaData"),
    "structured_data": ("structuredData", "starcturedData", "StructuredData", "structureddata"),
}

MESSAGE_ALIASES: dict[str, tuple[str, ...]] = {
    "response_metadata": ("metadata", "metaData", "meta_data", "Metadata", "MetaData"),
    "additional_kwargs": ("additionalKwargs", "AdditionalKwargs"),
}


def apply_aliases(data: dict[str, Any], aliases: dict[str, tuple[str, ...]]) -> dict[str, Any]:
    """Return a copy of data with aliased keys renamed to their canonical name."""
    normalized = dict(data)
    for canonical, spellings in aliases.items():
        if canonical in normalized:
            continue
        for key in spellings:
            if key in normalized:
                normalized[canonical] = normalized.pop(key)
                break
    return normalized


def normalize_response(result: dict[str, Any]) -> dict[str, Any]:
    normalized = apply_aliases(result, RESPONSE_ALIASES)
    messages = normalized.get("messages")
    if isinstance(messages, list):
        normalized["messages"] = [
            apply_aliases(m, MESSAGE_ALIASES) if isinstance(m, dict) else m
            for m in messages
        ]
    return normalized


@dataclass
class RemoteAgentResult:
    messages: list[Message]
    structured_data: Optional[dict] = None
    metadata: dict = field(default_factory=dict)
    raw: dict = field(default_factory=dict)
    """The normalized response body."""


class RemoteAgentClient:
    """
    Invokes a remotely deployed agent over HTTP.

    Example:
        client = RemoteAgentClient("https://agents.example.com/invoke", api_key="...")
        result = await client.invoke([Message.human("Summarize the Q3 report")])
        print(result.messages[-1].content)
    """

    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
            headers["X-API-Key"] = self.api_key
        return headers

    async def invoke(
        self,
        messages: list[Message],
        state: Optional[dict[str, Any]] = None,
    ) -> RemoteAgentResult:
        """
        Send the conversation to the remote agent.

        Raises:
            CapabilityTimeoutError: If the request times out
            ExternalCapabilityError: On HTTP errors or a malformed response
        """
        config = get_config()
        body = {
            **(state or {}),
            "messages": [message_to_dict(m) for m in messages],
            "modelSettings": {
                "modelName": config.default_model,
                "maxTokens": config.max_tokens,
            },
        }

        logger.info(f"Invoking remote agent at {self.url}")
        started = time.monotonic()
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=config.connect_timeout)
            ) as client:
                response = await client.post(self.url, json=body, headers=self._headers())
                response.raise_for_status()
                result = response.json()
        except httpx.TimeoutException as e:
            elapsed = time.monotonic() - started
            raise CapabilityTimeoutError(
                f"Remote agent request timed out after {elapsed:.1f}s",
                elapsed=elapsed,
                timeout=self.timeout,
            ) from e
        except httpx.HTTPStatusError as e:
            raise ExternalCapabilityError(
                f"Remote agent request failed: {e.response.status_code} {e.response.reason_phrase}"
            ) from e
        except httpx.HTTPError as e:
            raise ExternalCapabilityError(f"Failed to invoke remote agent: {e}") from e
        except ValueError as e:
            raise ExternalCapabilityError(f"Remote agent returned invalid JSON: {e}") from e

        if not isinstance(result, dict):
            raise ExternalCapabilityError("Invalid response from remote agent: expected object")

        normalized = normalize_response(result)
        raw_messages = normalized.get("messages")
        if not isinstance(raw_messages, list):
            raise ExternalCapabilityError(
                'Invalid response from remote agent: missing or invalid "messages" array'
            )

        try:
            parsed = [message_from_dict(m) for m in raw_messages]
        except (AttributeError, TypeError, ValueError) as e:
            raise ExternalCapabilityError(f"Invalid message from remote agent: {e}") from e

        return RemoteAgentResult(
            messages=parsed,
            structured_data=normalized.get("structured_data"),
            metadata=normalized.get("metadata") or {},
            raw=normalized,
        )
