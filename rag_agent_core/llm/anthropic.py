"""
Anthropic API client implementation.
"""

import json
import logging
from typing import Optional

from rag_agent_core.errors import (
    CapabilityTimeoutError,
    ConfigurationError,
    ExternalCapabilityError,
)
from rag_agent_core.interfaces import (
    Message,
    MessageRole,
    ModelClient,
    ModelResponse,
    TokenUsage,
    ToolCall,
)

logger = logging.getLogger(__name__)

STRUCTURED_TOOL_NAME = "structured_output"


class AnthropicClient(ModelClient):
    """
    Anthropic API client.

    Supports Claude models. Structured output is requested by forcing a
    single tool whose input schema is the response schema.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        default_model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        **kwargs,
    ):
        try:
            from anthropic import AsyncAnthropic
        except ImportError:
            raise ImportError(
                "anthropic package is required for AnthropicClient. "
                "Install it with: pip install anthropic"
            )

        from rag_agent_core.config import get_config
        config = get_config()

        self.model_name = default_model or config.default_model
        self.max_tokens = max_tokens or config.max_tokens
        self.temperature = temperature
        self.timeout = config.request_timeout

        resolved_api_key = api_key or config.get_anthropic_api_key()
        if not resolved_api_key:
            raise ConfigurationError(
                "Anthropic API key is not configured.\n\n"
                "Configure it using one of these methods:\n"
                "  1. configure(anthropic_api_key='sk-ant-...')\n"
                "  2. Set the ANTHROPIC_API_KEY environment variable\n"
                "  3. Pass api_key to get_llm_client()"
            )

        kwargs.setdefault("timeout", config.request_timeout)
        kwargs.setdefault("max_retries", config.max_retries)
        self._client = AsyncAnthropic(api_key=resolved_api_key, **kwargs)

    async def invoke(
        self,
        messages: list[Message],
        tools: Optional[list[dict]] = None,
        response_schema: Optional[dict] = None,
    ) -> ModelResponse:
        import anthropic

        system_parts = []
        converted = []
        for msg in messages:
            if msg.role == MessageRole.SYSTEM:
                system_parts.append(msg.content)
            else:
                converted.append(self._convert_message(msg))

        request_kwargs = {
            "model": self.model_name,
            "messages": self._merge_consecutive_messages(converted),
            "max_tokens": self.max_tokens,
        }
        if system_parts:
            request_kwargs["system"] = "\n\n".join(system_parts)
        if self.temperature is not None:
            request_kwargs["temperature"] = self.temperature

        if response_schema is not None:
            request_kwargs["tools"] = [{
                "name": STRUCTURED_TOOL_NAME,
                "description": "Return the requested fields.",
                "input_schema": response_schema,
            }]
            request_kwargs["tool_choice"] = {"type": "tool", "name": STRUCTURED_TOOL_NAME}
        elif tools:
            request_kwargs["tools"] = self._convert_tools(tools)

        try:
            response = await self._client.messages.create(**request_kwargs)
        except anthropic.APITimeoutError as e:
            raise CapabilityTimeoutError(
                f"Anthropic request timed out: {e}", timeout=self.timeout
            ) from e
        except anthropic.APIError as e:
            raise ExternalCapabilityError(f"Anthropic request failed: {e}") from e

        message, tool_calls = self._convert_response(response)
        usage = TokenUsage(
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            total_tokens=response.usage.input_tokens + response.usage.output_tokens,
        )

        if response_schema is not None:
            structured = next(
                (tc.arguments for tc in tool_calls if tc.name == STRUCTURED_TOOL_NAME),
                None,
            )
            if structured is None:
                raise ExternalCapabilityError("Anthropic response did not include structured output")
            return ModelResponse(
                message=Message.ai(json.dumps(structured, indent=2)),
                usage=usage,
                structured_data=structured,
            )

        return ModelResponse(message=message, tool_calls=tool_calls, usage=usage)

    def _convert_message(self, msg: Message) -> dict:
        """
        Convert a Message to Anthropic format.

        Tool results become user messages with tool_result blocks; assistant
        messages with tool calls become text plus tool_use blocks.
        """
        if msg.role == MessageRole.TOOL:
            return {
                "role": "user",
                "content": [{
                    "type": "tool_result",
                    "tool_use_id": msg.tool_call_id or "",
                    "content": msg.content,
                }],
            }

        if msg.role == MessageRole.AI:
            if not msg.tool_calls:
                return {"role": "assistant", "content": msg.content}
            blocks = []
            if msg.content:
                blocks.append({"type": "text", "text": msg.content})
            for tc in msg.tool_calls:
                blocks.append({
                    "type": "tool_use",
                    "id": tc.id,
                    "name": tc.name,
                    "input": tc.arguments,
                })
            return {"role": "assistant", "content": blocks}

        return {"role": "user", "content": msg.content}

    def _merge_consecutive_messages(self, messages: list[dict]) -> list[dict]:
        """
        Merge consecutive messages with the same role.

        Anthropic requires alternating roles, so several tool results in a
        row are combined into one user message.
        """
        merged: list[dict] = []
        for msg in messages:
            if not merged or merged[-1]["role"] != msg["role"]:
                merged.append(dict(msg))
                continue

            last = merged[-1]
            last["content"] = self._as_blocks(last["content"]) + self._as_blocks(msg["content"])
        return merged

    @staticmethod
    def _as_blocks(content) -> list[dict]:
        if isinstance(content, str):
            return [{"type": "text", "text": content}] if content else []
        return list(content)

    def _convert_tools(self, tools: list[dict]) -> list[dict]:
        """Convert OpenAI tool format to Anthropic format."""
        result = []
        for tool in tools:
            if tool.get("type") == "function":
                func = tool["function"]
                result.append({
                    "name": func["name"],
                    "description": func.get("description", ""),
                    "input_schema": func.get("parameters", {}),
                })
        return result

    def _convert_response(self, response) -> tuple[Message, list[ToolCall]]:
        content = ""
        tool_calls = []
        for block in response.content:
            if block.type == "text":
                content += block.text
            elif block.type == "tool_use":
                arguments = block.input if isinstance(block.input, dict) else {}
                tool_calls.append(ToolCall(id=block.id, name=block.name, arguments=arguments))
        return Message.ai(content, tool_calls=tool_calls), tool_calls
