"""
OpenAI API client implementation.

Also covers Azure OpenAI deployments when an api_version is configured.
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

ROLE_MAP = {
    MessageRole.HUMAN: "user",
    MessageRole.AI: "assistant",
    MessageRole.SYSTEM: "system",
    MessageRole.TOOL: "tool",
}


class OpenAIClient(ModelClient):
    """
    OpenAI chat completions client.

    Structured output uses response_format with a strict JSON schema.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        default_model: Optional[str] = None,
        base_url: Optional[str] = None,
        api_version: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        **kwargs,
    ):
        try:
            import openai
        except ImportError:
            raise ImportError(
                "openai package is required for OpenAIClient. "
                "Install it with: pip install openai"
            )

        from rag_agent_core.config import get_config
        config = get_config()

        self.model_name = default_model or config.default_model
        self.max_tokens = max_tokens or config.max_tokens
        self.temperature = temperature
        self.timeout = config.request_timeout

        resolved_api_key = api_key or config.get_openai_api_key()
        if not resolved_api_key:
            raise ConfigurationError(
                "OpenAI API key is not configured.\n\n"
                "Configure it using one of these methods:\n"
                "  1. configure(openai_api_key='sk-...')\n"
                "  2. Set the OPENAI_API_KEY environment variable\n"
                "  3. Pass api_key to get_llm_client()"
            )

        base_url = base_url or config.model_base_url
        api_version = api_version or config.model_api_version
        kwargs.setdefault("timeout", config.request_timeout)
        kwargs.setdefault("max_retries", config.max_retries)

        if api_version:
            if not base_url:
                raise ConfigurationError("Azure OpenAI requires model_base_url (the resource endpoint)")
            self._client = openai.AsyncAzureOpenAI(
                api_key=resolved_api_key,
                azure_endpoint=base_url,
                api_version=api_version,
                **kwargs,
            )
        else:
            self._client = openai.AsyncOpenAI(
                api_key=resolved_api_key,
                base_url=base_url,
                **kwargs,
            )

    async def invoke(
        self,
        messages: list[Message],
        tools: Optional[list[dict]] = None,
        response_schema: Optional[dict] = None,
    ) -> ModelResponse:
        import openai

        request_kwargs = {
            "model": self.model_name,
            "messages": [self._convert_message(m) for m in messages],
            "max_tokens": self.max_tokens,
        }
        if self.temperature is not None:
            request_kwargs["temperature"] = self.temperature

        if response_schema is not None:
            request_kwargs["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": response_schema.get("title", "structured_output"),
                    "schema": response_schema,
                    "strict": True,
                },
            }
        elif tools:
            request_kwargs["tools"] = tools

        try:
            response = await self._client.chat.completions.create(**request_kwargs)
        except openai.APITimeoutError as e:
            raise CapabilityTimeoutError(
                f"OpenAI request timed out: {e}", timeout=self.timeout
            ) from e
        except openai.OpenAIError as e:
            raise ExternalCapabilityError(f"OpenAI request failed: {e}") from e

        choice = response.choices[0].message
        tool_calls = [
            ToolCall(
                id=tc.id,
                name=tc.function.name,
                arguments=self._parse_arguments(tc.function.arguments),
            )
            for tc in (choice.tool_calls or [])
        ]
        usage = TokenUsage()
        if response.usage is not None:
            usage = TokenUsage(
                input_tokens=response.usage.prompt_tokens,
                output_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )

        message = Message.ai(choice.content or "", tool_calls=tool_calls)
        structured = None
        if response_schema is not None:
            try:
                structured = json.loads(message.content)
            except json.JSONDecodeError as e:
                raise ExternalCapabilityError(f"OpenAI returned invalid structured output: {e}") from e

        return ModelResponse(
            message=message,
            tool_calls=tool_calls,
            usage=usage,
            structured_data=structured,
        )

    @staticmethod
    def _parse_arguments(raw: Optional[str]) -> dict:
        if not raw:
            return {}
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Failed to parse tool args: {raw}")
            return {}
        return parsed if isinstance(parsed, dict) else {}

    def _convert_message(self, msg: Message) -> dict:
        data = {"role": ROLE_MAP[msg.role], "content": msg.content}
        if msg.role == MessageRole.AI and msg.tool_calls:
            data["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.name, "arguments": json.dumps(tc.arguments)},
                }
                for tc in msg.tool_calls
            ]
        if msg.role == MessageRole.TOOL:
            data["tool_call_id"] = msg.tool_call_id or ""
        return data
