"""
Tests for the OpenAI LLM client and the client factory.
"""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock, patch


def _completion(content="", tool_calls=None, prompt_tokens=3, completion_tokens=2):
    message = MagicMock()
    message.content = content
    message.tool_calls = tool_calls
    response = MagicMock()
    response.choices = [MagicMock(message=message)]
    response.usage.prompt_tokens = prompt_tokens
    response.usage.completion_tokens = completion_tokens
    response.usage.total_tokens = prompt_tokens + completion_tokens
    return response


def _tool_call(id, name, arguments):
    tc = MagicMock()
    tc.id = id
    tc.function.name = name
    tc.function.arguments = arguments
    return tc


@pytest.fixture
def client():
    with patch("openai.AsyncOpenAI"):
        from rag_agent_core.llm.openai import OpenAIClient

        client = OpenAIClient(api_key="sk-test", default_model="gpt-4o-mini")
    client._client.chat.completions.create = AsyncMock()
    return client


class TestOpenAIClient:
    """Tests for OpenAIClient."""

    @pytest.mark.asyncio
    async def test_converts_messages_and_tools(self, client):
        from rag_agent_core.interfaces import Message, ToolCall

        client._client.chat.completions.create.return_value = _completion("Done.")
        tools = [{"type": "function", "function": {"name": "ping", "parameters": {}}}]

        result = await client.invoke(
            [
                Message.system("Be brief."),
                Message.human("Ping?"),
                Message.ai("", tool_calls=[ToolCall(id="c1", name="ping", arguments={"n": 1})]),
                Message.tool("pong", tool_call_id="c1", name="ping"),
            ],
            tools=tools,
        )

        kwargs = client._client.chat.completions.create.call_args.kwargs
        sent = kwargs["messages"]
        assert [m["role"] for m in sent] == ["system", "user", "assistant", "tool"]
        assert sent[2]["tool_calls"][0]["function"] == {"name": "ping", "arguments": json.dumps({"n": 1})}
        assert sent[3]["tool_call_id"] == "c1"
        assert kwargs["tools"] == tools
        assert kwargs["model"] == "gpt-4o-mini"

        assert result.message.content == "Done."
        assert result.usage.input_tokens == 3
        assert result.usage.total_tokens == 5

    @pytest.mark.asyncio
    async def test_parses_tool_calls(self, client):
        from rag_agent_core.interfaces import Message

        client._client.chat.completions.create.return_value = _completion(
            tool_calls=[
                _tool_call("c1", "search_knowledge_base", '{"query": "leave"}'),
                _tool_call("c2", "broken", "{not json"),
            ]
        )

        result = await client.invoke([Message.human("Leave?")])

        assert [tc.name for tc in result.tool_calls] == ["search_knowledge_base", "broken"]
        assert result.tool_calls[0].arguments == {"query": "leave"}
        assert result.tool_calls[1].arguments == {}
        assert result.message.tool_calls == result.tool_calls

    @pytest.mark.asyncio
    async def test_structured_output(self, client):
        from rag_agent_core.interfaces import Message

        client._client.chat.completions.create.return_value = _completion('{"days": 25}')
        schema = {"title": "leave", "type": "object", "properties": {"days": {"type": "number"}}}

        result = await client.invoke([Message.human("Leave?")], response_schema=schema)

        response_format = client._client.chat.completions.create.call_args.kwargs["response_format"]
        assert response_format["type"] == "json_schema"
        assert response_format["json_schema"]["name"] == "leave"
        assert response_format["json_schema"]["strict"] is True
        assert result.structured_data == {"days": 25}

    @pytest.mark.asyncio
    async def test_api_error_is_mapped(self, client):
        import openai
        from rag_agent_core.errors import ExternalCapabilityError
        from rag_agent_core.interfaces import Message

        client._client.chat.completions.create.side_effect = openai.OpenAIError("quota exceeded")

        with pytest.raises(ExternalCapabilityError, match="quota exceeded"):
            await client.invoke([Message.human("Hi")])

    def test_missing_api_key(self, monkeypatch):
        from rag_agent_core.errors import ConfigurationError

        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with patch("openai.AsyncOpenAI"):
            from rag_agent_core.llm.openai import OpenAIClient

            with pytest.raises(ConfigurationError, match="OpenAI API key is not configured"):
                OpenAIClient()

    def test_azure_requires_endpoint(self, monkeypatch):
        from rag_agent_core.errors import ConfigurationError

        monkeypatch.delenv("RAG_AGENT_MODEL_BASE_URL", raising=False)
        with patch("openai.AsyncAzureOpenAI"):
            from rag_agent_core.llm.openai import OpenAIClient

            with pytest.raises(ConfigurationError, match="Azure OpenAI requires"):
                OpenAIClient(api_key="k", api_version="2024-06-01")

    def test_azure_client(self):
        with patch("openai.AsyncAzureOpenAI") as mock_azure:
            from rag_agent_core.llm.openai import OpenAIClient

            OpenAIClient(
                api_key="k",
                base_url="https://example.openai.azure.com",
                api_version="2024-06-01",
            )

        assert mock_azure.call_args.kwargs["azure_endpoint"] == "https://example.openai.azure.com"
        assert mock_azure.call_args.kwargs["api_version"] == "2024-06-01"


class TestGetLLMClient:
    """Tests for the get_llm_client factory."""

    def test_detects_anthropic_from_model(self):
        with patch("anthropic.AsyncAnthropic"):
            from rag_agent_core.llm import get_llm_client
            from rag_agent_core.llm.anthropic import AnthropicClient

            llm = get_llm_client(model="claude-3-5-haiku-20241022", api_key="k")

        assert isinstance(llm, AnthropicClient)
        assert llm.model_name == "claude-3-5-haiku-20241022"

    def test_falls_back_to_configured_provider(self):
        from rag_agent_core.config import configure

        configure(model_provider="openai")
        with patch("openai.AsyncOpenAI"):
            from rag_agent_core.llm import get_llm_client
            from rag_agent_core.llm.openai import OpenAIClient

            llm = get_llm_client(api_key="k")

        assert isinstance(llm, OpenAIClient)

    def test_unknown_provider(self):
        from rag_agent_core.errors import ConfigurationError
        from rag_agent_core.llm import get_llm_client

        with pytest.raises(ConfigurationError, match="Unknown LLM provider"):
            get_llm_client(provider="cohere")

    def test_provider_detection(self):
        from rag_agent_core.llm import get_provider_for_model

        assert get_provider_for_model("gpt-4o") == "openai"
        assert get_provider_for_model("o3-mini-high") == "openai"
        assert get_provider_for_model("claude-3-7-sonnet-latest") == "anthropic"
        assert get_provider_for_model("llama-3") is None
