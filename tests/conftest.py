"""
Shared fixtures: deterministic embeddings and a scripted model client.
"""

import math
import re
from typing import Optional

import pytest

from rag_agent_core.config import reset_config
from rag_agent_core.interfaces import (
    Message,
    ModelClient,
    ModelResponse,
    TokenUsage,
    ToolCall,
)
from rag_agent_core.vectorstore.embeddings import EmbeddingClient


class FakeEmbeddings(EmbeddingClient):
    """Bag-of-words embeddings, one dimension per distinct word, unit length."""

    def __init__(self, dims: int = 128):
        self._dims = dims
        self._vocab: dict[str, int] = {}

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self._dims
        for word in re.findall(r"\w+", text.lower()):
            index = self._vocab.setdefault(word, len(self._vocab)) % self._dims
            vector[index] += 1.0
        norm = math.sqrt(sum(v * v for v in vector))
        return [v / norm for v in vector] if norm else vector

    async def embed(self, text: str) -> list[float]:
        return self._vector(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [self._vector(t) for t in texts]

    @property
    def dimensions(self) -> int:
        return self._dims

    @property
    def model_name(self) -> str:
        return "fake-embeddings"


class ScriptedModel(ModelClient):
    """Returns queued responses in order and records every call."""

    model_name = "gpt-4o-mini"

    def __init__(self, responses: list[ModelResponse]):
        self._responses = list(responses)
        self.calls: list[dict] = []

    async def invoke(
        self,
        messages: list[Message],
        tools: Optional[list[dict]] = None,
        response_schema: Optional[dict] = None,
    ) -> ModelResponse:
        self.calls.append({
            "messages": list(messages),
            "tools": tools,
            "response_schema": response_schema,
        })
        if not self._responses:
            raise AssertionError("ScriptedModel ran out of responses")
        return self._responses.pop(0)


def reply(content: str, input_tokens: int = 100, output_tokens: int = 20) -> ModelResponse:
    """A final answer without tool calls."""
    return ModelResponse(
        message=Message.ai(content),
        usage=TokenUsage(input_tokens, output_tokens, input_tokens + output_tokens),
    )


def tool_request(name: str, call_id: str = "call_1", **arguments) -> ModelResponse:
    """A response asking for a single tool call."""
    tool_calls = [ToolCall(id=call_id, name=name, arguments=arguments)]
    return ModelResponse(
        message=Message.ai("", tool_calls=tool_calls),
        tool_calls=tool_calls,
        usage=TokenUsage(100, 20, 120),
    )


@pytest.fixture(autouse=True)
def fresh_config():
    """Re-read configuration from the environment for every test."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def fake_embeddings():
    return FakeEmbeddings()


@pytest.fixture
def memory_store(fake_embeddings):
    from rag_agent_core.vectorstore import InMemoryVectorStore

    return InMemoryVectorStore(fake_embeddings)


@pytest.fixture
def scripted_model():
    """Factory: scripted_model([reply("hi")])."""
    return ScriptedModel
