"""
Core data types and the model capability interface.

The agent loop only depends on ModelClient; concrete SDK adapters live in
rag_agent_core.llm.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class MessageRole(str, Enum):
    HUMAN = "human"
    AI = "ai"
    SYSTEM = "system"
    TOOL = "tool"


@dataclass
class ToolCall:
    """A tool invocation requested by the model."""

    id: str
    name: str
    arguments: dict = field(default_factory=dict)


@dataclass
class Citation:
    """A retrieved passage linked to the reply that used it."""

    id: int
    """Monotonic per run, starting at 1."""

    content: str

    metadata: dict = field(default_factory=dict)

    used_in_iteration: int = 0
    """Loop iteration in which the passage was retrieved."""

    used_by_message_id: Optional[str] = None
    """Id of the first assistant message produced after retrieval."""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "content": self.content,
            "metadata": self.metadata,
            "used_in_iteration": self.used_in_iteration,
            "used_by_message_id": self.used_by_message_id,
        }


@dataclass
class Message:
    """A single conversation message."""

    role: MessageRole
    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: Optional[str] = None
    name: Optional[str] = None
    citations: Optional[list[Citation]] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def human(cls, content: str) -> "Message":
        return cls(role=MessageRole.HUMAN, content=content)

    @classmethod
    def ai(cls, content: str, tool_calls: Optional[list[ToolCall]] = None) -> "Message":
        return cls(role=MessageRole.AI, content=content, tool_calls=tool_calls or [])

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def tool(cls, content: str, tool_call_id: str, name: Optional[str] = None) -> "Message":
        return cls(
            role=MessageRole.TOOL,
            content=content,
            tool_call_id=tool_call_id,
            name=name,
        )


@dataclass
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> "TokenUsage":
        input_tokens = int(data.get("input_tokens") or 0)
        output_tokens = int(data.get("output_tokens") or 0)
        total = data.get("total_tokens")
        return cls(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=int(total) if total is not None else input_tokens + output_tokens,
        )


@dataclass
class ModelResponse:
    """Response from a single model invocation."""

    message: Message

    tool_calls: list[ToolCall] = field(default_factory=list)

    usage: TokenUsage = field(default_factory=TokenUsage)

    structured_data: Optional[dict[str, Any]] = None
    """Parsed payload when the call was constrained to a response schema."""


class ModelClient(ABC):
    """
    Language model capability.

    Implementations convert Message objects to their provider's format and
    return the reply as a Message plus token usage.
    """

    model_name: str = "custom"

    @abstractmethod
    async def invoke(
        self,
        messages: list[Message],
        tools: Optional[list[dict]] = None,
        response_schema: Optional[dict] = None,
    ) -> ModelResponse:
        """
        Invoke the model.

        Args:
            messages: Conversation history
            tools: Tool definitions in OpenAI function format
            response_schema: JSON schema the reply must conform to

        Returns:
            ModelResponse with the reply message, tool calls and usage
        """
        ...
