"""
KnowledgeChat - a chat agent with optional knowledge base search.

Wraps run_agent_loop with the default prompts and a fresh usage
accountant per run.
"""

import logging
from typing import Optional, Union

from rag_agent_core.agentic_loop import AgentLoopResult, run_agent_loop
from rag_agent_core.config import get_config
from rag_agent_core.errors import ConfigurationError
from rag_agent_core.interfaces import Message, MessageRole, ModelClient
from rag_agent_core.prompts import DEFAULT_CHAT_PROMPT, KNOWLEDGE_BASE_SYSTEM_PROMPT
from rag_agent_core.rag.retriever import KnowledgeRetriever, QueryOptions
from rag_agent_core.structured import StructuredAttribute, build_response_schema
from rag_agent_core.tools import Tool, ToolRegistry
from rag_agent_core.usage import UsageAccountant

logger = logging.getLogger(__name__)


class KnowledgeChat:
    """
    Chat agent answering from the latest user message.

    Example:
        chat = KnowledgeChat(
            model=get_llm_client(),
            retriever=KnowledgeRetriever(store, QueryOptions(strictness="balanced")),
        )
        result = await chat.run([Message.human("What is our refund policy?")])
        print(result.response.content)
    """

    def __init__(
        self,
        model: ModelClient,
        retriever: Optional[KnowledgeRetriever] = None,
        tools: Optional[Union[ToolRegistry, list[Tool]]] = None,
        attributes: Optional[list[StructuredAttribute]] = None,
        system_prompt: Optional[str] = None,
        query_options: Optional[QueryOptions] = None,
        node_name: str = "chat",
    ):
        self.model = model
        self.retriever = retriever
        self.tools = tools
        self.response_schema = build_response_schema(attributes) if attributes else None
        self.query_options = query_options
        self.node_name = node_name
        self._system_prompt = system_prompt

    @property
    def system_prompt(self) -> str:
        if self._system_prompt:
            return self._system_prompt
        if self.retriever is not None:
            return KNOWLEDGE_BASE_SYSTEM_PROMPT
        return DEFAULT_CHAT_PROMPT

    async def run(self, messages: list[Message]) -> AgentLoopResult:
        """
        Answer the most recent human message.

        Raises:
            ConfigurationError: If there is no human message
        """
        latest = next(
            (m for m in reversed(messages) if m.role == MessageRole.HUMAN), None
        )
        if latest is None:
            raise ConfigurationError("At least one human message is required")

        logger.debug(f"[{self.node_name}] Running on: {latest.content[:80]!r}")
        config = get_config()
        return await run_agent_loop(
            self.model,
            [latest],
            retriever=self.retriever,
            tools=self.tools,
            system_prompt=self.system_prompt,
            response_schema=self.response_schema,
            usage=UsageAccountant(getattr(self.model, "model_name", "custom")),
            node_name=self.node_name,
            query_options=self.query_options,
            max_iterations=config.max_iterations,
            timeout=config.request_timeout,
        )
