"""
Tools exposed to the model, and the knowledge base search tool.
"""

import inspect
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Union

from rag_agent_core.citations import RETRIEVAL_TOOL_NAME
from rag_agent_core.rag.retriever import KnowledgeRetriever, QueryOptions

logger = logging.getLogger(__name__)

ToolHandler = Callable[..., Union[Any, Awaitable[Any]]]


@dataclass
class Tool:
    """A callable the model can request by name."""

    name: str
    description: str
    handler: ToolHandler
    parameters: dict = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    """JSON schema of the keyword arguments."""

    def to_openai_format(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    async def __call__(self, **arguments) -> Any:
        result = self.handler(**arguments)
        if inspect.isawaitable(result):
            result = await result
        return result


class ToolRegistry:
    """Explicitly registered tools, looked up by name."""

    def __init__(self, tools: Optional[list[Tool]] = None):
        self._tools: dict[str, Tool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def list_tools(self) -> list[Tool]:
        return list(self._tools.values())

    def to_openai_format(self) -> list[dict]:
        return [tool.to_openai_format() for tool in self._tools.values()]

    async def execute(self, name: str, arguments: dict) -> Any:
        """
        Run a tool.

        Raises:
            KeyError: If no tool is registered under name
        """
        tool = self.get(name)
        if tool is None:
            raise KeyError(f"Tool '{name}' not found")
        return await tool(**arguments)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools


RETRIEVAL_TOOL_DESCRIPTION = (
    "Search the knowledge base for relevant information from uploaded documents "
    "and files. Use this when the user asks about specific content, names, "
    "details, or information that might be stored in documents."
)

EMPTY_KNOWLEDGE_BASE_MESSAGE = (
    "The knowledge base is currently empty. No documents have been uploaded yet. "
    "Please add documents to the knowledge base before attempting to search."
)

MAX_LISTED_DOCUMENTS = 10


def _describe_strictness(options: QueryOptions) -> str:
    if options.min_score is not None:
        return f"Current minimum score: {options.min_score}"
    if options.strictness is not None:
        level = options.strictness
        level = getattr(level, "value", level)
        return (
            f'Current search strictness: "{level}" '
            f"(minimum score: {options.resolve_min_score()})"
        )
    return "Current search strictness: default settings"


async def _no_match_message(
    retriever: KnowledgeRetriever,
    options: QueryOptions,
    query: str,
    total: int,
) -> str:
    sample = await retriever.vector_store.get_by_filter({}, limit=MAX_LISTED_DOCUMENTS)
    listed = []
    for chunk in sample:
        entry = (
            f"- {chunk.metadata.get('filename', 'Unknown')} "
            f"({chunk.metadata.get('documentType', 'document')})"
        )
        if entry not in listed:
            listed.append(entry)

    return (
        f'SEARCH FAILED - No documents matched your query "{query}" due to relevance filtering.\n\n'
        f"{_describe_strictness(options)}\n\n"
        f"The knowledge base contains {total} chunks, but none met the current "
        f"similarity score threshold.\n\n"
        f"Available documents in the knowledge base:\n"
        f"{chr(10).join(listed[:MAX_LISTED_DOCUMENTS])}\n\n"
        f"IMPORTANT: You CANNOT change the search strictness settings. Only the user can.\n\n"
        f"Inform the user that:\n"
        f'- They can lower the strictness to "relaxed" or "all_results" in their configuration\n'
        f"- They can name the document they want (e.g. \"summarize <document name>.<extension>\")\n"
        f"- They can retry with keywords taken from the document names above"
    )


def create_retriever_tool(
    retriever: KnowledgeRetriever,
    options: Optional[QueryOptions] = None,
) -> Tool:
    """
    Build the search_knowledge_base tool.

    The tool returns a JSON array of {content, metadata} objects with the
    similarity score added to metadata, or a diagnostic string when the
    store is empty or nothing clears the score threshold.
    """
    options = options or retriever.default_options

    async def search_knowledge_base(query: str) -> str:
        logger.debug(f"Knowledge base search: {query!r}")

        total = await retriever.vector_store.count()
        if total == 0:
            logger.warning("Knowledge base search on an empty store")
            return EMPTY_KNOWLEDGE_BASE_MESSAGE

        results = await retriever.query(query, options)
        if not results:
            logger.info(f"No results above threshold for {query!r} ({total} chunks stored)")
            return await _no_match_message(retriever, options, query, total)

        return json.dumps([
            {"content": r.content, "metadata": {**r.metadata, "score": r.score}}
            for r in results
        ])

    return Tool(
        name=RETRIEVAL_TOOL_NAME,
        description=RETRIEVAL_TOOL_DESCRIPTION,
        handler=search_knowledge_base,
        parameters={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "The search query to find relevant documents",
                },
            },
            "required": ["query"],
        },
    )
