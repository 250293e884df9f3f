"""
Citation tracking for retrieval tool results.

Passages returned by the knowledge base search tool are recorded once per
run and linked to the first assistant message produced after retrieval.
"""

import json
import logging
from typing import Any, Optional

from rag_agent_core.interfaces import Citation

logger = logging.getLogger(__name__)

RETRIEVAL_TOOL_NAME = "search_knowledge_base"


class CitationTracker:
    """
    Run-scoped citation accumulator.

    Passages are de-duplicated on (content, metadata filename) across the
    whole run. Create one tracker per run.
    """

    def __init__(self, tool_name: str = RETRIEVAL_TOOL_NAME):
        self.tool_name = tool_name
        self._citations: list[Citation] = []
        self._pending: list[Citation] = []
        self._seen: set[tuple[str, Optional[str]]] = set()
        self._next_id = 1
        # Set once a retrieval result was seen, even one that matched nothing
        self.has_observed = False

    @property
    def citations(self) -> list[Citation]:
        return list(self._citations)

    @property
    def pending(self) -> list[Citation]:
        return list(self._pending)

    def observe_tool_result(
        self,
        tool_name: str,
        raw_result: Any,
        iteration: int,
    ) -> list[Citation]:
        """
        Record passages from a retrieval tool result.

        Returns the citations created by this call. Results from other tools
        and payloads that are not a JSON array (diagnostic strings) are ignored.
        """
        if tool_name != self.tool_name:
            return []

        self.has_observed = True

        items = raw_result
        if isinstance(raw_result, str):
            try:
                items = json.loads(raw_result)
            except json.JSONDecodeError:
                logger.debug("Retrieval result is not JSON, no citations recorded")
                return []
        if not isinstance(items, list):
            return []

        created = []
        for item in items:
            if not isinstance(item, dict) or "content" not in item:
                continue
            content = str(item["content"])
            metadata = item.get("metadata") or {}
            key = (content, metadata.get("filename"))
            if key in self._seen:
                continue
            self._seen.add(key)

            citation = Citation(
                id=self._next_id,
                content=content,
                metadata=metadata,
                used_in_iteration=iteration,
            )
            self._next_id += 1
            self._citations.append(citation)
            self._pending.append(citation)
            created.append(citation)

        return created

    def link_pending(self, message_id: str) -> int:
        """Stamp every pending citation with message_id and clear the buffer."""
        count = len(self._pending)
        for citation in self._pending:
            citation.used_by_message_id = message_id
        self._pending = []
        return count
