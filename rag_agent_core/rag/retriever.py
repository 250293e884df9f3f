"""
Knowledge retrieval for RAG.

Runs similarity queries against a vector store and drops results below a
minimum score. The threshold comes from an explicit min_score or from a
named strictness level.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from rag_agent_core.errors import ConfigurationError, ExternalCapabilityError, RagAgentError
from rag_agent_core.vectorstore.base import ScoredChunk, VectorStore

logger = logging.getLogger(__name__)


class SearchMethod(str, Enum):
    SIMILARITY = "similarity"
    COSINE = "cosine"
    L2 = "l2"
    IP = "ip"
    FILTERED_SIMILARITY = "filtered_similarity"


class SearchStrictness(str, Enum):
    ALL_RESULTS = "all_results"
    RELAXED = "relaxed"
    BALANCED = "balanced"
    STRICT = "strict"


@dataclass(frozen=True)
class StrictnessInfo:
    level: SearchStrictness
    name: str
    description: str
    min_score: float


STRICTNESS_LEVELS: dict[SearchStrictness, StrictnessInfo] = {
    SearchStrictness.ALL_RESULTS: StrictnessInfo(
        level=SearchStrictness.ALL_RESULTS,
        name="All Results",
        description=(
            "No score filtering. Returns all results regardless of similarity. "
            "Suited to summarization and context gathering."
        ),
        min_score=0.0,
    ),
    SearchStrictness.RELAXED: StrictnessInfo(
        level=SearchStrictness.RELAXED,
        name="Relaxed",
        description="Lower similarity threshold for exploratory searches.",
        min_score=0.5,
    ),
    SearchStrictness.BALANCED: StrictnessInfo(
        level=SearchStrictness.BALANCED,
        name="Balanced",
        description="Moderate similarity requirement. Recommended for most use cases.",
        min_score=0.7,
    ),
    SearchStrictness.STRICT: StrictnessInfo(
        level=SearchStrictness.STRICT,
        name="Strict",
        description="Only highly relevant results. Best for precision-critical searches.",
        min_score=0.85,
    ),
}

SEARCH_METHOD_DESCRIPTIONS: dict[SearchMethod, str] = {
    SearchMethod.SIMILARITY: "Default similarity search using the store's distance metric",
    SearchMethod.COSINE: "Cosine similarity between query and chunk embeddings",
    SearchMethod.L2: "Euclidean (L2) distance between embeddings",
    SearchMethod.IP: "Inner product of embeddings",
    SearchMethod.FILTERED_SIMILARITY: "Similarity search restricted by a metadata filter",
}


def get_strictness_info(level: Union[SearchStrictness, str]) -> StrictnessInfo:
    try:
        return STRICTNESS_LEVELS[SearchStrictness(level)]
    except ValueError as e:
        valid = ", ".join(s.value for s in SearchStrictness)
        raise ConfigurationError(
            f"Unknown search strictness: {level!r}. Valid levels: {valid}"
        ) from e


def get_search_method_info(method: Union[SearchMethod, str]) -> str:
    try:
        return SEARCH_METHOD_DESCRIPTIONS[SearchMethod(method)]
    except ValueError as e:
        valid = ", ".join(m.value for m in SearchMethod)
        raise ConfigurationError(
            f"Unknown search method: {method!r}. Valid methods: {valid}"
        ) from e


@dataclass
class QueryOptions:
    """Options for a retrieval query."""

    max_results: int = 4
    """Number of results requested from the store (k)."""

    search_method: Union[SearchMethod, str] = SearchMethod.SIMILARITY

    metadata_filter: Optional[dict] = None
    """Equality filter on chunk metadata; required for filtered_similarity."""

    strictness: Optional[Union[SearchStrictness, str]] = None
    """Named threshold tier, used when min_score is not set."""

    min_score: Optional[float] = None
    """Explicit threshold; takes precedence over strictness."""

    def resolve_min_score(self) -> Optional[float]:
        if self.min_score is not None:
            return self.min_score
        if self.strictness is not None:
            return get_strictness_info(self.strictness).min_score
        return None


class KnowledgeRetriever:
    """
    Retrieves relevant chunks for a query.

    Every search method currently goes through the store's
    similarity_search; the method only changes validation.

    Usage:
        retriever = KnowledgeRetriever(store, QueryOptions(strictness="balanced"))
        hits = await retriever.query("What is the return policy?")
    """

    def __init__(
        self,
        vector_store: VectorStore,
        default_options: Optional[QueryOptions] = None,
    ):
        self._vector_store = vector_store
        self.default_options = default_options or QueryOptions()

    @property
    def vector_store(self) -> VectorStore:
        return self._vector_store

    async def query(
        self,
        text: str,
        options: Optional[QueryOptions] = None,
    ) -> list[ScoredChunk]:
        """
        Query the store.

        Raises:
            ConfigurationError: For an empty query, a non-positive
                max_results, or filtered_similarity without a filter
            ExternalCapabilityError: If the store fails
        """
        options = options or self.default_options

        if not text or not text.strip():
            raise ConfigurationError("Query text must not be empty")
        if options.max_results < 1:
            raise ConfigurationError(
                f"max_results must be at least 1, got {options.max_results}"
            )

        try:
            method = SearchMethod(options.search_method)
        except ValueError as e:
            raise ConfigurationError(
                f"Unknown search method: {options.search_method!r}"
            ) from e

        if method == SearchMethod.FILTERED_SIMILARITY and not options.metadata_filter:
            raise ConfigurationError("filtered_similarity requires a metadata filter")

        min_score = options.resolve_min_score()

        try:
            results = await self._vector_store.similarity_search(
                text,
                options.max_results,
                options.metadata_filter or None,
            )
        except RagAgentError:
            raise
        except Exception as e:
            raise ExternalCapabilityError(f"Failed to query documents: {e}") from e

        if min_score is not None:
            kept = [r for r in results if r.score >= min_score]
            logger.debug(
                f"Query returned {len(results)} results, {len(kept)} above {min_score}"
            )
            results = kept

        return results
