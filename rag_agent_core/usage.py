"""
Token usage and cost accounting.

A UsageAccountant is created per run. Each model call is recorded as a
UsageEntry with input/output cost computed from MODEL_PRICING, and the
entries are drained once the run finishes.
"""

import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Union

from rag_agent_core.interfaces import TokenUsage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelPricing:
    """Price in USD per million tokens."""

    input_per_million: float
    output_per_million: float


ZERO_PRICING = ModelPricing(0.0, 0.0)

# Pricing per 1M tokens (input/output)
# These are approximate and should be updated as pricing changes
MODEL_PRICING: dict[str, ModelPricing] = {
    # OpenAI
    "gpt-4o": ModelPricing(2.50, 10.00),
    "gpt-4o-mini": ModelPricing(0.15, 0.60),
    "gpt-4.1-mini": ModelPricing(0.15, 0.60),
    "gpt-4-turbo": ModelPricing(10.00, 30.00),
    "gpt-4": ModelPricing(30.00, 60.00),
    "gpt-5.1": ModelPricing(10.00, 30.00),
    "gpt-3.5-turbo": ModelPricing(0.50, 1.50),
    "gpt-3.5-turbo-16k": ModelPricing(3.00, 4.00),
    "o1": ModelPricing(15.00, 60.00),
    "o1-mini": ModelPricing(3.00, 12.00),
    "o3-mini": ModelPricing(1.10, 4.40),
    "text-embedding-ada-002": ModelPricing(0.10, 0.0),
    "text-embedding-3-small": ModelPricing(0.02, 0.0),
    "text-embedding-3-large": ModelPricing(0.13, 0.0),
    # Azure OpenAI
    "azure-gpt-4": ModelPricing(30.00, 60.00),
    "azure-gpt-3.5-turbo": ModelPricing(0.50, 1.50),
    # Anthropic
    "claude-3-opus": ModelPricing(15.00, 75.00),
    "claude-3-sonnet": ModelPricing(3.00, 15.00),
    "claude-3.5-sonnet": ModelPricing(3.00, 15.00),
    "claude-3-5-sonnet": ModelPricing(3.00, 15.00),
    "claude-3-5-haiku": ModelPricing(0.80, 4.00),
    "claude-3-haiku": ModelPricing(0.25, 1.25),
    # Self-hosted models
    "custom": ZERO_PRICING,
}


def get_model_pricing(
    model_name: str,
    pricing_table: Optional[dict[str, ModelPricing]] = None,
) -> Optional[ModelPricing]:
    """
    Look up pricing for a model.

    Tries an exact match, then the longest key the name starts with
    (e.g. "gpt-4o-mini-2024-07-18" -> "gpt-4o-mini"). Returns None if the
    model is not registered.
    """
    table = MODEL_PRICING if pricing_table is None else pricing_table
    if model_name in table:
        return table[model_name]
    prefixes = [key for key in table if model_name.startswith(key)]
    if prefixes:
        return table[max(prefixes, key=len)]
    return None


@dataclass
class CostedUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    input_cost: float = 0.0
    output_cost: float = 0.0
    total_cost: float = 0.0

    def to_dict(self) -> dict:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
            "input_cost": self.input_cost,
            "output_cost": self.output_cost,
            "total_cost": self.total_cost,
        }


@dataclass
class UsageEntry:
    """Usage and cost of a single model invocation."""

    model_name: str
    node_name: str
    invoke_method: str
    usage: CostedUsage
    iteration: Optional[int] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "model_name": self.model_name,
            "node_name": self.node_name,
            "invoke_method": self.invoke_method,
            "timestamp": self.timestamp,
            "iteration": self.iteration,
            "usage": self.usage.to_dict(),
        }


def calculate_cost(usage: TokenUsage, pricing: ModelPricing) -> CostedUsage:
    """Apply per-million pricing to token counts. No rounding is applied."""
    input_cost = (usage.input_tokens / 1_000_000) * pricing.input_per_million
    output_cost = (usage.output_tokens / 1_000_000) * pricing.output_per_million
    return CostedUsage(
        input_tokens=usage.input_tokens,
        output_tokens=usage.output_tokens,
        total_tokens=usage.total_tokens,
        input_cost=input_cost,
        output_cost=output_cost,
        total_cost=input_cost + output_cost,
    )


class UsageAccountant:
    """
    Run-scoped accumulator of UsageEntry records.

    Not safe to share between concurrent runs; create one per run.
    """

    def __init__(
        self,
        model_name: str,
        pricing: Optional[dict[str, ModelPricing]] = None,
    ):
        self.model_name = model_name
        self._pricing_table = pricing
        self._entries: list[UsageEntry] = []
        self._pricing: Optional[ModelPricing] = None

    @property
    def pricing(self) -> ModelPricing:
        if self._pricing is None:
            found = get_model_pricing(self.model_name, self._pricing_table)
            if found is None:
                logger.warning(
                    f"No pricing registered for model '{self.model_name}', "
                    f"recording zero cost"
                )
                found = ZERO_PRICING
            self._pricing = found
        return self._pricing

    @property
    def entries(self) -> list[UsageEntry]:
        return list(self._entries)

    def record_usage(
        self,
        node_name: str,
        invoke_method: str,
        usage: Union[TokenUsage, dict],
        iteration: Optional[int] = None,
    ) -> UsageEntry:
        """Convert raw token counts into a costed entry and keep it."""
        if isinstance(usage, dict):
            usage = TokenUsage.from_dict(usage)

        entry = UsageEntry(
            model_name=self.model_name,
            node_name=node_name,
            invoke_method=invoke_method,
            usage=calculate_cost(usage, self.pricing),
            iteration=iteration,
        )
        self._entries.append(entry)
        logger.debug(
            f"Usage [{node_name}/{invoke_method}] {usage.input_tokens} in / "
            f"{usage.output_tokens} out = {format_cost(entry.usage.total_cost)}"
        )
        return entry

    def drain(self) -> list[UsageEntry]:
        """Return all recorded entries and clear them."""
        entries, self._entries = self._entries, []
        return entries


# =============================================================================
# Aggregation helpers
# =============================================================================


def get_total_usage(entries: list[UsageEntry]) -> CostedUsage:
    total = CostedUsage()
    for entry in entries:
        total.input_tokens += entry.usage.input_tokens
        total.output_tokens += entry.usage.output_tokens
        total.total_tokens += entry.usage.total_tokens
        total.input_cost += entry.usage.input_cost
        total.output_cost += entry.usage.output_cost
        total.total_cost += entry.usage.total_cost
    return total


def get_total_cost(entries: list[UsageEntry]) -> float:
    return sum(entry.usage.total_cost for entry in entries)


def get_usage_by_node(entries: list[UsageEntry]) -> dict[str, list[UsageEntry]]:
    by_node: dict[str, list[UsageEntry]] = {}
    for entry in entries:
        by_node.setdefault(entry.node_name, []).append(entry)
    return by_node


def get_per_node_costs(entries: list[UsageEntry]) -> dict[str, float]:
    return {
        node: get_total_cost(node_entries)
        for node, node_entries in get_usage_by_node(entries).items()
    }


def format_cost(cost: float) -> str:
    """Format cost for display."""
    return f"${cost:.6f}"


def format_tokens(tokens: int) -> str:
    return f"{tokens:,}"


def get_summary(entries: list[UsageEntry]) -> dict:
    """Per-node breakdown plus totals, formatted for logs and API responses."""
    nodes = {}
    for node, node_entries in get_usage_by_node(entries).items():
        node_total = get_total_usage(node_entries)
        nodes[node] = {
            "calls": len(node_entries),
            "input_tokens": node_total.input_tokens,
            "output_tokens": node_total.output_tokens,
            "total_tokens": node_total.total_tokens,
            "total_cost": node_total.total_cost,
            "formatted_cost": format_cost(node_total.total_cost),
        }

    total = get_total_usage(entries)
    return {
        "calls": len(entries),
        "nodes": nodes,
        "total_tokens": total.total_tokens,
        "formatted_tokens": format_tokens(total.total_tokens),
        "total_cost": total.total_cost,
        "formatted_cost": format_cost(total.total_cost),
    }


def count_tokens(text: str) -> int:
    """Rough token estimate (about four characters per token)."""
    if not text:
        return 0
    return math.ceil(len(text) / 4)
