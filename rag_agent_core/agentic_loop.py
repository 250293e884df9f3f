"""
Bounded tool-calling loop for knowledge-base agents.

`run_agent_loop` handles the standard pattern:
1. Call the model with the available tools
2. If it requests tools, run them, append the results and loop back
3. If it replies without tool calls, finish

The knowledge base search tool is added when a retriever is configured.
Retrieved passages become citations linked to the reply that used them,
and every model call is recorded by a UsageAccountant.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from rag_agent_core.citations import CitationTracker
from rag_agent_core.config import get_config
from rag_agent_core.errors import (
    CapabilityTimeoutError,
    ExternalCapabilityError,
    RagAgentError,
)
from rag_agent_core.interfaces import (
    Citation,
    Message,
    MessageRole,
    ModelClient,
    ModelResponse,
    ToolCall,
)
from rag_agent_core.rag.retriever import KnowledgeRetriever, QueryOptions
from rag_agent_core.tools import Tool, ToolRegistry, create_retriever_tool
from rag_agent_core.usage import (
    UsageAccountant,
    UsageEntry,
    format_cost,
    get_total_usage,
)

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 5


class LoopState(str, Enum):
    INIT = "init"
    MODEL_CALL = "model_call"
    TOOLS = "tools"
    DONE = "done"


@dataclass
class AgentLoopResult:
    """Result from running the agent loop."""

    messages: list[Message]
    """Conversation after the run, without the prepended system prompt."""

    response: Message
    """The final reply (or the last message if the iteration cap was hit)."""

    citations: Optional[list[Citation]] = None
    """None when no retrieval happened; empty when retrieval found nothing."""

    structured_data: Optional[dict[str, Any]] = None

    usage_per_node: list[UsageEntry] = field(default_factory=list)

    iterations: int = 0


async def invoke_with_timeout(
    model: ModelClient,
    messages: list[Message],
    tools: Optional[list[dict]] = None,
    response_schema: Optional[dict] = None,
    timeout: Optional[float] = None,
) -> ModelResponse:
    """
    Invoke the model, converting failures to capability errors.

    Raises:
        CapabilityTimeoutError: If the call takes longer than timeout seconds
        ExternalCapabilityError: If the model client fails
    """
    started = time.monotonic()
    call = model.invoke(messages, tools=tools, response_schema=response_schema)
    try:
        if timeout:
            return await asyncio.wait_for(call, timeout)
        return await call
    except asyncio.TimeoutError as e:
        elapsed = time.monotonic() - started
        raise CapabilityTimeoutError(
            f"Model call timed out after {elapsed:.1f}s",
            elapsed=elapsed,
            timeout=timeout,
        ) from e
    except RagAgentError:
        raise
    except Exception as e:
        raise ExternalCapabilityError(f"Model invocation failed: {e}") from e


def _parse_structured(response: ModelResponse) -> dict:
    if response.structured_data is not None:
        return response.structured_data
    try:
        data = json.loads(response.message.content)
    except json.JSONDecodeError as e:
        raise ExternalCapabilityError(
            f"Model returned invalid structured output: {e}"
        ) from e
    if not isinstance(data, dict):
        raise ExternalCapabilityError("Model returned structured output that is not an object")
    return data


def _structured_message(data: dict, message_id: Optional[str] = None) -> Message:
    message = Message.ai(json.dumps(data, indent=2))
    if message_id:
        message.id = message_id
    return message


def _build_registry(
    tools: Optional[Union[ToolRegistry, list[Tool]]],
    retriever: Optional[KnowledgeRetriever],
    query_options: Optional[QueryOptions],
) -> ToolRegistry:
    if isinstance(tools, ToolRegistry):
        registry = ToolRegistry(tools.list_tools())
    else:
        registry = ToolRegistry(tools or [])
    if retriever is not None:
        registry.register(create_retriever_tool(retriever, query_options))
    return registry


async def _execute_tool_call(
    registry: ToolRegistry,
    tool_call: ToolCall,
    tracker: CitationTracker,
    iteration: int,
) -> Message:
    tool = registry.get(tool_call.name)
    if tool is None:
        logger.warning(f"Model requested unknown tool: {tool_call.name}")
        return Message.tool(
            f"Error: Tool '{tool_call.name}' not found",
            tool_call_id=tool_call.id,
        )

    try:
        result = await tool(**(tool_call.arguments or {}))
    except Exception as e:
        logger.exception(f"Error executing tool {tool_call.name}")
        return Message.tool(
            f"Error executing tool: {e}",
            tool_call_id=tool_call.id,
            name=tool_call.name,
        )

    content = result if isinstance(result, str) else json.dumps(result)
    tracker.observe_tool_result(tool_call.name, content, iteration)
    return Message.tool(content, tool_call_id=tool_call.id, name=tool_call.name)


async def run_agent_loop(
    model: ModelClient,
    messages: list[Message],
    *,
    retriever: Optional[KnowledgeRetriever] = None,
    tools: Optional[Union[ToolRegistry, list[Tool]]] = None,
    system_prompt: Optional[str] = None,
    response_schema: Optional[dict] = None,
    usage: Optional[UsageAccountant] = None,
    node_name: str = "agent",
    query_options: Optional[QueryOptions] = None,
    max_iterations: int = MAX_ITERATIONS,
    timeout: Optional[float] = None,
) -> AgentLoopResult:
    """
    Run the tool-calling loop.

    Args:
        model: Model capability
        messages: Conversation so far
        retriever: Enables the search_knowledge_base tool
        tools: Additional tools
        system_prompt: Prepended as a system message
        response_schema: JSON schema for a final structured extraction call
        usage: Accountant for this run (one is created if omitted)
        node_name: Recorded on every usage entry
        query_options: Options used by the knowledge base search tool
        max_iterations: Model calls allowed before the loop stops
        timeout: Per model call timeout in seconds

    Returns:
        AgentLoopResult. Hitting max_iterations is not an error; the last
        message in the conversation is returned as the response.

    Example:
        result = await run_agent_loop(
            model=get_llm_client(),
            messages=[Message.human("What does the handbook say about leave?")],
            retriever=KnowledgeRetriever(store, QueryOptions(strictness="balanced")),
            system_prompt=KNOWLEDGE_BASE_SYSTEM_PROMPT,
        )
        for citation in result.citations or []:
            print(citation.metadata.get("filename"), citation.used_by_message_id)
    """
    debug_mode = get_config().debug
    usage = usage or UsageAccountant(getattr(model, "model_name", "custom"))
    tracker = CitationTracker()

    state = LoopState.INIT
    history = list(messages)
    if system_prompt:
        history.insert(0, Message.system(system_prompt))
    offset = 1 if system_prompt else 0

    registry = _build_registry(tools, retriever, query_options)

    if not len(registry):
        # Nothing to call: a single model call, no loop
        response = await invoke_with_timeout(
            model, history, response_schema=response_schema, timeout=timeout
        )
        usage.record_usage(node_name, "invoke_model", response.usage)
        if response_schema is not None:
            structured_data = _parse_structured(response)
            reply = _structured_message(structured_data, response.message.id)
        else:
            structured_data = None
            reply = response.message
        return AgentLoopResult(
            messages=[reply],
            response=reply,
            structured_data=structured_data,
            usage_per_node=usage.drain(),
            iterations=1,
        )

    tool_definitions = registry.to_openai_format()
    final: Optional[Message] = None
    iteration = 0

    while iteration < max_iterations:
        iteration += 1
        state = LoopState.MODEL_CALL
        logger.debug(f"Agent loop iteration {iteration}/{max_iterations}")
        if debug_mode:
            print(f"[agent-loop] Iteration {iteration}/{max_iterations}, messages={len(history)}", flush=True)

        response = await invoke_with_timeout(
            model, history, tools=tool_definitions, timeout=timeout
        )
        entry = usage.record_usage(node_name, "invoke_agent", response.usage, iteration=iteration)
        if debug_mode:
            print(
                f"[agent-loop] Model call: {entry.usage.input_tokens:,} in / "
                f"{entry.usage.output_tokens:,} out = {format_cost(entry.usage.total_cost)}",
                flush=True,
            )

        tool_calls = response.tool_calls or response.message.tool_calls
        if tool_calls and not response.message.tool_calls:
            response.message.tool_calls = list(tool_calls)
        history.append(response.message)
        tracker.link_pending(response.message.id)

        if not tool_calls:
            final = response.message
            state = LoopState.DONE
            break

        state = LoopState.TOOLS
        for tool_call in tool_calls:
            if debug_mode:
                print(f"[agent-loop] Tool: {tool_call.name} args={tool_call.arguments}", flush=True)
            history.append(
                await _execute_tool_call(registry, tool_call, tracker, iteration)
            )

    if final is None:
        logger.warning(
            f"Agent loop reached {max_iterations} iterations without a final reply"
        )
        final = history[-1]
        tracker.link_pending(final.id)
        state = LoopState.DONE

    structured_data = None
    if response_schema is not None:
        structured = await invoke_with_timeout(
            model, history, response_schema=response_schema, timeout=timeout
        )
        usage.record_usage(node_name, "structured_output", structured.usage, iteration=iteration)
        structured_data = _parse_structured(structured)
        # Keep the id so citations stay linked to the returned reply
        reply_id = final.id if final.role == MessageRole.AI else None
        final = _structured_message(structured_data, reply_id)

    citations = tracker.citations if tracker.has_observed else None
    if citations and final.role == MessageRole.AI:
        final.citations = citations

    usage_entries = usage.drain()
    if debug_mode:
        total = get_total_usage(usage_entries)
        print(
            f"[agent-loop] Finished in state={state.value} after {iteration} iterations: "
            f"{total.total_tokens:,} tokens, {format_cost(total.total_cost)}",
            flush=True,
        )

    return AgentLoopResult(
        messages=history[offset:],
        response=final,
        citations=citations,
        structured_data=structured_data,
        usage_per_node=usage_entries,
        iterations=iteration,
    )
