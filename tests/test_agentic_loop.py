"""
Tests for the bounded tool-calling loop.
"""

import asyncio
import json
import logging

import pytest
from unittest.mock import AsyncMock

from conftest import reply, tool_request


@pytest.fixture
def knowledge_store():
    """Mock store holding a single relevant passage."""
    from rag_agent_core.vectorstore import ScoredChunk

    store = AsyncMock()
    store.count.return_value = 1
    store.get_by_filter.return_value = []
    store.similarity_search.return_value = [
        ScoredChunk(content="Leave is 25 days.", metadata={"filename": "hr.pdf"}, score=0.9),
    ]
    return store


@pytest.fixture
def retriever(knowledge_store):
    from rag_agent_core.rag import KnowledgeRetriever

    return KnowledgeRetriever(knowledge_store)


def _ping_tool():
    from rag_agent_core.tools import Tool

    return Tool(name="ping", description="Ping", handler=lambda: "pong")


class TestSingleCall:
    """Without tools the loop makes exactly one call."""

    @pytest.mark.asyncio
    async def test_no_tools(self, scripted_model):
        from rag_agent_core.agentic_loop import run_agent_loop
        from rag_agent_core.interfaces import Message

        model = scripted_model([reply("Hello!")])
        result = await run_agent_loop(model, [Message.human("Hi")])

        assert result.response.content == "Hello!"
        assert result.messages == [result.response]
        assert result.iterations == 1
        assert result.citations is None
        assert [e.invoke_method for e in result.usage_per_node] == ["invoke_model"]
        assert model.calls[0]["tools"] is None

    @pytest.mark.asyncio
    async def test_no_tools_structured(self, scripted_model):
        from rag_agent_core.agentic_loop import run_agent_loop
        from rag_agent_core.interfaces import Message, ModelResponse

        schema = {"type": "object", "properties": {"answer": {"type": "string"}}}
        model = scripted_model([
            ModelResponse(message=Message.ai('{"answer": "yes"}')),
        ])

        result = await run_agent_loop(model, [Message.human("Q")], response_schema=schema)

        assert result.structured_data == {"answer": "yes"}
        assert json.loads(result.response.content) == {"answer": "yes"}
        assert model.calls[0]["response_schema"] == schema


class TestToolLoop:
    """Tests for the iterative tool-calling path."""

    @pytest.mark.asyncio
    async def test_direct_answer_with_tools_available(self, scripted_model, retriever):
        from rag_agent_core.agentic_loop import run_agent_loop
        from rag_agent_core.interfaces import Message

        model = scripted_model([reply("Nothing to look up.")])
        result = await run_agent_loop(model, [Message.human("Hi")], retriever=retriever)

        assert result.iterations == 1
        assert result.citations is None
        assert result.usage_per_node[0].invoke_method == "invoke_agent"
        assert result.usage_per_node[0].iteration == 1

    @pytest.mark.asyncio
    async def test_retrieval_produces_linked_citations(self, scripted_model, retriever):
        from rag_agent_core.agentic_loop import run_agent_loop
        from rag_agent_core.interfaces import Message, MessageRole

        model = scripted_model([
            tool_request("search_knowledge_base", query="leave days"),
            reply("You get 25 days."),
        ])

        result = await run_agent_loop(model, [Message.human("How much leave?")], retriever=retriever)

        assert result.iterations == 2
        assert result.response.content == "You get 25 days."
        assert [m.role for m in result.messages] == [
            MessageRole.HUMAN, MessageRole.AI, MessageRole.TOOL, MessageRole.AI,
        ]
        tool_message = result.messages[2]
        assert tool_message.tool_call_id == "call_1"
        assert json.loads(tool_message.content)[0]["metadata"]["score"] == 0.9

        [citation] = result.citations
        assert citation.id == 1
        assert citation.content == "Leave is 25 days."
        assert citation.used_in_iteration == 1
        assert citation.used_by_message_id == result.response.id
        assert result.response.citations == result.citations
        assert [e.iteration for e in result.usage_per_node] == [1, 2]

    @pytest.mark.asyncio
    async def test_retrieval_without_matches_gives_empty_citations(
        self, scripted_model, retriever, knowledge_store
    ):
        from rag_agent_core.agentic_loop import run_agent_loop
        from rag_agent_core.interfaces import Message

        knowledge_store.count.return_value = 0
        model = scripted_model([
            tool_request("search_knowledge_base", query="leave"),
            reply("The knowledge base is empty."),
        ])

        result = await run_agent_loop(model, [Message.human("Leave?")], retriever=retriever)

        assert result.citations == []
        assert result.response.citations is None

    @pytest.mark.asyncio
    async def test_iteration_cap(self, scripted_model, caplog):
        from rag_agent_core.agentic_loop import run_agent_loop
        from rag_agent_core.interfaces import Message, MessageRole

        model = scripted_model([tool_request("ping", call_id=f"call_{i}") for i in range(5)])

        with caplog.at_level(logging.WARNING, logger="rag_agent_core.agentic_loop"):
            result = await run_agent_loop(
                model, [Message.human("loop")], tools=[_ping_tool()], max_iterations=5
            )

        assert len(model.calls) == 5
        assert result.iterations == 5
        assert result.response.role == MessageRole.TOOL
        assert result.response is result.messages[-1]
        assert len(result.messages) == 11
        assert len(result.usage_per_node) == 5
        assert "reached 5 iterations" in caplog.text

    @pytest.mark.asyncio
    async def test_citations_link_to_next_assistant_turn(self, scripted_model, retriever):
        from rag_agent_core.agentic_loop import run_agent_loop
        from rag_agent_core.interfaces import Message

        second = tool_request("ping", call_id="call_2")
        model = scripted_model([
            tool_request("search_knowledge_base", query="leave"),
            second,
            reply("done"),
        ])

        result = await run_agent_loop(
            model, [Message.human("Leave?")], retriever=retriever, tools=[_ping_tool()]
        )

        [citation] = result.citations
        assert citation.used_by_message_id == second.message.id
        assert citation.used_by_message_id != result.response.id

    @pytest.mark.asyncio
    async def test_repeated_retrieval_yields_one_citation(self, scripted_model, retriever):
        from rag_agent_core.agentic_loop import run_agent_loop
        from rag_agent_core.interfaces import Message

        model = scripted_model([
            tool_request("search_knowledge_base", call_id="call_1", query="leave"),
            tool_request("search_knowledge_base", call_id="call_2", query="annual leave"),
            reply("You get 25 days."),
        ])

        result = await run_agent_loop(model, [Message.human("Leave?")], retriever=retriever)

        assert len(result.citations) == 1
        assert result.citations[0].id == 1
        assert result.citations[0].used_in_iteration == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_iterations", [1, 2])
    async def test_cap_after_retrieval_links_every_citation(
        self, scripted_model, retriever, knowledge_store, max_iterations
    ):
        from rag_agent_core.agentic_loop import run_agent_loop
        from rag_agent_core.interfaces import Message
        from rag_agent_core.vectorstore import ScoredChunk

        knowledge_store.similarity_search.side_effect = [
            [ScoredChunk(content="Leave is 25 days.", metadata={"filename": "hr.pdf"}, score=0.9)],
            [ScoredChunk(content="Sick leave is paid.", metadata={"filename": "hr.pdf"}, score=0.8)],
        ]
        model = scripted_model([
            tool_request("search_knowledge_base", call_id=f"call_{i}", query="leave")
            for i in range(max_iterations)
        ])

        result = await run_agent_loop(
            model, [Message.human("Leave?")], retriever=retriever, max_iterations=max_iterations
        )

        assert result.iterations == max_iterations
        assert len(result.citations) == max_iterations
        assert all(c.used_by_message_id is not None for c in result.citations)

    @pytest.mark.asyncio
    async def test_structured_reply_after_cap_gets_its_own_id(self, scripted_model):
        from rag_agent_core.agentic_loop import run_agent_loop
        from rag_agent_core.interfaces import Message, MessageRole, ModelResponse

        model = scripted_model([
            tool_request("ping"),
            ModelResponse(message=Message.ai(""), structured_data={"answer": "pong"}),
        ])

        result = await run_agent_loop(
            model,
            [Message.human("Ping?")],
            tools=[_ping_tool()],
            response_schema={"type": "object"},
            max_iterations=1,
        )

        last = result.messages[-1]
        assert last.role == MessageRole.TOOL
        assert result.response.role == MessageRole.AI
        assert result.response.id != last.id
        assert result.structured_data == {"answer": "pong"}

    @pytest.mark.asyncio
    async def test_unknown_tool(self, scripted_model):
        from rag_agent_core.agentic_loop import run_agent_loop
        from rag_agent_core.interfaces import Message

        model = scripted_model([tool_request("missing_tool"), reply("Sorry.")])
        result = await run_agent_loop(model, [Message.human("Hi")], tools=[_ping_tool()])

        assert result.messages[2].content == "Error: Tool 'missing_tool' not found"
        assert result.response.content == "Sorry."

    @pytest.mark.asyncio
    async def test_tool_exception_becomes_tool_message(self, scripted_model):
        from rag_agent_core.agentic_loop import run_agent_loop
        from rag_agent_core.interfaces import Message
        from rag_agent_core.tools import Tool

        def explode():
            raise ValueError("boom")

        model = scripted_model([tool_request("explode"), reply("Recovered.")])
        result = await run_agent_loop(
            model,
            [Message.human("Hi")],
            tools=[Tool(name="explode", description="Fails", handler=explode)],
        )

        assert result.messages[2].content == "Error executing tool: boom"
        assert result.response.content == "Recovered."

    @pytest.mark.asyncio
    async def test_caller_tools_listed_before_retriever(self, scripted_model, retriever):
        from rag_agent_core.agentic_loop import run_agent_loop
        from rag_agent_core.interfaces import Message

        model = scripted_model([reply("ok")])
        await run_agent_loop(
            model, [Message.human("Hi")], retriever=retriever, tools=[_ping_tool()]
        )

        names = [t["function"]["name"] for t in model.calls[0]["tools"]]
        assert names == ["ping", "search_knowledge_base"]

    @pytest.mark.asyncio
    async def test_system_prompt_is_sent_but_not_returned(self, scripted_model):
        from rag_agent_core.agentic_loop import run_agent_loop
        from rag_agent_core.interfaces import Message, MessageRole

        model = scripted_model([tool_request("ping"), reply("done")])
        result = await run_agent_loop(
            model, [Message.human("Hi")], tools=[_ping_tool()], system_prompt="Be brief."
        )

        sent = model.calls[0]["messages"]
        assert sent[0].role == MessageRole.SYSTEM
        assert sent[0].content == "Be brief."
        assert result.messages[0].role == MessageRole.HUMAN
        assert all(m.role != MessageRole.SYSTEM for m in result.messages)

    @pytest.mark.asyncio
    async def test_structured_output_after_loop(self, scripted_model, retriever):
        from rag_agent_core.agentic_loop import run_agent_loop
        from rag_agent_core.interfaces import Message, ModelResponse

        schema = {"type": "object", "properties": {"days": {"type": "number"}}}
        model = scripted_model([
            tool_request("search_knowledge_base", query="leave"),
            reply("You get 25 days."),
            ModelResponse(message=Message.ai(""), structured_data={"days": 25}),
        ])

        result = await run_agent_loop(
            model, [Message.human("Leave?")], retriever=retriever, response_schema=schema
        )

        assert result.structured_data == {"days": 25}
        assert json.loads(result.response.content) == {"days": 25}
        assert [e.invoke_method for e in result.usage_per_node] == [
            "invoke_agent", "invoke_agent", "structured_output",
        ]
        assert model.calls[2]["response_schema"] == schema
        # Citations stay linked to the returned reply
        assert result.citations[0].used_by_message_id == result.response.id


class TestModelFailures:
    """Model errors and timeouts."""

    @pytest.mark.asyncio
    async def test_model_exception_is_wrapped(self):
        from rag_agent_core.agentic_loop import run_agent_loop
        from rag_agent_core.errors import ExternalCapabilityError
        from rag_agent_core.interfaces import Message

        model = AsyncMock()
        model.model_name = "gpt-4o"
        model.invoke.side_effect = RuntimeError("rate limited")

        with pytest.raises(ExternalCapabilityError, match="Model invocation failed: rate limited"):
            await run_agent_loop(model, [Message.human("Hi")])

    @pytest.mark.asyncio
    async def test_timeout(self):
        from rag_agent_core.agentic_loop import run_agent_loop
        from rag_agent_core.errors import CapabilityTimeoutError
        from rag_agent_core.interfaces import Message

        async def slow_invoke(*args, **kwargs):
            await asyncio.sleep(1)

        model = AsyncMock()
        model.model_name = "gpt-4o"
        model.invoke.side_effect = slow_invoke

        with pytest.raises(CapabilityTimeoutError) as exc_info:
            await run_agent_loop(model, [Message.human("Hi")], timeout=0.01)

        assert exc_info.value.timeout == 0.01
        assert exc_info.value.elapsed is not None

    @pytest.mark.asyncio
    async def test_invalid_structured_output(self, scripted_model):
        from rag_agent_core.agentic_loop import run_agent_loop
        from rag_agent_core.errors import ExternalCapabilityError
        from rag_agent_core.interfaces import Message

        model = scripted_model([reply("not json")])

        with pytest.raises(ExternalCapabilityError, match="invalid structured output"):
            await run_agent_loop(
                model, [Message.human("Hi")], response_schema={"type": "object"}
            )


class TestKnowledgeChat:
    """Tests for KnowledgeChat."""

    @pytest.mark.asyncio
    async def test_sends_only_latest_human_message(self, scripted_model):
        from rag_agent_core.chat import KnowledgeChat
        from rag_agent_core.interfaces import Message, MessageRole
        from rag_agent_core.prompts import DEFAULT_CHAT_PROMPT

        model = scripted_model([reply("Fine, thanks.")])
        chat = KnowledgeChat(model)

        result = await chat.run([
            Message.human("Hello"),
            Message.ai("Hi there"),
            Message.human("How are you?"),
        ])

        sent = model.calls[0]["messages"]
        assert [m.role for m in sent] == [MessageRole.SYSTEM, MessageRole.HUMAN]
        assert sent[0].content == DEFAULT_CHAT_PROMPT
        assert sent[1].content == "How are you?"
        assert result.usage_per_node[0].node_name == "chat"

    def test_prompt_selection(self, retriever):
        from rag_agent_core.chat import KnowledgeChat
        from rag_agent_core.prompts import KNOWLEDGE_BASE_SYSTEM_PROMPT

        model = AsyncMock()
        assert KnowledgeChat(model, retriever=retriever).system_prompt == KNOWLEDGE_BASE_SYSTEM_PROMPT
        assert KnowledgeChat(model, system_prompt="Custom").system_prompt == "Custom"

    @pytest.mark.asyncio
    async def test_requires_human_message(self, scripted_model):
        from rag_agent_core.chat import KnowledgeChat
        from rag_agent_core.errors import ConfigurationError
        from rag_agent_core.interfaces import Message

        with pytest.raises(ConfigurationError):
            await KnowledgeChat(scripted_model([])).run([Message.ai("hi")])

    @pytest.mark.asyncio
    async def test_attributes_request_structured_output(self, scripted_model):
        from rag_agent_core.chat import KnowledgeChat
        from rag_agent_core.interfaces import Message, ModelResponse
        from rag_agent_core.structured import StructuredAttribute

        model = scripted_model([
            ModelResponse(message=Message.ai(""), structured_data={"city": "Oslo"}),
        ])
        chat = KnowledgeChat(model, attributes=[StructuredAttribute(name="city")])

        result = await chat.run([Message.human("Where is the office?")])

        assert result.structured_data == {"city": "Oslo"}
        assert model.calls[0]["response_schema"]["required"] == ["city"]
