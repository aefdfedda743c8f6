import pytest
from langchain_core.messages import AIMessage, AIMessageChunk, HumanMessage, SystemMessage, ToolMessage

from insight_agent.domain.errors import BackendTransportError
from insight_agent.domain.models.conversation import (
    CapabilityRequest, CapabilityResult, ConversationLog, ReasoningSegment, Role, TextSegment, Turn
)
from insight_agent.infrastructure.llm.langchain_backend import (
    LangChainBackend, content_segments, to_langchain_messages
)

from conftest import collect, make_registry


class FakeChatModel:
    """Stands in for a BaseChatModel: records bound tools and replays chunks"""

    def __init__(self, chunks=(), error=None):
        self.chunks = list(chunks)
        self.error = error
        self.bound_tools = None
        self.received = None

    def bind_tools(self, tools):
        self.bound_tools = tools
        return self

    async def astream(self, messages):
        self.received = messages
        for chunk in self.chunks:
            yield chunk
        if self.error:
            raise self.error


def conversation_with_tool_round():
    request = CapabilityRequest(
        name="run_readonly_sql",
        arguments={"query": "SELECT 1"},
        call_id="call_1",
        continuation_token={"signature": "abc"},
    )
    return (
        ConversationLog()
        .append(Turn.user("How many?"))
        .append(Turn(role=Role.MODEL, segments=(TextSegment(text="Checking"), request)))
        .append(Turn(role=Role.TOOL_RESULT, segments=(
            CapabilityResult(name="run_readonly_sql", payload=[{"n": 1}], call_id="call_1"),
        )))
    )


class TestMessageConversion:
    """Conversation log to langchain messages"""

    def test_roles_map_to_message_types(self):
        messages = to_langchain_messages(conversation_with_tool_round(), system_prompt="Be precise.")

        assert [type(m) for m in messages] == [SystemMessage, HumanMessage, AIMessage, ToolMessage]
        assert messages[0].content == "Be precise."
        assert messages[1].content == "How many?"

    def test_model_turn_restores_tool_calls_and_token(self):
        ai = to_langchain_messages(conversation_with_tool_round())[1]

        assert ai.content == "Checking"
        assert ai.tool_calls[0]["name"] == "run_readonly_sql"
        assert ai.tool_calls[0]["args"] == {"query": "SELECT 1"}
        assert ai.tool_calls[0]["id"] == "call_1"
        assert ai.additional_kwargs == {"signature": "abc"}

    def test_tool_result_is_paired_by_call_id(self):
        tool = to_langchain_messages(conversation_with_tool_round())[-1]

        assert tool.tool_call_id == "call_1"
        assert tool.content == '[{"n": 1}]'

    def test_no_system_prompt(self):
        messages = to_langchain_messages(ConversationLog().append(Turn.user("hi")))

        assert [type(m) for m in messages] == [HumanMessage]


class TestContentSegments:
    def test_string_content(self):
        assert content_segments(AIMessageChunk(content="Hello")) == [TextSegment(text="Hello")]
        assert content_segments(AIMessageChunk(content="")) == []

    def test_content_blocks(self):
        chunk = AIMessageChunk(content=[
            {"type": "thinking", "thinking": "consider the schema"},
            {"type": "text", "text": "Answer"},
        ])

        assert content_segments(chunk) == [
            ReasoningSegment(text="consider the schema"),
            TextSegment(text="Answer"),
        ]

    def test_reasoning_content_kwarg(self):
        chunk = AIMessageChunk(content="ok", additional_kwargs={"reasoning_content": "hmm"})

        assert content_segments(chunk) == [ReasoningSegment(text="hmm"), TextSegment(text="ok")]


class TestLangChainBackend:
    """Streaming through a chat model"""

    @pytest.mark.asyncio
    async def test_streams_text_then_tool_calls(self):
        model = FakeChatModel([
            AIMessageChunk(content="Let me "),
            AIMessageChunk(content="check."),
            AIMessageChunk(
                content="",
                tool_call_chunks=[{"name": "run_python", "args": '{"code": "assert 1"}', "id": "call_7", "index": 0}],
                additional_kwargs={"signature": "xyz"},
            ),
        ])
        backend = LangChainBackend(model, system_prompt="sys")
        registry = make_registry()

        segments = await collect(backend.stream(ConversationLog().append(Turn.user("go")), registry.descriptors()))

        assert segments[:2] == [TextSegment(text="Let me "), TextSegment(text="check.")]
        request = segments[2]
        assert isinstance(request, CapabilityRequest)
        assert request.name == "run_python"
        assert request.arguments == {"code": "assert 1"}
        assert request.call_id == "call_7"
        assert request.continuation_token == {"signature": "xyz"}

        assert len(model.bound_tools) == 6
        assert isinstance(model.received[0], SystemMessage)

    @pytest.mark.asyncio
    async def test_transport_errors_are_wrapped(self):
        model = FakeChatModel([AIMessageChunk(content="partial")], error=ConnectionError("reset by peer"))
        backend = LangChainBackend(model, provider="google_genai")

        with pytest.raises(BackendTransportError) as exc_info:
            await collect(backend.stream(ConversationLog().append(Turn.user("go")), make_registry().descriptors()))

        assert "reset by peer" in str(exc_info.value)
        assert exc_info.value.provider == "google_genai"

    @pytest.mark.asyncio
    async def test_empty_stream(self):
        backend = LangChainBackend(FakeChatModel([]))

        assert await collect(backend.stream(ConversationLog(), [])) == []
