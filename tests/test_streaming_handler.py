import json

import pytest

from insight_agent.application.schema.events import (
    TextEvent, ThoughtEvent, ToolCallEvent, ToolResultEvent, ErrorEvent, parse_event, parse_event_stream
)
from insight_agent.domain.models.conversation import CapabilityRequest, ReasoningSegment, TextSegment
from insight_agent.domain.streaming.streaming_handler import StreamingHandler, encode_ndjson


async def aiter_of(items):
    for item in items:
        yield item


class TestStreamingHandler:
    """Mapping backend segments onto stream events"""

    def test_text_is_flushed_before_tool_call(self):
        """Buffered narrative never lands after the tool call that followed it"""
        handler = StreamingHandler()

        events = handler.on_segment(TextSegment(text="Let me check"))
        events += handler.on_segment(
            CapabilityRequest(name="run_readonly_sql", arguments={"query": "SELECT 1"}, call_id="c1")
        )
        events += handler.close()

        assert events == [
            TextEvent(content="Let me check"),
            ToolCallEvent(name="run_readonly_sql", args={"query": "SELECT 1"}),
        ]

    def test_reasoning_segment_becomes_thought(self):
        handler = StreamingHandler()

        events = handler.on_segment(ReasoningSegment(text="weighing options"))

        assert events == [ThoughtEvent(content="weighing options")]

    def test_inline_thinking_tags(self):
        handler = StreamingHandler()

        events = []
        for chunk in ["<thinking>plan the query</thinking>", "Here is the answer."]:
            events += handler.on_segment(TextSegment(text=chunk))
        events += handler.close()

        assert [type(e) for e in events] == [ThoughtEvent, TextEvent]
        assert events[0].content == "plan the query"
        assert events[1].content == "Here is the answer."

    def test_static_event_builders(self):
        assert StreamingHandler.tool_result("read_file", "# Schema") == ToolResultEvent(
            name="read_file", result="# Schema"
        )
        assert StreamingHandler.error("boom") == ErrorEvent(message="boom")


class TestNdjsonEncoding:
    """Wire format of the event stream"""

    @pytest.mark.asyncio
    async def test_one_event_per_line(self):
        events = [
            TextEvent(content="Revenue is up"),
            ToolCallEvent(name="run_python", args={"code": "assert True"}),
            ToolResultEvent(name="run_python", result="Standard Output:\n42\n"),
            ErrorEvent(message="stream broke"),
        ]

        lines = [line async for line in encode_ndjson(aiter_of(events))]

        assert all(line.endswith("\n") and line.count("\n") == 1 for line in lines)
        assert json.loads(lines[0]) == {"type": "text", "content": "Revenue is up"}
        assert json.loads(lines[1]) == {"type": "tool_call", "name": "run_python", "args": {"code": "assert True"}}
        assert json.loads(lines[3]) == {"type": "error", "message": "stream broke"}
        assert parse_event_stream(lines) == events

    def test_parse_event_dispatches_on_type(self):
        event = parse_event('{"type": "thought", "content": "hmm"}')

        assert isinstance(event, ThoughtEvent)
        assert event.content == "hmm"

    def test_parse_event_stream_skips_blank_lines(self):
        events = parse_event_stream([b'{"type": "text", "content": "a"}\n', "\n", ""])

        assert events == [TextEvent(content="a")]
