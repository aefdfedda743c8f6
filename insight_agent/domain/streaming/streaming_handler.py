from typing import AsyncIterator, List, Optional, Sequence
import structlog

from insight_agent.application.schema.events import (
    BaseEvent, TextEvent, ThoughtEvent, ToolCallEvent, ToolResultEvent, ErrorEvent
)
from insight_agent.domain.models.conversation import (
    TextSegment, ReasoningSegment, CapabilityRequest
)
from insight_agent.domain.streaming.tag_parser import (
    ThinkingTagParser, Fragment, Channel, DEFAULT_TAGS
)

logger = structlog.get_logger(__name__)


class StreamingHandler:
    """Turns backend segments and engine occurrences into stream events.

    One handler lives for one STREAMING pass; the tag parser state it holds
    does not carry across backend calls.
    """

    def __init__(self, tags: Sequence[str] = DEFAULT_TAGS):
        self.parser = ThinkingTagParser(tags)

    def on_segment(self, segment) -> List[BaseEvent]:
        """Map one backend segment to the events it produces, in order"""

        if isinstance(segment, TextSegment):
            return self._to_events(self.parser.feed(segment.text))

        # Anything that is not narrative text must not overtake buffered text
        events = self._to_events(self.parser.drain())

        if isinstance(segment, ReasoningSegment):
            if segment.text:
                events.append(ThoughtEvent(content=segment.text))
        elif isinstance(segment, CapabilityRequest):
            events.append(self.tool_call(segment))
        else:
            logger.warning("Ignoring unexpected segment", kind=getattr(segment, "kind", None))
        return events

    def close(self) -> List[BaseEvent]:
        """Flush the parser at end of stream"""
        return self._to_events(self.parser.close())

    @staticmethod
    def tool_call(request: CapabilityRequest) -> ToolCallEvent:
        return ToolCallEvent(name=request.name, args=dict(request.arguments))

    @staticmethod
    def tool_result(name: str, display: str) -> ToolResultEvent:
        return ToolResultEvent(name=name, result=display)

    @staticmethod
    def error(message: str) -> ErrorEvent:
        return ErrorEvent(message=message)

    @staticmethod
    def _to_events(fragments: List[Fragment]) -> List[BaseEvent]:
        events: List[BaseEvent] = []
        for fragment in fragments:
            if fragment.channel == Channel.THOUGHT:
                events.append(ThoughtEvent(content=fragment.content))
            else:
                events.append(TextEvent(content=fragment.content))
        return events


async def encode_ndjson(events: AsyncIterator[BaseEvent], session_id: Optional[str] = None) -> AsyncIterator[str]:
    """Serialize an event stream as newline-delimited JSON"""

    count = 0
    async for event in events:
        count += 1
        yield event.to_ndjson()
    logger.debug("Event stream closed", session_id=session_id, events=count)
