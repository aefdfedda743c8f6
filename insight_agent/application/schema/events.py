from typing import Dict, Any, List, Literal, Union, Iterable, Annotated
from pydantic import BaseModel, Field, TypeAdapter
from enum import Enum


class EventType(str, Enum):
    """Agent stream event types"""
    TEXT = "text"
    THOUGHT = "thought"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    ERROR = "error"


class BaseEvent(BaseModel):
    """Base event model for all streamed agent events"""
    type: EventType

    def to_ndjson(self) -> str:
        """Serialize as a single NDJSON line"""
        return self.model_dump_json() + "\n"


class TextEvent(BaseEvent):
    """Narrative text delta"""
    type: Literal[EventType.TEXT] = EventType.TEXT
    content: str


class ThoughtEvent(BaseEvent):
    """Private reasoning delta, shown apart from the narrative"""
    type: Literal[EventType.THOUGHT] = EventType.THOUGHT
    content: str


class ToolCallEvent(BaseEvent):
    """Capability invocation requested by the model"""
    type: Literal[EventType.TOOL_CALL] = EventType.TOOL_CALL
    name: str
    args: Dict[str, Any] = Field(default_factory=dict)


class ToolResultEvent(BaseEvent):
    """Display-shaped capability result"""
    type: Literal[EventType.TOOL_RESULT] = EventType.TOOL_RESULT
    name: str
    result: str


class ErrorEvent(BaseEvent):
    """Terminal error; nothing follows it in the stream"""
    type: Literal[EventType.ERROR] = EventType.ERROR
    message: str


AgentEvent = Annotated[
    Union[TextEvent, ThoughtEvent, ToolCallEvent, ToolResultEvent, ErrorEvent],
    Field(discriminator="type"),
]

_event_adapter = TypeAdapter(AgentEvent)


def parse_event(line: Union[str, bytes]) -> BaseEvent:
    """Parse one NDJSON line back into its event model"""
    return _event_adapter.validate_json(line)


def parse_event_stream(lines: Iterable[Union[str, bytes]]) -> List[BaseEvent]:
    """Parse a sequence of NDJSON lines, skipping blank keep-alive lines"""
    events = []
    for line in lines:
        if isinstance(line, bytes):
            line = line.decode("utf-8")
        if line.strip():
            events.append(parse_event(line))
    return events
