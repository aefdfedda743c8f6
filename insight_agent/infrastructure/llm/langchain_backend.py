"""LangChain adapter for the reasoning backend.

Any ``BaseChatModel`` works. Chunks from ``astream`` are turned into segments
as they arrive; tool calls are only complete once the stream ends, so they are
read from the aggregated message and yielded last.
"""

from typing import Any, AsyncIterator, Dict, List, Optional, Sequence
import uuid

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage, AIMessageChunk, BaseMessage, HumanMessage, SystemMessage, ToolMessage
)
import structlog

from insight_agent.domain.errors import BackendTransportError
from insight_agent.domain.models.conversation import (
    CapabilityRequest, CapabilityResult, ConversationLog, ReasoningSegment, Role, Segment, TextSegment
)
from insight_agent.domain.orchestration.backend import ReasoningBackend
from insight_agent.domain.tool.tool_registry import CapabilityDescriptor, stringify_result

logger = structlog.get_logger(__name__)

REASONING_BLOCK_TYPES = ("thinking", "reasoning")


def to_langchain_messages(conversation: ConversationLog, system_prompt: Optional[str] = None) -> List[BaseMessage]:
    """Render the conversation as the message list a chat model expects"""

    messages: List[BaseMessage] = []
    if system_prompt:
        messages.append(SystemMessage(content=system_prompt))

    for turn in conversation.turns:
        if turn.role == Role.USER:
            messages.append(HumanMessage(content=turn.text))

        elif turn.role == Role.MODEL:
            requests = turn.capability_requests
            additional_kwargs: Dict[str, Any] = {}
            for request in requests:
                if isinstance(request.continuation_token, dict):
                    additional_kwargs.update(request.continuation_token)
            messages.append(AIMessage(
                content=turn.text,
                tool_calls=[
                    {"name": r.name, "args": dict(r.arguments), "id": r.call_id}
                    for r in requests
                ],
                additional_kwargs=additional_kwargs,
            ))

        else:
            for segment in turn.segments:
                if isinstance(segment, CapabilityResult):
                    messages.append(ToolMessage(
                        content=stringify_result(segment.payload),
                        tool_call_id=segment.call_id or "",
                        name=segment.name,
                    ))

    return messages


def content_segments(chunk: AIMessageChunk) -> List[Segment]:
    """Text and reasoning carried by one streamed chunk"""

    segments: List[Segment] = []
    content = chunk.content

    if isinstance(content, str):
        if content:
            segments.append(TextSegment(text=content))
    else:
        for block in content:
            if isinstance(block, str):
                if block:
                    segments.append(TextSegment(text=block))
                continue
            block_type = block.get("type")
            if block_type == "text" and block.get("text"):
                segments.append(TextSegment(text=block["text"]))
            elif block_type in REASONING_BLOCK_TYPES:
                text = block.get(block_type) or block.get("text")
                if text:
                    segments.append(ReasoningSegment(text=text))

    reasoning = chunk.additional_kwargs.get("reasoning_content")
    if isinstance(reasoning, str) and reasoning:
        segments.insert(0, ReasoningSegment(text=reasoning))

    return segments


class LangChainBackend(ReasoningBackend):
    """Streams a langchain chat model with the capabilities bound as tools"""

    def __init__(self, model: BaseChatModel, system_prompt: Optional[str] = None, provider: Optional[str] = None):
        self.model = model
        self.system_prompt = system_prompt
        self.provider = provider

    async def stream(
        self,
        conversation: ConversationLog,
        capabilities: Sequence[CapabilityDescriptor],
    ) -> AsyncIterator[Segment]:
        messages = to_langchain_messages(conversation, self.system_prompt)
        runnable = self.model.bind_tools([d.as_tool() for d in capabilities]) if capabilities else self.model

        aggregated: Optional[AIMessageChunk] = None
        try:
            async for chunk in runnable.astream(messages):
                aggregated = chunk if aggregated is None else aggregated + chunk
                for segment in content_segments(chunk):
                    yield segment
        except Exception as e:
            logger.error("Backend stream failed", provider=self.provider, error=str(e), exc_info=True)
            raise BackendTransportError(f"Backend stream failed: {e}", provider=self.provider) from e

        if aggregated is None:
            return

        token = dict(aggregated.additional_kwargs) or None

        for call in aggregated.tool_calls:
            yield CapabilityRequest(
                name=call["name"],
                arguments=call.get("args") or {},
                call_id=call.get("id") or f"call_{uuid.uuid4().hex[:12]}",
                continuation_token=token,
            )

        # Unparseable argument payloads still get dispatched so the handler reports them
        for call in getattr(aggregated, "invalid_tool_calls", None) or []:
            logger.warning("Model produced an invalid tool call", tool_name=call.get("name"), error=call.get("error"))
            yield CapabilityRequest(
                name=call.get("name") or "",
                arguments={},
                call_id=call.get("id") or f"call_{uuid.uuid4().hex[:12]}",
                continuation_token=token,
            )
