from typing import TypedDict, List, Dict, Any, Optional, Sequence, AsyncIterator
from langgraph.graph import StateGraph, END
from langgraph.errors import GraphRecursionError
from langgraph.types import StreamWriter
import structlog

from insight_agent.application.schema.events import BaseEvent, ToolCallEvent, ToolResultEvent
from insight_agent.domain.context.context_manager import (
    ContextPreloader, KNOWLEDGE_CONTEXT_TOOL, KNOWLEDGE_CONTEXT_ARGS, KNOWLEDGE_CONTEXT_RESULT
)
from insight_agent.domain.errors import SessionBusyError
from insight_agent.domain.models.conversation import (
    CapabilityRequest, ConversationLog, ConversationSession, ReasoningSegment, Role, Segment, TextSegment, Turn
)
from insight_agent.domain.orchestration.backend import ReasoningBackend
from insight_agent.domain.streaming.streaming_handler import StreamingHandler
from insight_agent.domain.streaming.tag_parser import DEFAULT_TAGS
from insight_agent.domain.tool.tool_executor import ToolExecutor
from insight_agent.domain.tool.tool_registry import ToolRegistry
from insight_agent.infrastructure.observability.logging import agent_logger, metrics

logger = structlog.get_logger(__name__)

DEFAULT_MAX_TOOL_ROUNDS = 12


class EngineState(TypedDict):
    """State carried through the turn graph"""
    session_id: str
    conversation: ConversationLog
    pending_requests: List[CapabilityRequest]
    rounds: int


def coalesce_segments(segments: Sequence[Segment]) -> List[Segment]:
    """Merge runs of adjacent text (or reasoning) segments into one"""

    merged: List[Segment] = []
    for segment in segments:
        previous = merged[-1] if merged else None
        if isinstance(segment, (TextSegment, ReasoningSegment)) and type(previous) is type(segment):
            merged[-1] = type(segment)(text=previous.text + segment.text)
        else:
            merged.append(segment)
    return merged


class TurnEngine:
    """Streaming / tool-execution loop as a two-node LangGraph.

    ``model_streamer`` makes one streaming backend call and emits events as
    segments arrive. If the model asked for capabilities the graph moves to
    ``tool_executor``, which dispatches them all and loops back; otherwise the
    turn is done. Every node update is committed to the session as soon as the
    graph reports it.
    """

    def __init__(
        self,
        backend: ReasoningBackend,
        registry: ToolRegistry,
        max_tool_rounds: int = DEFAULT_MAX_TOOL_ROUNDS,
        tags: Sequence[str] = DEFAULT_TAGS,
    ):
        self.backend = backend
        self.registry = registry
        self.max_tool_rounds = max_tool_rounds
        self.tags = tuple(tags)
        self.workflow = self._create_workflow()

    def _create_workflow(self):
        workflow = StateGraph(EngineState)

        workflow.add_node("model_streamer", self.model_streaming_node)
        workflow.add_node("tool_executor", self.tool_execution_node)

        workflow.set_entry_point("model_streamer")

        workflow.add_conditional_edges(
            "model_streamer",
            self.route_after_streaming,
            {
                "execute_tools": "tool_executor",
                "done": END,
            }
        )
        workflow.add_edge("tool_executor", "model_streamer")

        return workflow.compile()

    async def model_streaming_node(self, state: EngineState, writer: StreamWriter) -> Dict[str, Any]:
        """STREAMING: one backend call over the full conversation"""

        handler = StreamingHandler(self.tags)
        segments: List[Segment] = []

        async for segment in self.backend.stream(state["conversation"], self.registry.descriptors()):
            segments.append(segment)
            for event in handler.on_segment(segment):
                writer(event)

        for event in handler.close():
            writer(event)

        metrics.increment_counter("engine.backend_rounds")
        requests = [s for s in segments if isinstance(s, CapabilityRequest)]

        conversation = state["conversation"]
        if segments:
            conversation = conversation.append(Turn(role=Role.MODEL, segments=tuple(coalesce_segments(segments))))

        return {
            "conversation": conversation,
            "pending_requests": requests,
            "rounds": state["rounds"] + 1,
        }

    async def tool_execution_node(self, state: EngineState, writer: StreamWriter) -> Dict[str, Any]:
        """TOOL_EXEC: dispatch every queued request, report in request order"""

        executor = ToolExecutor(self.registry, session_id=state["session_id"])
        results = await executor.execute_all(state["pending_requests"])

        for result in results:
            writer(StreamingHandler.tool_result(result.name, result.display))

        turn = Turn(role=Role.TOOL_RESULT, segments=tuple(result.to_segment() for result in results))
        return {
            "conversation": state["conversation"].append(turn),
            "pending_requests": [],
        }

    def route_after_streaming(self, state: EngineState) -> str:
        if state["pending_requests"]:
            agent_logger.log_workflow_transition(
                session_id=state["session_id"],
                from_node="model_streamer",
                to_node="tool_executor",
                condition="capability_requests",
                state_summary={
                    "requests": [r.name for r in state["pending_requests"]],
                    "round": state["rounds"],
                },
            )
            return "execute_tools"

        agent_logger.log_workflow_transition(
            session_id=state["session_id"],
            from_node="model_streamer",
            to_node="done",
            state_summary={"rounds": state["rounds"]},
        )
        return "done"

    @staticmethod
    def is_finished(conversation: ConversationLog) -> bool:
        """A log ending in a model turn with no capability requests is at DONE"""
        last = conversation.last_turn
        return last is not None and last.role == Role.MODEL and not last.capability_requests

    async def run_turn(self, session: ConversationSession, user_turn: Optional[Turn] = None) -> AsyncIterator[BaseEvent]:
        """Claim the session and run one turn to DONE or ERROR"""

        with session.exclusive():
            async for event in self.stream_turn(session, user_turn):
                yield event

    async def stream_turn(self, session: ConversationSession, user_turn: Optional[Turn] = None) -> AsyncIterator[BaseEvent]:
        """Run one turn on a session whose writer slot the caller already holds"""

        if user_turn is not None:
            session.commit(session.log.append(user_turn))
        elif self.is_finished(session.log):
            agent_logger.log_agent_event("turn_already_done", session.session_id, {"turns": len(session.log)})
            return

        initial_state: EngineState = {
            "session_id": session.session_id,
            "conversation": session.log,
            "pending_requests": [],
            "rounds": 0,
        }
        config = {"recursion_limit": self.max_tool_rounds * 2 + 1}

        agent_logger.log_agent_event("turn_started", session.session_id, {"turns": len(session.log)})

        try:
            async for mode, chunk in self.workflow.astream(
                initial_state, config=config, stream_mode=["custom", "updates"]
            ):
                if mode == "custom":
                    yield chunk
                    continue

                for node, update in chunk.items():
                    if update and "conversation" in update:
                        session.commit(update["conversation"])

        except GraphRecursionError:
            logger.error("Tool round limit reached", session_id=session.session_id, limit=self.max_tool_rounds)
            metrics.increment_counter("engine.round_limit")
            yield StreamingHandler.error(
                f"Stopped after {self.max_tool_rounds} tool rounds without a final answer."
            )
            return

        except Exception as e:
            logger.error("Turn failed", session_id=session.session_id, error=str(e), exc_info=True)
            metrics.increment_counter("engine.errors", tags={"type": type(e).__name__})
            yield StreamingHandler.error(str(e))
            return

        agent_logger.log_agent_event("turn_completed", session.session_id, {"turns": len(session.log)})


class AgentOrchestrator:
    """Entry point for a user message: primes the session, then runs the turn"""

    def __init__(self, engine: TurnEngine, preloader: ContextPreloader):
        self.engine = engine
        self.preloader = preloader

    async def process_message(self, session: ConversationSession, message: str) -> AsyncIterator[BaseEvent]:
        """Claim the session and stream the events for one message"""

        try:
            token = session.claim()
        except SessionBusyError as e:
            logger.warning("Rejected concurrent turn", session_id=session.session_id, error=str(e))
            yield StreamingHandler.error(str(e))
            return

        async for event in self.process_claimed_message(session, message, token):
            yield event

    async def process_claimed_message(
        self, session: ConversationSession, message: str, token: object
    ) -> AsyncIterator[BaseEvent]:
        """Stream one message on a session already claimed with `token`; the slot is released at the end"""

        structlog.contextvars.bind_contextvars(session_id=session.session_id)
        try:
            text, injected = await self.preloader.prime(session, message)

            if injected:
                yield ToolCallEvent(name=KNOWLEDGE_CONTEXT_TOOL, args=dict(KNOWLEDGE_CONTEXT_ARGS))
                yield ToolResultEvent(name=KNOWLEDGE_CONTEXT_TOOL, result=KNOWLEDGE_CONTEXT_RESULT)

            async for event in self.engine.stream_turn(session, Turn.user(text)):
                yield event

        finally:
            session.release(token)
            structlog.contextvars.unbind_contextvars("session_id")
