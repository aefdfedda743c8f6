from typing import Dict, Any, List, Optional, Tuple, Union, Literal, Annotated
from pydantic import BaseModel, ConfigDict, Field
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
import uuid

from insight_agent.domain.errors import SessionBusyError


class Role(str, Enum):
    """Originator of a turn"""
    USER = "user"
    MODEL = "model"
    TOOL_RESULT = "tool-result"


class TextSegment(BaseModel):
    """Narrative text as produced by the user or the model"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    text: str


class ReasoningSegment(BaseModel):
    """Private chain-of-thought, never part of the narrative"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["reasoning"] = "reasoning"
    text: str


class CapabilityRequest(BaseModel):
    """Capability invocation requested by the model.

    `continuation_token` is opaque backend state: it is stored and handed back
    on the next call exactly as received.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["capability_request"] = "capability_request"
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    call_id: Optional[str] = None
    continuation_token: Optional[Any] = None


class CapabilityResult(BaseModel):
    """Full, unshaped result of one capability invocation"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["capability_result"] = "capability_result"
    name: str
    payload: Any
    call_id: Optional[str] = None


Segment = Annotated[
    Union[TextSegment, ReasoningSegment, CapabilityRequest, CapabilityResult],
    Field(discriminator="kind"),
]


class Turn(BaseModel):
    """One originator's contribution to the conversation"""
    model_config = ConfigDict(frozen=True)

    role: Role
    segments: Tuple[Segment, ...] = ()

    @classmethod
    def user(cls, text: str) -> "Turn":
        return cls(role=Role.USER, segments=(TextSegment(text=text),))

    @property
    def capability_requests(self) -> List[CapabilityRequest]:
        return [s for s in self.segments if isinstance(s, CapabilityRequest)]

    @property
    def text(self) -> str:
        return "".join(s.text for s in self.segments if isinstance(s, TextSegment))


class ConversationLog(BaseModel):
    """Immutable, append-only conversation history.

    `append` returns a new log; existing logs are never changed, so a log
    handed to the backend cannot shift underneath it.
    """
    model_config = ConfigDict(frozen=True)

    turns: Tuple[Turn, ...] = ()

    def append(self, turn: Turn) -> "ConversationLog":
        return ConversationLog(turns=self.turns + (turn,))

    def __len__(self) -> int:
        return len(self.turns)

    @property
    def last_turn(self) -> Optional[Turn]:
        return self.turns[-1] if self.turns else None

    def is_prefix_of(self, other: "ConversationLog") -> bool:
        """True if `other` only extends this log"""
        return other.turns[: len(self.turns)] == self.turns


class ConversationSession:
    """Single-owner cursor over a session's conversation log.

    Only the holder of the exclusive writer slot may commit a new log, and a
    committed log must extend the current one.
    """

    def __init__(self, session_id: Optional[str] = None):
        self.session_id = session_id or str(uuid.uuid4())
        self.created_at = datetime.utcnow()
        self.last_activity = self.created_at
        self.primed = False
        self._log = ConversationLog()
        self._writer: Optional[object] = None

    @property
    def log(self) -> ConversationLog:
        return self._log

    @property
    def busy(self) -> bool:
        return self._writer is not None

    def claim(self) -> object:
        """Take the writer slot and return the token that releases it"""
        if self._writer is not None:
            raise SessionBusyError(f"Session {self.session_id} is already running a turn")
        self._writer = object()
        return self._writer

    def release(self, token: object):
        """Give the slot back; a stale token leaves a newer holder in place"""
        if self._writer is token:
            self._writer = None

    @contextmanager
    def exclusive(self):
        """Claim the writer slot for the duration of a turn"""
        token = self.claim()
        try:
            yield self
        finally:
            self.release(token)

    def commit(self, log: ConversationLog):
        """Advance the cursor to a log that extends the current one"""
        if self._writer is None:
            raise SessionBusyError("Commit attempted outside of an exclusive turn")
        if not self._log.is_prefix_of(log):
            raise ValueError("Conversation log may only grow by appending turns")
        self._log = log
        self.last_activity = datetime.utcnow()

    def get_state_summary(self) -> Dict[str, Any]:
        """Get a summary of the current session"""
        last = self._log.last_turn
        return {
            "session_id": self.session_id,
            "turns": len(self._log),
            "last_role": last.role.value if last else None,
            "primed": self.primed,
            "busy": self.busy,
            "last_activity": self.last_activity.isoformat(),
        }
