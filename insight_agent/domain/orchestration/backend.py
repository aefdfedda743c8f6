from abc import ABC, abstractmethod
from typing import AsyncIterator, Sequence

from insight_agent.domain.models.conversation import ConversationLog, Segment
from insight_agent.domain.tool.tool_registry import CapabilityDescriptor


class ReasoningBackend(ABC):
    """Streaming language-reasoning backend"""

    @abstractmethod
    def stream(
        self,
        conversation: ConversationLog,
        capabilities: Sequence[CapabilityDescriptor],
    ) -> AsyncIterator[Segment]:
        """One streaming call over the full conversation.

        Yields text and reasoning segments as they arrive and a
        CapabilityRequest for every tool call the model makes. Transport
        failures are raised as BackendTransportError.
        """
        pass
