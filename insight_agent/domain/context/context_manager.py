from typing import List, Optional, Sequence, Tuple
import structlog

from insight_agent.domain.models.conversation import ConversationSession
from insight_agent.domain.tool.interfaces import DocumentStore
from insight_agent.infrastructure.observability.logging import agent_logger

logger = structlog.get_logger(__name__)

KNOWLEDGE_CONTEXT_TOOL = "access_knowledge_context"
KNOWLEDGE_CONTEXT_ARGS = {"memory": "active", "schema": "loaded", "rules": "active"}
KNOWLEDGE_CONTEXT_RESULT = "Success: Active Context loaded and validated."

INJECTION_HEADER = (
    "[SYSTEM INJECTION: ACTIVE CONTEXT]\n"
    "The following files are pre-loaded into your context. DO NOT call read_file for them again.\n\n"
)
INJECTION_FOOTER = "[END INJECTION]\n\n"

DEFAULT_DOCUMENTS: Tuple[Tuple[str, str], ...] = (
    ("database_schema.md", "DATABASE SCHEMA"),
    ("business_rules.md", "BUSINESS RULES"),
)
MEMORY_LABEL = "AGENT MEMORY (LESSONS)"


class ContextPreloader:
    """Injects the knowledge documents into the first user message of a session"""

    def __init__(
        self,
        store: DocumentStore,
        memory_file: str = "agent_memory.md",
        documents: Sequence[Tuple[str, str]] = DEFAULT_DOCUMENTS,
    ):
        self.store = store
        self.documents: List[Tuple[str, str]] = list(documents) + [(memory_file, MEMORY_LABEL)]

    async def load_documents(self) -> List[Tuple[str, str]]:
        """(filename, section) for every document the store could read, in priming order"""

        loaded = []
        for filename, label in self.documents:
            try:
                content = await self.store.read(filename)
            except Exception as e:
                logger.warning("Could not preload document", document=filename, error=str(e))
                continue
            if content is not None:
                loaded.append((filename, f"=== {label} ===\n{content}\n\n"))
        return loaded

    async def build_priming_block(self) -> Optional[str]:
        """Labelled block with every readable document, or None if there is nothing to inject"""
        return self.render_block(await self.load_documents())

    @staticmethod
    def render_block(loaded: List[Tuple[str, str]]) -> Optional[str]:
        if not loaded:
            return None
        return INJECTION_HEADER + "".join(section for _, section in loaded) + INJECTION_FOOTER

    async def prime(self, session: ConversationSession, message: str) -> Tuple[str, bool]:
        """Prefix the message with the priming block the first time a session speaks.

        Returns the (possibly prefixed) message and whether a block was injected.
        """
        if session.primed:
            return message, False

        session.primed = True
        loaded = await self.load_documents()
        block = self.render_block(loaded)
        if block is None:
            return message, False

        agent_logger.log_context_update(
            session_id=session.session_id,
            context_type="knowledge",
            action="preloaded",
            details={"documents": [name for name, _ in loaded], "chars": len(block)},
        )
        return block + message, True
