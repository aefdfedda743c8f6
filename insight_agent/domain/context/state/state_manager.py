from typing import Dict, Any, List, Optional
import asyncio

from insight_agent.domain.models.conversation import ConversationSession


class SessionManager:
    """Keeps the live conversation sessions of this process"""

    def __init__(self):
        self.sessions: Dict[str, ConversationSession] = {}
        self._lock = asyncio.Lock()

    async def create_session(self) -> ConversationSession:
        session = ConversationSession()
        async with self._lock:
            self.sessions[session.session_id] = session
        return session

    async def get_session(self, session_id: str) -> Optional[ConversationSession]:
        async with self._lock:
            return self.sessions.get(session_id)

    async def end_session(self, session_id: str) -> bool:
        """Discard a session and its conversation; False if it did not exist"""

        async with self._lock:
            return self.sessions.pop(session_id, None) is not None

    async def get_all_active_sessions(self) -> List[Dict[str, Any]]:
        """Get a summary of every live session"""

        async with self._lock:
            return [session.get_state_summary() for session in self.sessions.values()]
