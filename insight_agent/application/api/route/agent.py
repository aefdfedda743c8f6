from typing import Annotated, Optional
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
from pydantic import BaseModel
import structlog

from insight_agent.domain.context.state.state_manager import SessionManager
from insight_agent.domain.errors import SessionBusyError
from insight_agent.domain.orchestration.core.main_agent import AgentOrchestrator
from insight_agent.domain.streaming.streaming_handler import encode_ndjson

logger = structlog.get_logger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"

router = APIRouter(prefix="/api/v1/agent", tags=["agent"])


class ChatRequest(BaseModel):
    message: str = ""
    session_id: Optional[str] = None


class SessionResponse(BaseModel):
    session_id: str
    created_at: datetime


def get_orchestrator(request: Request) -> AgentOrchestrator:
    return request.app.state.orchestrator


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.sessions


@router.post("/session/create", response_model=SessionResponse)
async def create_session(
    sessions: Annotated[SessionManager, Depends(get_session_manager)]
):
    session = await sessions.create_session()
    logger.info("Session created", session_id=session.session_id)
    return SessionResponse(session_id=session.session_id, created_at=session.created_at)


# Events are streamed as NDJSON, one per line, until the turn ends
@router.post("/chat")
async def chat_endpoint(
    request: ChatRequest,
    orchestrator: Annotated[AgentOrchestrator, Depends(get_orchestrator)],
    sessions: Annotated[SessionManager, Depends(get_session_manager)],
):
    if not request.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")

    if request.session_id:
        session = await sessions.get_session(request.session_id)
        if session is None:
            raise HTTPException(status_code=404, detail=f"Unknown session: {request.session_id}")
    else:
        session = await sessions.create_session()

    try:
        token = session.claim()
    except SessionBusyError:
        raise HTTPException(status_code=409, detail="Session is already processing a message")

    events = orchestrator.process_claimed_message(session, request.message, token)
    return StreamingResponse(
        encode_ndjson(events, session_id=session.session_id),
        media_type=NDJSON_MEDIA_TYPE,
        headers={"X-Session-ID": session.session_id},
        # Frees the slot if the client leaves before the stream starts
        background=BackgroundTask(session.release, token),
    )


@router.delete("/session/{session_id}")
async def end_session(
    session_id: str,
    sessions: Annotated[SessionManager, Depends(get_session_manager)],
):
    if not await sessions.end_session(session_id):
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    logger.info("Session ended", session_id=session_id)
    return {"session_id": session_id, "status": "ended"}
