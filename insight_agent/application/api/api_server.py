from typing import Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI
import structlog
import uvicorn

from insight_agent import __version__
from insight_agent.application.api.route.agent import router as agent_router
from insight_agent.domain.context.context_manager import ContextPreloader
from insight_agent.domain.context.state.state_manager import SessionManager
from insight_agent.domain.orchestration.core.main_agent import AgentOrchestrator, TurnEngine
from insight_agent.domain.orchestration.core.prompts import SYSTEM_PROMPT
from insight_agent.domain.tool.toolbox import build_tool_registry
from insight_agent.infrastructure.config.settings import AgentSettings, get_settings
from insight_agent.infrastructure.llm.chat_model import create_chat_model
from insight_agent.infrastructure.llm.langchain_backend import LangChainBackend
from insight_agent.infrastructure.observability.logging import setup_logging, metrics
from insight_agent.infrastructure.services.sqlite_query_service import SqliteQueryService
from insight_agent.infrastructure.services.subprocess_sandbox import SubprocessSandbox
from insight_agent.infrastructure.storage.knowledge_store import KnowledgeStore

logger = structlog.get_logger(__name__)


def build_orchestrator(settings: AgentSettings) -> AgentOrchestrator:
    """Wire the production collaborators from settings"""

    store = KnowledgeStore(settings.knowledge_dir)
    registry = build_tool_registry(
        store=store,
        query_service=SqliteQueryService(settings.database_path),
        sandbox=SubprocessSandbox(timeout=settings.sandbox_timeout),
        memory_file=settings.memory_file,
        tolerance=settings.triangulation_tolerance,
        max_primary_rows=settings.triangulation_max_rows,
        max_display_chars=settings.max_display_chars,
    )
    backend = LangChainBackend(
        create_chat_model(settings),
        system_prompt=SYSTEM_PROMPT,
        provider=settings.model_provider,
    )
    engine = TurnEngine(backend, registry, max_tool_rounds=settings.max_tool_rounds)
    return AgentOrchestrator(engine, ContextPreloader(store, memory_file=settings.memory_file))


def create_app(
    settings: Optional[AgentSettings] = None,
    orchestrator: Optional[AgentOrchestrator] = None,
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level, settings.log_format)
        if app.state.orchestrator is None:
            app.state.orchestrator = build_orchestrator(settings)
        logger.info("Agent service started", model=settings.model_name, provider=settings.model_provider)
        yield
        logger.info("Agent service stopped", metrics=metrics.get_metrics_summary())

    app = FastAPI(title="Insight Agent", version=__version__, lifespan=lifespan)
    app.state.orchestrator = orchestrator
    app.state.sessions = SessionManager()
    app.include_router(agent_router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": __version__}

    return app


def main():
    uvicorn.run("insight_agent.application.api.api_server:create_app", factory=True, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
