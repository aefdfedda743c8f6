from insight_agent.domain.tool.capabilities.add_learned_lesson import AddLearnedLessonTool
from insight_agent.domain.tool.capabilities.read_file import ReadFileTool
from insight_agent.domain.tool.capabilities.render_dashboard import RenderDashboardTool
from insight_agent.domain.tool.capabilities.run_python import RunPythonTool
from insight_agent.domain.tool.capabilities.run_readonly_sql import ReadonlySqlTool
from insight_agent.domain.tool.capabilities.verify_integrity import (
    TriangulationVerifier, DEFAULT_TOLERANCE, MAX_PRIMARY_ROWS
)
from insight_agent.domain.tool.interfaces import CodeSandbox, DocumentStore, QueryService
from insight_agent.domain.tool.tool_registry import (
    Capability, CapabilityKind, ToolRegistry, DEFAULT_MAX_DISPLAY_CHARS
)


def build_tool_registry(
    store: DocumentStore,
    query_service: QueryService,
    sandbox: CodeSandbox,
    memory_file: str = "agent_memory.md",
    tolerance: float = DEFAULT_TOLERANCE,
    max_primary_rows: int = MAX_PRIMARY_ROWS,
    max_display_chars: int = DEFAULT_MAX_DISPLAY_CHARS,
) -> ToolRegistry:
    """Wire every capability to its collaborators"""

    sql_tool = ReadonlySqlTool(query_service)
    python_tool = RunPythonTool(sandbox)

    handlers = {
        CapabilityKind.READ_FILE: ReadFileTool(store),
        CapabilityKind.RUN_READONLY_SQL: sql_tool,
        CapabilityKind.RUN_PYTHON: python_tool,
        CapabilityKind.RENDER_DASHBOARD: RenderDashboardTool(),
        CapabilityKind.ADD_LEARNED_LESSON: AddLearnedLessonTool(store, memory_file),
        CapabilityKind.VERIFY_INTEGRITY: TriangulationVerifier(
            sql_tool, python_tool, tolerance=tolerance, max_primary_rows=max_primary_rows
        ),
    }

    return ToolRegistry({
        kind: Capability(
            descriptor=handler.descriptor.model_copy(update={"max_display_chars": max_display_chars}),
            handler=handler,
        )
        for kind, handler in handlers.items()
    })
