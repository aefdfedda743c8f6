# Dispatch with failure isolation & monitoring
from typing import Any, List, Optional
import asyncio
import time

from pydantic import BaseModel
import structlog

from insight_agent.domain.models.conversation import CapabilityRequest, CapabilityResult
from insight_agent.domain.tool.tool_registry import (
    ToolRegistry, CAPABILITY_NOT_FOUND, shape_for_display
)
from insight_agent.infrastructure.observability.logging import agent_logger, metrics

logger = structlog.get_logger(__name__)

REFLECTION_HINT = "Reflect on what caused this error before retrying with corrected arguments."


class ToolResult(BaseModel):
    """Result of one dispatched invocation"""
    name: str
    call_id: Optional[str] = None
    payload: Any
    display: str
    success: bool
    error: Optional[str] = None
    execution_time_ms: float = 0.0

    def to_segment(self) -> CapabilityResult:
        return CapabilityResult(name=self.name, payload=self.payload, call_id=self.call_id)


class ToolExecutor:
    """Dispatches capability requests; failures come back as data, never raised"""

    def __init__(self, registry: ToolRegistry, session_id: Optional[str] = None):
        self.registry = registry
        self.session_id = session_id

    async def execute_all(self, requests: List[CapabilityRequest]) -> List[ToolResult]:
        """Run independent requests concurrently; results keep request order"""

        return list(await asyncio.gather(*(self.execute(request) for request in requests)))

    async def execute(self, request: CapabilityRequest) -> ToolResult:
        capability = self.registry.resolve(request.name)
        start = time.perf_counter()

        if capability is None:
            logger.warning("Unknown capability requested", tool_name=request.name)
            metrics.increment_counter("tool.not_found", tags={"tool": request.name})
            return ToolResult(
                name=request.name,
                call_id=request.call_id,
                payload=CAPABILITY_NOT_FOUND,
                display=CAPABILITY_NOT_FOUND,
                success=False,
                error=CAPABILITY_NOT_FOUND,
            )

        try:
            payload = await capability.handler(dict(request.arguments))
            success, error = True, None
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            payload = f"Error executing {request.name}: {e}\n{REFLECTION_HINT}"
            success = False
            logger.warning("Capability failed", tool_name=request.name, error=error)

        duration_ms = (time.perf_counter() - start) * 1000
        display = capability.descriptor.shape_for_display(payload)

        agent_logger.log_tool_execution(
            tool_name=request.name,
            session_id=self.session_id,
            input_data=dict(request.arguments),
            output_data={"preview": shape_for_display(payload, 200)},
            duration_ms=duration_ms,
            success=success,
            error=error,
        )
        metrics.record_latency(f"tool.{request.name}", duration_ms, tags={"success": str(success).lower()})

        return ToolResult(
            name=request.name,
            call_id=request.call_id,
            payload=payload,
            display=display,
            success=success,
            error=error,
            execution_time_ms=duration_ms,
        )
