from typing import Any, Dict, Optional

from pydantic import BaseModel
import structlog

from insight_agent.domain.tool.interfaces import CodeSandbox, ExecutionReport
from insight_agent.domain.tool.tool_registry import CapabilityDescriptor, CapabilityKind
from insight_agent.domain.tool.tool_validator import ToolParameterValidator, check_self_verification

logger = structlog.get_logger(__name__)


DESCRIPTOR = CapabilityDescriptor(
    name=CapabilityKind.RUN_PYTHON.value,
    description=(
        "Execute a Python script in a secure sandbox. Use this for math, data processing and "
        "formatted output. The code must contain at least one assert that checks its result."
    ),
    parameters={
        "type": "object",
        "properties": {
            "code": {
                "type": "string",
                "description": "The Python code to execute.",
            }
        },
        "required": ["code"],
    },
)


class CodeRunOutcome(BaseModel):
    """Combined output of a run, or the policy rejection that prevented it"""
    output: str
    report: Optional[ExecutionReport] = None
    rejected: bool = False

    @property
    def failed(self) -> bool:
        return self.rejected or self.report is None or self.report.failed


class RunPythonTool:
    descriptor = DESCRIPTOR

    def __init__(self, sandbox: CodeSandbox):
        self.sandbox = sandbox

    async def run(self, code: str) -> CodeRunOutcome:
        rejection = check_self_verification(code)
        if rejection:
            return CodeRunOutcome(output=rejection, rejected=True)

        try:
            report = await self.sandbox.run(code)
        except Exception as e:
            logger.warning("Sandbox failure", error=str(e))
            return CodeRunOutcome(output=f"Sandbox Error: {e}")

        return CodeRunOutcome(output=report.combined_output(), report=report)

    async def __call__(self, arguments: Dict[str, Any]) -> str:
        ToolParameterValidator.validate_tool_call(DESCRIPTOR.name, DESCRIPTOR.parameters, arguments)
        outcome = await self.run(arguments["code"])
        return outcome.output
