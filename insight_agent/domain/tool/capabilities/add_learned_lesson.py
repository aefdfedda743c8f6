from typing import Any, Callable, Dict, Optional
from datetime import date

from insight_agent.domain.tool.interfaces import DocumentStore
from insight_agent.domain.tool.tool_registry import CapabilityDescriptor, CapabilityKind
from insight_agent.domain.tool.tool_validator import ToolParameterValidator


DESCRIPTOR = CapabilityDescriptor(
    name=CapabilityKind.ADD_LEARNED_LESSON.value,
    description=(
        "Write a learned lesson to the permanent agent memory. Use it only after resolving a "
        "technical error (SQL or Python) to prevent it from recurring, never for user notes."
    ),
    parameters={
        "type": "object",
        "properties": {
            "lesson": {
                "type": "string",
                "minLength": 1,
                "description": 'The lesson to record. Format: "## [Topic]\\n- **Problem**: ...\\n- **Solution**: ..."',
            }
        },
        "required": ["lesson"],
    },
)


class AddLearnedLessonTool:
    descriptor = DESCRIPTOR

    def __init__(self, store: DocumentStore, memory_file: str, today: Optional[Callable[[], date]] = None):
        self.store = store
        self.memory_file = memory_file
        self._today = today or date.today

    async def __call__(self, arguments: Dict[str, Any]) -> str:
        ToolParameterValidator.validate_tool_call(DESCRIPTOR.name, DESCRIPTOR.parameters, arguments)

        entry = f"\n\n### [Learned {self._today().isoformat()}]\n{arguments['lesson']}"
        await self.store.append(self.memory_file, entry)
        return f"Successfully recorded lesson to {self.memory_file}."
