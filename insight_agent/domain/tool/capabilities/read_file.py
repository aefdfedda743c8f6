from typing import Any, Dict

from insight_agent.domain.tool.interfaces import DocumentStore
from insight_agent.domain.tool.tool_registry import CapabilityDescriptor, CapabilityKind
from insight_agent.domain.tool.tool_validator import ToolParameterValidator


DESCRIPTOR = CapabilityDescriptor(
    name=CapabilityKind.READ_FILE.value,
    description="Read a markdown documentation file from the knowledge directory.",
    parameters={
        "type": "object",
        "properties": {
            "filename": {
                "type": "string",
                "description": 'The name of the file to read (e.g. "database_schema.md" or "business_rules.md").',
            }
        },
        "required": ["filename"],
    },
)


class ReadFileTool:
    descriptor = DESCRIPTOR

    def __init__(self, store: DocumentStore):
        self.store = store

    async def __call__(self, arguments: Dict[str, Any]) -> str:
        ToolParameterValidator.validate_tool_call(DESCRIPTOR.name, DESCRIPTOR.parameters, arguments)
        filename = arguments["filename"]

        content = await self.store.read(filename)
        if content is None:
            available = await self.store.list_documents()
            return (
                f'Error: File "{filename}" not found in knowledge directory. '
                f"Available files: {', '.join(available) or '(none)'}"
            )
        return content
