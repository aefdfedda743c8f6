from typing import Dict, List, Any, Optional, Mapping, Callable, Awaitable
from types import MappingProxyType
from dataclasses import dataclass
from pydantic import BaseModel, Field
from enum import Enum
import json

from insight_agent.domain.errors import RegistryConfigurationError


DEFAULT_MAX_DISPLAY_CHARS = 2000
TRUNCATION_MARKER = "..."
CAPABILITY_NOT_FOUND = "capability not found"

Handler = Callable[[Dict[str, Any]], Awaitable[Any]]


class CapabilityKind(str, Enum):
    """Every capability the model may invoke.

    The registry must bind a handler to each member, so adding a member
    without a handler fails at construction time.
    """
    READ_FILE = "read_file"
    RUN_READONLY_SQL = "run_readonly_sql"
    RUN_PYTHON = "run_python"
    RENDER_DASHBOARD = "render_dashboard"
    ADD_LEARNED_LESSON = "add_learned_lesson"
    VERIFY_INTEGRITY = "verify_integrity"


class CapabilityDescriptor(BaseModel):
    """Name, schema and display policy of a capability"""
    name: str
    description: str
    parameters: Dict[str, Any] = Field(description="JSON schema of the arguments object")
    max_display_chars: int = Field(default=DEFAULT_MAX_DISPLAY_CHARS, gt=0)

    def as_tool(self) -> Dict[str, Any]:
        """Function-tool declaration understood by chat model bindings"""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def shape_for_display(self, result: Any) -> str:
        """Stringify a result and cut it to the display budget"""
        return shape_for_display(result, self.max_display_chars)


def stringify_result(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, default=str, ensure_ascii=False)


def shape_for_display(result: Any, max_chars: int = DEFAULT_MAX_DISPLAY_CHARS) -> str:
    text = stringify_result(result)
    if len(text) > max_chars:
        return text[:max_chars] + TRUNCATION_MARKER
    return text


@dataclass(frozen=True)
class Capability:
    descriptor: CapabilityDescriptor
    handler: Handler


class ToolRegistry:
    """Closed registry binding one handler to every CapabilityKind"""

    def __init__(self, capabilities: Mapping[CapabilityKind, Capability]):
        missing = [kind.value for kind in CapabilityKind if kind not in capabilities]
        if missing:
            raise RegistryConfigurationError(f"No handler registered for: {', '.join(missing)}")

        for kind, capability in capabilities.items():
            if capability.descriptor.name != kind.value:
                raise RegistryConfigurationError(
                    f"Descriptor '{capability.descriptor.name}' registered under '{kind.value}'"
                )

        self._capabilities = MappingProxyType({kind: capabilities[kind] for kind in CapabilityKind})

    def resolve(self, name: str) -> Optional[Capability]:
        """Look up a capability by its wire name"""
        try:
            kind = CapabilityKind(name)
        except ValueError:
            return None
        return self._capabilities[kind]

    def descriptors(self) -> List[CapabilityDescriptor]:
        return [capability.descriptor for capability in self._capabilities.values()]

    async def get_available_tools(self) -> List[Dict[str, Any]]:
        """Get all tool declarations"""

        return [descriptor.as_tool() for descriptor in self.descriptors()]

    async def get_tool_info(self, name: str) -> Optional[Dict[str, Any]]:
        """Get information about a specific tool"""

        capability = self.resolve(name)
        return capability.descriptor.model_dump() if capability else None
