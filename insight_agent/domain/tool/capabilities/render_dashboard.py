from typing import Any, Dict

from insight_agent.domain.tool.tool_registry import CapabilityDescriptor, CapabilityKind
from insight_agent.domain.tool.tool_validator import ToolParameterValidator


WIDGET_TYPES = ["bar", "line", "pie", "stat"]

DASHBOARD_ACK = "Dashboard blueprint generated and sent to frontend."

DESCRIPTOR = CapabilityDescriptor(
    name=CapabilityKind.RENDER_DASHBOARD.value,
    description=(
        "Render an interactive dashboard on the client. Use it whenever the user asks for a "
        "comparison, trend or distribution, and with a 'stat' widget for a verified metric. "
        "Do not use it for simple text answers."
    ),
    parameters={
        "type": "object",
        "properties": {
            "title": {
                "type": "string",
                "description": 'The main title of the dashboard (e.g. "Revenue Analysis 2024").',
            },
            "widgets": {
                "type": "array",
                "description": "Widgets to display, in order.",
                "items": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "string", "description": "Unique ID for the widget."},
                        "type": {"type": "string", "enum": WIDGET_TYPES, "description": "Widget kind."},
                        "title": {"type": "string", "description": "Title of the chart."},
                        "description": {"type": "string", "description": "Optional subtitle."},
                        "data": {
                            "type": "array",
                            "description": "Data rows for the chart. Leave empty for 'stat'.",
                            "items": {"type": "object"},
                        },
                        "config": {
                            "type": "object",
                            "description": "Axis, series, slice or stat configuration.",
                            "properties": {
                                "xKey": {"type": "string", "description": 'X-axis key (e.g. "month").'},
                                "yKeys": {
                                    "type": "array",
                                    "items": {"type": "string"},
                                    "description": "Y-axis series keys.",
                                },
                                "nameKey": {"type": "string", "description": "Pie slice name key."},
                                "valueKey": {"type": "string", "description": "Pie slice value key."},
                                "statValue": {"type": "string", "description": 'Stat value (e.g. "$50k").'},
                                "statLabel": {"type": "string", "description": "Stat label."},
                                "statTrend": {"type": "string", "description": 'Trend (e.g. "+12%").'},
                            },
                        },
                    },
                    "required": ["id", "type", "title", "config"],
                },
            },
        },
        "required": ["title", "widgets"],
    },
)


class RenderDashboardTool:
    """Acknowledges a dashboard blueprint; the client renders it from the tool_call args"""
    descriptor = DESCRIPTOR

    async def __call__(self, arguments: Dict[str, Any]) -> str:
        ToolParameterValidator.validate_tool_call(DESCRIPTOR.name, DESCRIPTOR.parameters, arguments)
        return DASHBOARD_ACK
