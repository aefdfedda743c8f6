from typing import Any, Dict, List, Optional
import json

from pydantic import BaseModel
import structlog

from insight_agent.domain.tool.interfaces import QueryService
from insight_agent.domain.tool.tool_registry import CapabilityDescriptor, CapabilityKind
from insight_agent.domain.tool.tool_validator import (
    ToolParameterValidator, normalize_query, check_readonly_query
)

logger = structlog.get_logger(__name__)


DESCRIPTOR = CapabilityDescriptor(
    name=CapabilityKind.RUN_READONLY_SQL.value,
    description="Execute a READ-ONLY SQL query against the database. Only SELECT or WITH statements are allowed.",
    parameters={
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "The SQL query to execute (must start with SELECT or WITH).",
            }
        },
        "required": ["query"],
    },
)


class QueryOutcome(BaseModel):
    """Rows on success, otherwise the rejection or database error text"""
    rows: Optional[List[Dict[str, Any]]] = None
    error: Optional[str] = None

    def render(self) -> str:
        if self.rows is None:
            return self.error or "Database Error: no result"
        return json.dumps(self.rows, indent=2, default=str)


class ReadonlySqlTool:
    descriptor = DESCRIPTOR

    def __init__(self, service: QueryService):
        self.service = service

    async def run(self, query: str) -> QueryOutcome:
        """Apply the read-only policy, then execute"""

        query = normalize_query(query)
        rejection = check_readonly_query(query)
        if rejection:
            logger.info("Rejected non read-only query", query=query[:120])
            return QueryOutcome(error=rejection)

        try:
            rows = await self.service.execute(query)
        except Exception as e:
            logger.warning("Query failed", error=str(e), query=query[:120])
            return QueryOutcome(error=f"Database Error: {e}")

        return QueryOutcome(rows=rows)

    async def __call__(self, arguments: Dict[str, Any]) -> str:
        ToolParameterValidator.validate_tool_call(DESCRIPTOR.name, DESCRIPTOR.parameters, arguments)
        outcome = await self.run(arguments["query"])
        return outcome.render()
