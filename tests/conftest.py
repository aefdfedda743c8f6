"""Shared fakes and fixtures for the agent test-suite"""

from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence
import asyncio
import json
import sqlite3

import pytest

from insight_agent.domain.models.conversation import ConversationLog, Segment
from insight_agent.domain.orchestration.backend import ReasoningBackend
from insight_agent.domain.tool.interfaces import CodeSandbox, ExecutionReport, QueryService
from insight_agent.domain.tool.tool_registry import (
    Capability, CapabilityDescriptor, CapabilityKind, ToolRegistry
)


class ScriptedBackend(ReasoningBackend):
    """Replays one scripted list of segments per streaming call.

    An Exception instance inside a script is raised at that point of the
    stream. Once the scripts run out every call streams nothing.
    """

    def __init__(self, scripts: Sequence[Sequence[Any]] = ()):
        self.scripts = [list(script) for script in scripts]
        self.calls: List[ConversationLog] = []
        self.capabilities: List[List[str]] = []

    async def stream(self, conversation, capabilities) -> AsyncIterator[Segment]:
        self.calls.append(conversation)
        self.capabilities.append([d.name for d in capabilities])
        script = self.scripts.pop(0) if self.scripts else []
        for item in script:
            if isinstance(item, Exception):
                raise item
            await asyncio.sleep(0)
            yield item


class FakeQueryService(QueryService):
    """Canned rows per query text; an Exception value is raised instead"""

    def __init__(self, responses: Optional[Dict[str, Any]] = None):
        self.responses = dict(responses or {})
        self.executed: List[str] = []

    async def execute(self, query: str) -> List[Dict[str, Any]]:
        self.executed.append(query)
        response = self.responses.get(query, [])
        if isinstance(response, Exception):
            raise response
        return response


class FakeSandbox(CodeSandbox):
    """Returns a fixed report and remembers the code it was given"""

    def __init__(self, report: Optional[ExecutionReport] = None):
        self.report = report or ExecutionReport()
        self.executed: List[str] = []

    async def run(self, code: str) -> ExecutionReport:
        self.executed.append(code)
        return self.report


async def echo_handler(arguments: Dict[str, Any]) -> str:
    return f"ok: {json.dumps(arguments, sort_keys=True)}"


def make_registry(
    overrides: Optional[Dict[str, Callable]] = None,
    max_display_chars: int = 2000,
) -> ToolRegistry:
    """Registry with a stub handler for every kind, optionally overridden by name"""

    overrides = overrides or {}
    capabilities = {}
    for kind in CapabilityKind:
        capabilities[kind] = Capability(
            descriptor=CapabilityDescriptor(
                name=kind.value,
                description=f"{kind.value} stub",
                parameters={"type": "object", "properties": {}},
                max_display_chars=max_display_chars,
            ),
            handler=overrides.get(kind.value, echo_handler),
        )
    return ToolRegistry(capabilities)


async def collect(events) -> list:
    return [event async for event in events]


@pytest.fixture
def knowledge_dir(tmp_path):
    """Knowledge directory holding the three preloaded documents"""
    root = tmp_path / "knowledge"
    root.mkdir()
    (root / "database_schema.md").write_text("# Schema\nclients(id, name, revenue)", encoding="utf-8")
    (root / "business_rules.md").write_text("# Rules\nRevenue excludes VAT.", encoding="utf-8")
    (root / "agent_memory.md").write_text("# Lessons", encoding="utf-8")
    return root


@pytest.fixture
def warehouse_db(tmp_path):
    """SQLite file with a small sales table"""
    path = tmp_path / "warehouse.db"
    conn = sqlite3.connect(path)
    try:
        conn.execute("CREATE TABLE sales (id INTEGER PRIMARY KEY, region TEXT, amount REAL)")
        conn.executemany(
            "INSERT INTO sales (region, amount) VALUES (?, ?)",
            [("US", 100.0), ("DE", 50.0), ("US", 25.5)],
        )
        conn.commit()
    finally:
        conn.close()
    return path
