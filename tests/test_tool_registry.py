import pytest

from insight_agent.domain.errors import RegistryConfigurationError
from insight_agent.domain.tool.tool_registry import (
    Capability, CapabilityDescriptor, CapabilityKind, ToolRegistry, shape_for_display, stringify_result
)
from insight_agent.domain.tool.toolbox import build_tool_registry
from insight_agent.infrastructure.storage.knowledge_store import KnowledgeStore

from conftest import FakeQueryService, FakeSandbox, echo_handler, make_registry


def stub(name):
    return Capability(
        descriptor=CapabilityDescriptor(name=name, description="stub", parameters={"type": "object"}),
        handler=echo_handler,
    )


class TestToolRegistry:
    """Closed mapping from capability kind to handler"""

    def test_every_kind_needs_a_handler(self):
        capabilities = {kind: stub(kind.value) for kind in CapabilityKind if kind != CapabilityKind.RUN_PYTHON}

        with pytest.raises(RegistryConfigurationError, match="run_python"):
            ToolRegistry(capabilities)

    def test_descriptor_name_must_match_kind(self):
        capabilities = {kind: stub(kind.value) for kind in CapabilityKind}
        capabilities[CapabilityKind.READ_FILE] = stub("open_file")

        with pytest.raises(RegistryConfigurationError):
            ToolRegistry(capabilities)

    def test_resolve(self):
        registry = make_registry()

        assert registry.resolve("read_file").descriptor.name == "read_file"
        assert registry.resolve("drop_database") is None

    @pytest.mark.asyncio
    async def test_tool_declarations(self):
        registry = make_registry()

        tools = await registry.get_available_tools()

        assert [t["function"]["name"] for t in tools] == [kind.value for kind in CapabilityKind]
        assert tools[0]["type"] == "function"
        assert await registry.get_tool_info("unknown") is None
        assert (await registry.get_tool_info("run_python"))["max_display_chars"] == 2000

    def test_production_registry_is_complete(self, knowledge_dir):
        registry = build_tool_registry(
            KnowledgeStore(knowledge_dir), FakeQueryService(), FakeSandbox(), max_display_chars=500
        )

        descriptors = registry.descriptors()
        assert {d.name for d in descriptors} == {kind.value for kind in CapabilityKind}
        assert all(d.max_display_chars == 500 for d in descriptors)
        verify = registry.resolve("verify_integrity").descriptor
        assert set(verify.parameters["required"]) == {"sql_query", "raw_data_query", "python_code", "metric_name"}


class TestResultShaping:
    """Display shaping applied to tool_result events"""

    def test_truncates_with_marker(self):
        shaped = shape_for_display("x" * 2500)

        assert len(shaped) == 2003
        assert shaped.endswith("...")

    def test_short_results_untouched(self):
        assert shape_for_display("x" * 2000) == "x" * 2000

    def test_structured_results_are_json(self):
        assert stringify_result({"rows": [1, 2]}) == '{"rows": [1, 2]}'
        assert stringify_result("plain") == "plain"
