"""Triangulation: trust a number only when two unrelated paths agree.

Path A asks the database for the metric directly. Path B fetches the raw rows,
loads them into a pandas DataFrame named ``df`` inside the sandbox and runs the
model's own calculation over them. The metric is VERIFIED only if both values
exist and differ by less than the tolerance (1% by default).
"""

from typing import Any, Dict, Optional
from decimal import Decimal
import asyncio
import json
import re

import structlog

from insight_agent.domain.models.verification import VerificationOutcome
from insight_agent.domain.tool.capabilities.run_python import RunPythonTool
from insight_agent.domain.tool.capabilities.run_readonly_sql import ReadonlySqlTool
from insight_agent.domain.tool.tool_registry import CapabilityDescriptor, CapabilityKind
from insight_agent.domain.tool.tool_validator import ToolParameterValidator
from insight_agent.infrastructure.observability.logging import metrics

logger = structlog.get_logger(__name__)

DEFAULT_TOLERANCE = 0.01
MAX_PRIMARY_ROWS = 1
DATAFRAME_VARIABLE = "df"

_NUMERIC_TOKEN = re.compile(r"-?(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?(?:[eE][+-]?\d+)?")

_DRIVER_TEMPLATE = """import json

import pandas as pd

try:
    {variable} = pd.DataFrame(json.loads({payload}))
except Exception as exc:
    print(f"Error loading injected data: {{exc}}")
    raise SystemExit(1)

{code}
"""

DESCRIPTOR = CapabilityDescriptor(
    name=CapabilityKind.VERIFY_INTEGRITY.value,
    description=(
        "MANDATORY for quantitative questions about a single metric. Runs a double check over two "
        "independent paths (SQL and Python) and only reports VERIFIED when they agree within 1%. "
        "Not for lists or rankings."
    ),
    parameters={
        "type": "object",
        "properties": {
            "sql_query": {
                "type": "string",
                "description": "Path A: a SQL query computing the metric directly. Must return a single row with one numeric value.",
            },
            "raw_data_query": {
                "type": "string",
                "description": 'Path B (fetch): a SQL query returning the raw rows for the Python calculation (e.g. "SELECT * FROM work_logs").',
            },
            "python_code": {
                "type": "string",
                "description": (
                    "Path B (logic): Python that computes the metric and prints it last. A pandas DataFrame "
                    "named `df` is already loaded with the rows of raw_data_query; do not connect to any database. "
                    "Include an assert that checks the result."
                ),
            },
            "metric_name": {
                "type": "string",
                "description": 'Name of the metric being verified (e.g. "Total Revenue").',
            },
        },
        "required": ["sql_query", "raw_data_query", "python_code", "metric_name"],
    },
)


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def extract_last_number(text: str) -> Optional[float]:
    """Last numeric token in free-form output"""
    matches = _NUMERIC_TOKEN.findall(text or "")
    return float(matches[-1].replace(",", "")) if matches else None


def relative_difference(value_a: float, value_b: float) -> float:
    if value_a == 0:
        return 0.0 if value_b == 0 else 1.0
    return abs(value_a - value_b) / abs(value_a)


def format_delta(difference: float) -> str:
    return f"{difference * 100:.2f}%"


def adjudicate(
    metric: str,
    value_a: float,
    value_b: float,
    python_code: str,
    tolerance: float = DEFAULT_TOLERANCE,
) -> VerificationOutcome:
    """Compare the two paths once both produced a number"""

    difference = relative_difference(value_a, value_b)
    delta = format_delta(difference)
    if difference < tolerance:
        return VerificationOutcome.verified(metric, value_a, delta)
    return VerificationOutcome.failed_truth(metric, value_a, value_b, delta, python_code)


def build_driver(rows_json: str, python_code: str, variable: str = DATAFRAME_VARIABLE) -> str:
    """Script that loads the fetched rows into `variable` and then runs the caller's code"""
    return _DRIVER_TEMPLATE.format(variable=variable, payload=repr(rows_json), code=python_code)


class TriangulationVerifier:
    descriptor = DESCRIPTOR

    def __init__(
        self,
        sql_tool: ReadonlySqlTool,
        python_tool: RunPythonTool,
        tolerance: float = DEFAULT_TOLERANCE,
        max_primary_rows: int = MAX_PRIMARY_ROWS,
    ):
        self.sql_tool = sql_tool
        self.python_tool = python_tool
        self.tolerance = tolerance
        self.max_primary_rows = max_primary_rows

    async def verify(
        self, sql_query: str, raw_data_query: str, python_code: str, metric_name: str
    ) -> VerificationOutcome:
        logger.info("Starting triangulation", metric=metric_name)

        primary, raw = await asyncio.gather(
            self.sql_tool.run(sql_query),
            self.sql_tool.run(raw_data_query),
        )

        value_a: Optional[float] = None
        if primary.rows is not None:
            if len(primary.rows) > self.max_primary_rows:
                return VerificationOutcome.usage_error(
                    metric_name,
                    f"This tool only verifies a single scalar; the SQL path returned {len(primary.rows)} rows.",
                    "Do not use verify_integrity for lists or rankings. Use run_readonly_sql or run_python directly.",
                )
            if primary.rows:
                first_value = next(iter(primary.rows[0].values()), None)
                if first_value is None or not is_number(first_value):
                    return VerificationOutcome.usage_error(
                        metric_name,
                        f'SQL returned a non-numeric value: "{first_value}".',
                        "Ensure the SQL query returns a single number (e.g. SUM, COUNT, AVG).",
                    )
                value_a = float(first_value)

        if raw.rows is None:
            return VerificationOutcome.failed_physics(
                metric_name,
                "The raw data query failed, so the Python path could not run.",
                sql_raw=primary.render(),
                python_result=raw.error,
            )

        driver = build_driver(json.dumps(raw.rows, default=str), python_code)
        run = await self.python_tool.run(driver)
        value_b = None if run.failed else extract_last_number(run.output)

        if value_a is None or value_b is None:
            return VerificationOutcome.failed_physics(
                metric_name,
                "One or both paths failed to produce a valid number.",
                sql_raw=primary.render(),
                python_result=run.output,
            )

        return adjudicate(metric_name, value_a, value_b, python_code, self.tolerance)

    async def __call__(self, arguments: Dict[str, Any]) -> str:
        ToolParameterValidator.validate_tool_call(DESCRIPTOR.name, DESCRIPTOR.parameters, arguments)

        outcome = await self.verify(
            sql_query=arguments["sql_query"],
            raw_data_query=arguments["raw_data_query"],
            python_code=arguments["python_code"],
            metric_name=arguments["metric_name"],
        )
        metrics.increment_counter("triangulation.verdict", tags={"status": outcome.status.value})
        logger.info(
            "Triangulation finished",
            metric=arguments["metric_name"],
            status=outcome.status.value,
            delta=outcome.delta,
        )
        return outcome.to_payload()
