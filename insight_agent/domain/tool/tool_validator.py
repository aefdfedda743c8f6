# Parameter & policy validation
from typing import Any, Dict, Optional
import re

import jsonschema

from insight_agent.domain.errors import CapabilityValidationError


READ_ONLY_PREFIXES = ("SELECT", "WITH")

_ASSERT_PATTERN = re.compile(r"^\s*assert\b", re.MULTILINE)


class ToolParameterValidator:
    @staticmethod
    def validate_tool_call(name: str, schema: Dict[str, Any], parameters: Dict[str, Any]):
        """Raise CapabilityValidationError listing every schema violation"""

        validator = jsonschema.Draft7Validator(schema)
        errors = sorted(validator.iter_errors(parameters), key=lambda e: list(e.path))
        if errors:
            messages = []
            for error in errors:
                location = ".".join(str(p) for p in error.path)
                messages.append(f"{location}: {error.message}" if location else error.message)
            raise CapabilityValidationError(name, messages)


def normalize_query(query: str) -> str:
    """Trim whitespace and a trailing semicolon"""
    query = query.strip()
    while query.endswith(";"):
        query = query[:-1].rstrip()
    return query


def check_readonly_query(query: str) -> Optional[str]:
    """Return a rejection message unless the statement is read-only"""

    if not query.upper().startswith(READ_ONLY_PREFIXES):
        return (
            "Security Error: Only SELECT or WITH queries are allowed. "
            "Rewrite the statement as a read-only query."
        )
    return None


def check_self_verification(code: str) -> Optional[str]:
    """Return a rejection message unless the code asserts on its own result"""

    if _ASSERT_PATTERN.search(code):
        return None
    return (
        "Security Error: Code Verification Failed.\n\n"
        "All Python code must include at least one 'assert' statement that checks "
        "the result before printing it.\n\n"
        "Example fix:\n"
        "    revenue = df['amount'].sum()\n"
        "    assert revenue >= 0, 'Revenue cannot be negative'\n"
        "    print(revenue)\n\n"
        "Rewrite your code with verification logic."
    )
