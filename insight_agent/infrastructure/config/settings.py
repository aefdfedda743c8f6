"""Runtime configuration.

Values come from the process environment; a ``.env`` file in the working
directory is loaded first when present. Settings are validated once and cached
for the life of the process.
"""

from typing import Literal, Optional
from functools import lru_cache
from pathlib import Path
import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from insight_agent.domain.tool.tool_registry import DEFAULT_MAX_DISPLAY_CHARS


class AgentSettings(BaseModel):
    """Agent service settings"""

    model_name: str = "gemini-2.5-pro"
    model_provider: str = "google_genai"
    model_temperature: float = Field(default=0.2, ge=0.0, le=2.0)

    knowledge_dir: Path = Path("knowledge")
    memory_file: str = "agent_memory.md"
    database_path: Path = Path("data/warehouse.db")

    sandbox_timeout: float = Field(default=30.0, gt=0)
    max_display_chars: int = Field(default=DEFAULT_MAX_DISPLAY_CHARS, gt=0)
    triangulation_tolerance: float = Field(default=0.01, gt=0, lt=1)
    triangulation_max_rows: int = Field(default=1, ge=1)
    max_tool_rounds: int = Field(default=12, ge=1)

    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    @field_validator("memory_file")
    @classmethod
    def _memory_file_is_a_name(cls, value: str) -> str:
        if Path(value).name != value:
            raise ValueError("memory_file must be a bare file name inside the knowledge directory")
        return value

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "AgentSettings":
        """Build settings from AGENT_* environment variables"""

        load_dotenv(env_file)

        mapping = {
            "model_name": "AGENT_MODEL_NAME",
            "model_provider": "AGENT_MODEL_PROVIDER",
            "model_temperature": "AGENT_MODEL_TEMPERATURE",
            "knowledge_dir": "AGENT_KNOWLEDGE_DIR",
            "memory_file": "AGENT_MEMORY_FILE",
            "database_path": "AGENT_DATABASE_PATH",
            "sandbox_timeout": "AGENT_SANDBOX_TIMEOUT",
            "max_display_chars": "AGENT_MAX_DISPLAY_CHARS",
            "triangulation_tolerance": "AGENT_TRIANGULATION_TOLERANCE",
            "triangulation_max_rows": "AGENT_TRIANGULATION_MAX_ROWS",
            "max_tool_rounds": "AGENT_MAX_TOOL_ROUNDS",
            "log_level": "LOG_LEVEL",
            "log_format": "LOG_FORMAT",
        }
        values = {field: os.getenv(var) for field, var in mapping.items()}
        return cls(**{field: value for field, value in values.items() if value not in (None, "")})


@lru_cache(maxsize=1)
def get_settings() -> AgentSettings:
    return AgentSettings.from_env()
