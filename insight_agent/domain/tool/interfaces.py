from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from pydantic import BaseModel


class ExecutionReport(BaseModel):
    """Outcome of one sandboxed code run"""
    stdout: str = ""
    stderr: str = ""
    result_text: Optional[str] = None
    error: Optional[str] = None
    exit_code: Optional[int] = None
    timed_out: bool = False

    @property
    def failed(self) -> bool:
        return self.timed_out or self.error is not None

    def combined_output(self) -> str:
        """Labelled stdout / result / error text, as shown to the model"""
        output = ""
        if self.stdout:
            output += f"Standard Output:\n{self.stdout.rstrip()}\n"
        if self.result_text:
            output += f"Results:\n{self.result_text.rstrip()}\n"
        if self.stderr and not self.error:
            output += f"Logs:\n{self.stderr.rstrip()}\n"
        if self.error:
            output += f"Error:\n{self.error.rstrip()}\n"
        return output or "No output returned."


class QueryService(ABC):
    """Relational query execution service"""

    @abstractmethod
    async def execute(self, query: str) -> List[Dict[str, Any]]:
        """Run one statement and return its rows"""
        pass


class CodeSandbox(ABC):
    """Isolated code execution service"""

    @abstractmethod
    async def run(self, code: str) -> ExecutionReport:
        """Execute code and capture its output"""
        pass


class DocumentStore(ABC):
    """Durable knowledge documents"""

    @abstractmethod
    async def read(self, filename: str) -> Optional[str]:
        """Return the document text, or None if it does not exist"""
        pass

    @abstractmethod
    async def list_documents(self) -> List[str]:
        """Names of the documents available for reading"""
        pass

    @abstractmethod
    async def append(self, filename: str, text: str) -> None:
        """Append text to a document, creating it if needed"""
        pass
