from typing import List, Optional, Union
from pathlib import Path
import asyncio

import structlog

from insight_agent.domain.errors import KnowledgeAccessError
from insight_agent.domain.tool.interfaces import DocumentStore

logger = structlog.get_logger(__name__)


class KnowledgeStore(DocumentStore):
    """Markdown documents kept in one directory on disk.

    Every name is resolved against the root and must stay inside it; a name
    such as ``../secrets.md`` raises KnowledgeAccessError instead of reading.
    """

    def __init__(self, root_dir: Union[str, Path], suffix: str = ".md"):
        self.root_dir = Path(root_dir).resolve()
        self.suffix = suffix

    def resolve(self, filename: str) -> Path:
        """Absolute path for `filename`, confined to the knowledge root"""

        path = (self.root_dir / filename).resolve()
        try:
            path.relative_to(self.root_dir)
        except ValueError:
            raise KnowledgeAccessError(f'Access denied: "{filename}" is outside the knowledge directory')
        return path

    async def read(self, filename: str) -> Optional[str]:
        path = self.resolve(filename)
        if not path.is_file():
            return None
        return await asyncio.to_thread(path.read_text, encoding="utf-8")

    async def list_documents(self) -> List[str]:
        if not self.root_dir.is_dir():
            return []
        return sorted(
            p.name for p in self.root_dir.iterdir()
            if p.is_file() and p.suffix == self.suffix
        )

    async def append(self, filename: str, text: str) -> None:
        path = self.resolve(filename)
        await asyncio.to_thread(self._append_sync, path, text)
        logger.info("Appended to document", document=filename, chars=len(text))

    @staticmethod
    def _append_sync(path: Path, text: str):
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as handle:
            handle.write(text)
