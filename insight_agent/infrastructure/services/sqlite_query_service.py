from typing import Any, Dict, List, Union
from pathlib import Path
import asyncio
import sqlite3

import structlog

from insight_agent.domain.tool.interfaces import QueryService

logger = structlog.get_logger(__name__)


class SqliteQueryService(QueryService):
    """Runs statements against a SQLite file opened in read-only mode"""

    def __init__(self, database_path: Union[str, Path]):
        self.database_path = Path(database_path)

    def _connect(self) -> sqlite3.Connection:
        uri = f"file:{self.database_path.as_posix()}?mode=ro"
        conn = sqlite3.connect(uri, uri=True)
        conn.row_factory = sqlite3.Row
        return conn

    def _execute_sync(self, query: str) -> List[Dict[str, Any]]:
        conn = self._connect()
        try:
            cursor = conn.execute(query)
            rows = cursor.fetchall()
            return [dict(row) for row in rows]
        finally:
            conn.close()

    async def execute(self, query: str) -> List[Dict[str, Any]]:
        rows = await asyncio.to_thread(self._execute_sync, query)
        logger.debug("Query executed", rows=len(rows))
        return rows
