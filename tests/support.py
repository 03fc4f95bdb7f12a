"""Test doubles shared across the test suite."""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional, Sequence

from dbgateway.config.models import DatabaseType, SQLiteConfig
from dbgateway.db.base import DatabaseAdapter
from dbgateway.db.models import DatabaseStats, QueryResult, TableInfo


class RecordingAdapter(DatabaseAdapter):
    """In-process adapter that records queries and can be told to fail.

    ``fail_on`` makes any query containing that text raise a plain
    RuntimeError, the way a driver would.
    """

    kind = DatabaseType.REDIS
    label = "Recording"
    supports_transactions = False

    def __init__(self, config=None, fail_on: Optional[str] = None, fail_disconnect: bool = False) -> None:
        super().__init__(config or SQLiteConfig(name="recording"))
        self.fail_on = fail_on
        self.fail_disconnect = fail_disconnect
        self.handle: Any = None
        self.executed: List[str] = []
        self.connect_calls = 0

    @property
    def native_handle(self) -> Any:
        return self.handle

    async def connect(self) -> None:
        self.connect_calls += 1
        await asyncio.sleep(0)
        self.handle = object()
        self._connected = True

    async def disconnect(self) -> None:
        self.handle = None
        self._connected = False
        if self.fail_disconnect:
            raise RuntimeError("socket already closed")

    async def execute_query(self, query, parameters: Optional[Sequence[Any]] = None) -> QueryResult:
        self._require_connection()
        if self.fail_on and self.fail_on in str(query):
            raise RuntimeError(f"boom in {query}")
        self.executed.append(str(query))
        return QueryResult(rows=[{'query': str(query)}], row_count=1)

    async def list_table_names(self) -> List[str]:
        return ['alpha', 'beta']

    async def get_table_info(self, table_name: str, schema: Optional[str] = None) -> Optional[TableInfo]:
        if table_name == 'beta':
            raise RuntimeError("cannot describe beta")
        return TableInfo(name=table_name)

    async def get_database_stats(self) -> DatabaseStats:
        return DatabaseStats(total_tables=2)

    async def validate_connection(self) -> bool:
        return self.is_connected()
