"""Shared behaviour for the SQLAlchemy-backed relational adapters."""

import datetime
import decimal
import logging
from abc import abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Union

from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from dbgateway.config.models import BaseConnectionConfig
from dbgateway.db.base import DatabaseAdapter, Query
from dbgateway.db.binding import bind_parameters
from dbgateway.db.commands import StructuredCommand
from dbgateway.db.models import FieldInfo, QueryResult
from dbgateway.exceptions import DatabaseConnectionError, QueryValidationError

logger = logging.getLogger(__name__)


def infer_type_name(value: Any) -> str:
    """Best-effort type name for a value returned by a driver."""
    if value is None:
        return "unknown"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, (float, decimal.Decimal)):
        return "numeric"
    if isinstance(value, str):
        return "text"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "binary"
    if isinstance(value, datetime.datetime):
        return "timestamp"
    if isinstance(value, datetime.date):
        return "date"
    if isinstance(value, datetime.time):
        return "time"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "json"
    return type(value).__name__


class SQLAlchemyAdapter(DatabaseAdapter):
    """Base class for adapters driven through SQLAlchemy's asyncio engine.

    Outside a transaction every query checks a connection out of the pool,
    runs, commits and returns it. ``begin_transaction`` checks out a
    dedicated connection that all queries use until commit or rollback.
    """

    ping_query = "SELECT 1"

    def __init__(self, config: BaseConnectionConfig) -> None:
        super().__init__(config)
        self._engine: Optional[AsyncEngine] = None
        self._transaction_connection: Optional[AsyncConnection] = None

    @abstractmethod
    def build_connection_url(self) -> Union[str, URL]:
        """Build the SQLAlchemy async connection URL."""
        pass

    def _get_engine_options(self) -> Dict[str, Any]:
        """Engine keyword arguments; adapters extend or replace these."""
        return {
            'pool_size': self.config.pool_size,
            'max_overflow': 0,
            'pool_timeout': self.config.pool_timeout,
            'pool_recycle': 3600,
            'pool_pre_ping': True,
            'echo': False,
        }

    def _configure_engine(self, engine: AsyncEngine) -> None:
        """Hook for engine event listeners."""

    @property
    def native_handle(self) -> Optional[AsyncEngine]:
        return self._engine

    async def connect(self) -> None:
        engine: Optional[AsyncEngine] = None
        try:
            engine = create_async_engine(self.build_connection_url(), **self._get_engine_options())
            self._configure_engine(engine)
            async with engine.connect() as conn:
                await conn.execute(text(self.ping_query))
        except Exception as e:
            self._connected = False
            if engine is not None:
                await engine.dispose()
            raise DatabaseConnectionError(
                f"{self.label} error: {e}", database_type=self.kind.value
            ) from e

        self._engine = engine
        self._connected = True
        logger.info(f"Connected to {self.label} database '{self.name}'")

    async def disconnect(self) -> None:
        try:
            if self._transaction_connection is not None:
                await self._release_transaction_connection(commit=False)
            if self._engine is not None:
                await self._engine.dispose()
        except Exception as e:
            raise self._wrap(e)
        finally:
            self._engine = None
            self._transaction_connection = None
            self._transaction.end()
            self._connected = False
        logger.info(f"Disconnected from {self.label} database '{self.name}'")

    async def _run(self, sql: str, binds: Optional[Dict[str, Any]] = None) -> QueryResult:
        """Execute already-bound SQL on the transaction connection or a pooled one."""
        statement = text(sql)
        if self._transaction_connection is not None:
            result = await self._transaction_connection.execute(statement, binds or {})
            return self._build_result(result)

        async with self._engine.connect() as conn:
            result = await conn.execute(statement, binds or {})
            query_result = self._build_result(result)
            await conn.commit()
            return query_result

    async def _fetch(self, sql: str, **binds: Any) -> List[Dict[str, Any]]:
        return (await self._run(sql, binds)).rows

    def _build_result(self, result) -> QueryResult:
        if result.returns_rows:
            columns = list(result.keys())
            rows = [dict(row._mapping) for row in result.fetchall()]
            fields = []
            for column in columns:
                sample = next((row[column] for row in rows if row[column] is not None), None)
                fields.append(FieldInfo(name=column, data_type=infer_type_name(sample)))
            return QueryResult(rows=rows, row_count=len(rows), fields=fields)

        affected = result.rowcount if result.rowcount and result.rowcount > 0 else 0
        return QueryResult(rows=[], row_count=affected, fields=[])

    async def execute_query(self, query: Query, parameters: Optional[Sequence[Any]] = None) -> QueryResult:
        self._require_connection()
        if isinstance(query, StructuredCommand):
            raise QueryValidationError(f"{self.label} expects SQL text, not a structured command")

        sql, binds = bind_parameters(query, parameters)
        try:
            return await self._run(sql, binds)
        except Exception as e:
            raise self._wrap(e)

    async def validate_connection(self) -> bool:
        if not self.is_connected():
            return False
        try:
            await self._run(self.ping_query)
            return True
        except Exception as e:
            logger.debug(f"{self.label} connection check for '{self.name}' failed: {e}")
            return False

    async def _begin(self) -> None:
        self._require_connection()
        if not self.supports_transactions:
            return
        conn = await self._engine.connect()
        try:
            await conn.begin()
        except Exception:
            await conn.close()
            raise
        self._transaction_connection = conn

    async def _commit(self) -> None:
        if self._transaction_connection is not None:
            await self._release_transaction_connection(commit=True)

    async def _rollback(self) -> None:
        if self._transaction_connection is not None:
            await self._release_transaction_connection(commit=False)

    async def _release_transaction_connection(self, commit: bool) -> None:
        conn = self._transaction_connection
        self._transaction_connection = None
        try:
            if commit:
                await conn.commit()
            else:
                await conn.rollback()
        finally:
            await conn.close()
