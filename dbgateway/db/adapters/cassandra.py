"""Cassandra database adapter."""

import asyncio
import decimal
import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlparse

from cassandra.auth import PlainTextAuthProvider
from cassandra.cluster import EXEC_PROFILE_DEFAULT, Cluster, ExecutionProfile, Session
from cassandra.policies import DCAwareRoundRobinPolicy
from cassandra.query import dict_factory
from cassandra.util import Date, Duration, Time

from dbgateway.config.models import DatabaseType
from dbgateway.db.base import DatabaseAdapter, Query
from dbgateway.db.commands import StructuredCommand
from dbgateway.db.models import ColumnInfo, DatabaseStats, FieldInfo, IndexInfo, QueryResult, TableInfo
from dbgateway.exceptions import DatabaseConnectionError, QueryValidationError

logger = logging.getLogger(__name__)


def convert_value(value: Any) -> Any:
    """Render driver-specific value types as strings."""
    if isinstance(value, (uuid.UUID, decimal.Decimal, Date, Time, Duration)):
        return str(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return [convert_value(item) for item in value]
    if isinstance(value, dict):
        return {convert_value(key): convert_value(item) for key, item in value.items()}
    return value


class CassandraAdapter(DatabaseAdapter):
    """Cassandra adapter (cassandra-driver).

    The driver is blocking, so every call runs in a worker thread. Queries
    with parameters are prepared and bound with native ``?`` markers.
    Cassandra has no multi-statement transactions; begin/commit/rollback only
    move the state machine.
    """

    kind = DatabaseType.CASSANDRA
    label = "Cassandra"
    supports_transactions = False

    def __init__(self, config) -> None:
        super().__init__(config)
        self._cluster: Optional[Cluster] = None
        self._session: Optional[Session] = None

    @property
    def native_handle(self) -> Optional[Session]:
        return self._session

    @property
    def keyspace(self) -> str:
        if self.config.keyspace or self.config.database:
            return self.config.keyspace or self.config.database
        if self.config.url:
            path = urlparse(self.config.url).path.strip('/')
            if path:
                return path
        return 'test'

    def _contact_point(self):
        if self.config.url:
            parsed = urlparse(self.config.url)
            return parsed.hostname or 'localhost', parsed.port or 9042
        return self.config.host or 'localhost', self.config.port or 9042

    def _build_cluster(self) -> Cluster:
        host, port = self._contact_point()
        auth_provider = None
        if self.config.username:
            auth_provider = PlainTextAuthProvider(
                username=self.config.username, password=self.config.password or ''
            )

        profile = ExecutionProfile(
            load_balancing_policy=DCAwareRoundRobinPolicy(local_dc=self.config.datacenter or 'datacenter1'),
            row_factory=dict_factory,
            request_timeout=self.config.request_timeout,
        )
        return Cluster(
            contact_points=[host],
            port=port,
            auth_provider=auth_provider,
            execution_profiles={EXEC_PROFILE_DEFAULT: profile},
            connect_timeout=self.config.pool_timeout,
        )

    async def connect(self) -> None:
        cluster = self._build_cluster()
        try:
            session = await asyncio.to_thread(cluster.connect, self.keyspace)
        except Exception as e:
            self._connected = False
            await asyncio.to_thread(cluster.shutdown)
            raise DatabaseConnectionError(f"{self.label} error: {e}", database_type=self.kind.value) from e

        self._cluster = cluster
        self._session = session
        self._connected = True
        logger.info(f"Connected to {self.label} keyspace '{self.keyspace}' for '{self.name}'")

    async def disconnect(self) -> None:
        try:
            if self._cluster is not None:
                await asyncio.to_thread(self._cluster.shutdown)
        except Exception as e:
            raise self._wrap(e)
        finally:
            self._cluster = None
            self._session = None
            self._transaction.end()
            self._connected = False

    def _execute_sync(self, query: str, parameters: Optional[Sequence[Any]] = None):
        if parameters:
            prepared = self._session.prepare(query)
            return self._session.execute(prepared, list(parameters))
        return self._session.execute(query)

    async def _execute(self, query: str, parameters: Optional[Sequence[Any]] = None):
        return await asyncio.to_thread(self._execute_sync, query, parameters)

    async def execute_query(self, query: Query, parameters: Optional[Sequence[Any]] = None) -> QueryResult:
        self._require_connection()
        if isinstance(query, StructuredCommand):
            raise QueryValidationError(f"{self.label} expects CQL text, not a structured command")

        try:
            result = await self._execute(query, parameters)
            rows = [{key: convert_value(value) for key, value in row.items()} for row in result]
        except Exception as e:
            raise self._wrap(e)

        names = list(result.column_names or [])
        types = list(result.column_types or [])
        fields = [
            FieldInfo(
                name=column_name,
                data_type=getattr(types[index], 'typename', 'unknown') if index < len(types) else 'unknown',
                nullable=True,
            )
            for index, column_name in enumerate(names)
        ]
        return QueryResult(rows=rows, row_count=len(rows), fields=fields)

    async def _rows(self, query: str, *parameters: Any) -> List[Dict[str, Any]]:
        return list(await self._execute(query, parameters))

    async def list_table_names(self) -> List[str]:
        self._require_connection()
        try:
            rows = await self._rows(
                "SELECT table_name FROM system_schema.tables WHERE keyspace_name = ?",
                self.keyspace,
            )
        except Exception as e:
            raise self._wrap(e)
        return sorted(row['table_name'] for row in rows)

    async def get_table_info(self, table_name: str, schema: Optional[str] = None) -> Optional[TableInfo]:
        self._require_connection()
        keyspace = schema or self.keyspace
        try:
            tables = await self._rows(
                "SELECT table_name FROM system_schema.tables WHERE keyspace_name = ? AND table_name = ?",
                keyspace, table_name,
            )
            if not tables:
                return None

            column_rows = await self._rows(
                "SELECT column_name, type, kind, position FROM system_schema.columns "
                "WHERE keyspace_name = ? AND table_name = ?",
                keyspace, table_name,
            )
            index_rows = await self._rows(
                "SELECT index_name, kind, options FROM system_schema.indexes "
                "WHERE keyspace_name = ? AND table_name = ?",
                keyspace, table_name,
            )
        except Exception as e:
            raise self._wrap(e)

        # Key columns first in key order, then regular columns by name
        kind_order = {'partition_key': 0, 'clustering': 1}
        column_rows.sort(key=lambda r: (kind_order.get(r['kind'], 2), r['position'], r['column_name']))

        columns = [
            ColumnInfo(
                name=row['column_name'],
                data_type=row['type'],
                nullable=row['kind'] != 'partition_key',
                is_primary_key=row['kind'] in ('partition_key', 'clustering'),
            )
            for row in column_rows
        ]
        indexes = [
            IndexInfo(
                name=row['index_name'],
                columns=[row['options']['target']] if (row.get('options') or {}).get('target') else [],
                unique=False,
                type=row['kind'],
            )
            for row in index_rows
        ]
        return TableInfo(name=table_name, schema=keyspace, type='table', columns=columns, indexes=indexes)

    async def get_database_stats(self) -> DatabaseStats:
        self._require_connection()
        try:
            tables = await self._rows(
                "SELECT table_name FROM system_schema.tables WHERE keyspace_name = ?", self.keyspace
            )
            indexes = await self._rows(
                "SELECT index_name FROM system_schema.indexes WHERE keyspace_name = ?", self.keyspace
            )
        except Exception as e:
            raise self._wrap(e)

        return DatabaseStats(
            total_tables=len(tables),
            total_views=0,
            total_indexes=len(indexes),
            database_size='Unknown',
            connection_count=1,
        )

    async def validate_connection(self) -> bool:
        if not self.is_connected():
            return False
        try:
            await self._execute("SELECT now() FROM system.local")
            return True
        except Exception as e:
            logger.debug(f"{self.label} connection check for '{self.name}' failed: {e}")
            return False
