"""Microsoft SQL Server database adapter."""

from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy.engine import URL, make_url

from dbgateway.config.models import DatabaseType
from dbgateway.db.adapters.sql import SQLAlchemyAdapter
from dbgateway.db.models import (
    ColumnInfo,
    ConstraintInfo,
    DatabaseStats,
    IndexInfo,
    TableInfo,
    format_megabytes,
)


class MSSQLAdapter(SQLAlchemyAdapter):
    """SQL Server adapter (aioodbc driver).

    Transactions are not held open across calls: begin/commit/rollback only
    move the state machine and every statement commits on its own.
    """

    kind = DatabaseType.MSSQL
    label = "MSSQL"
    supports_transactions = False
    default_schema = "dbo"

    def build_connection_url(self) -> Union[str, URL]:
        if self.config.url:
            return make_url(self.config.url).set(drivername="mssql+aioodbc")

        host = self.config.host or "localhost"
        if self.config.instance_name:
            host = f"{host}\\{self.config.instance_name}"

        query = {
            'driver': self.config.odbc_driver,
            'Encrypt': 'yes' if self.config.ssl else 'no',
        }
        if self.config.trust_server_certificate:
            query['TrustServerCertificate'] = 'yes'

        return URL.create(
            "mssql+aioodbc",
            username=self.config.username,
            password=self.config.password,
            host=host,
            port=None if self.config.instance_name else (self.config.port or 1433),
            database=self.config.database or "master",
            query=query,
        )

    def _get_engine_options(self) -> Dict[str, Any]:
        options = super()._get_engine_options()
        options['connect_args'] = {'timeout': int(self.config.request_timeout)}
        return options

    async def _table_refs(self) -> List[Tuple[str, Optional[str]]]:
        rows = await self._fetch("""
            SELECT TABLE_NAME AS table_name, TABLE_SCHEMA AS table_schema
            FROM INFORMATION_SCHEMA.TABLES
            WHERE TABLE_TYPE = 'BASE TABLE'
            ORDER BY TABLE_SCHEMA, TABLE_NAME
        """)
        return [(row['table_name'], row['table_schema']) for row in rows]

    async def list_table_names(self) -> List[str]:
        self._require_connection()
        try:
            return [table_name for table_name, _ in await self._table_refs()]
        except Exception as e:
            raise self._wrap(e)

    async def get_table_info(self, table_name: str, schema: Optional[str] = None) -> Optional[TableInfo]:
        self._require_connection()
        try:
            return await self._describe(table_name, schema or self.default_schema)
        except Exception as e:
            raise self._wrap(e)

    async def _describe(self, table_name: str, schema_name: str) -> Optional[TableInfo]:
        tables = await self._fetch("""
            SELECT TABLE_TYPE AS table_type
            FROM INFORMATION_SCHEMA.TABLES
            WHERE TABLE_SCHEMA = :schema AND TABLE_NAME = :table_name
        """, schema=schema_name, table_name=table_name)
        if not tables:
            return None

        column_rows = await self._fetch("""
            SELECT
                c.COLUMN_NAME AS column_name,
                c.DATA_TYPE AS data_type,
                c.IS_NULLABLE AS is_nullable,
                c.COLUMN_DEFAULT AS column_default,
                c.CHARACTER_MAXIMUM_LENGTH AS max_length,
                c.NUMERIC_PRECISION AS numeric_precision,
                c.NUMERIC_SCALE AS numeric_scale,
                CASE WHEN pk.COLUMN_NAME IS NOT NULL THEN 1 ELSE 0 END AS is_primary_key,
                CASE WHEN fk.COLUMN_NAME IS NOT NULL THEN 1 ELSE 0 END AS is_foreign_key
            FROM INFORMATION_SCHEMA.COLUMNS c
            LEFT JOIN (
                SELECT DISTINCT ku.TABLE_SCHEMA, ku.TABLE_NAME, ku.COLUMN_NAME
                FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS tc
                INNER JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE ku
                    ON tc.CONSTRAINT_NAME = ku.CONSTRAINT_NAME
                WHERE tc.CONSTRAINT_TYPE = 'PRIMARY KEY'
            ) pk ON c.TABLE_SCHEMA = pk.TABLE_SCHEMA
                AND c.TABLE_NAME = pk.TABLE_NAME
                AND c.COLUMN_NAME = pk.COLUMN_NAME
            LEFT JOIN (
                SELECT DISTINCT ku.TABLE_SCHEMA, ku.TABLE_NAME, ku.COLUMN_NAME
                FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS tc
                INNER JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE ku
                    ON tc.CONSTRAINT_NAME = ku.CONSTRAINT_NAME
                WHERE tc.CONSTRAINT_TYPE = 'FOREIGN KEY'
            ) fk ON c.TABLE_SCHEMA = fk.TABLE_SCHEMA
                AND c.TABLE_NAME = fk.TABLE_NAME
                AND c.COLUMN_NAME = fk.COLUMN_NAME
            WHERE c.TABLE_SCHEMA = :schema AND c.TABLE_NAME = :table_name
            ORDER BY c.ORDINAL_POSITION
        """, schema=schema_name, table_name=table_name)

        index_rows = await self._fetch("""
            SELECT
                i.name AS index_name,
                c.name AS column_name,
                i.is_unique AS is_unique,
                i.type_desc AS index_type
            FROM sys.indexes i
            INNER JOIN sys.index_columns ic ON i.object_id = ic.object_id AND i.index_id = ic.index_id
            INNER JOIN sys.columns c ON ic.object_id = c.object_id AND ic.column_id = c.column_id
            INNER JOIN sys.tables t ON i.object_id = t.object_id
            INNER JOIN sys.schemas s ON t.schema_id = s.schema_id
            WHERE s.name = :schema AND t.name = :table_name
            ORDER BY i.name, ic.key_ordinal
        """, schema=schema_name, table_name=table_name)

        constraint_rows = await self._fetch("""
            SELECT
                tc.CONSTRAINT_NAME AS constraint_name,
                tc.CONSTRAINT_TYPE AS constraint_type,
                ccu.COLUMN_NAME AS column_name,
                ccu2.TABLE_NAME AS referenced_table,
                ccu2.COLUMN_NAME AS referenced_column
            FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS tc
            LEFT JOIN INFORMATION_SCHEMA.CONSTRAINT_COLUMN_USAGE ccu
                ON tc.CONSTRAINT_NAME = ccu.CONSTRAINT_NAME
            LEFT JOIN INFORMATION_SCHEMA.REFERENTIAL_CONSTRAINTS rc
                ON tc.CONSTRAINT_NAME = rc.CONSTRAINT_NAME
            LEFT JOIN INFORMATION_SCHEMA.CONSTRAINT_COLUMN_USAGE ccu2
                ON rc.UNIQUE_CONSTRAINT_NAME = ccu2.CONSTRAINT_NAME
            WHERE tc.TABLE_SCHEMA = :schema AND tc.TABLE_NAME = :table_name
        """, schema=schema_name, table_name=table_name)

        columns = [
            ColumnInfo(
                name=row['column_name'],
                data_type=row['data_type'],
                nullable=row['is_nullable'] == 'YES',
                default_value=row['column_default'],
                is_primary_key=bool(row['is_primary_key']),
                is_foreign_key=bool(row['is_foreign_key']),
                max_length=row['max_length'],
                precision=row['numeric_precision'],
                scale=row['numeric_scale'],
            )
            for row in column_rows
        ]

        return TableInfo(
            name=table_name,
            schema=schema_name,
            type='view' if tables[0]['table_type'] == 'VIEW' else 'table',
            columns=columns,
            indexes=self._group_indexes(index_rows),
            constraints=self._group_constraints(constraint_rows),
        )

    @staticmethod
    def _group_indexes(rows: List[Dict[str, Any]]) -> List[IndexInfo]:
        """Fold one-row-per-column index listings into IndexInfo objects."""
        grouped: Dict[str, IndexInfo] = {}
        for row in rows:
            index = grouped.get(row['index_name'])
            if index is None:
                index = grouped[row['index_name']] = IndexInfo(
                    name=row['index_name'],
                    unique=bool(row['is_unique']),
                    type=row['index_type'],
                )
            if row['column_name'] not in index.columns:
                index.columns.append(row['column_name'])
        return list(grouped.values())

    @staticmethod
    def _group_constraints(rows: List[Dict[str, Any]]) -> List[ConstraintInfo]:
        grouped: Dict[str, ConstraintInfo] = {}
        for row in rows:
            constraint = grouped.get(row['constraint_name'])
            if constraint is None:
                constraint = grouped[row['constraint_name']] = ConstraintInfo(
                    name=row['constraint_name'],
                    type=row['constraint_type'],
                    referenced_table=row['referenced_table'],
                    referenced_columns=[] if row['referenced_table'] else None,
                )
            if row['column_name'] and row['column_name'] not in constraint.columns:
                constraint.columns.append(row['column_name'])
            referenced = row['referenced_column']
            if referenced and constraint.referenced_columns is not None:
                if referenced not in constraint.referenced_columns:
                    constraint.referenced_columns.append(referenced)
        return list(grouped.values())

    async def get_database_stats(self) -> DatabaseStats:
        self._require_connection()
        try:
            rows = await self._fetch("""
                SELECT
                    (SELECT COUNT(*) FROM INFORMATION_SCHEMA.TABLES WHERE TABLE_TYPE = 'BASE TABLE') AS total_tables,
                    (SELECT COUNT(*) FROM INFORMATION_SCHEMA.VIEWS) AS total_views,
                    (SELECT COUNT(*) FROM sys.indexes WHERE type > 0) AS total_indexes,
                    (SELECT SUM(CAST(FILEPROPERTY(name, 'SpaceUsed') AS bigint) * 8192)
                        FROM sys.database_files) AS size_bytes,
                    (SELECT COUNT(*) FROM sys.dm_exec_connections) AS connection_count
            """)
        except Exception as e:
            raise self._wrap(e)

        if not rows:
            return DatabaseStats(database_size='0.00 MB', connection_count=0)

        stats = rows[0]
        return DatabaseStats(
            total_tables=int(stats['total_tables'] or 0),
            total_views=int(stats['total_views'] or 0),
            total_indexes=int(stats['total_indexes'] or 0),
            database_size=format_megabytes(float(stats['size_bytes'] or 0)),
            connection_count=int(stats['connection_count'] or 0),
        )
