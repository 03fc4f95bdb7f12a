"""MySQL database adapter."""

import ssl
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

SYSTEM_SCHEMAS = "('information_schema', 'mysql', 'performance_schema', 'sys')"


def _split(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (bytes, bytearray)):
        value = value.decode()
    return [part for part in str(value).split(',') if part]


class MySQLAdapter(SQLAlchemyAdapter):
    """MySQL database adapter (aiomysql driver)."""

    kind = DatabaseType.MYSQL
    label = "MySQL"

    def build_connection_url(self) -> Union[str, URL]:
        if self.config.url:
            return make_url(self.config.url).set(drivername="mysql+aiomysql")

        return URL.create(
            "mysql+aiomysql",
            username=self.config.username or "root",
            password=self.config.password or "",
            host=self.config.host or "localhost",
            port=self.config.port or 3306,
            database=self.config.database or "mysql",
            query={'charset': self.config.options.get('charset', 'utf8mb4')},
        )

    def _get_engine_options(self) -> Dict[str, Any]:
        options = super()._get_engine_options()
        connect_args: Dict[str, Any] = {
            'connect_timeout': self.config.options.get('connect_timeout', self.config.pool_timeout),
        }
        if self.config.ssl:
            context = ssl.create_default_context()
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
            connect_args['ssl'] = context
        options['connect_args'] = connect_args
        return options

    async def _schema_name(self, schema: Optional[str]) -> str:
        if schema:
            return schema
        if self.config.database:
            return self.config.database
        rows = await self._fetch("SELECT DATABASE() AS current_schema")
        return rows[0]['current_schema'] if rows else 'mysql'

    async def _table_refs(self) -> List[Tuple[str, Optional[str]]]:
        rows = await self._fetch(f"""
            SELECT table_name AS table_name, table_schema AS table_schema
            FROM information_schema.tables
            WHERE table_schema NOT IN {SYSTEM_SCHEMAS}
            ORDER BY table_schema, table_name
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
            schema_name = await self._schema_name(schema)
            return await self._describe(table_name, schema_name)
        except Exception as e:
            raise self._wrap(e)

    async def _describe(self, table_name: str, schema_name: str) -> Optional[TableInfo]:
        tables = await self._fetch("""
            SELECT
                table_name AS table_name,
                table_schema AS table_schema,
                CASE
                    WHEN table_type = 'BASE TABLE' THEN 'table'
                    WHEN table_type = 'VIEW' THEN 'view'
                    ELSE 'table'
                END AS table_type
            FROM information_schema.tables
            WHERE table_name = :table_name AND table_schema = :schema
        """, table_name=table_name, schema=schema_name)
        if not tables:
            return None

        column_rows = await self._fetch("""
            SELECT
                c.column_name AS column_name,
                c.data_type AS data_type,
                c.is_nullable AS is_nullable,
                c.column_default AS column_default,
                c.character_maximum_length AS character_maximum_length,
                c.numeric_precision AS numeric_precision,
                c.numeric_scale AS numeric_scale,
                CASE WHEN c.column_key = 'PRI' THEN 1 ELSE 0 END AS is_primary_key,
                CASE WHEN EXISTS (
                    SELECT 1 FROM information_schema.key_column_usage k
                    WHERE k.table_schema = c.table_schema AND k.table_name = c.table_name
                        AND k.column_name = c.column_name AND k.referenced_table_name IS NOT NULL
                ) THEN 1 ELSE 0 END AS is_foreign_key
            FROM information_schema.columns c
            WHERE c.table_name = :table_name AND c.table_schema = :schema
            ORDER BY c.ordinal_position
        """, table_name=table_name, schema=schema_name)

        columns = [
            ColumnInfo(
                name=row['column_name'],
                data_type=row['data_type'],
                nullable=row['is_nullable'] == 'YES',
                default_value=row['column_default'],
                is_primary_key=bool(row['is_primary_key']),
                is_foreign_key=bool(row['is_foreign_key']),
                max_length=row['character_maximum_length'],
                precision=row['numeric_precision'],
                scale=row['numeric_scale'],
            )
            for row in column_rows
        ]

        index_rows = await self._fetch("""
            SELECT
                index_name AS name,
                GROUP_CONCAT(column_name ORDER BY seq_in_index) AS columns,
                CASE WHEN non_unique = 0 THEN 1 ELSE 0 END AS is_unique,
                index_type AS index_type
            FROM information_schema.statistics
            WHERE table_name = :table_name AND table_schema = :schema
            GROUP BY index_name, non_unique, index_type
            ORDER BY index_name
        """, table_name=table_name, schema=schema_name)

        indexes = [
            IndexInfo(
                name=row['name'],
                columns=_split(row['columns']),
                unique=bool(row['is_unique']),
                type=row['index_type'],
            )
            for row in index_rows
        ]

        constraint_rows = await self._fetch("""
            SELECT
                tc.constraint_name AS name,
                tc.constraint_type AS type,
                GROUP_CONCAT(k.column_name ORDER BY k.ordinal_position) AS columns,
                k.referenced_table_name AS referenced_table,
                GROUP_CONCAT(k.referenced_column_name ORDER BY k.ordinal_position) AS referenced_columns
            FROM information_schema.table_constraints tc
            LEFT JOIN information_schema.key_column_usage k
                ON k.constraint_name = tc.constraint_name
                AND k.table_schema = tc.table_schema
                AND k.table_name = tc.table_name
            WHERE tc.table_name = :table_name AND tc.table_schema = :schema
            GROUP BY tc.constraint_name, tc.constraint_type, k.referenced_table_name
            ORDER BY tc.constraint_name
        """, table_name=table_name, schema=schema_name)

        constraints = [
            ConstraintInfo(
                name=row['name'],
                type=row['type'],
                columns=_split(row['columns']),
                referenced_table=row['referenced_table'],
                referenced_columns=_split(row['referenced_columns']) or None,
            )
            for row in constraint_rows
        ]

        return TableInfo(
            name=tables[0]['table_name'],
            schema=tables[0]['table_schema'],
            type=tables[0]['table_type'],
            columns=columns,
            indexes=indexes,
            constraints=constraints,
        )

    async def get_database_stats(self) -> DatabaseStats:
        self._require_connection()
        try:
            tables = await self._fetch(f"""
                SELECT COUNT(*) AS total_tables
                FROM information_schema.tables
                WHERE table_schema NOT IN {SYSTEM_SCHEMAS}
            """)
            views = await self._fetch(f"""
                SELECT COUNT(*) AS total_views
                FROM information_schema.views
                WHERE table_schema NOT IN {SYSTEM_SCHEMAS}
            """)
            indexes = await self._fetch(f"""
                SELECT COUNT(DISTINCT table_schema, table_name, index_name) AS total_indexes
                FROM information_schema.statistics
                WHERE table_schema NOT IN {SYSTEM_SCHEMAS}
            """)
            size = await self._fetch("""
                SELECT SUM(data_length + index_length) AS size_bytes
                FROM information_schema.tables
                WHERE table_schema = DATABASE()
            """)
            connections = await self._fetch("""
                SELECT COUNT(*) AS connection_count
                FROM information_schema.processlist
                WHERE db = DATABASE()
            """)
        except Exception as e:
            raise self._wrap(e)

        size_bytes = size[0]['size_bytes'] if size else 0
        return DatabaseStats(
            total_tables=int(tables[0]['total_tables'] if tables else 0),
            total_views=int(views[0]['total_views'] if views else 0),
            total_indexes=int(indexes[0]['total_indexes'] if indexes else 0),
            database_size=format_megabytes(float(size_bytes or 0)),
            connection_count=int(connections[0]['connection_count'] if connections else 0),
        )
