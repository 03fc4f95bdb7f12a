"""PostgreSQL database adapter."""

from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy.engine import URL, make_url

from dbgateway.config.models import DatabaseType
from dbgateway.db.adapters.sql import SQLAlchemyAdapter
from dbgateway.db.models import ColumnInfo, ConstraintInfo, DatabaseStats, IndexInfo, TableInfo

SYSTEM_SCHEMAS = "('information_schema', 'pg_catalog')"

TABLE_TYPE_CASE = """
    CASE
        WHEN t.table_type = 'BASE TABLE' THEN 'table'
        WHEN t.table_type = 'VIEW' THEN 'view'
        WHEN t.table_type = 'MATERIALIZED VIEW' THEN 'materialized_view'
        ELSE 'table'
    END
"""


def _unique(values: Optional[List[Any]]) -> List[Any]:
    """Drop NULLs and repeats produced by joined array_agg results."""
    seen: List[Any] = []
    for value in values or []:
        if value is not None and value not in seen:
            seen.append(value)
    return seen


class PostgreSQLAdapter(SQLAlchemyAdapter):
    """PostgreSQL database adapter (asyncpg driver)."""

    kind = DatabaseType.POSTGRESQL
    label = "PostgreSQL"
    default_schema = "public"

    def build_connection_url(self) -> Union[str, URL]:
        if self.config.url:
            return make_url(self.config.url).set(drivername="postgresql+asyncpg")

        return URL.create(
            "postgresql+asyncpg",
            username=self.config.username or "postgres",
            password=self.config.password or "",
            host=self.config.host or "localhost",
            port=self.config.port or 5432,
            database=self.config.database or "postgres",
        )

    def _get_engine_options(self) -> Dict[str, Any]:
        options = super()._get_engine_options()
        connect_args: Dict[str, Any] = {
            'timeout': self.config.options.get('connect_timeout', self.config.pool_timeout),
            'command_timeout': self.config.request_timeout,
            'server_settings': {
                'application_name': self.config.options.get('application_name', 'dbgateway'),
            },
        }
        if self.config.ssl:
            connect_args['ssl'] = self.config.options.get('sslmode', 'require')
        options['connect_args'] = connect_args
        return options

    async def _table_refs(self) -> List[Tuple[str, Optional[str]]]:
        rows = await self._fetch(f"""
            SELECT t.table_name, t.table_schema
            FROM information_schema.tables t
            WHERE t.table_schema NOT IN {SYSTEM_SCHEMAS}
            ORDER BY t.table_schema, t.table_name
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
        schema_name = schema or self.default_schema
        try:
            return await self._describe(table_name, schema_name)
        except Exception as e:
            raise self._wrap(e)

    async def _describe(self, table_name: str, schema_name: str) -> Optional[TableInfo]:
        tables = await self._fetch(f"""
            SELECT t.table_name, t.table_schema, {TABLE_TYPE_CASE} AS table_type
            FROM information_schema.tables t
            WHERE t.table_name = :table_name AND t.table_schema = :schema
        """, table_name=table_name, schema=schema_name)

        if tables:
            table_type = tables[0]['table_type']
        else:
            matviews = await self._fetch("""
                SELECT matviewname FROM pg_matviews
                WHERE matviewname = :table_name AND schemaname = :schema
            """, table_name=table_name, schema=schema_name)
            if not matviews:
                return None
            table_type = 'materialized_view'

        column_rows = await self._fetch("""
            SELECT
                c.column_name,
                c.data_type,
                c.is_nullable,
                c.column_default,
                c.character_maximum_length,
                c.numeric_precision,
                c.numeric_scale,
                CASE WHEN pk.column_name IS NOT NULL THEN true ELSE false END AS is_primary_key,
                CASE WHEN fk.column_name IS NOT NULL THEN true ELSE false END AS is_foreign_key
            FROM information_schema.columns c
            LEFT JOIN (
                SELECT DISTINCT ku.column_name
                FROM information_schema.table_constraints tc
                JOIN information_schema.key_column_usage ku
                    ON tc.constraint_name = ku.constraint_name AND tc.table_schema = ku.table_schema
                WHERE tc.table_name = :table_name AND tc.table_schema = :schema
                    AND tc.constraint_type = 'PRIMARY KEY'
            ) pk ON c.column_name = pk.column_name
            LEFT JOIN (
                SELECT DISTINCT ku.column_name
                FROM information_schema.table_constraints tc
                JOIN information_schema.key_column_usage ku
                    ON tc.constraint_name = ku.constraint_name AND tc.table_schema = ku.table_schema
                WHERE tc.table_name = :table_name AND tc.table_schema = :schema
                    AND tc.constraint_type = 'FOREIGN KEY'
            ) fk ON c.column_name = fk.column_name
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
                i.relname AS name,
                array_agg(a.attname ORDER BY a.attnum) AS columns,
                ix.indisunique AS is_unique,
                am.amname AS index_type
            FROM pg_class t
            JOIN pg_namespace n ON n.oid = t.relnamespace
            JOIN pg_index ix ON ix.indrelid = t.oid
            JOIN pg_class i ON i.oid = ix.indexrelid
            JOIN pg_am am ON am.oid = i.relam
            JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = ANY(ix.indkey)
            WHERE t.relname = :table_name AND n.nspname = :schema
            GROUP BY i.relname, ix.indisunique, am.amname
            ORDER BY i.relname
        """, table_name=table_name, schema=schema_name)

        indexes = [
            IndexInfo(
                name=row['name'],
                columns=list(row['columns'] or []),
                unique=bool(row['is_unique']),
                type=row['index_type'],
            )
            for row in index_rows
        ]

        constraint_rows = await self._fetch("""
            SELECT
                tc.constraint_name AS name,
                tc.constraint_type AS type,
                array_agg(kcu.column_name ORDER BY kcu.ordinal_position) AS columns,
                ccu.table_name AS referenced_table,
                array_agg(ccu.column_name ORDER BY kcu.ordinal_position) AS referenced_columns
            FROM information_schema.table_constraints tc
            LEFT JOIN information_schema.key_column_usage kcu
                ON tc.constraint_name = kcu.constraint_name AND tc.table_schema = kcu.table_schema
            LEFT JOIN information_schema.constraint_column_usage ccu
                ON tc.constraint_name = ccu.constraint_name AND tc.table_schema = ccu.table_schema
            WHERE tc.table_name = :table_name AND tc.table_schema = :schema
            GROUP BY tc.constraint_name, tc.constraint_type, ccu.table_name
            ORDER BY tc.constraint_name
        """, table_name=table_name, schema=schema_name)

        constraints = []
        for row in constraint_rows:
            is_foreign = row['type'] == 'FOREIGN KEY'
            constraints.append(ConstraintInfo(
                name=row['name'],
                type=row['type'],
                columns=_unique(row['columns']),
                referenced_table=row['referenced_table'] if is_foreign else None,
                referenced_columns=_unique(row['referenced_columns']) if is_foreign else None,
            ))

        return TableInfo(
            name=table_name,
            schema=schema_name,
            type=table_type,
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
                SELECT COUNT(*) AS total_indexes
                FROM pg_indexes
                WHERE schemaname NOT IN {SYSTEM_SCHEMAS}
            """)
            size = await self._fetch(
                "SELECT pg_size_pretty(pg_database_size(current_database())) AS database_size"
            )
            connections = await self._fetch("""
                SELECT COUNT(*) AS connection_count
                FROM pg_stat_activity
                WHERE datname = current_database()
            """)
        except Exception as e:
            raise self._wrap(e)

        return DatabaseStats(
            total_tables=int(tables[0]['total_tables'] if tables else 0),
            total_views=int(views[0]['total_views'] if views else 0),
            total_indexes=int(indexes[0]['total_indexes'] if indexes else 0),
            database_size=(size[0]['database_size'] if size else None) or '0 MB',
            connection_count=int(connections[0]['connection_count'] if connections else 0),
        )
