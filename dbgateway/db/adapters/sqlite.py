"""SQLite database adapter."""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import event
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.pool import StaticPool

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

MEMORY = ":memory:"


class SQLiteAdapter(SQLAlchemyAdapter):
    """SQLite database adapter (aiosqlite driver, one shared connection)."""

    kind = DatabaseType.SQLITE
    label = "SQLite"

    @property
    def filename(self) -> str:
        return getattr(self.config, 'filename', None) or self.config.database or MEMORY

    def build_connection_url(self) -> Union[str, URL]:
        if self.config.url:
            return make_url(self.config.url).set(drivername="sqlite+aiosqlite")

        if self.filename == MEMORY:
            return URL.create("sqlite+aiosqlite", database=MEMORY)

        db_path = Path(self.filename)
        if not db_path.is_absolute():
            db_path = Path.cwd() / db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)

        return URL.create("sqlite+aiosqlite", database=str(db_path))

    def _get_engine_options(self) -> Dict[str, Any]:
        return {
            'poolclass': StaticPool,
            'echo': False,
            'connect_args': {
                'timeout': self.config.options.get('timeout', self.config.request_timeout),
            },
        }

    def _configure_engine(self, engine: AsyncEngine) -> None:
        # Let SQLAlchemy emit BEGIN itself instead of the sqlite3 module's implicit transactions
        @event.listens_for(engine.sync_engine, "connect")
        def on_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode = WAL")
            cursor.execute("PRAGMA foreign_keys = ON")
            cursor.close()

        @event.listens_for(engine.sync_engine, "begin")
        def on_begin(conn):
            conn.exec_driver_sql("BEGIN")

    async def list_table_names(self) -> List[str]:
        self._require_connection()
        try:
            rows = await self._fetch("""
                SELECT name FROM sqlite_master
                WHERE type IN ('table', 'view') AND name NOT LIKE 'sqlite_%'
                ORDER BY name
            """)
        except Exception as e:
            raise self._wrap(e)
        return [row['name'] for row in rows]

    async def get_table_info(self, table_name: str, schema: Optional[str] = None) -> Optional[TableInfo]:
        self._require_connection()
        try:
            return await self._describe(table_name)
        except Exception as e:
            raise self._wrap(e)

    async def _describe(self, table_name: str) -> Optional[TableInfo]:
        tables = await self._fetch("""
            SELECT name, type FROM sqlite_master
            WHERE name = :table_name AND type IN ('table', 'view')
        """, table_name=table_name)
        if not tables:
            return None

        column_rows = await self._fetch(
            "SELECT * FROM pragma_table_info(:table_name)", table_name=table_name
        )
        foreign_keys = await self._fetch(
            "SELECT * FROM pragma_foreign_key_list(:table_name)", table_name=table_name
        )
        foreign_columns = {fk['from'] for fk in foreign_keys}

        columns = [
            ColumnInfo(
                name=row['name'],
                data_type=row['type'] or 'BLOB',
                nullable=not row['notnull'],
                default_value=row['dflt_value'],
                is_primary_key=row['pk'] > 0,
                is_foreign_key=row['name'] in foreign_columns,
            )
            for row in column_rows
        ]

        indexes = []
        for index_row in await self._fetch(
            "SELECT * FROM pragma_index_list(:table_name)", table_name=table_name
        ):
            index_columns = await self._fetch(
                "SELECT name FROM pragma_index_info(:index_name) ORDER BY seqno",
                index_name=index_row['name'],
            )
            indexes.append(IndexInfo(
                name=index_row['name'],
                columns=[col['name'] for col in index_columns],
                unique=bool(index_row['unique']),
                type='btree',
            ))

        constraints = []
        primary_keys = [
            row['name'] for row in sorted(column_rows, key=lambda r: r['pk']) if row['pk'] > 0
        ]
        if primary_keys:
            constraints.append(ConstraintInfo(
                name=f"pk_{table_name}",
                type='PRIMARY KEY',
                columns=primary_keys,
            ))
        for fk in foreign_keys:
            constraints.append(ConstraintInfo(
                name=f"fk_{table_name}_{fk['from']}",
                type='FOREIGN KEY',
                columns=[fk['from']],
                referenced_table=fk['table'],
                referenced_columns=[fk['to']] if fk['to'] else None,
            ))

        return TableInfo(
            name=tables[0]['name'],
            schema=None,
            type='table' if tables[0]['type'] == 'table' else 'view',
            columns=columns,
            indexes=indexes,
            constraints=constraints,
        )

    async def get_database_stats(self) -> DatabaseStats:
        self._require_connection()
        try:
            counts = await self._fetch("""
                SELECT
                    SUM(CASE WHEN type = 'table' THEN 1 ELSE 0 END) AS total_tables,
                    SUM(CASE WHEN type = 'view' THEN 1 ELSE 0 END) AS total_views,
                    SUM(CASE WHEN type = 'index' THEN 1 ELSE 0 END) AS total_indexes
                FROM sqlite_master
                WHERE name NOT LIKE 'sqlite_%'
            """)
            size = await self._fetch("""
                SELECT page_count * page_size AS size_bytes
                FROM pragma_page_count(), pragma_page_size()
            """)
        except Exception as e:
            raise self._wrap(e)

        row = counts[0] if counts else {}
        return DatabaseStats(
            total_tables=int(row.get('total_tables') or 0),
            total_views=int(row.get('total_views') or 0),
            total_indexes=int(row.get('total_indexes') or 0),
            database_size=format_megabytes(size[0]['size_bytes'] if size else 0),
            connection_count=1,
        )
