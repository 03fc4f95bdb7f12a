"""Tests for the server-based SQL adapters that need no live server."""

import pytest

from dbgateway.config.models import MSSQLConfig, MySQLConfig, PostgreSQLConfig
from dbgateway.db.adapters import MSSQLAdapter, MySQLAdapter, PostgreSQLAdapter
from dbgateway.db.adapters.sql import infer_type_name
from dbgateway.db.commands import StructuredCommand
from dbgateway.exceptions import NotConnectedError, QueryValidationError


class TestConnectionUrls:

    def test_postgresql_from_fields(self):
        adapter = PostgreSQLAdapter(PostgreSQLConfig(
            host="db.local", database="shop", username="app", password="s3cret",
        ))
        url = adapter.build_connection_url()

        assert url.drivername == "postgresql+asyncpg"
        assert (url.host, url.port, url.database) == ("db.local", 5432, "shop")
        assert url.username == "app"
        assert url.password == "s3cret"

    def test_postgresql_url_gets_async_driver(self):
        adapter = PostgreSQLAdapter(PostgreSQLConfig(url="postgres://u:p@pg:6543/analytics"))
        url = adapter.build_connection_url()

        assert url.drivername == "postgresql+asyncpg"
        assert (url.host, url.port, url.database) == ("pg", 6543, "analytics")

    def test_mysql_defaults(self):
        url = MySQLAdapter(MySQLConfig(host="mysql.local", database="crm")).build_connection_url()

        assert url.drivername == "mysql+aiomysql"
        assert url.port == 3306
        assert url.username == "root"
        assert url.query["charset"] == "utf8mb4"

    def test_mssql_named_instance_drops_port(self):
        adapter = MSSQLAdapter(MSSQLConfig(
            host="sql.local", instance_name="SQLEXPRESS", database="erp",
            username="sa", password="pw", trust_server_certificate=True,
        ))
        url = adapter.build_connection_url()

        assert url.drivername == "mssql+aioodbc"
        assert url.host == "sql.local\\SQLEXPRESS"
        assert url.port is None
        assert url.query["driver"] == "ODBC Driver 18 for SQL Server"
        assert url.query["Encrypt"] == "no"
        assert url.query["TrustServerCertificate"] == "yes"

    def test_mssql_default_port(self):
        url = MSSQLAdapter(MSSQLConfig(host="sql.local", ssl=True)).build_connection_url()

        assert url.port == 1433
        assert url.database == "master"
        assert url.query["Encrypt"] == "yes"
        assert "TrustServerCertificate" not in url.query


def test_transaction_support_flags():
    assert PostgreSQLAdapter.supports_transactions is True
    assert MySQLAdapter.supports_transactions is True
    assert MSSQLAdapter.supports_transactions is False


def test_infer_type_name():
    assert infer_type_name(None) == "unknown"
    assert infer_type_name(True) == "boolean"
    assert infer_type_name(1) == "integer"
    assert infer_type_name(1.5) == "numeric"
    assert infer_type_name("x") == "text"
    assert infer_type_name(b"x") == "binary"
    assert infer_type_name({"a": 1}) == "json"


@pytest.mark.asyncio
async def test_queries_require_connection():
    adapter = PostgreSQLAdapter(PostgreSQLConfig(host="db.local", database="shop"))

    assert not adapter.is_connected()
    assert not await adapter.validate_connection()
    with pytest.raises(NotConnectedError, match="Database not connected"):
        await adapter.execute_query("SELECT 1")


@pytest.mark.asyncio
async def test_structured_commands_are_rejected():
    adapter = MySQLAdapter(MySQLConfig(host="mysql.local", database="crm"))
    adapter._engine = object()
    adapter._connected = True

    with pytest.raises(QueryValidationError, match="expects SQL text"):
        await adapter.execute_query(StructuredCommand(target="users", operation="find"))


class TestMSSQLGrouping:

    def test_group_indexes(self):
        rows = [
            {'index_name': 'PK_orders', 'is_unique': 1, 'index_type': 'CLUSTERED', 'column_name': 'id'},
            {'index_name': 'IX_orders_customer', 'is_unique': 0, 'index_type': 'NONCLUSTERED', 'column_name': 'customer_id'},
            {'index_name': 'IX_orders_customer', 'is_unique': 0, 'index_type': 'NONCLUSTERED', 'column_name': 'created'},
        ]

        indexes = MSSQLAdapter._group_indexes(rows)

        assert [(i.name, i.columns, i.unique, i.type) for i in indexes] == [
            ('PK_orders', ['id'], True, 'CLUSTERED'),
            ('IX_orders_customer', ['customer_id', 'created'], False, 'NONCLUSTERED'),
        ]

    def test_group_constraints(self):
        rows = [
            {'constraint_name': 'PK_orders', 'constraint_type': 'PRIMARY KEY', 'column_name': 'id',
             'referenced_table': None, 'referenced_column': None},
            {'constraint_name': 'FK_orders_customers', 'constraint_type': 'FOREIGN KEY', 'column_name': 'customer_id',
             'referenced_table': 'customers', 'referenced_column': 'id'},
        ]

        constraints = MSSQLAdapter._group_constraints(rows)

        assert constraints[0].columns == ['id']
        assert constraints[0].referenced_columns is None
        assert constraints[1].referenced_table == 'customers'
        assert constraints[1].referenced_columns == ['id']
