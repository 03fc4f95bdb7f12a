"""Tests for the tool dispatcher over a real SQLite connection."""

import json

import pytest
import pytest_asyncio

from dbgateway.db.connection import ConnectionManager
from dbgateway.gateway import TOOLS, ToolDispatcher, ToolResult


@pytest_asyncio.fixture
async def dispatcher(sqlite_file):
    manager = ConnectionManager()
    await manager.add_connection("local", {"type": "sqlite", "filename": str(sqlite_file)})
    adapter = manager.require_connection()
    await adapter.execute_query("CREATE TABLE items (id INTEGER PRIMARY KEY, label TEXT NOT NULL)")
    await adapter.execute_query("INSERT INTO items (label) VALUES ('first'), ('second')")
    try:
        yield ToolDispatcher(manager)
    finally:
        await manager.disconnect_all()


def payload(result: ToolResult):
    assert not result.is_error, result.text
    return json.loads(result.text)


def test_tool_catalogue():
    dispatcher = ToolDispatcher(ConnectionManager())
    tools = {tool['name']: tool for tool in dispatcher.list_tools()}

    assert len(tools) == len(TOOLS) == 16
    assert tools['execute_query']['required'] == ['query']
    assert tools['add_connection']['required'] == ['name', 'config']
    assert tools['list_connections']['arguments'] == {}


def test_tool_result_wire_shape():
    assert ToolResult("boom", is_error=True).to_dict() == {
        'content': [{'type': 'text', 'text': 'boom'}],
        'isError': True,
    }


@pytest.mark.asyncio
async def test_unknown_tool(dispatcher):
    result = await dispatcher.call_tool("drop_everything", {})
    assert result.is_error
    assert result.text == "Error: Unknown tool: drop_everything"


@pytest.mark.asyncio
async def test_execute_query(dispatcher):
    data = payload(await dispatcher.call_tool(
        "execute_query", {"query": "SELECT label FROM items WHERE id = ?", "parameters": [2]}
    ))

    assert data['rows'] == [{'label': 'second'}]
    assert data['rowCount'] == 1
    assert data['fields'][0]['name'] == 'label'


@pytest.mark.asyncio
async def test_execute_query_requires_query(dispatcher):
    result = await dispatcher.call_tool("execute_query", {})
    assert result.is_error
    assert result.text == "Error: query is required"


@pytest.mark.asyncio
async def test_backend_errors_become_error_results(dispatcher):
    result = await dispatcher.call_tool("execute_query", {"query": "SELECT * FROM missing_table"})
    assert result.is_error
    assert result.text.startswith("Error: SQLite error:")


@pytest.mark.asyncio
async def test_get_tables_and_table_info(dispatcher):
    tables = payload(await dispatcher.call_tool("get_tables"))
    assert [table['name'] for table in tables] == ['items']

    info = payload(await dispatcher.call_tool("get_table_info", {"table_name": "items"}))
    assert [column['name'] for column in info['columns']] == ['id', 'label']

    missing = await dispatcher.call_tool("get_table_info", {"table_name": "nope"})
    assert missing.is_error
    assert missing.text == "Error: Table nope not found"


@pytest.mark.asyncio
async def test_stats_and_validation(dispatcher):
    stats = payload(await dispatcher.call_tool("get_database_stats"))
    assert stats['totalTables'] == 1

    assert payload(await dispatcher.call_tool("validate_connection")) == {'connected': True}


@pytest.mark.asyncio
async def test_transaction_tools(dispatcher):
    assert (await dispatcher.call_tool("begin_transaction")).text == "Transaction started"
    await dispatcher.call_tool("execute_query", {"query": "DELETE FROM items"})
    assert (await dispatcher.call_tool("rollback_transaction")).text == "Transaction rolled back"

    data = payload(await dispatcher.call_tool("execute_query", {"query": "SELECT COUNT(*) AS n FROM items"}))
    assert data['rows'] == [{'n': 2}]

    result = await dispatcher.call_tool("commit_transaction")
    assert result.is_error
    assert "No transaction in progress" in result.text


@pytest.mark.asyncio
async def test_execute_batch(dispatcher):
    results = payload(await dispatcher.call_tool("execute_batch", {"operations": [
        {"query": "INSERT INTO items (label) VALUES (?)", "parameters": ["third"]},
        {"query": "SELECT COUNT(*) AS n FROM items"},
    ]}))

    assert results[0]['rowCount'] == 1
    assert results[1]['rows'] == [{'n': 3}]

    missing = await dispatcher.call_tool("execute_batch", {})
    assert missing.is_error
    assert missing.text == "Error: operations array is required"


@pytest.mark.asyncio
async def test_connection_tools(dispatcher, tmp_path):
    added = await dispatcher.call_tool("add_connection", {
        "name": "scratch",
        "config": {"type": "sqlite", "filename": str(tmp_path / "scratch.db")},
    })
    assert added.text == "Connection 'scratch' added successfully"

    listed = payload(await dispatcher.call_tool("list_connections"))
    assert [(c['name'], c['type'], c['connected']) for c in listed] == [
        ('local', 'sqlite', True),
        ('scratch', 'sqlite', True),
    ]

    switched = await dispatcher.call_tool("switch_connection", {"name": "scratch"})
    assert switched.text == "Switched to connection 'scratch'"
    assert payload(await dispatcher.call_tool("get_current_connection")) == {'currentConnection': 'scratch'}

    removed = await dispatcher.call_tool("remove_connection", {"name": "scratch"})
    assert removed.text == "Connection 'scratch' removed successfully"
    assert payload(await dispatcher.call_tool("get_current_connection")) == {'currentConnection': 'local'}


@pytest.mark.asyncio
async def test_add_connection_validates_config(dispatcher):
    result = await dispatcher.call_tool("add_connection", {"name": "bad", "config": {"type": "postgresql"}})

    assert result.is_error
    assert result.text == (
        "Error: Invalid configuration: Host or URL is required for PostgreSQL/MySQL, "
        "Database name is required for PostgreSQL/MySQL"
    )


@pytest.mark.asyncio
async def test_named_connection_argument(dispatcher):
    result = await dispatcher.call_tool("get_tables", {"connection": "ghost"})
    assert result.is_error
    assert result.text == "Error: Connection 'ghost' not found"


@pytest.mark.asyncio
async def test_no_current_connection():
    dispatcher = ToolDispatcher(ConnectionManager())
    result = await dispatcher.call_tool("get_tables")
    assert result.is_error
    assert result.text == "Error: No active database connection"


@pytest.mark.asyncio
async def test_compare_schemas_between_connections(dispatcher):
    payload(await dispatcher.call_tool("add_connection", {
        "name": "scratch", "config": {"type": "sqlite", "filename": ":memory:"},
    }))
    await dispatcher.manager.require_connection("scratch").execute_query("CREATE TABLE notes (body TEXT)")

    data = payload(await dispatcher.call_tool(
        "compare_schemas", {"source_connection": "local", "target_connection": "scratch"}
    ))

    assert data['identical'] is False
    assert data['summary']['tablesAdded'] == 1
    assert data['summary']['tablesRemoved'] == 1
    assert {d['tableName'] for d in data['differences']} == {'items', 'notes'}


@pytest.mark.asyncio
async def test_compare_schemas_unknown_connection(dispatcher):
    result = await dispatcher.call_tool(
        "compare_schemas", {"source_connection": "local", "target_connection": "ghost"}
    )
    assert result.is_error
    assert result.text == "Error: Connection 'ghost' not found"


@pytest.mark.asyncio
async def test_compare_schemas_requires_both_names(dispatcher):
    result = await dispatcher.call_tool("compare_schemas", {"source_connection": "local"})
    assert result.is_error
    assert result.text == "Error: target_connection is required"


@pytest.mark.asyncio
async def test_validate_schema(dispatcher):
    await dispatcher.manager.require_connection("local").execute_query("CREATE TABLE loose (value TEXT)")

    data = payload(await dispatcher.call_tool("validate_schema", {"connection": "local"}))

    assert data == {'valid': False, 'issues': ["Table 'loose' has no primary key"]}
