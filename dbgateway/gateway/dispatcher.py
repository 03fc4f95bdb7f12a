"""Routing from tool calls to connection registry and adapter operations."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from dbgateway.db.base import DatabaseAdapter
from dbgateway.db.commands import StructuredCommand
from dbgateway.db.connection import ConnectionManager
from dbgateway.db.factory import DatabaseAdapterFactory
from dbgateway.db.schema import compare_schemas, validate_schema
from dbgateway.exceptions import ConfigurationError, GatewayError, QueryValidationError

logger = logging.getLogger(__name__)

CONNECTION_ARG = "Connection name (optional, uses current if not specified)"


@dataclass
class ToolResult:
    """Text payload of a tool call and whether it reports an error."""
    text: str
    is_error: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {'content': [{'type': 'text', 'text': self.text}], 'isError': self.is_error}


@dataclass
class ToolSpec:
    name: str
    description: str
    arguments: Dict[str, str] = field(default_factory=dict)
    required: List[str] = field(default_factory=list)


TOOLS: List[ToolSpec] = [
    ToolSpec(
        'execute_query', 'Execute a query on the current database connection',
        {
            'query': 'Query to execute (SQL for relational DBs, JSON for MongoDB and DynamoDB, commands for Redis)',
            'parameters': 'Query parameters',
            'connection': CONNECTION_ARG,
        },
        ['query'],
    ),
    ToolSpec('get_tables', 'Get list of all tables/collections in the current database',
             {'connection': CONNECTION_ARG}),
    ToolSpec(
        'get_table_info', 'Get detailed information about a specific table/collection',
        {'table_name': 'Name of the table/collection', 'schema': 'Schema name (optional)', 'connection': CONNECTION_ARG},
        ['table_name'],
    ),
    ToolSpec('get_database_stats', 'Get database statistics and information', {'connection': CONNECTION_ARG}),
    ToolSpec('validate_connection', 'Validate database connection', {'connection': CONNECTION_ARG}),
    ToolSpec('begin_transaction', 'Begin a database transaction', {'connection': CONNECTION_ARG}),
    ToolSpec('commit_transaction', 'Commit the current transaction', {'connection': CONNECTION_ARG}),
    ToolSpec('rollback_transaction', 'Rollback the current transaction', {'connection': CONNECTION_ARG}),
    ToolSpec(
        'execute_batch', 'Execute multiple queries in a transaction',
        {'operations': 'Array of database operations', 'connection': CONNECTION_ARG},
        ['operations'],
    ),
    ToolSpec(
        'add_connection', 'Add a new database connection',
        {'name': 'Name for the connection', 'config': 'Database configuration'},
        ['name', 'config'],
    ),
    ToolSpec('remove_connection', 'Remove a database connection',
             {'name': 'Name of the connection to remove'}, ['name']),
    ToolSpec('list_connections', 'List all database connections'),
    ToolSpec('switch_connection', 'Switch to a different database connection',
             {'name': 'Name of the connection to switch to'}, ['name']),
    ToolSpec('get_current_connection', 'Get the current active connection name'),
    ToolSpec(
        'compare_schemas', 'Compare schemas between two database connections',
        {'source_connection': 'Source connection name', 'target_connection': 'Target connection name'},
        ['source_connection', 'target_connection'],
    ),
    ToolSpec('validate_schema', 'Validate schema consistency',
             {'connection': 'Connection name'}, ['connection']),
]


def to_json(payload: Any) -> str:
    return json.dumps(payload, indent=2, default=str)


class ToolDispatcher:
    """Maps a tool name and its argument object onto core calls.

    Every outcome is a :class:`ToolResult`; gateway errors and unknown tools
    become ``is_error=True`` with an ``Error: <message>`` text.
    """

    def __init__(self, manager: ConnectionManager) -> None:
        self.manager = manager
        self._handlers: Dict[str, Callable[[Dict[str, Any]], Awaitable[str]]] = {
            'execute_query': self._execute_query,
            'get_tables': self._get_tables,
            'get_table_info': self._get_table_info,
            'get_database_stats': self._get_database_stats,
            'validate_connection': self._validate_connection,
            'begin_transaction': self._begin_transaction,
            'commit_transaction': self._commit_transaction,
            'rollback_transaction': self._rollback_transaction,
            'execute_batch': self._execute_batch,
            'add_connection': self._add_connection,
            'remove_connection': self._remove_connection,
            'list_connections': self._list_connections,
            'switch_connection': self._switch_connection,
            'get_current_connection': self._get_current_connection,
            'compare_schemas': self._compare_schemas,
            'validate_schema': self._validate_schema,
        }

    def list_tools(self) -> List[Dict[str, Any]]:
        return [
            {'name': spec.name, 'description': spec.description,
             'arguments': dict(spec.arguments), 'required': list(spec.required)}
            for spec in TOOLS
        ]

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> ToolResult:
        handler = self._handlers.get(name)
        if handler is None:
            return ToolResult(text=f"Error: Unknown tool: {name}", is_error=True)

        try:
            text = await handler(arguments or {})
        except GatewayError as e:
            logger.debug(f"Tool '{name}' failed: {e.message}")
            return ToolResult(text=f"Error: {e.message}", is_error=True)
        return ToolResult(text=text)

    def _adapter(self, args: Dict[str, Any]) -> DatabaseAdapter:
        return self.manager.require_connection(args.get('connection'))

    @staticmethod
    def _require(args: Dict[str, Any], *names: str) -> None:
        missing = [name for name in names if args.get(name) in (None, '')]
        if missing:
            raise QueryValidationError(f"{' and '.join(missing)} {'is' if len(missing) == 1 else 'are'} required")

    async def _execute_query(self, args: Dict[str, Any]) -> str:
        self._require(args, 'query')
        query = args['query']
        if isinstance(query, dict):
            query = StructuredCommand.parse(query)
        result = await self._adapter(args).safe_execute_query(query, args.get('parameters'))
        return to_json(result.to_dict())

    async def _get_tables(self, args: Dict[str, Any]) -> str:
        tables = await self._adapter(args).get_tables()
        return to_json([table.to_dict() for table in tables])

    async def _get_table_info(self, args: Dict[str, Any]) -> str:
        self._require(args, 'table_name')
        info = await self._adapter(args).get_table_info(args['table_name'], args.get('schema'))
        if info is None:
            raise QueryValidationError(f"Table {args['table_name']} not found")
        return to_json(info.to_dict())

    async def _get_database_stats(self, args: Dict[str, Any]) -> str:
        stats = await self._adapter(args).get_database_stats()
        return to_json(stats.to_dict())

    async def _validate_connection(self, args: Dict[str, Any]) -> str:
        return to_json({'connected': await self._adapter(args).validate_connection()})

    async def _begin_transaction(self, args: Dict[str, Any]) -> str:
        await self._adapter(args).begin_transaction()
        return 'Transaction started'

    async def _commit_transaction(self, args: Dict[str, Any]) -> str:
        await self._adapter(args).commit_transaction()
        return 'Transaction committed'

    async def _rollback_transaction(self, args: Dict[str, Any]) -> str:
        await self._adapter(args).rollback_transaction()
        return 'Transaction rolled back'

    async def _execute_batch(self, args: Dict[str, Any]) -> str:
        operations = args.get('operations')
        if not isinstance(operations, list):
            raise QueryValidationError('operations array is required')
        results = await self._adapter(args).execute_batch(operations)
        return to_json([result.to_dict() for result in results])

    async def _add_connection(self, args: Dict[str, Any]) -> str:
        self._require(args, 'name', 'config')
        validation = DatabaseAdapterFactory.validate_config(args['config'])
        if not validation.valid:
            raise ConfigurationError(f"Invalid configuration: {', '.join(validation.errors)}")
        await self.manager.add_connection(args['name'], args['config'])
        return f"Connection '{args['name']}' added successfully"

    async def _remove_connection(self, args: Dict[str, Any]) -> str:
        self._require(args, 'name')
        await self.manager.remove_connection(args['name'])
        return f"Connection '{args['name']}' removed successfully"

    async def _list_connections(self, args: Dict[str, Any]) -> str:
        return to_json(self.manager.list_connections())

    async def _switch_connection(self, args: Dict[str, Any]) -> str:
        self._require(args, 'name')
        self.manager.set_current_connection(args['name'])
        return f"Switched to connection '{args['name']}'"

    async def _get_current_connection(self, args: Dict[str, Any]) -> str:
        return to_json({'currentConnection': self.manager.get_current_connection_name()})

    async def _compare_schemas(self, args: Dict[str, Any]) -> str:
        self._require(args, 'source_connection', 'target_connection')
        source = self.manager.require_connection(args['source_connection'])
        target = self.manager.require_connection(args['target_connection'])
        comparison = await compare_schemas(source, target)
        return to_json(comparison.to_dict())

    async def _validate_schema(self, args: Dict[str, Any]) -> str:
        self._require(args, 'connection')
        validation = await validate_schema(self._adapter(args))
        return to_json(validation.to_dict())
