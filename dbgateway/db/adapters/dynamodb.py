"""Amazon DynamoDB database adapter."""

import asyncio
import decimal
import logging
from typing import Any, Dict, List, Optional, Sequence

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from dbgateway.config.models import DatabaseType
from dbgateway.db.base import DatabaseAdapter, Query
from dbgateway.db.commands import StructuredCommand
from dbgateway.db.models import (
    ColumnInfo,
    DatabaseStats,
    FieldInfo,
    IndexInfo,
    QueryResult,
    TableInfo,
    format_megabytes,
)
from dbgateway.exceptions import DatabaseConnectionError, QueryValidationError

logger = logging.getLogger(__name__)

ATTRIBUTE_TYPES = {
    'S': 'String',
    'N': 'Number',
    'B': 'Binary',
    'BOOL': 'Boolean',
    'SS': 'StringSet',
    'NS': 'NumberSet',
    'BS': 'BinarySet',
    'L': 'List',
    'M': 'Map',
    'NULL': 'Null',
}

# structured command field -> boto3 request parameter
REQUEST_FIELDS = {
    'filterExpression': 'FilterExpression',
    'keyConditionExpression': 'KeyConditionExpression',
    'expressionAttributeNames': 'ExpressionAttributeNames',
    'expressionAttributeValues': 'ExpressionAttributeValues',
    'limit': 'Limit',
}


def to_plain(value: Any) -> Any:
    """Convert the Decimal and set values the resource API returns."""
    if isinstance(value, decimal.Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, (set, frozenset)):
        return sorted(to_plain(item) for item in value)
    if isinstance(value, list):
        return [to_plain(item) for item in value]
    if isinstance(value, dict):
        return {key: to_plain(item) for key, item in value.items()}
    return value


def to_request_value(value: Any) -> Any:
    """The resource API rejects floats; numbers go over the wire as Decimal."""
    if isinstance(value, float):
        return decimal.Decimal(str(value))
    if isinstance(value, list):
        return [to_request_value(item) for item in value]
    if isinstance(value, dict):
        return {key: to_request_value(item) for key, item in value.items()}
    return value


def value_type(value: Any) -> str:
    if value is None:
        return 'Null'
    if isinstance(value, bool):
        return 'Boolean'
    if isinstance(value, str):
        return 'String'
    if isinstance(value, (int, float, decimal.Decimal)):
        return 'Number'
    if isinstance(value, (list, tuple, set)):
        return 'List'
    if isinstance(value, dict):
        return 'Map'
    return 'Unknown'


def is_missing_table(error: Exception) -> bool:
    return (
        isinstance(error, ClientError)
        and error.response.get('Error', {}).get('Code') == 'ResourceNotFoundException'
    )


class DynamoDBAdapter(DatabaseAdapter):
    """DynamoDB adapter (boto3, run in worker threads).

    Queries are structured commands::

        {"tableName": "orders", "operation": "query",
         "keyConditionExpression": "pk = :pk",
         "expressionAttributeValues": {":pk": "customer#1"}}

    DynamoDB has no session transactions; begin/commit/rollback only move
    the state machine.
    """

    kind = DatabaseType.DYNAMODB
    label = "DynamoDB"
    supports_transactions = False

    def __init__(self, config) -> None:
        super().__init__(config)
        self._resource = None

    @property
    def native_handle(self):
        return self._resource

    @property
    def _client(self):
        return self._resource.meta.client

    def _build_resource(self):
        options: Dict[str, Any] = {
            'region_name': self.config.region or 'us-east-1',
            'config': Config(
                connect_timeout=self.config.pool_timeout,
                read_timeout=self.config.request_timeout,
                max_pool_connections=self.config.pool_size,
            ),
        }
        if self.config.access_key_id and self.config.secret_access_key:
            options['aws_access_key_id'] = self.config.access_key_id
            options['aws_secret_access_key'] = self.config.secret_access_key
        if self.config.endpoint:
            options['endpoint_url'] = self.config.endpoint
        return boto3.resource('dynamodb', **options)

    async def connect(self) -> None:
        try:
            resource = await asyncio.to_thread(self._build_resource)
        except Exception as e:
            self._connected = False
            raise DatabaseConnectionError(f"{self.label} error: {e}", database_type=self.kind.value) from e

        self._resource = resource
        self._connected = True
        logger.info(f"Connected to {self.label} in region '{self.config.region or 'us-east-1'}' for '{self.name}'")

    async def disconnect(self) -> None:
        self._resource = None
        self._transaction.end()
        self._connected = False

    async def execute_query(self, query: Query, parameters: Optional[Sequence[Any]] = None) -> QueryResult:
        self._require_connection()
        command = StructuredCommand.parse(query)
        if command.verb not in ('scan', 'query'):
            raise QueryValidationError('Unsupported operation. Use "scan" or "query"')

        request: Dict[str, Any] = {}
        for field_name, request_name in REQUEST_FIELDS.items():
            value = command.get(field_name)
            if value is not None:
                request[request_name] = value
        if 'ExpressionAttributeValues' in request:
            request['ExpressionAttributeValues'] = to_request_value(request['ExpressionAttributeValues'])

        table = self._resource.Table(command.target)
        method = table.scan if command.verb == 'scan' else table.query
        try:
            response = await asyncio.to_thread(method, **request)
        except Exception as e:
            raise self._wrap(e)

        items = [to_plain(item) for item in response.get('Items', [])]
        fields = []
        if items:
            fields = [
                FieldInfo(name=key, data_type=value_type(value), nullable=True)
                for key, value in items[0].items()
            ]
        return QueryResult(rows=items, row_count=len(items), fields=fields)

    async def list_table_names(self) -> List[str]:
        self._require_connection()
        paginator = self._client.get_paginator('list_tables')

        def collect() -> List[str]:
            names: List[str] = []
            for page in paginator.paginate():
                names.extend(page.get('TableNames', []))
            return names

        try:
            return await asyncio.to_thread(collect)
        except Exception as e:
            raise self._wrap(e)

    async def _describe_table(self, table_name: str) -> Optional[Dict[str, Any]]:
        try:
            response = await asyncio.to_thread(self._client.describe_table, TableName=table_name)
        except ClientError as e:
            if is_missing_table(e):
                return None
            raise
        return response.get('Table')

    async def get_table_info(self, table_name: str, schema: Optional[str] = None) -> Optional[TableInfo]:
        self._require_connection()
        try:
            table = await self._describe_table(table_name)
        except Exception as e:
            raise self._wrap(e)
        if table is None:
            return None

        key_names = {key['AttributeName'] for key in table.get('KeySchema', [])}
        columns = [
            ColumnInfo(
                name=attribute['AttributeName'],
                data_type=ATTRIBUTE_TYPES.get(attribute.get('AttributeType'), 'Unknown'),
                nullable=True,
                is_primary_key=attribute['AttributeName'] in key_names,
            )
            for attribute in table.get('AttributeDefinitions', [])
        ]

        indexes = []
        for index_type, key in (('GSI', 'GlobalSecondaryIndexes'), ('LSI', 'LocalSecondaryIndexes')):
            for index in table.get(key, []):
                indexes.append(IndexInfo(
                    name=index.get('IndexName', ''),
                    columns=[part['AttributeName'] for part in index.get('KeySchema', [])],
                    unique=False,
                    type=index_type,
                ))

        return TableInfo(name=table_name, type='table', columns=columns, indexes=indexes)

    async def get_database_stats(self) -> DatabaseStats:
        self._require_connection()
        names = await self.list_table_names()

        total_size = 0
        total_indexes = 0
        for table_name in names:
            try:
                table = await self._describe_table(table_name)
            except Exception as e:
                logger.debug(f"Skipping {self.label} table '{table_name}' in stats: {e}")
                continue
            if table is None:
                continue
            total_size += table.get('TableSizeBytes', 0) or 0
            total_indexes += len(table.get('GlobalSecondaryIndexes', [])) + len(table.get('LocalSecondaryIndexes', []))

        return DatabaseStats(
            total_tables=len(names),
            total_views=0,
            total_indexes=total_indexes,
            database_size=format_megabytes(total_size),
            connection_count=1,
        )

    async def validate_connection(self) -> bool:
        if not self.is_connected():
            return False
        try:
            await asyncio.to_thread(self._client.list_tables, Limit=1)
            return True
        except Exception as e:
            logger.debug(f"{self.label} connection check for '{self.name}' failed: {e}")
            return False
