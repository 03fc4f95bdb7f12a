"""Tests for the DynamoDB adapter with a mocked boto3 resource."""

import decimal
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from dbgateway.config.models import DynamoDBConfig
from dbgateway.db.adapters.dynamodb import DynamoDBAdapter, to_plain, to_request_value
from dbgateway.exceptions import DatabaseError, QueryValidationError


def missing_table_error() -> ClientError:
    return ClientError(
        {'Error': {'Code': 'ResourceNotFoundException', 'Message': 'Requested resource not found'}},
        'DescribeTable',
    )


@pytest.fixture
def resource():
    return MagicMock()


@pytest.fixture
def adapter(resource):
    db_adapter = DynamoDBAdapter(DynamoDBConfig(name="events", region="eu-west-1"))
    db_adapter._resource = resource
    db_adapter._connected = True
    return db_adapter


def test_to_plain_converts_decimals_and_sets():
    item = {'qty': decimal.Decimal('3'), 'price': decimal.Decimal('9.5'), 'tags': {'b', 'a'}}
    assert to_plain(item) == {'qty': 3, 'price': 9.5, 'tags': ['a', 'b']}


def test_to_request_value_converts_floats():
    assert to_request_value({':min': 2.5, ':n': 3}) == {':min': decimal.Decimal('2.5'), ':n': 3}


@pytest.mark.asyncio
async def test_connect_builds_resource_for_endpoint():
    with patch('dbgateway.db.adapters.dynamodb.boto3') as boto3:
        adapter = DynamoDBAdapter(DynamoDBConfig(
            endpoint="http://localhost:8000", access_key_id="key", secret_access_key="secret",
        ))
        await adapter.connect()

    assert adapter.is_connected()
    args, kwargs = boto3.resource.call_args
    assert args == ('dynamodb',)
    assert kwargs['region_name'] == 'us-east-1'
    assert kwargs['endpoint_url'] == 'http://localhost:8000'
    assert kwargs['aws_access_key_id'] == 'key'

    await adapter.disconnect()
    assert not adapter.is_connected()


@pytest.mark.asyncio
async def test_scan_maps_request_fields(adapter, resource):
    table = resource.Table.return_value
    table.scan.return_value = {'Items': [{'pk': 'a', 'n': decimal.Decimal('1')}]}

    result = await adapter.execute_query({
        'tableName': 'events',
        'operation': 'scan',
        'filterExpression': 'n > :min',
        'expressionAttributeValues': {':min': 0.5},
        'limit': 10,
    })

    resource.Table.assert_called_once_with('events')
    table.scan.assert_called_once_with(
        FilterExpression='n > :min',
        ExpressionAttributeValues={':min': decimal.Decimal('0.5')},
        Limit=10,
    )
    assert result.rows == [{'pk': 'a', 'n': 1}]
    assert result.row_count == 1
    assert [(f.name, f.data_type) for f in result.fields] == [('pk', 'String'), ('n', 'Number')]


@pytest.mark.asyncio
async def test_query_uses_key_condition(adapter, resource):
    table = resource.Table.return_value
    table.query.return_value = {'Items': []}

    result = await adapter.execute_query(
        '{"tableName": "events", "operation": "Query", "keyConditionExpression": "pk = :pk",'
        ' "expressionAttributeValues": {":pk": "c#1"}}'
    )

    table.query.assert_called_once_with(
        KeyConditionExpression='pk = :pk',
        ExpressionAttributeValues={':pk': 'c#1'},
    )
    assert result.rows == []
    assert result.row_count == 0


@pytest.mark.asyncio
async def test_unsupported_operation(adapter):
    with pytest.raises(QueryValidationError, match='Unsupported operation. Use "scan" or "query"'):
        await adapter.execute_query({'tableName': 'events', 'operation': 'putItem'})


@pytest.mark.asyncio
async def test_service_errors_are_wrapped(adapter, resource):
    resource.Table.return_value.scan.side_effect = missing_table_error()

    with pytest.raises(DatabaseError, match="DynamoDB error:"):
        await adapter.execute_query({'tableName': 'gone', 'operation': 'scan'})


@pytest.mark.asyncio
async def test_describe_table(adapter, resource):
    resource.meta.client.describe_table.return_value = {'Table': {
        'KeySchema': [{'AttributeName': 'pk', 'KeyType': 'HASH'}],
        'AttributeDefinitions': [
            {'AttributeName': 'pk', 'AttributeType': 'S'},
            {'AttributeName': 'created', 'AttributeType': 'N'},
        ],
        'GlobalSecondaryIndexes': [
            {'IndexName': 'by_created', 'KeySchema': [{'AttributeName': 'created', 'KeyType': 'HASH'}]},
        ],
    }}

    info = await adapter.get_table_info('events')

    resource.meta.client.describe_table.assert_called_once_with(TableName='events')
    assert [(c.name, c.data_type, c.is_primary_key) for c in info.columns] == [
        ('pk', 'String', True),
        ('created', 'Number', False),
    ]
    assert [(i.name, i.columns, i.type) for i in info.indexes] == [('by_created', ['created'], 'GSI')]


@pytest.mark.asyncio
async def test_missing_table_has_no_descriptor(adapter, resource):
    resource.meta.client.describe_table.side_effect = missing_table_error()
    assert await adapter.get_table_info('gone') is None


@pytest.mark.asyncio
async def test_list_tables_and_stats(adapter, resource):
    client = resource.meta.client
    client.get_paginator.return_value.paginate.return_value = [
        {'TableNames': ['a', 'b']},
        {'TableNames': ['c']},
    ]
    client.describe_table.side_effect = [
        {'Table': {'TableSizeBytes': 1024 * 1024, 'GlobalSecondaryIndexes': [{}]}},
        {'Table': {'TableSizeBytes': 1024 * 1024, 'LocalSecondaryIndexes': [{}, {}]}},
        missing_table_error(),
    ]

    assert await adapter.list_table_names() == ['a', 'b', 'c']
    client.get_paginator.assert_called_with('list_tables')

    stats = await adapter.get_database_stats()
    assert stats.total_tables == 3
    assert stats.total_indexes == 3
    assert stats.database_size == '2.00 MB'


@pytest.mark.asyncio
async def test_validate_connection(adapter, resource):
    assert await adapter.validate_connection()
    resource.meta.client.list_tables.assert_called_once_with(Limit=1)

    resource.meta.client.list_tables.side_effect = RuntimeError("expired token")
    assert not await adapter.validate_connection()
