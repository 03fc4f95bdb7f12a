"""Tests for the adapter factory."""

import pytest

from dbgateway.config.models import DatabaseType, PostgreSQLConfig, SQLiteConfig
from dbgateway.db.adapters import (
    CassandraAdapter,
    DynamoDBAdapter,
    MongoDBAdapter,
    MSSQLAdapter,
    MySQLAdapter,
    PostgreSQLAdapter,
    RedisAdapter,
    SQLiteAdapter,
)
from dbgateway.db.factory import DatabaseAdapterFactory
from dbgateway.exceptions import ConfigurationError


class TestCreateDatabase:

    @pytest.mark.parametrize("config, adapter_class", [
        ({'type': 'postgresql', 'host': 'db', 'database': 'app'}, PostgreSQLAdapter),
        ({'type': 'mysql', 'host': 'db', 'database': 'app'}, MySQLAdapter),
        ({'type': 'sqlite', 'filename': ':memory:'}, SQLiteAdapter),
        ({'type': 'redis', 'host': 'cache'}, RedisAdapter),
        ({'type': 'mongodb', 'host': 'mongo', 'database': 'app'}, MongoDBAdapter),
        ({'type': 'cassandra', 'host': 'cass', 'keyspace': 'app'}, CassandraAdapter),
        ({'type': 'mssql', 'host': 'sql', 'database': 'app'}, MSSQLAdapter),
        ({'type': 'dynamodb', 'region': 'eu-west-1'}, DynamoDBAdapter),
    ])
    def test_every_kind_maps_to_its_adapter(self, config, adapter_class):
        adapter = DatabaseAdapterFactory.create_database(config)
        assert isinstance(adapter, adapter_class)
        assert adapter.kind == DatabaseType(config['type'])
        assert not adapter.is_connected()

    def test_accepts_config_model(self):
        adapter = DatabaseAdapterFactory.create_database(PostgreSQLConfig(name="pg", host="db", database="app"))
        assert isinstance(adapter, PostgreSQLAdapter)
        assert adapter.name == "pg"

    def test_unknown_kind(self):
        with pytest.raises(ConfigurationError, match="Unsupported database type: oracle"):
            DatabaseAdapterFactory.create_database({'type': 'oracle'})

    def test_invalid_field_shape(self):
        with pytest.raises(ConfigurationError, match="Invalid postgresql configuration"):
            DatabaseAdapterFactory.create_database({'type': 'postgresql', 'port': 70000})


class TestValidateConfig:

    @pytest.mark.parametrize("kind, expected", [
        ('postgresql', ["Host or URL is required for PostgreSQL/MySQL",
                        "Database name is required for PostgreSQL/MySQL"]),
        ('mysql', ["Host or URL is required for PostgreSQL/MySQL",
                   "Database name is required for PostgreSQL/MySQL"]),
        ('sqlite', ["Filename or database name is required for SQLite"]),
        ('redis', ["Host or URL is required for Redis"]),
        ('mongodb', ["Host or URL is required for MongoDB", "Database name is required for MongoDB"]),
        ('cassandra', ["Host or URL is required for Cassandra",
                       "Keyspace or database name is required for Cassandra"]),
        ('mssql', ["Host or URL is required for Microsoft SQL Server",
                   "Database name is required for Microsoft SQL Server"]),
        ('dynamodb', ["Region or endpoint is required for DynamoDB"]),
    ])
    def test_empty_config_names_missing_fields(self, kind, expected):
        result = DatabaseAdapterFactory.validate_config({'type': kind})
        assert not result.valid
        assert result.errors == expected

    def test_missing_type(self):
        result = DatabaseAdapterFactory.validate_config({})
        assert result.to_dict() == {'valid': False, 'errors': ["Database type is required"]}

    def test_unsupported_type(self):
        result = DatabaseAdapterFactory.validate_config({'type': 'oracle'})
        assert result.errors == ["Unsupported database type: oracle"]

    def test_not_a_mapping_never_raises(self):
        result = DatabaseAdapterFactory.validate_config(None)
        assert not result.valid

    def test_url_satisfies_host_and_database(self):
        result = DatabaseAdapterFactory.validate_config({'type': 'postgresql', 'url': 'postgresql://u@h/db'})
        assert result.valid
        assert result.errors == []

    def test_camel_case_aliases(self):
        result = DatabaseAdapterFactory.validate_config({
            'type': 'dynamodb', 'endpoint': 'http://localhost:8000', 'accessKeyId': 'a', 'secretAccessKey': 'b',
        })
        assert result.valid

    def test_field_errors_are_reported(self):
        result = DatabaseAdapterFactory.validate_config({'type': 'redis', 'host': 'h', 'port': 0})
        assert not result.valid
        assert any('port' in message for message in result.errors)

    def test_accepts_models(self):
        assert DatabaseAdapterFactory.validate_config(SQLiteConfig(filename="x.db")).valid


def test_supported_types_lists_all_kinds():
    assert set(DatabaseAdapterFactory.get_supported_types()) == set(DatabaseType)
    assert len(DatabaseAdapterFactory.get_supported_types()) == 8


@pytest.mark.parametrize("kind, expected", [
    ('sqlite', {'type': 'sqlite', 'filename': ':memory:'}),
    ('dynamodb', {'type': 'dynamodb', 'region': 'us-east-1'}),
    ('redis', {'type': 'redis'}),
    (DatabaseType.MSSQL, {'type': 'mssql'}),
])
def test_default_config(kind, expected):
    assert DatabaseAdapterFactory.get_default_config(kind) == expected


def test_default_config_unknown_kind():
    with pytest.raises(ConfigurationError):
        DatabaseAdapterFactory.get_default_config('oracle')



class TestUrlConfigs:

    def test_create_from_url_mapping(self):
        adapter = DatabaseAdapterFactory.create_database({'name': 'main', 'url': "postgres://app@db.local/orders"})

        assert isinstance(adapter, PostgreSQLAdapter)
        assert adapter.config.host == 'db.local'
        assert adapter.config.database == 'orders'
        assert adapter.config.name == 'main'
        assert adapter.config.url is None

    def test_create_from_bare_url(self):
        adapter = DatabaseAdapterFactory.create_database("redis://cache:6380/2")

        assert isinstance(adapter, RedisAdapter)
        assert adapter.config.db == 2

    def test_validate_url_mapping(self):
        assert DatabaseAdapterFactory.validate_config({'url': "mongodb://mongo/app"}).valid

    def test_unknown_scheme_still_needs_type(self):
        result = DatabaseAdapterFactory.validate_config({'url': "oracle://db/x"})
        assert result.errors == ["Database type is required"]
