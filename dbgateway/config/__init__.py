"""Configuration management for dbgateway."""

from dbgateway.config.models import (
    BaseConnectionConfig,
    CassandraConfig,
    ConnectionConfig,
    DatabaseType,
    DynamoDBConfig,
    EnvironmentSettings,
    GatewayConfig,
    LoggingSettings,
    MongoDBConfig,
    MSSQLConfig,
    MySQLConfig,
    PostgreSQLConfig,
    RedisConfig,
    ServerSettings,
    SQLiteConfig,
    parse_connection_config,
)
from dbgateway.config.parser import (
    ConfigParser,
    create_sample_config,
    expand_connection_url,
    get_config,
    parse_database_url,
    save_config,
)

__all__ = [
    # Models
    "DatabaseType",
    "BaseConnectionConfig",
    "PostgreSQLConfig",
    "MySQLConfig",
    "SQLiteConfig",
    "RedisConfig",
    "MongoDBConfig",
    "CassandraConfig",
    "MSSQLConfig",
    "DynamoDBConfig",
    "ConnectionConfig",
    "ServerSettings",
    "LoggingSettings",
    "GatewayConfig",
    "EnvironmentSettings",
    "parse_connection_config",
    # Parser
    "ConfigParser",
    "get_config",
    "save_config",
    "parse_database_url",
    "expand_connection_url",
    "create_sample_config",
]
