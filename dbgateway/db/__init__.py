"""Database adapters, connection registry and query guards."""

from dbgateway.db.base import DatabaseAdapter, Query
from dbgateway.db.commands import StructuredCommand
from dbgateway.db.models import (
    ColumnInfo,
    ConstraintInfo,
    DatabaseOperation,
    DatabaseStats,
    FieldInfo,
    IndexInfo,
    QueryResult,
    TableInfo,
)
from dbgateway.db.factory import ConfigValidationResult, DatabaseAdapterFactory
from dbgateway.db.connection import ConnectionManager, TeardownFailure
from dbgateway.db.schema import SchemaComparison, SchemaValidation, compare_schemas, validate_schema
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

__all__ = [
    # Base classes
    "DatabaseAdapter",
    "Query",
    "StructuredCommand",
    # Result and schema models
    "QueryResult",
    "FieldInfo",
    "TableInfo",
    "ColumnInfo",
    "IndexInfo",
    "ConstraintInfo",
    "DatabaseStats",
    "DatabaseOperation",
    # Factory and connection management
    "DatabaseAdapterFactory",
    "ConfigValidationResult",
    "ConnectionManager",
    "TeardownFailure",
    # Schema comparison
    "SchemaComparison",
    "SchemaValidation",
    "compare_schemas",
    "validate_schema",
    # Database adapters
    "PostgreSQLAdapter",
    "MySQLAdapter",
    "SQLiteAdapter",
    "MSSQLAdapter",
    "RedisAdapter",
    "MongoDBAdapter",
    "CassandraAdapter",
    "DynamoDBAdapter",
]
