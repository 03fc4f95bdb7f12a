"""Database adapters for the supported backend kinds."""

from dbgateway.db.adapters.cassandra import CassandraAdapter
from dbgateway.db.adapters.dynamodb import DynamoDBAdapter
from dbgateway.db.adapters.mongodb import MongoDBAdapter
from dbgateway.db.adapters.mssql import MSSQLAdapter
from dbgateway.db.adapters.mysql import MySQLAdapter
from dbgateway.db.adapters.postgresql import PostgreSQLAdapter
from dbgateway.db.adapters.redis import RedisAdapter
from dbgateway.db.adapters.sql import SQLAlchemyAdapter
from dbgateway.db.adapters.sqlite import SQLiteAdapter

__all__ = [
    "SQLAlchemyAdapter",
    "PostgreSQLAdapter",
    "MySQLAdapter",
    "SQLiteAdapter",
    "MSSQLAdapter",
    "RedisAdapter",
    "MongoDBAdapter",
    "CassandraAdapter",
    "DynamoDBAdapter",
]
